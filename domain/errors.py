from __future__ import annotations

from typing import Optional


class OnboardingError(Exception):
    """Base class for every failure the onboarding flow knows about."""


class ValidationError(OnboardingError):
    """User input is malformed."""


class ExternalProcessError(OnboardingError):
    """
    The OTP-delivery collaborator could not be started or reported failure.

    `exit_code` is None when the process never ran.
    """

    def __init__(
        self,
        message: str,
        exit_code: Optional[int] = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.exit_code = exit_code
        self.stderr = stderr


class ChannelError(OnboardingError):
    """The OTP transfer channel is missing, blank or unreadable."""


class MismatchError(OnboardingError):
    """The entered code does not match the outstanding challenge."""


class ProvisioningError(OnboardingError):
    """A user profile could not be created from its template."""


class TemplateMissingError(ProvisioningError):
    pass


class ProfileWriteError(ProvisioningError):
    pass


class PreferenceWriteError(ProvisioningError):
    """The session preference record could not be stored."""
