from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from email_validator import EmailNotValidError, validate_email as _check_address

from domain.errors import (
    ChannelError,
    ExternalProcessError,
    MismatchError,
    ProvisioningError,
    TemplateMissingError,
    ValidationError,
)
from domain.models import CREDIT_TEMPLATES, CreditScore, SessionPreferences
from domain.repositories import (
    OtpChannel,
    OtpDispatcher,
    PreferenceRepository,
    ProfileRepository,
)

logger = logging.getLogger(__name__)


class InvalidEmailReason(Enum):
    EMPTY = "empty"
    MALFORMED_FORMAT = "malformed_format"


class DispatchFailure(Enum):
    NOT_STARTED = "not_started"
    NON_ZERO_EXIT = "non_zero_exit"


class VerifyFailure(Enum):
    EMPTY_INPUT = "empty_input"
    CHANNEL_UNREADABLE = "channel_unreadable"
    MISMATCH = "mismatch"


class ProvisionFailure(Enum):
    INVALID_CATEGORY = "invalid_category"
    TEMPLATE_MISSING = "template_missing"
    WRITE_FAILURE = "write_failure"


@dataclass
class EmailValidationResult:
    success: bool
    email: Optional[str] = None
    reason: Optional[InvalidEmailReason] = None
    error: Optional[ValidationError] = None


@dataclass
class DispatchResult:
    success: bool
    failure: Optional[DispatchFailure] = None
    error: Optional[ExternalProcessError] = None


@dataclass
class VerifyResult:
    success: bool
    failure: Optional[VerifyFailure] = None
    error: Optional[Exception] = None


@dataclass
class ProvisionResult:
    success: bool
    artifact_path: Optional[str] = None
    failure: Optional[ProvisionFailure] = None
    error: Optional[Exception] = None


def _malformed(error: ValidationError) -> EmailValidationResult:
    return EmailValidationResult(
        success=False, reason=InvalidEmailReason.MALFORMED_FORMAT, error=error
    )


def validate_email(raw: Optional[str]) -> EmailValidationResult:
    """
    Syntactic address check. No DNS or deliverability lookups are made.

    A valid address is returned exactly as entered: an address that only
    parses after trimming or normalisation is rejected.
    """

    if not raw:
        return EmailValidationResult(
            success=False,
            reason=InvalidEmailReason.EMPTY,
            error=ValidationError("Email cannot be empty."),
        )

    if raw != raw.strip():
        return _malformed(ValidationError("Email has surrounding whitespace."))

    try:
        _check_address(raw, check_deliverability=False)
    except EmailNotValidError as exc:
        return _malformed(ValidationError(str(exc)))

    return EmailValidationResult(success=True, email=raw)


def dispatch_otp(email: str, dispatcher: OtpDispatcher) -> DispatchResult:
    """Ask the delivery collaborator for a new challenge, blocking until it exits."""

    try:
        dispatcher.dispatch(email)
    except ExternalProcessError as exc:
        failure = (
            DispatchFailure.NOT_STARTED
            if exc.exit_code is None
            else DispatchFailure.NON_ZERO_EXIT
        )
        logger.error("OTP dispatch for %s failed: %s", email, exc)
        return DispatchResult(success=False, failure=failure, error=exc)

    return DispatchResult(success=True)


def verify_otp(user_input: Optional[str], channel: OtpChannel) -> VerifyResult:
    """
    Compare `user_input` with the outstanding challenge.

    Both sides are trimmed before comparison. A match consumes the
    challenge; failing to erase it is only logged.
    """

    if not user_input:
        return VerifyResult(success=False, failure=VerifyFailure.EMPTY_INPUT)

    try:
        expected = channel.read()
    except ChannelError as exc:
        logger.error("Could not read OTP challenge: %s", exc)
        return VerifyResult(
            success=False, failure=VerifyFailure.CHANNEL_UNREADABLE, error=exc
        )

    if user_input.strip() != expected.strip():
        return VerifyResult(
            success=False,
            failure=VerifyFailure.MISMATCH,
            error=MismatchError("Entered code does not match the challenge."),
        )

    erase_challenge(channel)
    return VerifyResult(success=True)


def erase_challenge(channel: OtpChannel) -> None:
    try:
        channel.clear()
    except ChannelError as exc:
        logger.error("Error deleting OTP challenge: %s", exc)
    else:
        logger.info("OTP challenge cleaned up.")


def sanitize_email(email: str) -> str:
    """
    Turn an email into a filename token.

    Only `@` and `.` are rewritten, in that order:
    `x.y@z.io` -> `x_y_at_z_io`.
    """

    return email.replace("@", "_at_").replace(".", "_")


def artifact_name_for(email: str) -> str:
    return f"{sanitize_email(email)}_data.json"


def provision_profile(
    email: str,
    credit_score: CreditScore,
    profile_repo: ProfileRepository,
) -> ProvisionResult:
    """
    Create (or overwrite) the profile for `email` from the template that
    belongs to `credit_score`.
    """

    template = CREDIT_TEMPLATES.get(credit_score)
    if template is None:
        logger.error("Invalid credit score selection: %r", credit_score)
        return ProvisionResult(success=False, failure=ProvisionFailure.INVALID_CATEGORY)

    if not profile_repo.template_exists(template):
        logger.error("Template file not found: %s", template)
        return ProvisionResult(
            success=False,
            failure=ProvisionFailure.TEMPLATE_MISSING,
            error=TemplateMissingError(template),
        )

    try:
        path = profile_repo.copy_template(template, artifact_name_for(email))
    except TemplateMissingError as exc:
        # The template vanished between the existence check and the copy.
        logger.error("Template file not found: %s", exc)
        return ProvisionResult(
            success=False, failure=ProvisionFailure.TEMPLATE_MISSING, error=exc
        )
    except ProvisioningError as exc:
        logger.error("Error creating user file: %s", exc)
        return ProvisionResult(
            success=False, failure=ProvisionFailure.WRITE_FAILURE, error=exc
        )

    logger.info("User file created: %s", path)
    return ProvisionResult(success=True, artifact_path=path)


def save_session_preferences(
    preferences: SessionPreferences,
    preference_repo: PreferenceRepository,
) -> None:
    preference_repo.set_values(preferences.to_values())


def load_session_preferences(
    preference_repo: PreferenceRepository,
) -> Optional[SessionPreferences]:
    """
    Return the record written by the last completed onboarding, or None if
    there is none or it is incomplete.
    """

    email = preference_repo.get(SessionPreferences.EMAIL_KEY)
    label = preference_repo.get(SessionPreferences.CREDIT_SCORE_KEY)
    if not email or label is None:
        return None

    credit_score = CreditScore.parse(label)
    if credit_score is None:
        return None
    return SessionPreferences(email=email, credit_score=credit_score)
