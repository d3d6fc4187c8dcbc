from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Union

from application.services import (
    InvalidEmailReason,
    VerifyFailure,
    dispatch_otp,
    provision_profile,
    save_session_preferences,
    validate_email,
    verify_otp,
)
from domain.errors import ProvisioningError
from domain.models import CreditScore, OnboardingSession, SessionPreferences, Stage
from domain.repositories import (
    OtpChannel,
    OtpDispatcher,
    PreferenceRepository,
    ProfileRepository,
)

logger = logging.getLogger(__name__)

EMAIL_EMPTY_MESSAGE = "Email cannot be empty."
EMAIL_INVALID_MESSAGE = "Please enter a valid email address."
DISPATCH_FAILED_MESSAGE = "Failed to send OTP. Please try again."
OTP_EMPTY_MESSAGE = "OTP cannot be empty."
OTP_UNREADABLE_MESSAGE = "Error reading OTP. Please request a new one."
OTP_MISMATCH_MESSAGE = "Invalid OTP. Please try again."
INVALID_CATEGORY_MESSAGE = "Please choose bad, average or good."
PROVISIONING_FAILED_MESSAGE = "Error creating user profile. Please try again."

_VERIFY_MESSAGES = {
    VerifyFailure.EMPTY_INPUT: OTP_EMPTY_MESSAGE,
    VerifyFailure.CHANNEL_UNREADABLE: OTP_UNREADABLE_MESSAGE,
    VerifyFailure.MISMATCH: OTP_MISMATCH_MESSAGE,
}

_STAGE_PROMPTS = {
    Stage.EMAIL_ENTRY: "Please submit your email address first.",
    Stage.OTP_ENTRY: "Please enter the code that was sent to your email.",
    Stage.CREDIT_SELECT: "Please choose your credit score.",
    Stage.COMPLETE: "Onboarding is already complete.",
}


@dataclass
class FlowResult:
    """Outcome of one user event, as seen by the interface layer."""

    success: bool
    stage: Stage
    error_message: Optional[str] = None


CompletionHook = Callable[[SessionPreferences], None]


class OnboardingFlow:
    """
    Drives one onboarding session through
    email entry -> OTP entry -> credit selection -> complete.

    Every event either advances the session by exactly one stage or leaves
    it where it was with `error_message` set, so the user can simply retry.
    The controller never retries on its own.
    """

    def __init__(
        self,
        dispatcher: OtpDispatcher,
        channel: OtpChannel,
        profile_repo: ProfileRepository,
        preference_repo: PreferenceRepository,
        on_complete: Optional[CompletionHook] = None,
    ) -> None:
        self._dispatcher = dispatcher
        self._channel = channel
        self._profile_repo = profile_repo
        self._preference_repo = preference_repo
        self._on_complete = on_complete
        self.session = OnboardingSession()

    @property
    def stage(self) -> Stage:
        return self.session.stage

    def restart(self) -> FlowResult:
        """Discard the current session and start again at email entry."""

        self.session = OnboardingSession()
        return self._ok()

    def submit_email(self, raw_email: Optional[str]) -> FlowResult:
        if self.session.stage is not Stage.EMAIL_ENTRY:
            return self._wrong_stage()

        validation = validate_email(raw_email)
        if not validation.success:
            if validation.reason is InvalidEmailReason.EMPTY:
                return self._fail(EMAIL_EMPTY_MESSAGE)
            return self._fail(EMAIL_INVALID_MESSAGE)

        dispatch = dispatch_otp(validation.email, self._dispatcher)
        if not dispatch.success:
            return self._fail(DISPATCH_FAILED_MESSAGE)

        self.session.email = validation.email
        return self._advance(Stage.OTP_ENTRY)

    def verify_code(self, code: Optional[str]) -> FlowResult:
        if self.session.stage is not Stage.OTP_ENTRY:
            return self._wrong_stage()

        verification = verify_otp(code, self._channel)
        if not verification.success:
            return self._fail(_VERIFY_MESSAGES[verification.failure])

        return self._advance(Stage.CREDIT_SELECT)

    def select_credit_score(
        self, credit_score: Union[CreditScore, str, None]
    ) -> FlowResult:
        """
        Provision the user's profile for `credit_score` and finish onboarding.

        Plain labels ("bad", "average", "good") are accepted as well as
        `CreditScore` members.
        """

        if self.session.stage is not Stage.CREDIT_SELECT:
            return self._wrong_stage()

        if not isinstance(credit_score, CreditScore):
            credit_score = CreditScore.parse(credit_score) if credit_score else None
        if credit_score is None:
            return self._fail(INVALID_CATEGORY_MESSAGE)

        self.session.credit_score = credit_score
        provision = provision_profile(
            self.session.email, credit_score, self._profile_repo
        )
        if not provision.success:
            return self._fail(PROVISIONING_FAILED_MESSAGE)

        preferences = SessionPreferences(
            email=self.session.email, credit_score=credit_score
        )
        try:
            save_session_preferences(preferences, self._preference_repo)
        except ProvisioningError as exc:
            logger.error("Could not save session preferences: %s", exc)
            return self._fail(PROVISIONING_FAILED_MESSAGE)

        result = self._advance(Stage.COMPLETE)
        if self._on_complete is not None:
            try:
                self._on_complete(preferences)
            except Exception as exc:
                # Stage is already COMPLETE here.
                logger.error("Completion hook failed: %s", exc)
        return result

    def _advance(self, stage: Stage) -> FlowResult:
        logger.info("Onboarding %s -> %s", self.session.stage.value, stage.value)
        self.session.stage = stage
        return self._ok()

    def _ok(self) -> FlowResult:
        self.session.error_message = None
        return FlowResult(success=True, stage=self.session.stage)

    def _fail(self, message: str) -> FlowResult:
        self.session.error_message = message
        return FlowResult(
            success=False, stage=self.session.stage, error_message=message
        )

    def _wrong_stage(self) -> FlowResult:
        return self._fail(_STAGE_PROMPTS[self.session.stage])
