from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Stage(Enum):
    """Onboarding stages, traversed strictly in declaration order."""

    EMAIL_ENTRY = "email_entry"
    OTP_ENTRY = "otp_entry"
    CREDIT_SELECT = "credit_select"
    COMPLETE = "complete"


class CreditScore(Enum):
    BAD = "bad"
    AVERAGE = "average"
    GOOD = "good"

    @classmethod
    def parse(cls, label: str) -> Optional["CreditScore"]:
        """Return the member for a case-insensitive label, or None."""

        try:
            return cls(label.strip().lower())
        except (AttributeError, ValueError):
            return None


# Each category seeds a profile from exactly one template.
CREDIT_TEMPLATES = {
    CreditScore.BAD: "bad_spending.json",
    CreditScore.AVERAGE: "average_spending.json",
    CreditScore.GOOD: "excellent_spending.json",
}


@dataclass
class OnboardingSession:
    """
    State of the single live onboarding session.

    Only the flow controller mutates it; the interface layer reads it to
    decide what to show next.
    """

    stage: Stage = Stage.EMAIL_ENTRY
    email: Optional[str] = None
    credit_score: Optional[CreditScore] = None
    error_message: Optional[str] = None


@dataclass
class SessionPreferences:
    """
    The "current user" record written once onboarding completes and read
    by the game systems that run afterwards.
    """

    EMAIL_KEY = "CurrentUserEmail"
    CREDIT_SCORE_KEY = "CurrentUserCreditScore"

    email: str
    credit_score: CreditScore

    def to_values(self) -> dict:
        return {
            self.EMAIL_KEY: self.email,
            self.CREDIT_SCORE_KEY: self.credit_score.value,
        }
