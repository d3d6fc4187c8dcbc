from __future__ import annotations

from domain.models import CreditScore

CREDIT_PREFIX = "credit"


def encode_credit_choice(credit_score: CreditScore) -> str:
    """
    Encode a credit score button.

    Format: credit:{label}
    """

    return f"{CREDIT_PREFIX}:{credit_score.value}"


def parse_credit_choice(data: str) -> CreditScore:
    parts = data.split(":")
    if len(parts) != 2 or parts[0] != CREDIT_PREFIX:
        raise ValueError(f"Invalid credit choice callback data: {data}")

    credit_score = CreditScore.parse(parts[1])
    if credit_score is None:
        raise ValueError(f"Unknown credit score in callback data: {data}")
    return credit_score
