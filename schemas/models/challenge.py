"""
OTP challenge record.

Stored as JSON under ``otp:{purpose}:{identifier}``. code_hash stores
SHA-256(code); the plain code is only ever returned to the caller that
issued it so it can be handed to the notifier.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from shared.logging import get_logger

log = get_logger(__name__)


class ChallengePurpose(str, Enum):
    """Flows that may request a one-time code.

    Keys are namespaced by purpose so a password-reset code can never be
    redeemed as an email-change code for the same address.
    """

    PASSWORD_RESET = "password_reset"
    EMAIL_VERIFY = "email_verify"
    EMAIL_CHANGE = "email_change"

    @property
    def requires_known_identifier(self) -> bool:
        # Email change codes go to the new, not-yet-registered address
        return self is not ChallengePurpose.EMAIL_CHANGE

    @property
    def confirmation_purpose(self) -> str:
        return f"{self.value}_verified"


def all_challenge_purposes() -> list[str]:
    """Every purpose namespace that can hold a challenge, confirmations included."""
    purposes: list[str] = []
    for purpose in ChallengePurpose:
        purposes.append(purpose.value)
        purposes.append(purpose.confirmation_purpose)
    return purposes


class Challenge(BaseModel):
    """Document model for an outstanding challenge."""

    identifier: str
    purpose: str
    code_hash: str
    attempts: int = Field(default=0, ge=0)
    max_attempts: int = Field(default=5, ge=1)
    created_at: datetime
    expires_at: datetime

    @property
    def attempts_remaining(self) -> int:
        return max(0, self.max_attempts - self.attempts)

    def to_store(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_store(cls, raw: Optional[str]) -> Optional["Challenge"]:
        if raw is None:
            return None
        try:
            return cls.model_validate_json(raw)
        except ValidationError:
            log.warning("challenge_record_undecodable")
            return None


class IssuedChallenge(BaseModel):
    """Returned to the issuer only; carries the plaintext code."""

    identifier: str
    purpose: str
    code: str
    max_attempts: int
    expires_at: datetime


class VerifiedChallenge(BaseModel):
    identifier: str
    purpose: str
    verified_at: datetime


class ChallengeStatus(BaseModel):
    """Read-only snapshot of a challenge; never exposes the code."""

    exists: bool
    attempts: int = 0
    max_attempts: int = 0
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    seconds_remaining: int = 0
