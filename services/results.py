"""
Tagged results returned by every auth service operation.

    result = await auth.refresh(token)
    if not result.ok:
        return result.code   # one of the *ErrorCode enums

Ok carries the success value; Failure carries a code from errors.py plus
the few structured details callers need (remaining attempts, cooldown).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Generic, Optional, TypeVar, Union

from errors import (
    AuthErrorCode,
    ChallengeErrorCode,
    InfrastructureErrorCode,
    SessionErrorCode,
    StoreError,
)

T = TypeVar("T")

ErrorCode = Union[
    AuthErrorCode, SessionErrorCode, ChallengeErrorCode, InfrastructureErrorCode
]


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class Failure:
    code: ErrorCode
    message: str = ""
    attempts_remaining: Optional[int] = None
    seconds_remaining: Optional[int] = None
    details: dict[str, Any] = field(default_factory=dict)
    ok: ClassVar[bool] = False

    @property
    def is_infrastructure(self) -> bool:
        return isinstance(self.code, InfrastructureErrorCode)

    @classmethod
    def from_store_error(cls, exc: StoreError) -> "Failure":
        return cls(code=exc.infrastructure_code, message=exc.message)


Result = Union[Ok[T], Failure]
