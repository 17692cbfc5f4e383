"""Notifier protocol — services depend on this, not the concrete implementation."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


class NotificationKind(str, Enum):
    OTP_CODE = "otp_code"
    SECURITY_NOTICE = "security_notice"


@dataclass(frozen=True)
class NotificationPayload:
    kind: NotificationKind
    subject: str
    data: dict[str, Any] = field(default_factory=dict)


class Notifier(Protocol):
    async def send(self, identifier: str, payload: NotificationPayload) -> bool: ...
