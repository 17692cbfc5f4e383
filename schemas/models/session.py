"""
Device session record.

Stored as JSON under ``session:{principal_id}:{device_id}``. One record per
login event, not per physical device: logging in again from the same browser
produces a new device id and a new record.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, ValidationError

from shared.logging import get_logger

log = get_logger(__name__)


class SessionMeta(BaseModel):
    """Client metadata captured at login, plus the principal's claims snapshot."""

    device_descriptor: str = "unknown"
    origin_address: str = "unknown"
    email: Optional[str] = None
    role: str = "customer"


class DeviceSession(BaseModel):
    """Document model for a single device session.

    email and role are a snapshot taken at login; refresh mints new access
    tokens from them without a directory round-trip.
    """

    model_config = ConfigDict(populate_by_name=True)

    device_id: str
    principal_id: str
    device_descriptor: str = "unknown"
    origin_address: str = "unknown"
    email: Optional[str] = None
    role: str = "customer"
    login_at: datetime
    last_activity_at: datetime

    def to_store(self) -> str:
        return self.model_dump_json()

    @classmethod
    def from_store(cls, raw: Optional[str]) -> Optional["DeviceSession"]:
        """Build a session from its stored JSON; None when absent or undecodable."""
        if raw is None:
            return None
        try:
            return cls.model_validate_json(raw)
        except ValidationError:
            log.warning("session_record_undecodable")
            return None
