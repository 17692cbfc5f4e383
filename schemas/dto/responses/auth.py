"""
Response DTOs for authentication endpoints.

RefreshResponse       — POST /auth/refresh  (200)
AccessClaimsResponse  — GET /auth/me  (200)
LogoutResponse        — POST /auth/logout, /auth/logout-all, DELETE /auth/sessions/{id}
SessionResponse       — one entry of SessionListResponse
SessionListResponse   — GET /auth/sessions  (200)
OtpRequestResponse    — POST /auth/otp/request  (202)
OtpVerifyResponse     — POST /auth/otp/verify  (200)
OtpStatusResponse     — GET /auth/otp/status  (200)
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.challenge import ChallengeStatus
from schemas.models.session import DeviceSession


class RefreshResponse(BaseModel):
    """Response body for POST /auth/refresh (200)."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str
    expires_in: int
    token_type: str = "Bearer"


class AccessClaimsResponse(BaseModel):
    """Claims of the presented access token, returned by GET /auth/me."""

    model_config = ConfigDict(populate_by_name=True)

    principal_id: str
    email: Optional[str] = None
    role: str
    device_id: Optional[str] = None
    expires_at: datetime


class LogoutResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str


class SessionResponse(BaseModel):
    """Public view of a DeviceSession; the snapshot claims are not exposed."""

    model_config = ConfigDict(populate_by_name=True)

    device_id: str
    device_descriptor: str
    origin_address: str
    login_at: datetime
    last_activity_at: datetime
    is_current: bool = False

    @classmethod
    def from_session(
        cls, session: DeviceSession, current_device_id: Optional[str] = None
    ) -> "SessionResponse":
        return cls(
            device_id=session.device_id,
            device_descriptor=session.device_descriptor,
            origin_address=session.origin_address,
            login_at=session.login_at,
            last_activity_at=session.last_activity_at,
            is_current=session.device_id == current_device_id,
        )


class SessionListResponse(BaseModel):
    """Response body for GET /auth/sessions (200), most recent activity first."""

    model_config = ConfigDict(populate_by_name=True)

    sessions: list[SessionResponse]
    total: int


class OtpRequestResponse(BaseModel):
    """Response body for POST /auth/otp/request (202)."""

    model_config = ConfigDict(populate_by_name=True)

    accepted: bool = True
    expires_in: int
    message: str = "If the identifier is registered, a code has been sent"


class OtpVerifyResponse(BaseModel):
    """Response body for POST /auth/otp/verify (200)."""

    model_config = ConfigDict(populate_by_name=True)

    verified: bool = True
    confirmation_token: str
    expires_in: int


class OtpStatusResponse(BaseModel):
    """Response body for GET /auth/otp/status (200); never carries the code."""

    model_config = ConfigDict(populate_by_name=True)

    exists: bool
    attempts_remaining: int = 0
    expires_at: Optional[datetime] = None
    seconds_remaining: int = 0

    @classmethod
    def from_status(cls, status: ChallengeStatus) -> "OtpStatusResponse":
        return cls(
            exists=status.exists,
            attempts_remaining=max(0, status.max_attempts - status.attempts),
            expires_at=status.expires_at,
            seconds_remaining=status.seconds_remaining,
        )
