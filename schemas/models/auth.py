"""
Success payloads of the AuthService operations.

TokenPair           — issue_token_pair
RefreshedAccess     — refresh
OtpRequestAccepted  — request_otp
OtpVerified         — verify_otp
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict


class TokenPair(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    device_id: str
    expires_in: int
    token_type: Literal["Bearer"] = "Bearer"


class RefreshedAccess(BaseModel):
    model_config = ConfigDict(frozen=True)

    access_token: str
    expires_in: int
    token_type: Literal["Bearer"] = "Bearer"


class OtpRequestAccepted(BaseModel):
    """Same shape whether or not the identifier resolved to a principal."""

    model_config = ConfigDict(frozen=True)

    accepted: bool = True
    expires_in: int


class OtpVerified(BaseModel):
    model_config = ConfigDict(frozen=True)

    confirmation_token: str
    expires_in: int
