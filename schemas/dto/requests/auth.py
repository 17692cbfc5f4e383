"""
Request DTOs for authentication endpoints.

RefreshRequest      — POST /auth/refresh
OtpRequestRequest   — POST /auth/otp/request
OtpVerifyRequest    — POST /auth/otp/verify
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from schemas.models.challenge import ChallengePurpose


class RefreshRequest(BaseModel):
    """Request body for POST /auth/refresh."""

    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(min_length=1)


class OtpRequestRequest(BaseModel):
    """Request body for POST /auth/otp/request."""

    model_config = ConfigDict(populate_by_name=True)

    identifier: str = Field(min_length=1, max_length=320)
    purpose: ChallengePurpose

    @field_validator("identifier")
    @classmethod
    def _strip_identifier(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("identifier must not be blank")
        return v


class OtpVerifyRequest(OtpRequestRequest):
    """Request body for POST /auth/otp/verify.

    ``code`` is the one-time code delivered to the identifier.
    """

    code: str = Field(min_length=1, max_length=64)
