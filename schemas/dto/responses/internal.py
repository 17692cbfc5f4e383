"""
Response DTOs for the service-to-service endpoints.

TokenPairResponse            — POST /internal/sessions  (201)
RedeemConfirmationResponse   — POST /internal/confirmations/redeem  (200)
RevocationResponse           — POST /internal/principals/{id}/...  (200)
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict

from services.session_registry import RevokeAllReport


class TokenPairResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    access_token: str
    refresh_token: str
    device_id: str
    expires_in: int
    token_type: str = "Bearer"


class RedeemConfirmationResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    redeemed: bool = True


class RevocationResponse(BaseModel):
    """Devices whose sessions were deleted for the principal."""

    model_config = ConfigDict(populate_by_name=True)

    revoked_devices: list[str]
    total: int

    @classmethod
    def from_report(cls, report: RevokeAllReport) -> "RevocationResponse":
        return cls(revoked_devices=list(report.revoked), total=len(report.revoked))
