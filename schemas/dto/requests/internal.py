"""
Request DTOs for the service-to-service endpoints.

IssueSessionRequest         — POST /internal/sessions
RedeemConfirmationRequest   — POST /internal/confirmations/redeem
PrincipalEventRequest       — POST /internal/principals/{id}/password-changed
                              POST /internal/principals/{id}/account-deleted
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from schemas.dto.requests.auth import OtpRequestRequest
from schemas.models.principal import Principal


class IssueSessionRequest(BaseModel):
    """Sent by the user service once it has checked the password."""

    model_config = ConfigDict(populate_by_name=True)

    principal_id: str = Field(min_length=1)
    email: str = Field(min_length=1, max_length=320)
    role: str = "customer"
    verified: bool = False
    device_descriptor: str = Field(default="unknown", max_length=512)
    origin_address: str = Field(default="unknown", max_length=64)

    def to_principal(self) -> Principal:
        return Principal(
            id=self.principal_id, email=self.email, role=self.role, verified=self.verified
        )


class RedeemConfirmationRequest(OtpRequestRequest):
    confirmation_token: str = Field(min_length=1, max_length=128)


class PrincipalEventRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    # Challenges are keyed by email as well as by id
    email: Optional[str] = None
