"""
Signed credential claims.

Wire claim names follow JWT conventions: ``sub`` is the principal id and
``did`` the device id. ``kind`` separates access from refresh tokens and is
checked independently of the signature.
"""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class TokenKind(str, Enum):
    ACCESS = "access"
    REFRESH = "refresh"


class AccessClaims(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    principal_id: str = Field(alias="sub")
    role: str = "customer"
    email: Optional[str] = None
    device_id: Optional[str] = Field(default=None, alias="did")
    issued_at: int = Field(alias="iat")
    expires_at: int = Field(alias="exp")
    kind: TokenKind = TokenKind.ACCESS

    @property
    def expires_at_dt(self) -> datetime:
        return datetime.fromtimestamp(self.expires_at, tz=timezone.utc)


class RefreshClaims(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    principal_id: str = Field(alias="sub")
    device_id: str = Field(alias="did")
    issued_at: int = Field(alias="iat")
    expires_at: int = Field(alias="exp")
    token_id: str = Field(alias="jti")
    kind: TokenKind = TokenKind.REFRESH
