"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. Everything they hand out is built once in the
app lifespan and stored on app.state.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Depends, Header, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from errors import AuthenticationError, AuthErrorCode, error_from_failure
from schemas.models.token import AccessClaims
from services.auth_service import AuthService
from shared.crypto import secrets_equal
from shared.logging import get_logger

log = get_logger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_current_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    auth: AuthService = Depends(get_auth_service),
) -> AccessClaims:
    """Verify the Bearer access token; raises AuthenticationError (401) otherwise."""
    token = credentials.credentials if credentials else None
    result = auth.verify_access(token)
    if not result.ok:
        raise error_from_failure(result)
    return result.value


def require_internal_caller(
    request: Request,
    x_internal_token: Optional[str] = Header(default=None),
) -> None:
    """Guard for /internal routes; only the user service holds the token."""
    expected = getattr(request.app.state, "internal_api_token", "")
    if not x_internal_token:
        raise AuthenticationError(
            "Internal token required", code=AuthErrorCode.NO_TOKEN.value
        )
    if not expected or not secrets_equal(x_internal_token, expected):
        log.warning("internal_caller_rejected", configured=bool(expected))
        raise AuthenticationError(
            "Invalid internal token", code=AuthErrorCode.INVALID_TOKEN.value
        )
