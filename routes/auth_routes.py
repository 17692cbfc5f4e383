"""
Authentication endpoints.

POST   /auth/refresh                exchange a refresh token for an access token
GET    /auth/me                     claims of the presented access token
POST   /auth/logout                 revoke the calling device
POST   /auth/logout-all             revoke every device of the caller
GET    /auth/sessions               list the caller's active sessions
DELETE /auth/sessions/{device_id}   revoke one of the caller's devices
POST   /auth/otp/request            issue a one-time code (202, 429 during cooldown)
POST   /auth/otp/verify             redeem a one-time code for a confirmation token
GET    /auth/otp/status             whether a code is outstanding, attempts left

Login itself belongs to the user service, which calls POST /internal/sessions
after checking the password (see routes/internal_routes.py).
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from dependencies import get_auth_service, get_current_claims
from errors import AuthenticationError, AuthErrorCode, error_from_failure
from schemas.dto.requests.auth import OtpRequestRequest, OtpVerifyRequest, RefreshRequest
from schemas.dto.responses.auth import (
    AccessClaimsResponse,
    LogoutResponse,
    OtpRequestResponse,
    OtpStatusResponse,
    OtpVerifyResponse,
    RefreshResponse,
    SessionListResponse,
    SessionResponse,
)
from schemas.dto.responses.common import ErrorResponse
from schemas.models.challenge import ChallengePurpose
from schemas.models.token import AccessClaims
from services.auth_service import AuthService
from services.results import Result

router = APIRouter(
    prefix="/auth",
    tags=["auth"],
    responses={401: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
)


def _unwrap(result: Result):
    if not result.ok:
        raise error_from_failure(result)
    return result.value


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(
    body: RefreshRequest, auth: AuthService = Depends(get_auth_service)
) -> RefreshResponse:
    refreshed = _unwrap(await auth.refresh(body.refresh_token))
    return RefreshResponse(
        access_token=refreshed.access_token,
        expires_in=refreshed.expires_in,
        token_type=refreshed.token_type,
    )


@router.get("/me", response_model=AccessClaimsResponse)
async def me(claims: AccessClaims = Depends(get_current_claims)) -> AccessClaimsResponse:
    return AccessClaimsResponse(
        principal_id=claims.principal_id,
        email=claims.email,
        role=claims.role,
        device_id=claims.device_id,
        expires_at=claims.expires_at_dt,
    )


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    claims: AccessClaims = Depends(get_current_claims),
    auth: AuthService = Depends(get_auth_service),
) -> LogoutResponse:
    if not claims.device_id:
        raise AuthenticationError(
            "Access token is not bound to a device",
            code=AuthErrorCode.INVALID_TOKEN.value,
        )
    _unwrap(await auth.logout_device(claims.principal_id, claims.device_id))
    return LogoutResponse(message="Logged out")


@router.post("/logout-all", response_model=LogoutResponse)
async def logout_all(
    claims: AccessClaims = Depends(get_current_claims),
    auth: AuthService = Depends(get_auth_service),
) -> LogoutResponse:
    _unwrap(await auth.logout_all(claims.principal_id))
    return LogoutResponse(message="Logged out from all devices")


@router.get("/sessions", response_model=SessionListResponse)
async def list_sessions(
    claims: AccessClaims = Depends(get_current_claims),
    auth: AuthService = Depends(get_auth_service),
) -> SessionListResponse:
    sessions = _unwrap(await auth.list_active_sessions(claims.principal_id))
    items = [SessionResponse.from_session(s, claims.device_id) for s in sessions]
    return SessionListResponse(sessions=items, total=len(items))


@router.delete("/sessions/{device_id}", response_model=LogoutResponse)
async def revoke_session(
    device_id: str,
    claims: AccessClaims = Depends(get_current_claims),
    auth: AuthService = Depends(get_auth_service),
) -> LogoutResponse:
    _unwrap(await auth.logout_device(claims.principal_id, device_id))
    return LogoutResponse(message="Session revoked")


@router.post(
    "/otp/request",
    response_model=OtpRequestResponse,
    status_code=status.HTTP_202_ACCEPTED,
)
async def request_otp(
    body: OtpRequestRequest, auth: AuthService = Depends(get_auth_service)
) -> OtpRequestResponse:
    accepted = _unwrap(await auth.request_otp(body.identifier, body.purpose))
    return OtpRequestResponse(accepted=accepted.accepted, expires_in=accepted.expires_in)


@router.post("/otp/verify", response_model=OtpVerifyResponse)
async def verify_otp(
    body: OtpVerifyRequest, auth: AuthService = Depends(get_auth_service)
) -> OtpVerifyResponse:
    verified = _unwrap(await auth.verify_otp(body.identifier, body.purpose, body.code))
    return OtpVerifyResponse(
        confirmation_token=verified.confirmation_token, expires_in=verified.expires_in
    )


@router.get("/otp/status", response_model=OtpStatusResponse)
async def otp_status(
    identifier: str = Query(min_length=1, max_length=320),
    purpose: ChallengePurpose = Query(),
    auth: AuthService = Depends(get_auth_service),
) -> OtpStatusResponse:
    challenge = _unwrap(await auth.otp_status(identifier, purpose))
    return OtpStatusResponse.from_status(challenge)
