"""
Service-to-service endpoints, called by the user service only.

POST /internal/sessions                                  login: issue a token pair (201)
POST /internal/confirmations/redeem                      consume a confirmation token
POST /internal/principals/{principal_id}/password-changed   revoke sessions and codes
POST /internal/principals/{principal_id}/account-deleted    revoke sessions and codes

Every route requires the X-Internal-Token header (INTERNAL_API_TOKEN).
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Body, Depends, status

from dependencies import get_auth_service, require_internal_caller
from errors import error_from_failure
from schemas.dto.requests.internal import (
    IssueSessionRequest,
    PrincipalEventRequest,
    RedeemConfirmationRequest,
)
from schemas.dto.responses.common import ErrorResponse
from schemas.dto.responses.internal import (
    RedeemConfirmationResponse,
    RevocationResponse,
    TokenPairResponse,
)
from services.auth_service import AuthService
from shared.logging import get_logger

log = get_logger(__name__)

router = APIRouter(
    prefix="/internal",
    tags=["internal"],
    dependencies=[Depends(require_internal_caller)],
    responses={401: {"model": ErrorResponse}, 503: {"model": ErrorResponse}},
    include_in_schema=False,
)


@router.post(
    "/sessions",
    response_model=TokenPairResponse,
    status_code=status.HTTP_201_CREATED,
)
async def issue_session(
    body: IssueSessionRequest, auth: AuthService = Depends(get_auth_service)
) -> TokenPairResponse:
    result = await auth.issue_token_pair(
        body.to_principal(), body.device_descriptor, body.origin_address
    )
    if not result.ok:
        raise error_from_failure(result)
    pair = result.value
    return TokenPairResponse(
        access_token=pair.access_token,
        refresh_token=pair.refresh_token,
        device_id=pair.device_id,
        expires_in=pair.expires_in,
        token_type=pair.token_type,
    )


@router.post("/confirmations/redeem", response_model=RedeemConfirmationResponse)
async def redeem_confirmation(
    body: RedeemConfirmationRequest, auth: AuthService = Depends(get_auth_service)
) -> RedeemConfirmationResponse:
    result = await auth.redeem_confirmation(
        body.identifier, body.purpose, body.confirmation_token
    )
    if not result.ok:
        raise error_from_failure(result)
    return RedeemConfirmationResponse()


@router.post(
    "/principals/{principal_id}/password-changed", response_model=RevocationResponse
)
async def password_changed(
    principal_id: str,
    body: Optional[PrincipalEventRequest] = Body(default=None),
    auth: AuthService = Depends(get_auth_service),
) -> RevocationResponse:
    email = body.email if body else None
    result = await auth.password_changed(principal_id, email)
    if not result.ok:
        raise error_from_failure(result)
    return RevocationResponse.from_report(result.value)


@router.post(
    "/principals/{principal_id}/account-deleted", response_model=RevocationResponse
)
async def account_deleted(
    principal_id: str,
    body: Optional[PrincipalEventRequest] = Body(default=None),
    auth: AuthService = Depends(get_auth_service),
) -> RevocationResponse:
    email = body.email if body else None
    result = await auth.account_deleted(principal_id, email)
    if not result.ok:
        raise error_from_failure(result)
    log.info("principal_sessions_purged", principal_id=principal_id)
    return RevocationResponse.from_report(result.value)
