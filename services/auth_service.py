"""
AuthService — the inbound operations of the auth subsystem.

Every public coroutine returns ``Ok`` or ``Failure``. Store exceptions raised
anywhere below are converted into infrastructure failures by ``_fail_closed``,
so a store outage is never mistaken for (or reported as) an auth reason and
never grants access.
"""

from __future__ import annotations

import functools
from typing import Any, Awaitable, Callable, Optional, TypeVar

from config import OtpSettings
from errors import AuthErrorCode, InfrastructureErrorCode, StoreError
from infrastructure.notifier.dispatcher import NotificationDispatcher
from infrastructure.notifier.protocol import NotificationKind, NotificationPayload
from infrastructure.notifier.zeptomail import subject_for
from infrastructure.user_directory.protocol import UserDirectory
from schemas.models.auth import OtpRequestAccepted, OtpVerified, RefreshedAccess, TokenPair
from schemas.models.challenge import ChallengePurpose, ChallengeStatus
from schemas.models.principal import Principal
from schemas.models.session import DeviceSession, SessionMeta
from schemas.models.token import AccessClaims
from services.challenge_service import ChallengeService, normalize_identifier
from services.credential_issuer import CredentialIssuer
from services.results import Failure, Ok, Result
from services.revocation import RevocationCoordinator
from services.session_registry import RevokeAllReport, SessionRegistry
from shared.crypto import secrets_equal
from shared.generators import generate_secure_token
from shared.logging import get_logger, log_with_context

log = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])


def _fail_closed(func: F) -> F:
    """Turn a StoreError escaping *func* into an infrastructure Failure."""

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return await func(*args, **kwargs)
        except StoreError as e:
            log.error(
                "auth_operation_failed_closed",
                operation=func.__name__,
                error_code=e.error_code,
                error_type=type(e).__name__,
            )
            return Failure.from_store_error(e)

    return wrapper  # type: ignore[return-value]


def _revoke_report_result(report: RevokeAllReport) -> Result[RevokeAllReport]:
    if report.complete:
        return Ok(report)
    return Failure(
        InfrastructureErrorCode.STORE_UNAVAILABLE,
        "Some sessions could not be revoked",
        details={"failed_devices": report.failed, "revoked_devices": report.revoked},
    )


class AuthService:
    def __init__(
        self,
        *,
        issuer: CredentialIssuer,
        registry: SessionRegistry,
        challenges: ChallengeService,
        revocation: RevocationCoordinator,
        directory: UserDirectory,
        dispatcher: NotificationDispatcher,
        otp_settings: OtpSettings,
        app_name: Optional[str] = None,
    ) -> None:
        self._issuer = issuer
        self._registry = registry
        self._challenges = challenges
        self._revocation = revocation
        self._directory = directory
        self._dispatcher = dispatcher
        self._otp = otp_settings
        self._app_name = app_name

    # ── Credentials ──────────────────────────────────────────────────────────

    @_fail_closed
    async def issue_token_pair(
        self,
        principal: Principal,
        device_descriptor: str = "unknown",
        origin_address: str = "unknown",
    ) -> Result[TokenPair]:
        device_id = self._registry.device_id_for(device_descriptor, origin_address)
        access_token, refresh_token = self._issuer.issue_pair(principal, device_id)
        await self._registry.register_session(
            principal.id,
            device_id,
            refresh_token,
            SessionMeta(
                device_descriptor=device_descriptor,
                origin_address=origin_address,
                email=principal.email,
                role=principal.role,
            ),
            ttl_seconds=self._issuer.refresh_ttl_seconds,
        )
        return Ok(
            TokenPair(
                access_token=access_token,
                refresh_token=refresh_token,
                device_id=device_id,
                expires_in=self._issuer.access_ttl_seconds,
            )
        )

    @_fail_closed
    async def refresh(self, refresh_token: Optional[str]) -> Result[RefreshedAccess]:
        if not refresh_token:
            return Failure(AuthErrorCode.NO_TOKEN, "Refresh token required")

        verified = self._issuer.verify_refresh(refresh_token)
        if not verified.ok:
            return verified
        claims = verified.value

        bound = log_with_context(
            log, principal_id=claims.principal_id, device_id=claims.device_id
        )

        stored = await self._registry.lookup_refresh(claims.principal_id, claims.device_id)
        if stored is None or not secrets_equal(stored, refresh_token):
            bound.warning("refresh_revoked")
            return Failure(AuthErrorCode.REVOKED_TOKEN, "Refresh token has been revoked")

        session = await self._registry.touch(claims.principal_id, claims.device_id)
        if session is None:
            # Credential without a session: partial register or concurrent logout
            await self._registry.revoke_device(claims.principal_id, claims.device_id)
            bound.warning("refresh_session_missing")
            return Failure(AuthErrorCode.REVOKED_TOKEN, "Session no longer exists")

        principal = Principal(
            id=claims.principal_id, email=session.email or "", role=session.role
        )
        access_token = self._issuer.issue_access(principal, claims.device_id)
        bound.info("access_refreshed")
        return Ok(
            RefreshedAccess(
                access_token=access_token, expires_in=self._issuer.access_ttl_seconds
            )
        )

    def verify_access(self, access_token: Optional[str]) -> Result[AccessClaims]:
        if not access_token:
            return Failure(AuthErrorCode.NO_TOKEN, "Authentication required")
        return self._issuer.verify_access(access_token)

    # ── Sessions ─────────────────────────────────────────────────────────────

    @_fail_closed
    async def logout_device(self, principal_id: str, device_id: str) -> Result[bool]:
        return await self._revocation.on_logout(principal_id, device_id)

    @_fail_closed
    async def logout_all(self, principal_id: str) -> Result[bool]:
        result = _revoke_report_result(
            await self._revocation.on_logout_everywhere(principal_id)
        )
        if not result.ok:
            return result
        return Ok(True)

    @_fail_closed
    async def list_active_sessions(self, principal_id: str) -> Result[list[DeviceSession]]:
        return Ok(await self._registry.list_sessions(principal_id))

    # ── One-time codes ───────────────────────────────────────────────────────

    @_fail_closed
    async def request_otp(
        self, identifier: str, purpose: ChallengePurpose
    ) -> Result[OtpRequestAccepted]:
        identifier = normalize_identifier(identifier)
        ttl_minutes = self._otp.otp_ttl_minutes
        accepted = OtpRequestAccepted(expires_in=ttl_minutes * 60)

        # Cooldown first so known and unknown identifiers answer alike
        allowed = await self._challenges.can_issue(
            identifier, purpose.value, self._otp.otp_cooldown_minutes
        )
        if not allowed.ok:
            return allowed

        try:
            if purpose.requires_known_identifier:
                principal = await self._directory.find_by_email(identifier)
                if principal is None:
                    log.info("otp_request_unknown_identifier", purpose=purpose.value)
                    return Ok(accepted)
            issued = await self._challenges.issue(identifier, purpose.value, ttl_minutes)
        except StoreError:
            # No code is outstanding, so the caller must be free to retry
            try:
                await self._challenges.release_cooldown(identifier, purpose.value)
            except StoreError as e:
                log.warning(
                    "otp_cooldown_release_failed",
                    purpose=purpose.value,
                    error_type=type(e).__name__,
                )
            raise

        self._dispatcher.dispatch(
            identifier,
            NotificationPayload(
                kind=NotificationKind.OTP_CODE,
                subject=subject_for(NotificationKind.OTP_CODE, self._app_name),
                data={
                    "code": issued.code,
                    "purpose": purpose.value,
                    "expires_in_minutes": ttl_minutes,
                },
            ),
        )
        return Ok(accepted)

    @_fail_closed
    async def verify_otp(
        self, identifier: str, purpose: ChallengePurpose, code: str
    ) -> Result[OtpVerified]:
        verified = await self._challenges.verify(identifier, purpose.value, code)
        if not verified.ok:
            return verified

        ttl_minutes = self._otp.confirmation_ttl_minutes
        confirmation_token = generate_secure_token(32)
        await self._challenges.issue(
            identifier,
            purpose.confirmation_purpose,
            ttl_minutes,
            code=confirmation_token,
            max_attempts=self._otp.confirmation_max_attempts,
        )
        return Ok(
            OtpVerified(confirmation_token=confirmation_token, expires_in=ttl_minutes * 60)
        )

    @_fail_closed
    async def redeem_confirmation(
        self, identifier: str, purpose: ChallengePurpose, confirmation_token: str
    ) -> Result[bool]:
        """Consume the token minted by verify_otp; single use."""
        redeemed = await self._challenges.verify(
            identifier, purpose.confirmation_purpose, confirmation_token
        )
        if not redeemed.ok:
            return redeemed
        return Ok(True)

    @_fail_closed
    async def otp_status(
        self, identifier: str, purpose: ChallengePurpose
    ) -> Result[ChallengeStatus]:
        return Ok(await self._challenges.status(identifier, purpose.value))

    # ── Hooks for the user service ───────────────────────────────────────────

    @_fail_closed
    async def password_changed(
        self, principal_id: str, email: Optional[str] = None
    ) -> Result[RevokeAllReport]:
        return _revoke_report_result(
            await self._revocation.on_password_changed(principal_id, email)
        )

    @_fail_closed
    async def account_deleted(
        self, principal_id: str, email: Optional[str] = None
    ) -> Result[RevokeAllReport]:
        return _revoke_report_result(
            await self._revocation.on_account_deleted(principal_id, email)
        )
