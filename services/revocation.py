"""
Revocation fan-out for logout, password change and account deletion.

A password change or account deletion moves the trust boundary: every
session of the principal is revoked and every outstanding challenge for any
of its identifiers (email and id) is dropped, so a code requested before
the change cannot be redeemed after it.
"""

from __future__ import annotations

from typing import Optional

from errors import StoreError
from infrastructure.notifier.dispatcher import NotificationDispatcher
from infrastructure.notifier.protocol import NotificationKind, NotificationPayload
from infrastructure.user_directory.protocol import UserDirectory
from services.challenge_service import ChallengeService
from services.results import Result
from services.session_registry import RevokeAllReport, SessionRegistry
from shared.logging import get_logger

log = get_logger(__name__)


class RevocationCoordinator:
    def __init__(
        self,
        registry: SessionRegistry,
        challenges: ChallengeService,
        directory: UserDirectory,
        dispatcher: Optional[NotificationDispatcher] = None,
    ) -> None:
        self._registry = registry
        self._challenges = challenges
        self._directory = directory
        self._dispatcher = dispatcher

    async def _identifiers_for(
        self, principal_id: str, email: Optional[str] = None
    ) -> list[str]:
        identifiers = [principal_id]
        if email is None:
            try:
                principal = await self._directory.find_by_id(principal_id)
            except StoreError as e:
                # Sessions are already gone; the challenges still expire by TTL
                log.warning(
                    "revocation_identifier_lookup_failed",
                    principal_id=principal_id,
                    error_type=type(e).__name__,
                )
                principal = None
            email = principal.email if principal else None
        if email:
            identifiers.append(email)
        return identifiers

    async def _clear_challenges(self, identifiers: list[str]) -> int:
        cleared = 0
        for identifier in identifiers:
            try:
                cleared += await self._challenges.clear(identifier)
            except StoreError as e:
                log.error(
                    "challenge_clear_failed",
                    identifier=identifier,
                    error_type=type(e).__name__,
                )
        return cleared

    async def on_logout(self, principal_id: str, device_id: str) -> Result[bool]:
        return await self._registry.revoke_device(principal_id, device_id)

    async def on_logout_everywhere(self, principal_id: str) -> RevokeAllReport:
        return await self._registry.revoke_all(principal_id)

    async def on_password_changed(
        self, principal_id: str, email: Optional[str] = None
    ) -> RevokeAllReport:
        report = await self._registry.revoke_all(principal_id)
        identifiers = await self._identifiers_for(principal_id, email)
        cleared = await self._clear_challenges(identifiers)
        log.info(
            "password_change_revocation",
            principal_id=principal_id,
            revoked_count=len(report.revoked),
            challenges_cleared=cleared,
        )

        notify_to = next((i for i in identifiers if "@" in i), None)
        if self._dispatcher is not None and notify_to:
            self._dispatcher.dispatch(
                notify_to,
                NotificationPayload(
                    kind=NotificationKind.SECURITY_NOTICE,
                    subject="Your password was changed",
                    data={
                        "message": "Your password was changed and every device was signed out."
                    },
                ),
            )
        return report

    async def on_account_deleted(
        self, principal_id: str, email: Optional[str] = None
    ) -> RevokeAllReport:
        report = await self._registry.revoke_all(principal_id)
        identifiers = await self._identifiers_for(principal_id, email)
        await self._clear_challenges(identifiers)
        log.info("account_deletion_revocation", principal_id=principal_id)
        return report
