"""
Per-device session registry backed by the key-value store.

Three records per login share one TTL so they expire together:

    devices:{principal_id}                   index set
    session:{principal_id}:{device_id}       DeviceSession JSON
    refresh:{principal_id}:{device_id}       the refresh token string

They are written in that order. The writes are not atomic, but a crash
between them only ever leaves an index entry without a session (reconciled
on read) or a session without a credential (refresh fails, i.e. "not logged
in"). A live session is therefore always indexed.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Optional

from errors import SessionErrorCode, StoreError
from infrastructure.store.protocol import KeyValueStore
from schemas.models.session import DeviceSession, SessionMeta
from services.device_index import reconcile_device_index
from services.results import Failure, Ok, Result
from shared.clock import Clock, utc_now
from shared.generators import generate_device_id
from shared.logging import get_logger, hash_ip
from shared.store_keys import devices_key, refresh_key, session_key

log = get_logger(__name__)


@dataclass(frozen=True)
class RevokeAllReport:
    revoked: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.failed


class SessionRegistry:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        session_ttl_seconds: int,
        device_id_salt: str = "",
        retry_attempts: int = 3,
        retry_backoff_seconds: float = 0.05,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self.session_ttl_seconds = session_ttl_seconds
        self._salt = device_id_salt
        self._retry_attempts = max(1, retry_attempts)
        self._retry_backoff_seconds = retry_backoff_seconds
        self._clock = clock

    def device_id_for(self, descriptor: str, origin_address: str) -> str:
        return generate_device_id(descriptor, origin_address, self._salt)

    async def register_session(
        self,
        principal_id: str,
        device_id: str,
        refresh_token: str,
        meta: SessionMeta,
        ttl_seconds: Optional[int] = None,
    ) -> DeviceSession:
        ttl = ttl_seconds or self.session_ttl_seconds
        now = self._clock()
        session = DeviceSession(
            device_id=device_id,
            principal_id=principal_id,
            device_descriptor=meta.device_descriptor,
            origin_address=meta.origin_address,
            email=meta.email,
            role=meta.role,
            login_at=now,
            last_activity_at=now,
        )

        index = devices_key(principal_id)
        await self._store.sadd(index, device_id)
        await self._store.expire(index, ttl)
        await self._store.set(
            session_key(principal_id, device_id), session.to_store(), ttl_seconds=ttl
        )
        await self._store.set(
            refresh_key(principal_id, device_id), refresh_token, ttl_seconds=ttl
        )

        log.info(
            "session_registered",
            principal_id=principal_id,
            device_id=device_id,
            origin=hash_ip(meta.origin_address),
        )
        return session

    async def lookup_refresh(self, principal_id: str, device_id: str) -> Optional[str]:
        return await self._store.get(refresh_key(principal_id, device_id))

    async def get_session(self, principal_id: str, device_id: str) -> Optional[DeviceSession]:
        raw = await self._store.get(session_key(principal_id, device_id))
        return DeviceSession.from_store(raw)

    async def touch(self, principal_id: str, device_id: str) -> Optional[DeviceSession]:
        """Slide the TTL and bump last_activity_at; None when the session is gone."""
        session = await self.get_session(principal_id, device_id)
        if session is None:
            return None

        ttl = self.session_ttl_seconds
        session = session.model_copy(update={"last_activity_at": self._clock()})
        await self._store.set(
            session_key(principal_id, device_id), session.to_store(), ttl_seconds=ttl
        )
        await self._store.expire(refresh_key(principal_id, device_id), ttl)
        await self._store.expire(devices_key(principal_id), ttl)
        return session

    async def list_sessions(self, principal_id: str) -> list[DeviceSession]:
        index = devices_key(principal_id)
        device_ids = sorted(await self._store.smembers(index))
        if not device_ids:
            return []

        raw = await self._store.mget(
            [session_key(principal_id, device_id) for device_id in device_ids]
        )
        found: dict[str, DeviceSession] = {}
        for device_id, payload in zip(device_ids, raw):
            session = DeviceSession.from_store(payload)
            if session is not None:
                found[device_id] = session

        reconciliation = reconcile_device_index(device_ids, found.__contains__)
        if reconciliation.needs_cleanup:
            await self._store.srem(index, *reconciliation.stale)
            log.info(
                "device_index_reconciled",
                principal_id=principal_id,
                stale_count=len(reconciliation.stale),
            )

        sessions = [found[device_id] for device_id in reconciliation.live]
        sessions.sort(key=lambda s: s.last_activity_at, reverse=True)
        return sessions

    async def revoke_device(self, principal_id: str, device_id: str) -> Result[bool]:
        removed = await self._store.delete(
            refresh_key(principal_id, device_id), session_key(principal_id, device_id)
        )
        in_index = await self._store.srem(devices_key(principal_id), device_id)
        if not removed and not in_index:
            log.info(
                "device_revoke_not_found", principal_id=principal_id, device_id=device_id
            )
            return Failure(SessionErrorCode.DEVICE_NOT_FOUND, "Device session not found")

        log.info("device_revoked", principal_id=principal_id, device_id=device_id)
        return Ok(True)

    async def _delete_with_retry(self, *keys: str) -> None:
        attempt = 0
        while True:
            try:
                await self._store.delete(*keys)
                return
            except StoreError:
                attempt += 1
                if attempt >= self._retry_attempts:
                    raise
                await asyncio.sleep(self._retry_backoff_seconds * attempt)

    async def revoke_all(self, principal_id: str) -> RevokeAllReport:
        """Delete every session and credential of *principal_id*, then the index.

        Best effort against concurrent logins: a device registered after the
        index was read survives. Raises StoreError only when the index itself
        cannot be read.
        """
        index = devices_key(principal_id)
        device_ids = sorted(await self._store.smembers(index))

        revoked: list[str] = []
        failed: list[str] = []
        for device_id in device_ids:
            try:
                await self._delete_with_retry(
                    refresh_key(principal_id, device_id),
                    session_key(principal_id, device_id),
                )
                revoked.append(device_id)
            except StoreError as e:
                failed.append(device_id)
                log.error(
                    "device_revoke_failed",
                    principal_id=principal_id,
                    device_id=device_id,
                    error_type=type(e).__name__,
                )

        if failed:
            # Keep the index so a later revoke_all can still find them
            await self._store.srem(index, *revoked)
        else:
            await self._store.delete(index)

        log.info(
            "sessions_revoked_all",
            principal_id=principal_id,
            revoked_count=len(revoked),
            failed_count=len(failed),
        )
        return RevokeAllReport(revoked=revoked, failed=failed)
