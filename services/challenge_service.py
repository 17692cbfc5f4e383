"""
One-time passcode challenges.

State per (purpose, identifier):

    CREATED --mismatch, attempts < max--> CREATED (attempts + 1, TTL kept)
    CREATED --mismatch, attempts == max--> deleted, MAX_ATTEMPTS
    CREATED --match--> deleted, success (single use)
    CREATED --TTL elapses--> deleted by the store (NOT_FOUND afterwards)
    CREATED --issue again--> CREATED (new code, attempts = 0)

The attempts counter is read, incremented and written back without a lock.
Two racing wrong guesses can both read the same count, so the effective
limit may be one higher than max_attempts under contention.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Iterable, Optional

from errors import ChallengeErrorCode
from infrastructure.store.protocol import KeyValueStore
from schemas.models.challenge import (
    Challenge,
    ChallengeStatus,
    IssuedChallenge,
    VerifiedChallenge,
    all_challenge_purposes,
)
from services.results import Failure, Ok, Result
from shared.clock import Clock, seconds_until, utc_now
from shared.crypto import hash_token, token_matches
from shared.generators import generate_otp_code
from shared.logging import get_logger
from shared.store_keys import otp_cooldown_key, otp_key

log = get_logger(__name__)


def normalize_identifier(identifier: str) -> str:
    """Challenges are keyed case-insensitively on the trimmed identifier."""
    return identifier.strip().lower()


class ChallengeService:
    def __init__(
        self,
        store: KeyValueStore,
        *,
        code_length: int = 6,
        max_attempts: int = 5,
        clock: Clock = utc_now,
    ) -> None:
        self._store = store
        self.code_length = code_length
        self.max_attempts = max_attempts
        self._clock = clock

    async def issue(
        self,
        identifier: str,
        purpose: str,
        ttl_minutes: int,
        *,
        code: Optional[str] = None,
        max_attempts: Optional[int] = None,
    ) -> IssuedChallenge:
        """Create a challenge, superseding any outstanding one for the same key."""
        identifier = normalize_identifier(identifier)
        code = code if code is not None else generate_otp_code(self.code_length)
        now = self._clock()
        challenge = Challenge(
            identifier=identifier,
            purpose=purpose,
            code_hash=hash_token(code),
            attempts=0,
            max_attempts=max_attempts or self.max_attempts,
            created_at=now,
            expires_at=now + timedelta(minutes=ttl_minutes),
        )
        await self._store.set(
            otp_key(purpose, identifier), challenge.to_store(), ttl_seconds=ttl_minutes * 60
        )
        log.info(
            "challenge_issued",
            purpose=purpose,
            identifier=identifier,
            ttl_minutes=ttl_minutes,
        )
        return IssuedChallenge(
            identifier=identifier,
            purpose=purpose,
            code=code,
            max_attempts=challenge.max_attempts,
            expires_at=challenge.expires_at,
        )

    async def can_issue(
        self, identifier: str, purpose: str, cooldown_minutes: int
    ) -> Result[None]:
        """Claim the resend cooldown window, or report how long is left.

        The marker is written with set-if-absent, so of two concurrent
        requests only one gets through.
        """
        identifier = normalize_identifier(identifier)
        key = otp_cooldown_key(purpose, identifier)
        now = self._clock()
        now_ms = int(now.timestamp() * 1000)
        cooldown_seconds = cooldown_minutes * 60

        claimed = await self._store.set(
            key, str(now_ms), ttl_seconds=cooldown_seconds, only_if_absent=True
        )
        if claimed:
            return Ok(None)

        last_sent = await self._store.get(key)
        if last_sent is None:
            # Marker expired between the two calls
            await self._store.set(key, str(now_ms), ttl_seconds=cooldown_seconds)
            return Ok(None)

        remaining_ms = cooldown_seconds * 1000 - (now_ms - int(last_sent))
        remaining = -(-remaining_ms // 1000)
        if remaining <= 0:
            await self._store.set(key, str(now_ms), ttl_seconds=cooldown_seconds)
            return Ok(None)

        log.info(
            "challenge_rate_limited",
            purpose=purpose,
            identifier=identifier,
            seconds_remaining=remaining,
        )
        return Failure(
            ChallengeErrorCode.RATE_LIMITED,
            f"Please wait {remaining} seconds before requesting another code",
            seconds_remaining=remaining,
        )

    async def release_cooldown(self, identifier: str, purpose: str) -> None:
        """Drop the cooldown marker claimed by can_issue when no code went out."""
        identifier = normalize_identifier(identifier)
        await self._store.delete(otp_cooldown_key(purpose, identifier))

    async def verify(
        self, identifier: str, purpose: str, supplied: str
    ) -> Result[VerifiedChallenge]:
        identifier = normalize_identifier(identifier)
        key = otp_key(purpose, identifier)
        challenge = Challenge.from_store(await self._store.get(key))
        if challenge is None:
            return Failure(ChallengeErrorCode.NOT_FOUND, "Code not found or expired")

        now = self._clock()
        if now >= challenge.expires_at:
            await self._store.delete(key)
            log.info("challenge_expired", purpose=purpose, identifier=identifier)
            return Failure(ChallengeErrorCode.EXPIRED, "Code has expired")

        if challenge.attempts >= challenge.max_attempts:
            await self._store.delete(key)
            return Failure(
                ChallengeErrorCode.MAX_ATTEMPTS, "Maximum attempts exceeded", attempts_remaining=0
            )

        if not token_matches(supplied or "", challenge.code_hash):
            challenge = challenge.model_copy(update={"attempts": challenge.attempts + 1})
            if challenge.attempts >= challenge.max_attempts:
                await self._store.delete(key)
                log.warning(
                    "challenge_max_attempts", purpose=purpose, identifier=identifier
                )
                return Failure(
                    ChallengeErrorCode.MAX_ATTEMPTS,
                    "Maximum attempts exceeded",
                    attempts_remaining=0,
                )

            remaining_ttl = seconds_until(challenge.expires_at, now)
            await self._store.set(key, challenge.to_store(), ttl_seconds=remaining_ttl)
            log.info(
                "challenge_mismatch",
                purpose=purpose,
                identifier=identifier,
                attempts=challenge.attempts,
                max_attempts=challenge.max_attempts,
            )
            return Failure(
                ChallengeErrorCode.MISMATCH,
                "Invalid code",
                attempts_remaining=challenge.attempts_remaining,
            )

        await self._store.delete(key)
        log.info("challenge_verified", purpose=purpose, identifier=identifier)
        return Ok(VerifiedChallenge(identifier=identifier, purpose=purpose, verified_at=now))

    async def status(self, identifier: str, purpose: str) -> ChallengeStatus:
        identifier = normalize_identifier(identifier)
        challenge = Challenge.from_store(await self._store.get(otp_key(purpose, identifier)))
        if challenge is None:
            return ChallengeStatus(exists=False)
        return ChallengeStatus(
            exists=True,
            attempts=challenge.attempts,
            max_attempts=challenge.max_attempts,
            created_at=challenge.created_at,
            expires_at=challenge.expires_at,
            seconds_remaining=seconds_until(challenge.expires_at, self._clock()),
        )

    async def clear(
        self, identifier: str, purposes: Optional[Iterable[str]] = None
    ) -> int:
        """Drop challenges and cooldown markers of *identifier*; returns keys deleted."""
        identifier = normalize_identifier(identifier)
        names = list(purposes) if purposes is not None else all_challenge_purposes()
        keys: list[str] = []
        for purpose in names:
            keys.append(otp_key(purpose, identifier))
            keys.append(otp_cooldown_key(purpose, identifier))
        deleted = await self._store.delete(*keys)
        if deleted:
            log.info("challenges_cleared", identifier=identifier, deleted_count=deleted)
        return deleted
