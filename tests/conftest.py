"""
Shared fixtures: a controllable clock, the in-memory store and a fully wired
AuthService with an in-memory user directory and a recording notifier.

The fake clock starts at a fixed instant; every component, token expiry
included, reads time from it.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from config import JWTSettings, OtpSettings
from infrastructure.notifier.dispatcher import NotificationDispatcher
from infrastructure.notifier.protocol import NotificationPayload
from infrastructure.store.memory_store import MemoryKeyValueStore
from schemas.models.principal import Principal
from services.auth_service import AuthService
from services.challenge_service import ChallengeService
from services.credential_issuer import CredentialIssuer
from services.revocation import RevocationCoordinator
from services.session_registry import SessionRegistry

ACCESS_SECRET = "access-secret-for-tests-0123456789abcdef"
REFRESH_SECRET = "refresh-secret-for-tests-0123456789abcdef"


class FakeClock:
    def __init__(self, start: Optional[datetime] = None) -> None:
        self.now = start or datetime(2030, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, minutes: float = 0) -> None:
        self.now += timedelta(seconds=seconds, minutes=minutes)


class InMemoryDirectory:
    def __init__(self, *principals: Principal) -> None:
        self.principals = {p.id: p for p in principals}

    async def find_by_id(self, principal_id: str) -> Optional[Principal]:
        return self.principals.get(principal_id)

    async def find_by_email(self, email: str) -> Optional[Principal]:
        email = email.strip().lower()
        return next((p for p in self.principals.values() if p.email == email), None)


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.sent: list[tuple[str, NotificationPayload]] = []
        self.fail = fail

    async def send(self, identifier: str, payload: NotificationPayload) -> bool:
        if self.fail:
            raise RuntimeError("mail provider down")
        self.sent.append((identifier, payload))
        return True

    def last_code(self) -> str:
        return self.sent[-1][1].data["code"]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock) -> MemoryKeyValueStore:
    return MemoryKeyValueStore(clock=clock)


@pytest.fixture
def jwt_settings() -> JWTSettings:
    return JWTSettings(jwt_access_secret=ACCESS_SECRET, jwt_refresh_secret=REFRESH_SECRET)


@pytest.fixture
def otp_settings() -> OtpSettings:
    return OtpSettings()


@pytest.fixture
def principal() -> Principal:
    return Principal(id="u1", email="a@x.com", role="customer", verified=True)


@pytest.fixture
def directory(principal) -> InMemoryDirectory:
    return InMemoryDirectory(principal)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def dispatcher(notifier) -> NotificationDispatcher:
    return NotificationDispatcher(notifier, timeout_seconds=1.0)


@pytest.fixture
def issuer(jwt_settings, clock) -> CredentialIssuer:
    return CredentialIssuer(jwt_settings, clock=clock)


@pytest.fixture
def registry(store, jwt_settings, clock) -> SessionRegistry:
    return SessionRegistry(
        store,
        session_ttl_seconds=jwt_settings.refresh_token_ttl_seconds,
        device_id_salt="test-salt",
        retry_attempts=3,
        retry_backoff_seconds=0,
        clock=clock,
    )


@pytest.fixture
def challenges(store, clock) -> ChallengeService:
    return ChallengeService(store, code_length=6, max_attempts=5, clock=clock)


@pytest.fixture
def revocation(registry, challenges, directory, dispatcher) -> RevocationCoordinator:
    return RevocationCoordinator(registry, challenges, directory, dispatcher)


@pytest.fixture
def auth(
    issuer, registry, challenges, revocation, directory, dispatcher, otp_settings
) -> AuthService:
    return AuthService(
        issuer=issuer,
        registry=registry,
        challenges=challenges,
        revocation=revocation,
        directory=directory,
        dispatcher=dispatcher,
        otp_settings=otp_settings,
        app_name="Shop",
    )
