"""Unit tests for the document and claim models in schemas/models."""

from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from schemas.models.challenge import (
    Challenge,
    ChallengePurpose,
    all_challenge_purposes,
)
from schemas.models.principal import Principal
from schemas.models.session import DeviceSession
from schemas.models.token import AccessClaims, RefreshClaims, TokenKind

NOW = datetime(2026, 1, 1, tzinfo=timezone.utc)


class TestChallengePurpose:
    def test_email_change_skips_known_identifier_check(self):
        assert ChallengePurpose.PASSWORD_RESET.requires_known_identifier
        assert ChallengePurpose.EMAIL_VERIFY.requires_known_identifier
        assert not ChallengePurpose.EMAIL_CHANGE.requires_known_identifier

    def test_confirmation_namespace(self):
        assert ChallengePurpose.PASSWORD_RESET.confirmation_purpose == "password_reset_verified"

    def test_all_purposes_include_confirmations(self):
        purposes = all_challenge_purposes()
        assert len(purposes) == 6
        assert "email_change_verified" in purposes


class TestChallenge:
    def _challenge(self, **overrides) -> Challenge:
        base = dict(
            identifier="a@x.com",
            purpose="password_reset",
            code_hash="ab" * 32,
            attempts=2,
            max_attempts=5,
            created_at=NOW,
            expires_at=NOW + timedelta(minutes=10),
        )
        base.update(overrides)
        return Challenge(**base)

    def test_attempts_remaining(self):
        assert self._challenge().attempts_remaining == 3

    def test_store_round_trip(self):
        challenge = self._challenge()
        assert Challenge.from_store(challenge.to_store()) == challenge

    def test_from_store_none(self):
        assert Challenge.from_store(None) is None

    @pytest.mark.parametrize("raw", ["not json", "{\"identifier\": \"a@x.com\"}"])
    def test_from_store_undecodable_is_absent(self, raw):
        assert Challenge.from_store(raw) is None

    def test_negative_attempts_rejected(self):
        with pytest.raises(ValidationError):
            self._challenge(attempts=-1)


class TestDeviceSession:
    def test_store_round_trip(self):
        session = DeviceSession(
            device_id="d1",
            principal_id="u1",
            email="a@x.com",
            role="admin",
            login_at=NOW,
            last_activity_at=NOW,
        )
        restored = DeviceSession.from_store(session.to_store())
        assert restored == session
        assert restored.device_descriptor == "unknown"

    def test_from_store_none(self):
        assert DeviceSession.from_store(None) is None

    def test_from_store_undecodable_is_absent(self):
        assert DeviceSession.from_store("{truncated") is None


class TestClaims:
    def test_access_claims_from_wire_names(self):
        claims = AccessClaims.model_validate(
            {"sub": "u1", "did": "d1", "iat": 100, "exp": 1000, "kind": "access"}
        )
        assert claims.principal_id == "u1"
        assert claims.device_id == "d1"
        assert claims.kind is TokenKind.ACCESS
        assert claims.expires_at_dt == datetime.fromtimestamp(1000, tz=timezone.utc)

    def test_refresh_claims_require_device(self):
        with pytest.raises(ValidationError):
            RefreshClaims.model_validate(
                {"sub": "u1", "iat": 1, "exp": 2, "jti": "x", "kind": "refresh"}
            )


class TestPrincipal:
    def test_frozen(self):
        p = Principal(id="u1", email="a@x.com")
        with pytest.raises(ValidationError):
            p.role = "admin"

    def test_defaults(self):
        p = Principal(id="u1", email="a@x.com")
        assert p.role == "customer"
        assert p.verified is False
