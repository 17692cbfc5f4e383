"""Unit tests for the AuthService facade — end-to-end flows over the memory store."""

import pytest

from errors import (
    AuthErrorCode,
    ChallengeErrorCode,
    InfrastructureErrorCode,
    SessionErrorCode,
    StoreTimeoutError,
    StoreUnavailableError,
)
from infrastructure.notifier.protocol import NotificationKind
from schemas.models.challenge import ChallengePurpose
from schemas.models.principal import Principal
from shared.store_keys import otp_cooldown_key, otp_key, refresh_key, session_key

RESET = ChallengePurpose.PASSWORD_RESET


async def _login(auth, principal, descriptor="Chrome/Win", origin="1.2.3.4"):
    result = await auth.issue_token_pair(principal, descriptor, origin)
    assert result.ok
    return result.value


# ── Token pair / refresh ──────────────────────────────────────────────────────


class TestIssueTokenPair:
    async def test_returns_bearer_pair(self, auth, principal):
        pair = await _login(auth, principal)
        assert pair.token_type == "Bearer"
        assert pair.expires_in == 900
        assert len(pair.device_id) == 24

    async def test_access_token_verifies_with_device(self, auth, principal):
        pair = await _login(auth, principal)
        claims = auth.verify_access(pair.access_token).value
        assert claims.principal_id == "u1"
        assert claims.device_id == pair.device_id

    async def test_session_registered(self, auth, principal):
        pair = await _login(auth, principal)
        sessions = (await auth.list_active_sessions("u1")).value
        assert [s.device_id for s in sessions] == [pair.device_id]
        assert sessions[0].device_descriptor == "Chrome/Win"

    async def test_each_login_is_a_new_device(self, auth, principal):
        first = await _login(auth, principal)
        second = await _login(auth, principal)
        assert first.device_id != second.device_id
        assert len((await auth.list_active_sessions("u1")).value) == 2


class TestScenarioB:
    async def test_refresh_then_logout(self, auth, principal, registry, clock):
        pair = await _login(auth, principal)
        before = await registry.get_session("u1", pair.device_id)

        clock.advance(seconds=60)
        refreshed = await auth.refresh(pair.refresh_token)
        assert refreshed.ok
        assert refreshed.value.expires_in == 900
        after = await registry.get_session("u1", pair.device_id)
        assert after.last_activity_at > before.last_activity_at

        assert (await auth.logout_device("u1", pair.device_id)).ok
        result = await auth.refresh(pair.refresh_token)
        assert not result.ok
        assert result.code is AuthErrorCode.REVOKED_TOKEN


class TestRefresh:
    async def test_missing_token(self, auth):
        assert (await auth.refresh("")).code is AuthErrorCode.NO_TOKEN

    async def test_garbage_token(self, auth):
        assert (await auth.refresh("abc")).code is AuthErrorCode.INVALID_TOKEN

    async def test_access_token_rejected(self, auth, principal):
        pair = await _login(auth, principal)
        result = await auth.refresh(pair.access_token)
        assert result.code is AuthErrorCode.WRONG_TOKEN_KIND

    async def test_revocation_beats_valid_signature(self, auth, principal, store):
        pair = await _login(auth, principal)
        await store.delete(refresh_key("u1", pair.device_id))
        result = await auth.refresh(pair.refresh_token)
        assert result.code is AuthErrorCode.REVOKED_TOKEN

    async def test_superseded_credential_rejected(self, auth, principal, store, issuer):
        pair = await _login(auth, principal)
        other = issuer.issue_refresh(principal, pair.device_id)
        result = await auth.refresh(other)
        assert result.code is AuthErrorCode.REVOKED_TOKEN

    async def test_missing_session_is_not_logged_in(self, auth, principal, store):
        pair = await _login(auth, principal)
        await store.delete(session_key("u1", pair.device_id))
        result = await auth.refresh(pair.refresh_token)
        assert result.code is AuthErrorCode.REVOKED_TOKEN
        assert await store.get(refresh_key("u1", pair.device_id)) is None

    async def test_corrupt_session_record_is_not_logged_in(self, auth, principal, store):
        pair = await _login(auth, principal)
        await store.set(session_key("u1", pair.device_id), "{not json", ttl_seconds=600)
        result = await auth.refresh(pair.refresh_token)
        assert result.code is AuthErrorCode.REVOKED_TOKEN

    async def test_new_access_carries_snapshot_claims(self, auth, store):
        admin = Principal(id="u9", email="boss@x.com", role="admin")
        pair = await _login(auth, admin)
        refreshed = (await auth.refresh(pair.refresh_token)).value
        claims = auth.verify_access(refreshed.access_token).value
        assert claims.role == "admin"
        assert claims.email == "boss@x.com"
        assert claims.device_id == pair.device_id

    async def test_store_timeout_fails_closed(self, auth, principal, store, mocker):
        pair = await _login(auth, principal)
        mocker.patch.object(store, "get", side_effect=StoreTimeoutError("slow"))
        result = await auth.refresh(pair.refresh_token)
        assert not result.ok
        assert result.code is InfrastructureErrorCode.STORE_TIMEOUT
        assert result.is_infrastructure

    async def test_store_outage_on_login(self, auth, principal, store, mocker):
        mocker.patch.object(store, "sadd", side_effect=StoreUnavailableError("down"))
        result = await auth.issue_token_pair(principal, "x", "y")
        assert result.code is InfrastructureErrorCode.STORE_UNAVAILABLE


class TestVerifyAccess:
    def test_no_token(self, auth):
        assert auth.verify_access(None).code is AuthErrorCode.NO_TOKEN
        assert auth.verify_access("").code is AuthErrorCode.NO_TOKEN

    async def test_refresh_token_is_wrong_kind(self, auth, principal):
        pair = await _login(auth, principal)
        assert auth.verify_access(pair.refresh_token).code is AuthErrorCode.WRONG_TOKEN_KIND


# ── Sessions ──────────────────────────────────────────────────────────────────


class TestLogout:
    async def test_device_isolation(self, auth, principal):
        first = await _login(auth, principal)
        second = await _login(auth, principal, descriptor="Firefox/Mac")
        assert (await auth.logout_device("u1", first.device_id)).ok
        assert not (await auth.refresh(first.refresh_token)).ok
        assert (await auth.refresh(second.refresh_token)).ok

    async def test_unknown_device(self, auth):
        result = await auth.logout_device("u1", "ghost")
        assert result.code is SessionErrorCode.DEVICE_NOT_FOUND

    async def test_logout_all(self, auth, principal):
        pairs = [await _login(auth, principal) for _ in range(3)]
        result = await auth.logout_all("u1")
        assert result.ok and result.value is True
        for pair in pairs:
            assert (await auth.refresh(pair.refresh_token)).code is AuthErrorCode.REVOKED_TOKEN
        assert (await auth.list_active_sessions("u1")).value == []

    async def test_logout_all_partial_failure(self, auth, principal, store, mocker):
        pair = await _login(auth, principal)
        real_delete = store.delete

        async def failing_delete(*keys):
            if any(pair.device_id in key for key in keys):
                raise StoreUnavailableError("down")
            return await real_delete(*keys)

        mocker.patch.object(store, "delete", side_effect=failing_delete)
        result = await auth.logout_all("u1")
        assert result.code is InfrastructureErrorCode.STORE_UNAVAILABLE
        assert result.details["failed_devices"] == [pair.device_id]


# ── One-time codes ────────────────────────────────────────────────────────────


class TestScenarioA:
    async def test_mismatch_success_then_not_found(self, auth, dispatcher, notifier):
        requested = await auth.request_otp("a@x.com", RESET)
        assert requested.ok
        assert requested.value.expires_in == 600
        await dispatcher.drain()
        code = notifier.last_code()
        assert len(code) == 6

        wrong = "000000" if code != "000000" else "111111"
        result = await auth.verify_otp("a@x.com", RESET, wrong)
        assert result.code is ChallengeErrorCode.MISMATCH
        assert result.attempts_remaining == 4

        assert (await auth.verify_otp("a@x.com", RESET, code)).ok

        again = await auth.verify_otp("a@x.com", RESET, code)
        assert again.code is ChallengeErrorCode.NOT_FOUND


class TestRequestOtp:
    async def test_notification_payload(self, auth, dispatcher, notifier):
        await auth.request_otp("A@X.com ", RESET)
        await dispatcher.drain()
        recipient, payload = notifier.sent[0]
        assert recipient == "a@x.com"
        assert payload.kind is NotificationKind.OTP_CODE
        assert payload.data["purpose"] == "password_reset"
        assert payload.data["expires_in_minutes"] == 10

    async def test_cooldown(self, auth, clock):
        assert (await auth.request_otp("a@x.com", RESET)).ok
        clock.advance(seconds=20)
        result = await auth.request_otp("a@x.com", RESET)
        assert result.code is ChallengeErrorCode.RATE_LIMITED
        assert result.seconds_remaining == 100

    async def test_unknown_identifier_same_shape(self, auth, dispatcher, notifier):
        known = await auth.request_otp("a@x.com", RESET)
        unknown = await auth.request_otp("nobody@x.com", RESET)
        assert unknown.ok
        assert unknown.value == known.value
        await dispatcher.drain()
        assert [recipient for recipient, _ in notifier.sent] == ["a@x.com"]

    async def test_unknown_identifier_still_rate_limited(self, auth):
        await auth.request_otp("nobody@x.com", RESET)
        result = await auth.request_otp("nobody@x.com", RESET)
        assert result.code is ChallengeErrorCode.RATE_LIMITED

    async def test_email_change_sends_to_unregistered_address(
        self, auth, dispatcher, notifier
    ):
        assert (await auth.request_otp("new@x.com", ChallengePurpose.EMAIL_CHANGE)).ok
        await dispatcher.drain()
        assert notifier.sent[0][0] == "new@x.com"

    async def test_notifier_failure_does_not_fail_request(self, auth, dispatcher, notifier):
        notifier.fail = True
        result = await auth.request_otp("a@x.com", RESET)
        assert result.ok
        await dispatcher.drain()

    async def test_directory_outage_fails_closed(self, auth, directory, mocker):
        mocker.patch.object(
            directory, "find_by_email", side_effect=StoreUnavailableError("mongo down")
        )
        result = await auth.request_otp("a@x.com", RESET)
        assert result.code is InfrastructureErrorCode.STORE_UNAVAILABLE

    async def test_failed_issue_releases_cooldown(self, auth, store, mocker):
        real_set = store.set

        async def failing_set(key, *args, **kwargs):
            if key.startswith("otp:"):
                raise StoreTimeoutError("slow")
            return await real_set(key, *args, **kwargs)

        mocker.patch.object(store, "set", side_effect=failing_set)
        failed = await auth.request_otp("a@x.com", RESET)
        assert failed.code is InfrastructureErrorCode.STORE_TIMEOUT
        assert await store.get(otp_cooldown_key(RESET.value, "a@x.com")) is None

        mocker.patch.object(store, "set", side_effect=real_set)
        assert (await auth.request_otp("a@x.com", RESET)).ok
        assert (await auth.otp_status("a@x.com", RESET)).value.exists

    async def test_directory_outage_releases_cooldown(self, auth, directory, mocker):
        mocker.patch.object(
            directory, "find_by_email", side_effect=StoreUnavailableError("mongo down")
        )
        await auth.request_otp("a@x.com", RESET)
        mocker.patch.object(directory, "find_by_email", return_value=None)
        assert (await auth.request_otp("a@x.com", RESET)).ok


class TestVerifyOtp:
    async def _request(self, auth, dispatcher, notifier):
        await auth.request_otp("a@x.com", RESET)
        await dispatcher.drain()
        return notifier.last_code()

    async def test_attempt_limit(self, auth, dispatcher, notifier):
        code = await self._request(auth, dispatcher, notifier)
        wrong = "000000" if code != "000000" else "111111"
        for _ in range(4):
            await auth.verify_otp("a@x.com", RESET, wrong)
        result = await auth.verify_otp("a@x.com", RESET, wrong)
        assert result.code is ChallengeErrorCode.MAX_ATTEMPTS
        after = await auth.verify_otp("a@x.com", RESET, code)
        assert after.code is ChallengeErrorCode.NOT_FOUND

    async def test_confirmation_token_redeemable_once(self, auth, dispatcher, notifier):
        code = await self._request(auth, dispatcher, notifier)
        verified = (await auth.verify_otp("a@x.com", RESET, code)).value
        assert verified.expires_in == 300
        token = verified.confirmation_token

        assert (await auth.redeem_confirmation("a@x.com", RESET, token)).ok
        again = await auth.redeem_confirmation("a@x.com", RESET, token)
        assert again.code is ChallengeErrorCode.NOT_FOUND

    async def test_confirmation_bound_to_purpose(self, auth, dispatcher, notifier):
        code = await self._request(auth, dispatcher, notifier)
        token = (await auth.verify_otp("a@x.com", RESET, code)).value.confirmation_token
        result = await auth.redeem_confirmation(
            "a@x.com", ChallengePurpose.EMAIL_VERIFY, token
        )
        assert result.code is ChallengeErrorCode.NOT_FOUND

    async def test_confirmation_expires(self, auth, dispatcher, notifier, clock):
        code = await self._request(auth, dispatcher, notifier)
        token = (await auth.verify_otp("a@x.com", RESET, code)).value.confirmation_token
        clock.advance(minutes=6)
        result = await auth.redeem_confirmation("a@x.com", RESET, token)
        assert not result.ok

    async def test_corrupt_challenge_record_is_not_found(self, auth, store):
        await store.set(otp_key(RESET.value, "a@x.com"), "garbage", ttl_seconds=600)
        result = await auth.verify_otp("a@x.com", RESET, "123456")
        assert result.code is ChallengeErrorCode.NOT_FOUND

    async def test_confirmation_single_attempt(self, auth, dispatcher, notifier):
        code = await self._request(auth, dispatcher, notifier)
        token = (await auth.verify_otp("a@x.com", RESET, code)).value.confirmation_token
        wrong = await auth.redeem_confirmation("a@x.com", RESET, "x" * len(token))
        assert wrong.code is ChallengeErrorCode.MAX_ATTEMPTS
        after = await auth.redeem_confirmation("a@x.com", RESET, token)
        assert after.code is ChallengeErrorCode.NOT_FOUND

    async def test_status(self, auth, dispatcher, notifier):
        await self._request(auth, dispatcher, notifier)
        status = (await auth.otp_status("a@x.com", RESET)).value
        assert status.exists
        assert status.attempts == 0
        assert status.seconds_remaining == 600


# ── Hooks ─────────────────────────────────────────────────────────────────────


class TestPasswordChanged:
    async def test_invalidates_sessions_and_outstanding_otp(
        self, auth, principal, dispatcher, notifier
    ):
        pair = await _login(auth, principal)
        await auth.request_otp("a@x.com", RESET)
        await dispatcher.drain()
        code = notifier.last_code()

        result = await auth.password_changed("u1")
        assert result.ok
        assert (await auth.refresh(pair.refresh_token)).code is AuthErrorCode.REVOKED_TOKEN
        stale = await auth.verify_otp("a@x.com", RESET, code)
        assert stale.code is ChallengeErrorCode.NOT_FOUND

    async def test_account_deleted(self, auth, principal):
        pair = await _login(auth, principal)
        assert (await auth.account_deleted("u1")).ok
        assert not (await auth.refresh(pair.refresh_token)).ok


@pytest.mark.parametrize("purpose", list(ChallengePurpose))
async def test_every_purpose_round_trips(auth, dispatcher, notifier, purpose):
    identifier = "new@x.com" if purpose is ChallengePurpose.EMAIL_CHANGE else "a@x.com"
    assert (await auth.request_otp(identifier, purpose)).ok
    await dispatcher.drain()
    assert (await auth.verify_otp(identifier, purpose, notifier.last_code())).ok
