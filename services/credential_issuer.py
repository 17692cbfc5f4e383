"""
Access and refresh token issuance and verification (PyJWT).

Each kind has its own signing secret. Verification peeks at the unverified
``kind`` claim first, so a token of the wrong kind is reported as
WRONG_TOKEN_KIND regardless of which secret signed it, then verifies the
signature, issuer and audience with the expected secret. Expiry and issue
time are checked against the injected clock.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional, Union

import jwt
from pydantic import ValidationError as PydanticValidationError

from config import JWTSettings
from errors import AuthErrorCode
from schemas.models.principal import Principal
from schemas.models.token import AccessClaims, RefreshClaims, TokenKind
from services.results import Failure, Ok, Result
from shared.clock import Clock, utc_now
from shared.generators import generate_secure_token
from shared.logging import get_logger

log = get_logger(__name__)

_REQUIRED_CLAIMS = ["exp", "iat", "sub", "kind"]

# Tolerated drift between the issuing and the verifying host
_IAT_LEEWAY_SECONDS = 30


class CredentialIssuer:
    def __init__(self, settings: JWTSettings, clock: Clock = utc_now) -> None:
        if not settings.jwt_access_secret or not settings.jwt_refresh_secret:
            raise RuntimeError(
                "JWT_ACCESS_SECRET and JWT_REFRESH_SECRET must both be set"
            )
        if settings.jwt_access_secret == settings.jwt_refresh_secret:
            raise RuntimeError("Access and refresh signing secrets must differ")
        self._settings = settings
        self._clock = clock
        self._secrets = {
            TokenKind.ACCESS: settings.jwt_access_secret,
            TokenKind.REFRESH: settings.jwt_refresh_secret,
        }

    @property
    def access_ttl_seconds(self) -> int:
        return self._settings.access_token_ttl_seconds

    @property
    def refresh_ttl_seconds(self) -> int:
        return self._settings.refresh_token_ttl_seconds

    def _encode(self, kind: TokenKind, claims: dict, ttl_seconds: int) -> str:
        now = self._clock()
        claims = {
            **claims,
            "iss": self._settings.jwt_issuer,
            "aud": self._settings.jwt_audience,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=ttl_seconds)).timestamp()),
            "kind": kind.value,
        }
        return jwt.encode(
            claims, self._secrets[kind], algorithm=self._settings.jwt_algorithm
        )

    def issue_access(self, principal: Principal, device_id: Optional[str] = None) -> str:
        claims = {"sub": principal.id, "role": principal.role, "email": principal.email}
        if device_id:
            claims["did"] = device_id
        return self._encode(TokenKind.ACCESS, claims, self.access_ttl_seconds)

    def issue_refresh(self, principal: Principal, device_id: str) -> str:
        claims = {"sub": principal.id, "did": device_id, "jti": generate_secure_token(12)}
        return self._encode(TokenKind.REFRESH, claims, self.refresh_ttl_seconds)

    def issue_pair(self, principal: Principal, device_id: str) -> tuple[str, str]:
        return (
            self.issue_access(principal, device_id),
            self.issue_refresh(principal, device_id),
        )

    def _verify(
        self, token: str, expected: TokenKind
    ) -> Union[Ok[dict], Failure]:
        try:
            unverified = jwt.decode(token, options={"verify_signature": False})
        except jwt.InvalidTokenError:
            return Failure(AuthErrorCode.INVALID_TOKEN, "Malformed token")

        if unverified.get("kind") != expected.value:
            log.warning(
                "credential_wrong_kind",
                expected=expected.value,
                presented=str(unverified.get("kind")),
            )
            return Failure(
                AuthErrorCode.WRONG_TOKEN_KIND, f"Expected a {expected.value} token"
            )

        try:
            claims = jwt.decode(
                token,
                self._secrets[expected],
                algorithms=[self._settings.jwt_algorithm],
                audience=self._settings.jwt_audience,
                issuer=self._settings.jwt_issuer,
                options={
                    "require": _REQUIRED_CLAIMS,
                    "verify_exp": False,
                    "verify_iat": False,
                },
            )
        except jwt.InvalidTokenError as e:
            log.warning(
                "credential_invalid", kind=expected.value, error_type=type(e).__name__
            )
            return Failure(AuthErrorCode.INVALID_TOKEN, f"Invalid {expected.value} token")

        # Expiry is judged by the injected clock, not the wall clock
        now = int(self._clock().timestamp())
        try:
            expires_at = int(claims["exp"])
            issued_at = int(claims["iat"])
        except (TypeError, ValueError):
            return Failure(AuthErrorCode.INVALID_TOKEN, f"Invalid {expected.value} token")
        if expires_at <= now:
            return Failure(AuthErrorCode.EXPIRED_TOKEN, f"{expected.value} token expired")
        if issued_at > now + _IAT_LEEWAY_SECONDS:
            log.warning("credential_issued_in_future", kind=expected.value)
            return Failure(AuthErrorCode.INVALID_TOKEN, f"Invalid {expected.value} token")
        return Ok(claims)

    def verify_access(self, token: str) -> Result[AccessClaims]:
        decoded = self._verify(token, TokenKind.ACCESS)
        if not decoded.ok:
            return decoded
        try:
            return Ok(AccessClaims.model_validate(decoded.value))
        except PydanticValidationError:
            return Failure(AuthErrorCode.INVALID_TOKEN, "Access token claims malformed")

    def verify_refresh(self, token: str) -> Result[RefreshClaims]:
        decoded = self._verify(token, TokenKind.REFRESH)
        if not decoded.ok:
            return decoded
        try:
            return Ok(RefreshClaims.model_validate(decoded.value))
        except PydanticValidationError:
            return Failure(AuthErrorCode.INVALID_TOKEN, "Refresh token claims malformed")
