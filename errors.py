"""
Error taxonomy, application error hierarchy and FastAPI exception handlers.

The *ErrorCode enums name every expected failure of the auth subsystem.
Services never raise for these; they return ``services.results.Failure``
values carrying one of the codes.

AppError is the base for all typed exceptions. Only two situations raise:
the store adapters (StoreUnavailableError / StoreTimeoutError) and the HTTP
layer, which converts a Failure into the matching AppError subclass so the
global exception handler can render a consistent JSON body.

Non-AppError exceptions bubble up as 500s (with Sentry reporting in production).
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

if TYPE_CHECKING:
    from services.results import Failure


class AuthErrorCode(str, Enum):
    NO_TOKEN = "NO_TOKEN"
    INVALID_TOKEN = "INVALID_TOKEN"
    EXPIRED_TOKEN = "EXPIRED_TOKEN"
    WRONG_TOKEN_KIND = "WRONG_TOKEN_KIND"
    REVOKED_TOKEN = "REVOKED_TOKEN"


class SessionErrorCode(str, Enum):
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
    SESSION_EXPIRED = "SESSION_EXPIRED"
    DEVICE_NOT_FOUND = "DEVICE_NOT_FOUND"


class ChallengeErrorCode(str, Enum):
    NOT_FOUND = "NOT_FOUND"
    EXPIRED = "EXPIRED"
    MISMATCH = "MISMATCH"
    MAX_ATTEMPTS = "MAX_ATTEMPTS"
    RATE_LIMITED = "RATE_LIMITED"


class InfrastructureErrorCode(str, Enum):
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"
    STORE_TIMEOUT = "STORE_TIMEOUT"


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        code: Optional[str] = None,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.error_code = code
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class AuthenticationError(AppError):
    status_code = 401
    error_code = "authentication_error"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class GoneError(AppError):
    status_code = 410
    error_code = "gone"


class RateLimitError(AppError):
    status_code = 429
    error_code = "rate_limit_exceeded"


class ServiceUnavailableError(AppError):
    status_code = 503
    error_code = "service_unavailable"


class StoreError(ServiceUnavailableError):
    """Raised by key-value store adapters. Never mapped to an auth reason."""

    error_code = InfrastructureErrorCode.STORE_UNAVAILABLE.value

    @property
    def infrastructure_code(self) -> InfrastructureErrorCode:
        return InfrastructureErrorCode(self.error_code)


class StoreUnavailableError(StoreError):
    error_code = InfrastructureErrorCode.STORE_UNAVAILABLE.value


class StoreTimeoutError(StoreError):
    error_code = InfrastructureErrorCode.STORE_TIMEOUT.value


_SESSION_ERRORS: dict[SessionErrorCode, type[AppError]] = {
    SessionErrorCode.SESSION_NOT_FOUND: NotFoundError,
    SessionErrorCode.DEVICE_NOT_FOUND: NotFoundError,
    SessionErrorCode.SESSION_EXPIRED: AuthenticationError,
}

_CHALLENGE_ERRORS: dict[ChallengeErrorCode, type[AppError]] = {
    ChallengeErrorCode.NOT_FOUND: NotFoundError,
    ChallengeErrorCode.EXPIRED: GoneError,
    ChallengeErrorCode.MAX_ATTEMPTS: GoneError,
    ChallengeErrorCode.MISMATCH: ValidationError,
    ChallengeErrorCode.RATE_LIMITED: RateLimitError,
}


def error_from_failure(failure: "Failure") -> AppError:
    """Convert a service Failure into the AppError the HTTP layer raises."""
    code = failure.code
    if isinstance(code, AuthErrorCode):
        error_cls: type[AppError] = AuthenticationError
    elif isinstance(code, SessionErrorCode):
        error_cls = _SESSION_ERRORS[code]
    elif isinstance(code, ChallengeErrorCode):
        error_cls = _CHALLENGE_ERRORS[code]
    else:
        error_cls = ServiceUnavailableError

    details = dict(failure.details)
    if failure.attempts_remaining is not None:
        details["attempts_remaining"] = failure.attempts_remaining
    if failure.seconds_remaining is not None:
        details["seconds_remaining"] = failure.seconds_remaining
    return error_cls(
        failure.message or code.value, code=code.value, details=details or None
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        headers = None
        if isinstance(exc, AuthenticationError):
            headers = {"WWW-Authenticate": "Bearer"}
        elif isinstance(exc, RateLimitError) and isinstance(exc.details, dict):
            retry_after = exc.details.get("seconds_remaining")
            if retry_after is not None:
                headers = {"Retry-After": str(retry_after)}
        return JSONResponse(
            status_code=exc.status_code, content=exc.to_dict(), headers=headers
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        return JSONResponse(
            status_code=500,
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
