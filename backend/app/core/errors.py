"""Gateway error taxonomy and its JSON rendering."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ..schemas.errors import ErrorResponse

logger = logging.getLogger(__name__)

VALIDATION_FAILED = "VALIDATION_FAILED"
UNAUTHORIZED = "UNAUTHORIZED"
FORBIDDEN = "FORBIDDEN"
RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
RECAPTCHA_FAILED = "RECAPTCHA_FAILED"
INTERNAL_ERROR = "INTERNAL_ERROR"


class GatewayError(Exception):
    """Error with a caller-safe message; ``internal`` is only ever logged."""

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int,
        *,
        internal: Exception | str | None = None,
        retry_after: int | None = None,
        details: list[dict[str, Any]] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.status_code = status_code
        self.internal = internal
        self.retry_after = retry_after
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.internal is not None:
            return f"{self.message}: {self.internal}"
        return self.message

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error=self.message,
            code=self.code,
            retry_after=self.retry_after,
            details=self.details,
        )

    @classmethod
    def validation(
        cls,
        message: str,
        internal: Exception | str | None = None,
        *,
        details: list[dict[str, Any]] | None = None,
    ) -> GatewayError:
        return cls(
            VALIDATION_FAILED,
            message,
            status.HTTP_400_BAD_REQUEST,
            internal=internal,
            details=details,
        )

    @classmethod
    def unauthorized(cls, message: str = "missing API key") -> GatewayError:
        return cls(UNAUTHORIZED, message, status.HTTP_401_UNAUTHORIZED)

    @classmethod
    def forbidden(cls, message: str = "invalid API key") -> GatewayError:
        return cls(FORBIDDEN, message, status.HTTP_403_FORBIDDEN)

    @classmethod
    def rate_limited(cls, retry_after: int) -> GatewayError:
        return cls(
            RATE_LIMIT_EXCEEDED,
            "rate limit exceeded",
            status.HTTP_429_TOO_MANY_REQUESTS,
            retry_after=retry_after,
        )

    @classmethod
    def recaptcha(cls, message: str, internal: Exception | str | None = None) -> GatewayError:
        return cls(RECAPTCHA_FAILED, message, status.HTTP_502_BAD_GATEWAY, internal=internal)

    @classmethod
    def internal_error(cls, message: str, internal: Exception | str | None = None) -> GatewayError:
        return cls(INTERNAL_ERROR, message, status.HTTP_500_INTERNAL_SERVER_ERROR, internal=internal)


def _render(exc: GatewayError) -> JSONResponse:
    headers: dict[str, str] = {}
    if exc.retry_after is not None:
        headers["Retry-After"] = str(exc.retry_after)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(by_alias=True, exclude_none=True),
        headers=headers or None,
    )


async def gateway_error_handler(request: Request, exc: GatewayError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "request failed",
            extra={
                "request_id": getattr(request.state, "request_id", None),
                "extra_fields": {"code": exc.code, "detail": str(exc)},
            },
        )
    return _render(exc)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {"loc": list(item.get("loc", ())), "msg": item.get("msg", "")} for item in exc.errors()
    ]
    return _render(GatewayError.validation("invalid request", details=details))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled error",
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "extra_fields": {"code": INTERNAL_ERROR},
        },
        exc_info=(type(exc), exc, exc.__traceback__),
    )
    return _render(GatewayError.internal_error("internal server error", internal=exc))
