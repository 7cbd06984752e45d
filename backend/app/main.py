from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from .api.v1.routes import router as v1_router
from .core.config import Settings, get_settings
from .core.errors import (
    GatewayError,
    gateway_error_handler,
    unhandled_error_handler,
    validation_error_handler,
)
from .core.logging import configure_logging
from .core.security import API_KEY_HEADER, CredentialGate
from .middleware import RequestLoggingMiddleware
from .schemas.health import HealthResponse, ReadinessResponse
from .services.admission import AdmissionController
from .services.ratelimit import AdmissionLimiter, LimiterConfig
from .services.recaptcha import RecaptchaService

logger = logging.getLogger(__name__)

CORS_ALLOW_HEADERS = [
    "Content-Type",
    "Content-Length",
    "Accept-Encoding",
    "X-CSRF-Token",
    "Authorization",
    "Accept",
    "Origin",
    "Cache-Control",
    "X-Requested-With",
    API_KEY_HEADER,
]
CORS_ALLOW_METHODS = ["POST", "OPTIONS", "GET", "PUT", "DELETE"]


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build the gateway application; configuration errors surface here."""

    settings = settings or get_settings()
    limiter_config = LimiterConfig(
        rate=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )
    gate = CredentialGate(settings.app_api_key)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        configure_logging(settings)
        if settings.recaptcha_site_key is None:
            logger.warning(
                "GOOGLE_RECAPTCHA_SITE_KEY not set, using default (not recommended for production)"
            )

        limiter = AdmissionLimiter(limiter_config)
        recaptcha_service = RecaptchaService(
            settings.recaptcha_api_key,
            settings.site_key,
            settings.recaptcha_endpoint,
            timeout=settings.recaptcha_timeout_seconds,
        )

        app.state.settings = settings
        app.state.rate_limiter = limiter
        app.state.admission = AdmissionController(limiter, gate)
        app.state.recaptcha_service = recaptcha_service
        app.state.started_at = time.monotonic()

        limiter.start()
        logger.info(
            "starting gateway",
            extra={
                "extra_fields": {
                    "version": settings.version,
                    "rate_limit_requests": limiter_config.rate,
                    "rate_limit_window_seconds": limiter_config.window_seconds,
                }
            },
        )

        try:
            yield
        finally:
            logger.info("shutting down gateway")
            limiter.stop()
            await recaptcha_service.close()

    app = FastAPI(title="reCAPTCHA Gateway", version=settings.version, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=CORS_ALLOW_METHODS,
        allow_headers=CORS_ALLOW_HEADERS,
    )
    app.add_middleware(RequestLoggingMiddleware)
    app.add_exception_handler(GatewayError, gateway_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_error_handler)

    app.include_router(v1_router)

    @app.get("/health", response_model=HealthResponse)
    async def health(request: Request) -> HealthResponse:
        uptime = time.monotonic() - request.app.state.started_at
        return HealthResponse(status="healthy", uptime_seconds=uptime, version=settings.version)

    @app.get("/ready", response_model=ReadinessResponse)
    async def ready() -> ReadinessResponse:
        return ReadinessResponse(status="ready")

    @app.get("/metrics")
    async def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app
