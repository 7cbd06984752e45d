from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx
from pydantic import ValidationError

from ..core.errors import GatewayError
from ..metrics import ASSESSMENTS
from ..schemas.verify import AssessmentResult, ProviderAssessment

logger = logging.getLogger(__name__)

MAX_ERROR_BODY_CHARS = 1024


class Assessor(Protocol):
    async def assess(self, token: str, action: str | None = None) -> AssessmentResult: ...


class RecaptchaService:
    """Client for the reCAPTCHA Enterprise ``assessments`` endpoint."""

    def __init__(
        self,
        api_key: str,
        site_key: str,
        endpoint: str,
        *,
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._site_key = site_key
        self._endpoint = endpoint
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def close(self) -> None:
        await self._client.aclose()

    def _payload(self, token: str, action: str | None) -> dict[str, Any]:
        event: dict[str, str] = {"token": token, "siteKey": self._site_key}
        trimmed_action = (action or "").strip()
        if trimmed_action:
            event["expectedAction"] = trimmed_action
        return {"event": event}

    async def assess(self, token: str, action: str | None = None) -> AssessmentResult:
        if not token or not token.strip():
            raise GatewayError.validation("token is required")

        try:
            response = await self._client.post(
                self._endpoint,
                params={"key": self._api_key},
                json=self._payload(token, action),
            )
        except httpx.TimeoutException as exc:
            ASSESSMENTS.labels(result="error").inc()
            raise GatewayError.recaptcha(
                "recaptcha verification failed",
                internal=f"request to reCAPTCHA Enterprise timed out ({type(exc).__name__})",
            ) from exc
        except httpx.RequestError as exc:
            ASSESSMENTS.labels(result="error").inc()
            raise GatewayError.recaptcha(
                "recaptcha verification failed",
                internal=f"request to reCAPTCHA Enterprise failed ({type(exc).__name__})",
            ) from exc

        if response.status_code != httpx.codes.OK:
            ASSESSMENTS.labels(result="error").inc()
            body = response.text[:MAX_ERROR_BODY_CHARS]
            raise GatewayError.recaptcha(
                "recaptcha verification failed",
                internal=f"reCAPTCHA Enterprise returned status {response.status_code}: {body}",
            )

        try:
            assessment = ProviderAssessment.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            ASSESSMENTS.labels(result="error").inc()
            raise GatewayError.recaptcha(
                "recaptcha verification failed",
                internal=f"failed to decode assessment response: {exc}",
            ) from exc

        result = assessment.normalize()
        ASSESSMENTS.labels(result="valid" if result.valid else "invalid").inc()
        logger.info(
            "assessment complete",
            extra={"extra_fields": {"valid": result.valid, "score": result.score}},
        )
        return result


__all__ = ["Assessor", "RecaptchaService"]
