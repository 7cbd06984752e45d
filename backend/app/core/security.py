from __future__ import annotations

import hmac

from fastapi import Header, Request

from ..services.admission import AdmissionController, AdmissionOutcome
from .errors import GatewayError

API_KEY_HEADER = "X-API-Key"


def check_credential(presented: str | None, expected: str) -> bool:
    """Compare credentials in time independent of where they first differ."""

    if not presented or not expected:
        return False
    return hmac.compare_digest(presented.encode("utf-8"), expected.encode("utf-8"))


class CredentialGate:
    """Holds the expected API key and checks presented values against it."""

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("expected credential must not be empty")
        self._secret = secret

    def __repr__(self) -> str:
        return "CredentialGate(secret=***)"

    def check(self, presented: str | None) -> bool:
        return check_credential(presented, self._secret)


def resolve_client_key(request: Request) -> str:
    settings = request.app.state.settings
    if settings.trust_forwarded_for:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first = forwarded.split(",", 1)[0].strip()
        if first:
            return first
    if request.client is None:
        return "unknown"
    return request.client.host


async def enforce_admission(
    request: Request,
    api_key: str | None = Header(default=None, alias=API_KEY_HEADER),
) -> None:
    """Rate limit the caller, then require a valid API key."""

    controller: AdmissionController = request.app.state.admission
    client_key = resolve_client_key(request)
    decision = controller.decide(client_key, api_key)
    request.state.client_key = client_key

    if decision.outcome is AdmissionOutcome.RATE_LIMITED:
        raise GatewayError.rate_limited(decision.retry_after or controller.retry_after)
    if decision.outcome is AdmissionOutcome.MISSING_CREDENTIAL:
        raise GatewayError.unauthorized()
    if decision.outcome is AdmissionOutcome.INVALID_CREDENTIAL:
        raise GatewayError.forbidden()
