from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

from ..metrics import ADMISSION_DECISIONS
from .ratelimit import AdmissionLimiter

if TYPE_CHECKING:
    from ..core.security import CredentialGate

logger = logging.getLogger(__name__)


class AdmissionOutcome(str, Enum):
    ADMIT = "admit"
    MISSING_CREDENTIAL = "missing_credential"
    INVALID_CREDENTIAL = "invalid_credential"
    RATE_LIMITED = "rate_limited"


@dataclass(frozen=True)
class AdmissionDecision:
    outcome: AdmissionOutcome
    retry_after: int | None = None

    @property
    def admitted(self) -> bool:
        return self.outcome is AdmissionOutcome.ADMIT


class AdmissionController:
    """Runs the rate limiter and then the credential gate for each request.

    A token spent by a request that the gate later rejects is not refunded.
    """

    def __init__(self, limiter: AdmissionLimiter, gate: CredentialGate) -> None:
        self._limiter = limiter
        self._gate = gate

    @property
    def limiter(self) -> AdmissionLimiter:
        return self._limiter

    @property
    def retry_after(self) -> int:
        return self._limiter.retry_after

    def decide(self, client_key: str, presented: str | None) -> AdmissionDecision:
        if not self._limiter.allow(client_key):
            logger.warning(
                "rate limit exceeded",
                extra={"client": client_key},
            )
            return self._record(
                AdmissionDecision(AdmissionOutcome.RATE_LIMITED, self._limiter.retry_after)
            )

        if not presented:
            logger.info("missing API key", extra={"client": client_key})
            return self._record(AdmissionDecision(AdmissionOutcome.MISSING_CREDENTIAL))

        if not self._gate.check(presented):
            logger.warning("invalid API key", extra={"client": client_key})
            return self._record(AdmissionDecision(AdmissionOutcome.INVALID_CREDENTIAL))

        return self._record(AdmissionDecision(AdmissionOutcome.ADMIT))

    @staticmethod
    def _record(decision: AdmissionDecision) -> AdmissionDecision:
        ADMISSION_DECISIONS.labels(outcome=decision.outcome.value).inc()
        return decision


__all__ = ["AdmissionController", "AdmissionDecision", "AdmissionOutcome"]
