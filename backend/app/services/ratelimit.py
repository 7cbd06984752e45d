from __future__ import annotations

import logging
import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, replace

from ..metrics import RECLAIMED_BUCKETS, TRACKED_CLIENTS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LimiterConfig:
    """Quota of ``rate`` admissions per ``window_seconds``."""

    rate: int = 100
    window_seconds: float = 60.0

    def __post_init__(self) -> None:
        if self.rate <= 0:
            raise ValueError("rate must be a positive integer")
        if self.window_seconds <= 0:
            raise ValueError("window_seconds must be positive")

    @property
    def retry_after(self) -> int:
        return math.ceil(self.window_seconds)


@dataclass
class ClientBucket:
    tokens: int
    last_refill: float


class AdmissionLimiter:
    """Per-client fixed-window token bucket with background reclamation.

    Buckets refill in full once ``window_seconds`` have passed since the last
    refill, so a client may spend up to ``2 * rate`` tokens across a window
    boundary. Every access to the bucket map, including reclamation, holds
    ``self._lock``.
    """

    def __init__(
        self,
        config: LimiterConfig,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config
        self._clock = clock
        self._buckets: dict[str, ClientBucket] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._reclaimer: threading.Thread | None = None

    @property
    def config(self) -> LimiterConfig:
        return self._config

    @property
    def retry_after(self) -> int:
        return self._config.retry_after

    @property
    def reclaim_interval(self) -> float:
        return self._config.window_seconds * 2

    @property
    def tracked_clients(self) -> int:
        with self._lock:
            return len(self._buckets)

    def bucket(self, client_key: str) -> ClientBucket | None:
        with self._lock:
            bucket = self._buckets.get(client_key)
            return replace(bucket) if bucket is not None else None

    def allow(self, client_key: str) -> bool:
        with self._lock:
            now = self._clock()
            bucket = self._buckets.get(client_key)

            if bucket is None:
                self._buckets[client_key] = ClientBucket(
                    tokens=self._config.rate - 1,
                    last_refill=now,
                )
                TRACKED_CLIENTS.set(len(self._buckets))
                return True

            if now - bucket.last_refill >= self._config.window_seconds:
                bucket.tokens = self._config.rate
                bucket.last_refill = now

            if bucket.tokens > 0:
                bucket.tokens -= 1
                return True

            return False

    def reclaim(self) -> int:
        """Drop buckets not refilled within two windows; return how many."""

        with self._lock:
            now = self._clock()
            threshold = self.reclaim_interval
            stale = [
                key
                for key, bucket in self._buckets.items()
                if now - bucket.last_refill > threshold
            ]
            for key in stale:
                del self._buckets[key]
            remaining = len(self._buckets)

        TRACKED_CLIENTS.set(remaining)
        if stale:
            RECLAIMED_BUCKETS.inc(len(stale))
            logger.debug(
                "reclaimed idle rate limit buckets",
                extra={"extra_fields": {"reclaimed": len(stale), "remaining": remaining}},
            )
        return len(stale)

    def start(self) -> None:
        if self._reclaimer is not None:
            return
        self._reclaimer = threading.Thread(
            target=self._reclaim_loop,
            name="ratelimit-reclaimer",
            daemon=True,
        )
        self._reclaimer.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """Terminate the reclamation thread. One-time teardown at shutdown."""

        self._stop_event.set()
        reclaimer = self._reclaimer
        if reclaimer is not None and reclaimer is not threading.current_thread():
            reclaimer.join(timeout)

    @property
    def running(self) -> bool:
        return self._reclaimer is not None and self._reclaimer.is_alive()

    def _reclaim_loop(self) -> None:
        while not self._stop_event.wait(self.reclaim_interval):
            self.reclaim()


__all__ = ["AdmissionLimiter", "ClientBucket", "LimiterConfig"]
