from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNT = Counter(
    "gateway_requests_total",
    "Total HTTP requests processed by the gateway",
    ("method", "path", "status"),
)

REQUEST_LATENCY = Histogram(
    "gateway_request_latency_seconds",
    "HTTP request latency in seconds",
    ("method", "path"),
)

REQUEST_ERRORS = Counter(
    "gateway_request_errors_total",
    "HTTP requests resulting in server errors",
    ("method", "path", "status"),
)

ADMISSION_DECISIONS = Counter(
    "gateway_admission_decisions_total",
    "Admission decisions by outcome",
    ("outcome",),
)

RECLAIMED_BUCKETS = Counter(
    "gateway_ratelimit_reclaimed_buckets_total",
    "Idle client buckets removed by the reclamation thread",
)

TRACKED_CLIENTS = Gauge(
    "gateway_ratelimit_tracked_clients",
    "Client buckets currently held by the rate limiter",
)

ASSESSMENTS = Counter(
    "gateway_recaptcha_assessments_total",
    "reCAPTCHA assessments by result",
    ("result",),
)

__all__ = [
    "ADMISSION_DECISIONS",
    "ASSESSMENTS",
    "RECLAIMED_BUCKETS",
    "REQUEST_COUNT",
    "REQUEST_ERRORS",
    "REQUEST_LATENCY",
    "TRACKED_CLIENTS",
]
