"""Prometheus metric inventory.

HTTP metrics are fed by MetricsMiddleware; the domain counters are
incremented by the services that own the behaviour.  Everything lives in
the default registry and is served by GET /metrics.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    # Login and registration each pay one argon2 hash (~50ms), so the
    # interesting buckets sit between 25ms and 500ms.
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

REGISTRATIONS = Counter(
    "tenant_registrations_total",
    "Organization self-registrations by outcome",
    ["result"],  # created|conflict
)

LOGIN_ATTEMPTS = Counter(
    "login_attempts_total",
    "Tenant-scoped login attempts by outcome",
    ["result"],  # success|failure
)

CLASS_ENROLLMENTS = Counter(
    "class_enrollments_total",
    "Students enrolled into classes by how the seat was taken",
    ["source"],  # manual|waitlist
)
