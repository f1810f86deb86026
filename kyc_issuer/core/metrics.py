"""Prometheus metric inventory.

Every metric the service exports is declared here; the module that owns
the behavior imports the metric and increments it at the point of action.

HTTP metrics are filled in by MetricsMiddleware.  The issuance metrics
follow the mint flow:

  oracle_quotes_total{result}        one per price lookup
                                     (ok|negative_price|positive_exponent|unavailable)
  credential_mints_total{result}     one per mint attempt, labelled with the
                                     error code on failure
  mint_fees_collected_total          base units debited to the beneficiary
  admin_mutations_total{operation}   successful admin writes
  admin_rejections_total{operation}  admin calls from a non-admin caller

A rising credential_mints_total{result="auth_failed"} with a flat
result="ok" usually means the signing authority and the service disagree
on the public key or on the receiver's sequence number.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

# ---------------------------------------------------------------------------
# HTTP metrics (populated by the MetricsMiddleware)
# ---------------------------------------------------------------------------

REQUEST_COUNT = Counter(
    "http_requests_total",
    "Total HTTP requests by method, endpoint, and status code",
    ["method", "endpoint", "status_code"],
)

REQUEST_DURATION = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "endpoint"],
    # Mint requests include an oracle round-trip, so the upper buckets
    # matter more here than for pure reads.
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

ACTIVE_REQUESTS = Gauge(
    "http_active_requests",
    "Number of HTTP requests currently being processed",
)

# ---------------------------------------------------------------------------
# Issuance metrics
# ---------------------------------------------------------------------------

MINT_ATTEMPTS = Counter(
    "credential_mints_total",
    "Credential mint attempts by outcome",
    ["result"],
)

MINT_FEES_COLLECTED = Counter(
    "mint_fees_collected_total",
    "Fee base units debited from receivers on successful mints",
)

ORACLE_QUOTES = Counter(
    "oracle_quotes_total",
    "Price oracle lookups by outcome",
    ["result"],
)

ADMIN_MUTATIONS = Counter(
    "admin_mutations_total",
    "Successful admin mutations by operation",
    ["operation"],
)

ADMIN_REJECTIONS = Counter(
    "admin_rejections_total",
    "Admin operations rejected because the caller is not the admin",
    ["operation"],
)
