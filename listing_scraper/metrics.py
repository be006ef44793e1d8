"""Prometheus metrics for the listing scraper."""

from prometheus_client import Counter, Histogram, Info, start_http_server

# Application info
app_info = Info("listing_scraper", "Listing scraper application info")
app_info.info({"version": "0.1.0", "name": "listing-scraper"})

# Request metrics
requests_total = Counter(
    "listing_requests_total",
    "Total number of handled crawl requests",
    ["label", "outcome"],
)

request_duration_seconds = Histogram(
    "listing_request_duration_seconds",
    "Time spent handling one crawl request",
    ["label"],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
)

requests_retried_total = Counter(
    "listing_requests_retried_total",
    "Requests sent back to the frontier for another attempt",
    ["reason"],
)

# Block / session metrics
blocks_detected_total = Counter(
    "listing_blocks_detected_total",
    "Pages classified as blocked",
    ["reason"],
)

sessions_retired_total = Counter(
    "listing_sessions_retired_total",
    "Sessions removed from rotation",
    ["cause"],
)

# Output metrics
records_total = Counter(
    "listing_records_total",
    "Records appended to the primary dataset",
    ["kind"],
)

external_upserts_total = Counter(
    "listing_external_upserts_total",
    "Upserts into the external document store",
    ["status"],
)

debug_snapshots_total = Counter(
    "listing_debug_snapshots_total",
    "Diagnostic snapshots written for empty list pages",
)


def start_metrics_server(port: int) -> None:
    """Expose metrics over HTTP when a port is configured."""
    if port > 0:
        start_http_server(port)


def record_request(label: str, outcome: str, duration: float):
    """Record a handled request and how long it took."""
    requests_total.labels(label=label, outcome=outcome).inc()
    request_duration_seconds.labels(label=label).observe(duration)


def record_retry(reason: str):
    """Record a request being requeued."""
    requests_retried_total.labels(reason=reason).inc()


def record_block(reason: str):
    """Record a block page."""
    blocks_detected_total.labels(reason=reason).inc()


def record_session_retired(cause: str):
    """Record a session retirement (blocked or exhausted)."""
    sessions_retired_total.labels(cause=cause).inc()


def record_output(kind: str):
    """Record a primary dataset write ('record' or 'failure')."""
    records_total.labels(kind=kind).inc()


def record_external_upsert(success: bool):
    """Record an external upsert attempt."""
    status = "success" if success else "error"
    external_upserts_total.labels(status=status).inc()


def record_debug_snapshot():
    """Record a diagnostic snapshot write."""
    debug_snapshots_total.inc()
