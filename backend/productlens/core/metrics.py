from prometheus_client import (
    Counter,
    Histogram,
    Gauge,
    generate_latest,
    CONTENT_TYPE_LATEST,
)

# ---------------------------------------------------------------------------
# Pipeline metrics
# ---------------------------------------------------------------------------
pipeline_runs_total = Counter(
    "pipeline_runs_total",
    "Extraction pipeline runs by the HTML source that was used",
    ["source"],
)
pipeline_duration_seconds = Histogram(
    "pipeline_duration_seconds",
    "End-to-end duration of one extraction pipeline run",
    buckets=[0.25, 0.5, 1, 2, 5, 10, 20, 30, 60],
)
static_fetch_total = Counter(
    "static_fetch_total",
    "Static HTTP fetches by outcome",
    ["status"],
)
render_failures_total = Counter(
    "render_failures_total",
    "Dynamic render failures absorbed by the pipeline",
    ["kind"],
)

# ---------------------------------------------------------------------------
# Browser metrics
# ---------------------------------------------------------------------------
browser_launches_total = Counter(
    "browser_launches_total",
    "Headless browser launches by outcome",
    ["status"],
)
browser_disconnects_total = Counter(
    "browser_disconnects_total",
    "Number of times the shared browser disconnected or crashed",
)
active_browser_pages = Gauge(
    "active_browser_pages",
    "Number of currently open browser pages",
)

# ---------------------------------------------------------------------------
# HTTP metrics
# ---------------------------------------------------------------------------
extract_requests_total = Counter(
    "extract_requests_total",
    "Total /v1/extract requests by result code",
    ["result"],
)


def get_metrics() -> bytes:
    """Generate Prometheus metrics output."""
    return generate_latest()


def get_metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
