"""
Prometheus metrics configuration for timekeeper.
"""
import os
from prometheus_client import Counter
from prometheus_fastapi_instrumentator import Instrumentator


timesheet_transitions_total = Counter(
    "timesheet_transitions_total",
    "Total number of applied timesheet status transitions",
    ["action"],
)

access_lookup_failures_total = Counter(
    "access_lookup_failures_total",
    "Total number of access-resolution sub-lookups that failed and were treated as no match",
    ["lookup"],
)

access_denied_total = Counter(
    "access_denied_total",
    "Total number of requests refused for lack of timesheet access",
    ["endpoint"],
)

rate_limits_total = Counter(
    "rate_limits_total",
    "Total number of rate limit hits (429 responses)",
    ["service"],
)


def setup_metrics(app):
    """
    Setup Prometheus metrics for FastAPI app.
    Only enables if METRICS_ENABLED environment variable is set to true.

    Args:
        app: FastAPI application instance
    """
    metrics_enabled = os.getenv("METRICS_ENABLED", "").lower() in ("true", "1", "yes")

    if not metrics_enabled:
        return

    instrumentator = Instrumentator(
        should_group_status_codes=True,
        should_ignore_untemplated=False,
        should_respect_env_var=False,
        should_instrument_requests_inprogress=True,
        excluded_handlers=["/metrics", "/healthz", "/readyz"],
        inprogress_name="http_requests_inprogress",
        inprogress_labels=True,
    )

    instrumentator.instrument(app).expose(app, include_in_schema=True, tags=["observability"])
