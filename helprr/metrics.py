"""
Prometheus metrics for monitoring the poller.

Exposes cycle outcomes, skipped ticks, detected events and push delivery
outcomes. The exporter is only started when METRICS_PORT is set.
"""

from prometheus_client import Counter, Gauge, Histogram, Info, start_http_server

from helprr.core.helpers import _get_pyproject_attr
from helprr.core.logging import get_logger

logger = get_logger("metrics")

app_info = Info("helprr", _get_pyproject_attr("description"))

# Polling metrics
poll_cycles_total = Counter(
    "poll_cycles_total",
    "Completed poll cycles",
    ["service", "outcome"],
)
poll_ticks_skipped_total = Counter(
    "poll_ticks_skipped_total",
    "Ticks skipped because the previous cycle was still running",
    ["service"],
)
poll_cycle_duration_seconds = Histogram(
    "poll_cycle_duration_seconds",
    "Poll cycle duration in seconds",
    ["service"],
    buckets=(0.1, 0.5, 1, 2, 5, 10, 30, 60, 120),
)
poll_last_success_timestamp = Gauge(
    "poll_last_success_timestamp_seconds",
    "Unix time of the last successful cycle",
    ["service"],
)
records_skipped_total = Counter(
    "records_skipped_total",
    "Malformed upstream records skipped during detection",
    ["service"],
)

# Event metrics
events_detected_total = Counter(
    "events_detected_total",
    "Events detected",
    ["service", "event_kind"],
)

# Delivery metrics
push_deliveries_total = Counter(
    "push_deliveries_total",
    "Push delivery attempts by outcome",
    ["outcome"],
)
subscriptions_pruned_total = Counter(
    "subscriptions_pruned_total",
    "Subscriptions deleted because their endpoint is gone",
)


def init_metrics(port: int) -> bool:
    """
    Start the Prometheus exporter.

    Args:
        port: Port to listen on; 0 disables the exporter.

    Returns:
        True if the exporter was started.
    """
    app_info.info({"version": _get_pyproject_attr("version")})
    if port <= 0:
        return False
    start_http_server(port)
    logger.info("Metrics exporter listening on port %d", port)
    return True
