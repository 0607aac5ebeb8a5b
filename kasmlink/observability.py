"""
Observability module: Prometheus request metrics and structured JSON logging.

- Per-operation request counters and latency histogram (recorded by Transport)
- JSON structured logging via python-json-logger
"""

import logging
import sys

from prometheus_client import Counter, Histogram

# =============================================================================
# Prometheus Metrics
# =============================================================================

REQUESTS_TOTAL = Counter(
    "kasmlink_requests_total",
    "Remote API calls by operation and outcome",
    ["operation", "outcome"],
)

REQUEST_DURATION = Histogram(
    "kasmlink_request_duration_seconds",
    "Latency of remote API calls",
    ["operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2, 5, 10, 30),
)


def record_request(operation: str, outcome: str, duration: float) -> None:
    """Record one completed (or failed) remote call."""
    REQUESTS_TOTAL.labels(operation=operation, outcome=outcome).inc()
    REQUEST_DURATION.labels(operation=operation).observe(duration)


# =============================================================================
# Logging
# =============================================================================

def setup_json_logging(level: str = "INFO") -> None:
    """
    Configure the root logger with JSON structured output.

    Uses python-json-logger's JsonFormatter, writing to stderr.
    """
    from pythonjsonlogger.json import JsonFormatter

    handler = logging.StreamHandler(sys.stderr)
    formatter = JsonFormatter(
        fmt="%(timestamp)s %(name)s %(levelname)s %(message)s",
        rename_fields={"levelname": "level", "asctime": "timestamp"},
        timestamp=True,
    )
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())


def setup_logging(level: str = "INFO", json_format: bool = False) -> None:
    """Configure root logging from LoggingConfig values."""
    if json_format:
        setup_json_logging(level)
        return
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    # basicConfig is a no-op when the root logger already has handlers
    logging.getLogger().setLevel(level.upper())
