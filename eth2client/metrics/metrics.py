"""Prometheus metrics for eth2client."""

import logging
import threading
from typing import Optional

from prometheus_client import (
    Counter,
    Histogram,
    start_http_server,
)

logger = logging.getLogger(__name__)

DEFAULT_METRICS_PORT = 8008

# Request metrics
requests_total = Counter(
    "eth2client_requests_total",
    "Total requests sent to beacon nodes",
    ["backend", "method", "endpoint"],
)

request_errors_total = Counter(
    "eth2client_request_errors_total",
    "Total failed requests to beacon nodes",
    ["backend", "method", "endpoint", "error_type"],
)

request_latency = Histogram(
    "eth2client_request_latency_seconds",
    "Beacon node request latency",
    ["backend", "method"],
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
)

# Event metrics
head_updates_total = Counter(
    "eth2client_head_updates_total",
    "Total head updates distributed to handlers",
    ["backend"],
)

handler_failures_total = Counter(
    "eth2client_handler_failures_total",
    "Total head update handlers that raised",
    ["backend"],
)


_server_started = False
_server_lock = threading.Lock()


def start_metrics_server(port: int = DEFAULT_METRICS_PORT) -> bool:
    """Start the Prometheus metrics HTTP server.

    Args:
        port: Port to listen on (default 8008)

    Returns:
        True if server started successfully, False if already running
    """
    global _server_started

    with _server_lock:
        if _server_started:
            logger.warning("Metrics server already running")
            return False

        try:
            start_http_server(port)
            _server_started = True
            logger.info(f"Prometheus metrics server started on port {port}")
            return True
        except OSError as e:
            logger.error(f"Failed to start metrics server: {e}")
            return False


def record_request(
    backend: str,
    method: str,
    endpoint: str,
    latency: float,
    error: Optional[str] = None,
) -> None:
    """Record a request to a beacon node.

    Args:
        backend: Backend name (e.g., 'standard', 'lighthouse')
        method: HTTP method
        endpoint: Request path without query string
        latency: Request latency in seconds
        error: Error type if the call failed, None if successful
    """
    requests_total.labels(backend=backend, method=method, endpoint=endpoint).inc()
    request_latency.labels(backend=backend, method=method).observe(latency)
    if error:
        request_errors_total.labels(
            backend=backend, method=method, endpoint=endpoint, error_type=error
        ).inc()


def record_head_update(backend: str) -> None:
    """Record a head update fanned out to handlers."""
    head_updates_total.labels(backend=backend).inc()


def record_handler_failure(backend: str) -> None:
    """Record a head update handler that raised."""
    handler_failures_total.labels(backend=backend).inc()
