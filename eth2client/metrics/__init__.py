"""Prometheus metrics."""

from .metrics import (
    DEFAULT_METRICS_PORT,
    start_metrics_server,
    record_request,
    record_head_update,
    record_handler_failure,
)

__all__ = [
    "DEFAULT_METRICS_PORT",
    "start_metrics_server",
    "record_request",
    "record_head_update",
    "record_handler_failure",
]
