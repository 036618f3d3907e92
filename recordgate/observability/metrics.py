"""
Prometheus metrics collection for recordgate

This module provides metrics instrumentation for monitoring record
operations, partial failures and backend latency.
"""
import os
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)


# Global registry for metrics
REGISTRY = CollectorRegistry()


# =======================
# RECORD OPERATION METRICS
# =======================

# Records processed counter
records_processed_total = Counter(
    name="recordgate_records_processed_total",
    documentation="Total number of request records processed",
    labelnames=["layout", "operation", "status"],  # status: success, failure
    registry=REGISTRY,
)

# Multistatus entries written into bulk responses
multistatus_entries_total = Counter(
    name="recordgate_multistatus_entries_total",
    documentation="Total number of per-record failures reported as multistatus entries",
    labelnames=["layout", "operation", "status_code"],
    registry=REGISTRY,
)

# Update requests transparently re-dispatched as creates
update_fallback_total = Counter(
    name="recordgate_update_fallback_total",
    documentation="Total number of update-else-create fallbacks",
    labelnames=["layout"],
    registry=REGISTRY,
)

# Bulk request size
request_batch_size = Histogram(
    name="recordgate_request_batch_size_records",
    documentation="Number of records in each request",
    labelnames=["operation"],
    buckets=[1, 5, 10, 50, 100, 500, 1000, 5000],
    registry=REGISTRY,
)

# =======================
# BACKEND METRICS
# =======================

# Backend call duration
backend_call_duration_seconds = Histogram(
    name="recordgate_backend_call_duration_seconds",
    documentation="Time spent in backend calls in seconds",
    labelnames=["call"],  # call: find, find_by_id, create, update, delete, script
    buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0],
    registry=REGISTRY,
)

# Backend errors counter
backend_errors_total = Counter(
    name="recordgate_backend_errors_total",
    documentation="Total number of errors reported by the backend",
    labelnames=["call", "code"],
    registry=REGISTRY,
)

# Script calls counter
script_calls_total = Counter(
    name="recordgate_script_calls_total",
    documentation="Total number of backend scripts called directly",
    labelnames=["layout", "status"],
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """
    Generate Prometheus metrics in text format

    Returns:
        Metrics in Prometheus text format
    """
    return generate_latest(REGISTRY)


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    # Imported lazily so that importing this module never binds a port
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


class track_duration:
    """
    Context manager for tracking operation duration

    Usage:
        with track_duration(backend_call_duration_seconds, call="create"):
            # do work
            pass
    """

    def __init__(self, histogram: Histogram, **labels):
        self.histogram = histogram
        self.labels = labels
        self.timer = None

    def __enter__(self):
        self.timer = self.histogram.labels(**self.labels).time()
        self.timer.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.timer.__exit__(exc_type, exc_val, exc_tb)
        return False


def increment_counter(counter: Counter, value: float = 1.0, **labels) -> None:
    """
    Increment a counter metric

    Args:
        counter: Prometheus Counter metric
        value: Amount to increment (default: 1.0)
        **labels: Label values for the metric
    """
    counter.labels(**labels).inc(value)


def observe_histogram(histogram: Histogram, value: float, **labels) -> None:
    """Observe a value in a histogram metric."""
    histogram.labels(**labels).observe(value)


# =======================
# OPERATION HELPERS
# =======================

def record_operation_outcome(layout: str, operation: str, succeeded: int, failed: int) -> None:
    """
    Record the per-record outcome counts of one bulk operation.

    Args:
        layout: Layout the operation ran against
        operation: create, read, update or delete
        succeeded: Records processed without a multistatus entry
        failed: Records reported as multistatus entries
    """
    if succeeded > 0:
        increment_counter(records_processed_total, succeeded, layout=layout, operation=operation, status="success")
    if failed > 0:
        increment_counter(records_processed_total, failed, layout=layout, operation=operation, status="failure")
    observe_histogram(request_batch_size, succeeded + failed, operation=operation)


def record_multistatus(layout: str, operation: str, status_code: int) -> None:
    """Count one multistatus entry."""
    increment_counter(
        multistatus_entries_total, 1, layout=layout, operation=operation, status_code=str(status_code)
    )


def record_backend_error(call: str, code: int) -> None:
    """Count one error reported by the backend."""
    increment_counter(backend_errors_total, 1, call=call, code=str(code))
