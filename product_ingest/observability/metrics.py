"""
Prometheus metrics collection for product-ingest

This module provides metrics instrumentation for monitoring
ingestion runs, data quality, and store round-trips.
"""
import os
from typing import Optional

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

# Registry private to this package
REGISTRY = CollectorRegistry()


# =======================
# RUN METRICS
# =======================

runs_total = Counter(
    name="ingest_runs_total",
    documentation="Total number of ingestion runs by terminal state",
    labelnames=["source_format", "state"],  # state: done, failed
    registry=REGISTRY,
)

rows_total = Counter(
    name="ingest_rows_total",
    documentation="Rows seen by the pipeline, by outcome",
    labelnames=["source_format", "outcome"],  # outcome: inserted, duplicate, rejected
    registry=REGISTRY,
)

parse_duration_seconds = Histogram(
    name="ingest_parse_duration_seconds",
    documentation="Time spent parsing one file",
    labelnames=["source_format"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0, 10.0],
    registry=REGISTRY,
)

# =======================
# STORE METRICS
# =======================

store_round_trip_seconds = Histogram(
    name="ingest_store_round_trip_seconds",
    documentation="Latency of store round-trips",
    labelnames=["operation"],  # operation: existing_keys, insert_many
    buckets=[0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 10.0, 30.0],
    registry=REGISTRY,
)

store_timeouts_total = Counter(
    name="ingest_store_timeouts_total",
    documentation="Store round-trips that exceeded their timeout",
    labelnames=["operation"],
    registry=REGISTRY,
)

# =======================
# UPLOAD METRICS
# =======================

upload_rejections_total = Counter(
    name="ingest_upload_rejections_total",
    documentation="Uploaded files refused before parsing",
    labelnames=["reason"],
    registry=REGISTRY,
)


# =======================
# HELPER FUNCTIONS
# =======================

def generate_metrics() -> bytes:
    """Generate Prometheus metrics in text format"""
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
        with track_duration(store_round_trip_seconds, operation="insert_many"):
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


def record_run(
    source_format: str,
    state: str,
    inserted: int = 0,
    duplicates: int = 0,
    rejected: int = 0,
) -> None:
    """
    Record the terminal state and row outcomes of one run.

    Args:
        source_format: Parsed format tag ("unknown" when parsing failed)
        state: Terminal state value
        inserted: Rows written
        duplicates: Rows skipped as duplicates
        rejected: Rows dropped by validation or mapping
    """
    increment_counter(runs_total, 1, source_format=source_format, state=state)
    if inserted:
        increment_counter(rows_total, inserted, source_format=source_format, outcome="inserted")
    if duplicates:
        increment_counter(rows_total, duplicates, source_format=source_format, outcome="duplicate")
    if rejected:
        increment_counter(rows_total, rejected, source_format=source_format, outcome="rejected")
