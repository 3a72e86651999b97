"""
Prometheus metrics collection for employee-sync

Counters and histograms for ingest runs, delta detection and field
coercion. All metrics live on a private registry so importing the module
never touches the process-wide default registry.
"""
import os
from typing import Optional

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

REGISTRY = CollectorRegistry()


# =======================
# INGEST METRICS
# =======================

batches_total = Counter(
    name="sync_batches_total",
    documentation="Total number of ingest batches finalized",
    labelnames=["status"],  # status: COMPLETED, FAILED
    registry=REGISTRY,
)

records_ingested_total = Counter(
    name="sync_records_ingested_total",
    documentation="Total number of mapped records seen by ingest runs",
    labelnames=["kind"],  # kind: new, existing
    registry=REGISTRY,
)

ingest_duration_seconds = Histogram(
    name="sync_ingest_duration_seconds",
    documentation="Time spent on one ingest run in seconds",
    buckets=[0.1, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0, 120.0],
    registry=REGISTRY,
)

snapshots_written_total = Counter(
    name="sync_snapshots_written_total",
    documentation="Total number of employee snapshots written",
    registry=REGISTRY,
)

# =======================
# DELTA METRICS
# =======================

deltas_detected_total = Counter(
    name="sync_deltas_detected_total",
    documentation="Total number of deltas detected",
    labelnames=["delta_type"],  # delta_type: NEW, UPDATED, DELETED
    registry=REGISTRY,
)

# =======================
# DATA QUALITY METRICS
# =======================

field_coercion_failures_total = Counter(
    name="sync_field_coercion_failures_total",
    documentation="Total number of cell values that could not be coerced to their field type",
    labelnames=["field_name"],
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


def get_content_type() -> str:
    return CONTENT_TYPE_LATEST


def start_metrics_server(port: Optional[int] = None) -> None:
    """
    Start HTTP server for Prometheus metrics

    Args:
        port: Port to listen on (defaults to env var METRICS_PORT or 8000)
    """
    # Imported lazily so the module can be used without binding a port
    from prometheus_client import start_http_server

    metrics_port = port or int(os.getenv("METRICS_PORT", "8000"))
    start_http_server(metrics_port, registry=REGISTRY)


def record_batch_finalized(status: str, new_records: int, existing_records: int,
                           duration_seconds: float) -> None:
    """Record the outcome of one ingest run."""
    batches_total.labels(status=status).inc()
    if new_records:
        records_ingested_total.labels(kind="new").inc(new_records)
    if existing_records:
        records_ingested_total.labels(kind="existing").inc(existing_records)
    ingest_duration_seconds.observe(duration_seconds)


def record_deltas(counts: dict[str, int]) -> None:
    """Record detected deltas, keyed by delta type name."""
    for delta_type, count in counts.items():
        if count:
            deltas_detected_total.labels(delta_type=delta_type).inc(count)


def record_snapshots_written(count: int) -> None:
    if count:
        snapshots_written_total.inc(count)


def record_coercion_failure(field_name: str) -> None:
    field_coercion_failures_total.labels(field_name=field_name).inc()
