"""
Prometheus metrics for monitoring and observability.

Provides counters and histograms for tracking:
- Writes and the conflict decisions taken for them
- Deletions of logical files and their variant keys
- Latency of store operations
"""

import time
from typing import Callable
from functools import wraps
from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
)

# Create a global registry
REGISTRY = CollectorRegistry()

_enabled = True

# ========== Counters ==========

# Completed writes
asset_writes_total = Counter(
    "asset_writes_total",
    "Total number of asset write requests",
    ["source", "outcome"],  # local_file/bytes/stream, written/use_existing
    registry=REGISTRY,
)

# Conflict decisions on existing keys
asset_conflicts_total = Counter(
    "asset_conflicts_total",
    "Total number of writes that hit an existing key",
    ["policy", "result"],  # exception/rename/use_existing, rejected/renamed/exhausted/kept
    registry=REGISTRY,
)

# Logical file deletions
asset_deletes_total = Counter(
    "asset_deletes_total",
    "Total number of logical file deletions",
    ["result"],  # deleted/missing
    registry=REGISTRY,
)

# Physical keys removed by deletions
asset_variant_keys_deleted_total = Counter(
    "asset_variant_keys_deleted_total",
    "Total number of backend keys removed while deleting logical files",
    registry=REGISTRY,
)

# ========== Histograms ==========

asset_operation_duration_seconds = Histogram(
    "asset_operation_duration_seconds",
    "Time to complete an asset store operation",
    ["operation"],  # write/delete
    buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
    registry=REGISTRY,
)


def configure_metrics(enabled: bool) -> None:
    """Turn metric recording on or off."""
    global _enabled
    _enabled = enabled


def metrics_enabled() -> bool:
    return _enabled


def record_write(source: str, outcome: str) -> None:
    if _enabled:
        asset_writes_total.labels(source=source, outcome=outcome).inc()


def record_conflict(policy: str, result: str) -> None:
    if _enabled:
        asset_conflicts_total.labels(policy=policy, result=result).inc()


def record_delete(keys_deleted: int) -> None:
    if not _enabled:
        return
    asset_deletes_total.labels(result="deleted" if keys_deleted else "missing").inc()
    if keys_deleted:
        asset_variant_keys_deleted_total.inc(keys_deleted)


# ========== Metric Decorators ==========

def track_operation(operation: str):
    """
    Decorator to track the duration of a store operation.

    Args:
        operation: Operation name (write/delete)
    """
    def decorator(func: Callable):
        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.time()
            try:
                return func(*args, **kwargs)
            finally:
                if _enabled:
                    duration = time.time() - start_time
                    asset_operation_duration_seconds.labels(
                        operation=operation).observe(duration)

        return wrapper
    return decorator


def get_metrics() -> bytes:
    """
    Get current metrics in Prometheus format.

    Returns:
        Metrics as bytes
    """
    return generate_latest(REGISTRY)


def get_metrics_content_type() -> str:
    """Get content type for metrics response."""
    return CONTENT_TYPE_LATEST
