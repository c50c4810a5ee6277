"""Prometheus metrics definitions for BucketDAV.

All custom metrics use the ``bucketdav_`` prefix. These are WebDAV-level
metrics; ``prometheus-fastapi-instrumentator`` provides the HTTP-level ones
(request count, duration, sizes).

Counters reset to zero on restart. Every reference stays ``None`` until
:func:`init_metrics` runs, so callers check before incrementing.
"""

from __future__ import annotations

from prometheus_client import Counter

# Flag indicating whether metrics have been initialised via init_metrics().
_initialized: bool = False

# ---------------------------------------------------------------------------
# DAV operation counter  (labels: method, status)
# ---------------------------------------------------------------------------
dav_operations_total: Counter | None = None

# ---------------------------------------------------------------------------
# Recursive tree operations  (label: operation = copy | move | delete)
# ---------------------------------------------------------------------------
tree_entries_total: Counter | None = None
tree_entries_skipped_total: Counter | None = None

# ---------------------------------------------------------------------------
# Byte counters
# ---------------------------------------------------------------------------
bytes_received_total: Counter | None = None
bytes_sent_total: Counter | None = None


def init_metrics() -> None:
    """Create and register all Prometheus metrics.

    Called once when metrics are enabled. When metrics are disabled in
    config the module-level references stay ``None`` and no collectors are
    registered in the global registry.
    """
    global _initialized
    global dav_operations_total, tree_entries_total, tree_entries_skipped_total
    global bytes_received_total, bytes_sent_total

    if _initialized:
        return

    dav_operations_total = Counter(
        "bucketdav_dav_operations_total",
        "Total WebDAV operations by method and response status",
        ["method", "status"],
    )

    tree_entries_total = Counter(
        "bucketdav_tree_entries_total",
        "Entries processed by recursive copy, move and delete",
        ["operation"],
    )

    tree_entries_skipped_total = Counter(
        "bucketdav_tree_entries_skipped_total",
        "Entries skipped during fan-out because the source had vanished",
        ["operation"],
    )

    bytes_received_total = Counter(
        "bucketdav_bytes_received_total",
        "Total bytes received in request bodies",
    )

    bytes_sent_total = Counter(
        "bucketdav_bytes_sent_total",
        "Total bytes sent in response bodies",
    )

    _initialized = True


def record_operation(method: str, status: int) -> None:
    """Count one dispatched WebDAV request."""
    if dav_operations_total is not None:
        dav_operations_total.labels(method=method, status=str(status)).inc()


def record_tree_entries(operation: str, count: int = 1) -> None:
    if tree_entries_total is not None and count > 0:
        tree_entries_total.labels(operation=operation).inc(count)


def record_tree_skip(operation: str) -> None:
    if tree_entries_skipped_total is not None:
        tree_entries_skipped_total.labels(operation=operation).inc()
