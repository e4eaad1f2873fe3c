"""Prometheus metrics definitions for DirStore.

All custom metrics use the ``dirstore_`` prefix. HTTP-level metrics (request
count, duration, sizes) come from ``prometheus-fastapi-instrumentator``.

Counters reset to zero on restart. The module-level references stay ``None``
until ``init_metrics()`` runs, so callers must check before using them.
"""

from __future__ import annotations

from prometheus_client import Counter

_initialized: bool = False

# Classified actions by tag and outcome (labels: action, status)
actions_total: Counter | None = None

# Directories removed by the post-destroy cleanup sweep
empty_dirs_removed_total: Counter | None = None

# Multipart sessions torn down by abort
multipart_aborts_total: Counter | None = None


def init_metrics() -> None:
    """Create and register all DirStore collectors. Safe to call twice."""
    global _initialized
    global actions_total, empty_dirs_removed_total, multipart_aborts_total

    if _initialized:
        return

    actions_total = Counter(
        "dirstore_actions_total",
        "Total classified actions by type and outcome",
        ["action", "status"],
    )

    empty_dirs_removed_total = Counter(
        "dirstore_empty_dirs_removed_total",
        "Total empty directories removed from the storage tree",
    )

    multipart_aborts_total = Counter(
        "dirstore_multipart_aborts_total",
        "Total multipart sessions aborted",
    )

    _initialized = True


def record_action(action: str, status: str) -> None:
    """Increment the action counter if metrics are enabled."""
    if actions_total is not None:
        actions_total.labels(action=action, status=status).inc()
