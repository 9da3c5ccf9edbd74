"""In-process metrics counters and histograms.

Counters are touched from the scheduler thread, re-check timers and API
worker threads, so every mutation goes through one module lock.
"""

import threading
import time
from collections import defaultdict
from typing import Any

from backend.core.config import settings

# Global metrics storage
_metrics = defaultdict(lambda: {"count": 0, "sum": 0.0, "values": [], "buckets": defaultdict(int)})
_lock = threading.Lock()

_BUCKETS = (
    (0.1, "<0.1"),
    (1, "0.1-1.0"),
    (10, "1.0-10.0"),
    (100, "10.0-100.0"),
    (1000, "100.0-1000.0"),
)


def _key(name: str, labels: dict[str, str] | None) -> str:
    if not labels:
        return name
    return name + "{" + ",".join(f"{k}={v}" for k, v in sorted(labels.items())) + "}"


def init_metrics() -> None:
    """Initialize metrics if enabled."""
    if not settings.enable_metrics:
        return


def increment_counter(name: str, labels: dict[str, str] | None = None, value: float = 1.0) -> None:
    """Increment a counter metric."""
    if not settings.enable_metrics:
        return

    with _lock:
        _metrics[_key(name, labels)]["count"] += value


def record_histogram(name: str, value: float, labels: dict[str, str] | None = None) -> None:
    """Record a histogram measurement."""
    if not settings.enable_metrics:
        return

    bucket = ">=1000.0"
    for bound, label in _BUCKETS:
        if value < bound:
            bucket = label
            break

    with _lock:
        metrics = _metrics[_key(name, labels)]
        metrics["count"] += 1
        metrics["sum"] += value
        metrics["values"].append(value)
        metrics["buckets"][bucket] += 1


def observe_duration(start_time: float, name: str, labels: dict[str, str] | None = None) -> None:
    """Observe a duration measurement."""
    duration_ms = (time.time() - start_time) * 1000
    record_histogram(name, duration_ms, labels)


def get_metrics() -> dict[str, Any]:
    """Get current metrics snapshot."""
    if not settings.enable_metrics:
        return {"note": "metrics disabled"}

    result = {}
    with _lock:
        for key, data in _metrics.items():
            metric_result = {"count": data["count"], "sum": data["sum"]}

            if data["values"]:
                values = data["values"]
                metric_result.update(
                    {
                        "min": min(values),
                        "max": max(values),
                        "avg": data["sum"] / len(values),
                        "buckets": dict(data["buckets"]),
                    }
                )

            result[key] = metric_result

    return result


def reset_metrics() -> None:
    """Reset all metrics (useful for testing)."""
    with _lock:
        _metrics.clear()



# Reconciliation scan metrics
def increment_scan_runs(outcome: str) -> None:
    increment_counter("parcelas_scans_total", labels={"outcome": outcome})


def increment_scan_skipped() -> None:
    """Increment counter for scheduler ticks skipped while a scan was running."""
    increment_counter("parcelas_scans_skipped_total")


def record_scan_duration(duration_ms: float) -> None:
    record_histogram("parcelas_scan_duration_ms", duration_ms)


def increment_process_outcome(outcome: str) -> None:
    increment_counter("parcelas_process_total", labels={"outcome": outcome})


def increment_item_errors() -> None:
    increment_counter("parcelas_item_errors_total")


# Gateway / messaging metrics
def increment_payments_created() -> None:
    increment_counter("parcelas_payments_created_total")


def increment_payments_reconciled() -> None:
    increment_counter("parcelas_payments_reconciled_total")


def increment_messages_sent(kind: str) -> None:
    increment_counter("parcelas_messages_sent_total", labels={"kind": kind})


def increment_dispatch_failures() -> None:
    increment_counter("parcelas_dispatch_failures_total")


def increment_rechecks(outcome: str) -> None:
    increment_counter("parcelas_rechecks_total", labels={"outcome": outcome})


# Ops API metrics
def record_ops_duration(duration_ms: float) -> None:
    record_histogram("ops_duration_ms", duration_ms)
