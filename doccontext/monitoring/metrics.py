"""Process-local counters for the retrieval pipeline.

Names in use: ``embedding.model_loads``, ``embedding.calls``,
``embedding.texts``, ``embedding.cache_hits``, ``embedding.cache_misses``,
``cascade.<tier>.attempts``, ``cascade.<tier>.failures``,
``selection.truncated``.
"""
import time
from contextlib import contextmanager
from threading import Lock

_metrics = {}
_lock = Lock()


def record(metric: str, value: int = 1) -> None:
    """Increment a counter metric by value."""
    with _lock:
        _metrics[metric] = _metrics.get(metric, 0) + int(value)


def observe(metric: str, value: float) -> None:
    """Record an observed value (adds to a total)."""
    with _lock:
        _metrics[metric] = _metrics.get(metric, 0) + float(value)


@contextmanager
def timed(metric: str):
    """Add the wall time of the block, in milliseconds, to ``metric``."""
    start = time.perf_counter()
    try:
        yield
    finally:
        observe(metric, (time.perf_counter() - start) * 1000.0)


def get(metric: str, default=0):
    with _lock:
        return _metrics.get(metric, default)


def get_metrics() -> dict:
    """Return a snapshot of all metrics."""
    with _lock:
        return dict(_metrics)


def reset_metrics() -> None:
    """Reset all metrics (useful for tests)."""
    with _lock:
        _metrics.clear()
