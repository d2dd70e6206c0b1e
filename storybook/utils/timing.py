"""Small timing helpers for request-level performance logging."""
import time
from contextlib import contextmanager
from typing import Optional, Callable
import logging

logger = logging.getLogger(__name__)


def now_ms() -> float:
    """Current high-resolution timer value in milliseconds."""
    return time.perf_counter() * 1000


@contextmanager
def time_operation(label: str, log_fn: Optional[Callable[[str], None]] = None, min_ms: float = 0.0):
    """
    Log how long the wrapped block took.

    Example:
        with time_operation("analytics.visitor_stats", min_ms=50):
            stats = visitor_stats(db, start, end)
    """
    start = now_ms()
    try:
        yield
    finally:
        elapsed = now_ms() - start
        if elapsed >= min_ms:
            (log_fn or logger.debug)(f"{label}: {elapsed:.2f}ms")


def log_elapsed(start_ms: float, label: str, log_fn: Optional[Callable[[str], None]] = None) -> float:
    """
    Log the time elapsed since start_ms and return a fresh timestamp for chaining.

    Example:
        t = now_ms()
        t = log_elapsed(t, "load_history")
        t = log_elapsed(t, "select_candidates")
    """
    elapsed = now_ms() - start_ms
    (log_fn or logger.debug)(f"{label}: {elapsed:.2f}ms")
    return now_ms()
