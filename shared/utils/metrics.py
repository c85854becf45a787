"""
Metrics for the ride query service.

Counters and timers held in process memory. The orchestrator counts questions
and failures by category and times compilation and execution; the health
endpoint reports the summary.
"""

import inspect
import logging
import threading
import time
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Dict, Optional


class Counter:
    """A counter metric that only increases."""

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description
        self._value = 0
        self._lock = threading.Lock()

    def increment(self, amount: int = 1) -> None:
        if amount < 0:
            raise ValueError("Counter can only be incremented by non-negative amounts")
        with self._lock:
            self._value += amount

    def get_value(self) -> int:
        return self._value


class Timer:
    """Accumulates durations in seconds."""

    def __init__(self, name: str, description: str = ""):
        self.name = name
        self.description = description
        self._count = 0
        self._sum = 0.0
        self._max = 0.0
        self._lock = threading.Lock()

    def observe(self, duration: float) -> None:
        with self._lock:
            self._count += 1
            self._sum += duration
            self._max = max(self._max, duration)

    @contextmanager
    def time_context(self):
        """Context manager for timing operations."""
        start_time = time.perf_counter()
        try:
            yield
        finally:
            self.observe(time.perf_counter() - start_time)

    def get_statistics(self) -> Dict[str, Any]:
        return {
            'count': self._count,
            'sum': self._sum,
            'mean': self._sum / self._count if self._count else 0.0,
            'max': self._max,
        }


class MetricsCollector:
    """Central registry of counters and timers."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)
        self._counters: Dict[str, Counter] = {}
        self._timers: Dict[str, Timer] = {}
        self._lock = threading.Lock()

    def counter(self, name: str, description: str = "") -> Counter:
        """Get or create a counter metric."""
        with self._lock:
            if name not in self._counters:
                self._counters[name] = Counter(name, description)
            return self._counters[name]

    def timer(self, name: str, description: str = "") -> Timer:
        """Get or create a timer metric."""
        with self._lock:
            if name not in self._timers:
                self._timers[name] = Timer(name, description)
            return self._timers[name]

    def get_summary(self) -> Dict[str, Any]:
        return {
            'counters': {name: c.get_value() for name, c in sorted(self._counters.items())},
            'timers': {name: t.get_statistics() for name, t in sorted(self._timers.items())},
        }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._timers.clear()


_metrics_collector: Optional[MetricsCollector] = None


def get_metrics_collector() -> MetricsCollector:
    """Get global metrics collector."""
    global _metrics_collector
    if _metrics_collector is None:
        _metrics_collector = MetricsCollector()
    return _metrics_collector


def track_performance(metric_name: Optional[str] = None):
    """
    Decorator counting calls and errors and timing each call.

    Usage:
        @track_performance("compiler.compile")
        def compile(self, question): ...
    """
    def decorator(func: Callable) -> Callable:
        name = metric_name or f"{func.__module__}.{func.__name__}"

        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            metrics = get_metrics_collector()
            metrics.counter(f"{name}.calls").increment()
            with metrics.timer(f"{name}.duration").time_context():
                try:
                    return await func(*args, **kwargs)
                except Exception:
                    metrics.counter(f"{name}.errors").increment()
                    raise

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            metrics = get_metrics_collector()
            metrics.counter(f"{name}.calls").increment()
            with metrics.timer(f"{name}.duration").time_context():
                try:
                    return func(*args, **kwargs)
                except Exception:
                    metrics.counter(f"{name}.errors").increment()
                    raise

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
