"""
Performance monitoring and metrics collection.
"""
import time
import inspect
import logging
import threading
from collections import defaultdict, deque
from functools import wraps
from typing import Any, Deque, Dict, List, Optional

logger = logging.getLogger(__name__)

MAX_SAMPLES_PER_METRIC = 1000

# Thread-safe metrics storage
_metrics_lock = threading.Lock()
_metrics: Dict[str, Deque[Dict[str, Any]]] = defaultdict(
    lambda: deque(maxlen=MAX_SAMPLES_PER_METRIC)
)


def _percentile(sorted_values: List[float], p: float) -> float:
    # Nearest-rank, same rule the profiler uses for quartiles
    return sorted_values[min(int(len(sorted_values) * p), len(sorted_values) - 1)]


class PerformanceMonitor:
    """Monitor and track performance metrics."""

    @staticmethod
    def record_metric(name: str, value: float, metadata: Optional[Dict[str, Any]] = None):
        """
        Record a performance metric.

        Args:
            name: Metric name (e.g., 'parse_file', 'generate_chart_data')
            value: Metric value (usually duration in seconds)
            metadata: Optional metadata (correlation_id, chart_type, etc.)
        """
        with _metrics_lock:
            _metrics[name].append({
                'value': value,
                'timestamp': time.time(),
                'metadata': metadata or {}
            })

    @staticmethod
    def _stats_locked(metric_name: str) -> Optional[Dict[str, float]]:
        samples = _metrics.get(metric_name)
        if not samples:
            return None
        values = sorted(m['value'] for m in samples)
        errors = sum(1 for m in samples if m['metadata'].get('status') == 'error')
        return {
            'count': len(values),
            'errors': errors,
            'min': values[0],
            'max': values[-1],
            'mean': sum(values) / len(values),
            'p50': _percentile(values, 0.50),
            'p95': _percentile(values, 0.95),
            'p99': _percentile(values, 0.99),
        }

    @staticmethod
    def get_stats(metric_name: str) -> Optional[Dict[str, float]]:
        """
        Get statistics for a metric.

        Returns:
            Dict with count, errors, min, max, mean and percentiles, or None if no data
        """
        with _metrics_lock:
            return PerformanceMonitor._stats_locked(metric_name)

    @staticmethod
    def get_all_metrics() -> Dict[str, Dict[str, float]]:
        """Get statistics for all metrics."""
        with _metrics_lock:
            return {
                name: PerformanceMonitor._stats_locked(name)
                for name in list(_metrics.keys())
                if _metrics[name]
            }

    @staticmethod
    def clear_metrics():
        """Clear all metrics (useful for testing)."""
        with _metrics_lock:
            _metrics.clear()


def _correlation_id(args, kwargs) -> Optional[str]:
    # Handlers take the request first or as a keyword
    request = kwargs.get('request') or (args[0] if args else None)
    state = getattr(request, 'state', None)
    return getattr(state, 'correlation_id', None)


def _finish(metric_name: str, started: float, correlation_id: Optional[str], error: Optional[Exception] = None):
    duration = time.perf_counter() - started
    metadata = {'correlation_id': correlation_id, 'status': 'error' if error else 'success'}
    if error is not None:
        metadata['error'] = str(error)
    PerformanceMonitor.record_metric(metric_name, duration, metadata)

    if error is None:
        logger.debug(
            f"{metric_name} completed in {duration:.3f}s",
            extra={'metric': metric_name, 'duration': duration}
        )
    else:
        logger.warning(
            f"{metric_name} failed after {duration:.3f}s: {error}",
            extra={'metric': metric_name, 'duration': duration}
        )


def track_performance(metric_name: str):
    """
    Decorator to track function execution time.

    Usage:
        @track_performance("parse_file")
        async def parse_file(...):
            ...
    """
    def decorator(func):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            started = time.perf_counter()
            correlation_id = _correlation_id(args, kwargs)
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                _finish(metric_name, started, correlation_id, e)
                raise
            _finish(metric_name, started, correlation_id)
            return result

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            started = time.perf_counter()
            correlation_id = _correlation_id(args, kwargs)
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _finish(metric_name, started, correlation_id, e)
                raise
            _finish(metric_name, started, correlation_id)
            return result

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
