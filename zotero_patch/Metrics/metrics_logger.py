# metrics_logger.py
# Description: Structured sync metrics (request counts, waits, batch timings) emitted as loguru records.
#
# Imports
import functools
import inspect
import time
from datetime import datetime, timezone
from typing import Any, Optional, Dict, Union, Callable
#
# Third-party Imports
import psutil
from loguru import logger
#
# Local Imports
#
############################################################################################################
#
# Functions:

LabelValue = Union[str, int, float, bool]
LabelDict = Dict[str, LabelValue]

# Custom level so sinks can route metrics separately from application logs
METRIC_LEVEL = "METRIC"
try:
    logger.level(METRIC_LEVEL)
except ValueError:
    logger.level(METRIC_LEVEL, no=25, color="<blue>")


class MetricsLogger:
    """
    Emits metrics as METRIC-level records carrying event/type/value/labels in
    `extra`, with a set of base labels merged into every record.
    """

    def __init__(self, base_labels: Optional[LabelDict] = None):
        self._base_labels = base_labels or {}

    def _emit(self, name: str, metric_type: str, value: Any, labels: Optional[LabelDict] = None):
        merged = {**self._base_labels, **(labels or {})}
        logger.bind(
            event=name,
            type=metric_type,
            value=value,
            labels=merged,
            timestamp=datetime.now(timezone.utc).isoformat(),
        ).log(METRIC_LEVEL, f"{metric_type} {name}={value} {merged}")

    def log_counter(self, name: str, value: int = 1, labels: Optional[LabelDict] = None):
        self._emit(name, "counter", value, labels)

    def log_histogram(self, name: str, value: float, labels: Optional[LabelDict] = None):
        self._emit(name, "histogram", value, labels)

    def log_resource_usage(self, labels: Optional[LabelDict] = None):
        """Snapshot of this process's memory and CPU, logged once at the end of a run."""
        process = psutil.Process()
        self._emit("process_memory_mb", "gauge", process.memory_info().rss / (1024 ** 2), labels)
        self._emit("process_cpu_percent", "gauge", process.cpu_percent(interval=0.1), labels)


default_metrics = MetricsLogger()
log_counter = default_metrics.log_counter
log_resource_usage = default_metrics.log_resource_usage


def timeit(metric_name: Optional[str] = None, labels: Optional[LabelDict] = None):
    """
    Decorator for coroutine functions: records the call's duration as a
    histogram labelled with the function name and success/failure.
    """

    def decorator(func: Callable) -> Callable:
        if not inspect.iscoroutinefunction(func):
            raise TypeError("timeit only decorates coroutine functions")
        name = metric_name or f"{func.__name__}_duration_seconds"

        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            started = time.perf_counter()
            status = "success"
            try:
                return await func(*args, **kwargs)
            except Exception:
                status = "failure"
                raise
            finally:
                elapsed = time.perf_counter() - started
                all_labels = {"function": func.__name__, "status": status, **(labels or {})}
                default_metrics.log_histogram(name, elapsed, all_labels)
                logger.debug(f"{func.__name__} finished in {elapsed:.3f}s ({status})")

        return wrapper

    return decorator

#
# End of metrics_logger.py
############################################################################################################
