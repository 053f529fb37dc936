"""Wall-clock timing reported as performance log records.

Example:
    >>> with Timer(logger, "Fold preparation") as timer:
    ...     problems = [prepare_problem(...) for ...]
    >>> timer.duration
    0.84
"""
import time
import functools
import logging
from typing import Callable, Optional

from regnet.logging_config import log_performance


class Timer:
    """Context manager logging how long its block took.

    On success a performance record ``"Completed: <description>"`` with
    ``duration_sec`` is logged; on failure an ERROR record is logged and the
    exception propagates.

    Args:
        logger: Logger instance
        description: What the block does
        level: Level of the ``"Starting: ..."`` record
    """

    def __init__(self, logger: logging.Logger, description: str, level: int = logging.DEBUG):
        self.logger = logger
        self.description = description
        self.level = level
        self.start_time: Optional[float] = None
        self.duration: Optional[float] = None

    def __enter__(self):
        self.logger.log(self.level, f"Starting: {self.description}")
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = self.elapsed()
        if exc_type is not None:
            self.logger.error(
                f"{self.description} failed after {self.duration:.2f}s: {exc_val}"
            )
            return False
        log_performance(
            self.logger, f"Completed: {self.description}", duration_sec=round(self.duration, 3)
        )
        return False

    def elapsed(self) -> float:
        """Seconds since the block was entered (0.0 before)."""
        return 0.0 if self.start_time is None else time.perf_counter() - self.start_time


def log_execution_time(logger: Optional[logging.Logger] = None):
    """Decorator timing every call of a function with :class:`Timer`.

    Args:
        logger: Logger to report to (defaults to the function's module logger)
    """
    def decorator(func: Callable) -> Callable:
        log = logger or logging.getLogger(func.__module__)

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with Timer(log, func.__name__):
                return func(*args, **kwargs)

        return wrapper
    return decorator
