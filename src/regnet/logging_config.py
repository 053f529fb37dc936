"""Logging setup for regnet runs.

Modules log through children of the ``"regnet"`` logger and never attach
handlers themselves. :func:`setup_logging` is the one place that does:

- a console stream at the requested level
- with ``log_dir``, timestamped files: ``main`` (everything),
  ``performance`` (records from :func:`log_performance`), ``warnings``
  (WARNING and above) and, at DEBUG level, ``debug``

Example:
    >>> logger = setup_logging(log_dir="logs/cv", log_level=logging.DEBUG)
    >>> log_performance(logger, "CV sweep finished", duration_sec=4.2, cells=60)
"""
import logging
import sys
import warnings
from pathlib import Path
from datetime import datetime
from typing import Dict, List, Optional
from contextlib import contextmanager

ROOT_LOGGER = "regnet"

_DETAILED = logging.Formatter(
    fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
_BARE = logging.Formatter(fmt="%(asctime)s | %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
_CONSOLE = logging.Formatter(fmt="%(levelname)-8s | %(message)s")


class PerformanceFilter(logging.Filter):
    """Pass only records emitted by :func:`log_performance`."""

    def filter(self, record):
        return bool(getattr(record, "is_performance", False))


def _file_handler(path: Path, level: int, formatter: logging.Formatter,
                  record_filter: Optional[logging.Filter] = None) -> logging.FileHandler:
    handler = logging.FileHandler(path, mode="w", encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    if record_filter is not None:
        handler.addFilter(record_filter)
    return handler


def setup_logging(
    log_dir: Optional[str] = None,
    log_level: int = logging.INFO,
    console_output: bool = True
) -> logging.Logger:
    """Attach console and file handlers to the ``"regnet"`` logger.

    Calling it again replaces the handlers of the previous call.

    Args:
        log_dir: Directory for the log files; None writes no files
        log_level: Console level; DEBUG also opens the debug file
        console_output: Write records to stdout

    Returns:
        The configured ``"regnet"`` logger
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(logging.DEBUG)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()
    logger.propagate = False

    if console_output:
        console = logging.StreamHandler(sys.stdout)
        console.setLevel(log_level)
        console.setFormatter(_CONSOLE)
        logger.addHandler(console)

    if log_dir is None:
        if not logger.handlers:
            logger.addHandler(logging.NullHandler())
        return logger

    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    folder = Path(log_dir)
    folder.mkdir(parents=True, exist_ok=True)

    logger.addHandler(_file_handler(folder / f"main_{stamp}.log", logging.DEBUG, _DETAILED))
    logger.addHandler(_file_handler(
        folder / f"performance_{stamp}.log", logging.INFO, _BARE, PerformanceFilter()
    ))
    logger.addHandler(_file_handler(folder / f"warnings_{stamp}.log", logging.WARNING, _DETAILED))
    if log_level == logging.DEBUG:
        logger.addHandler(_file_handler(folder / f"debug_{stamp}.log", logging.DEBUG, _DETAILED))

    logger.info(f"Writing logs to {folder.absolute()}")
    return logger


def log_performance(logger: logging.Logger, message: str, **metrics):
    """Log ``message`` at INFO, followed by ``key=value`` pairs, as a performance record.

    Example:
        >>> log_performance(logger, "Fold 0 prepared", duration_sec=1.5, fits=20)
        # Output: "Fold 0 prepared | duration_sec=1.5 | fits=20"
    """
    parts = [message] + [f"{k}={v}" for k, v in metrics.items()]
    logger.info(" | ".join(parts), extra={"is_performance": True, "metrics": metrics})


class WarningLogger:
    """Route captured warnings to a logger, counting them by category.

    Categories are matched on keywords of the warning text:
    convergence, numerical, input; anything else is "other".
    """

    KEYWORDS: Dict[str, List[str]] = {
        "convergence": ["convergencewarning", "converge", "max_iter", "maximum iterations"],
        "numerical": ["overflow", "underflow", "invalid value", "divide by zero"],
        "input": ["not available", "ignored", "only works"],
    }

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.counts = dict.fromkeys([*self.KEYWORDS, "other"], 0)

    def categorize_warning(self, message: str) -> str:
        text = message.lower()
        for category, words in self.KEYWORDS.items():
            if any(word in text for word in words):
                return category
        return "other"

    def log_warning(self, message: str, category: Optional[str] = None):
        category = category or self.categorize_warning(message)
        self.counts[category] += 1
        self.logger.debug(f"[{category.upper()}] {message}")

    def summary(self) -> dict:
        """Counts of the categories that occurred."""
        return {k: v for k, v in self.counts.items() if v}


@contextmanager
def capture_warnings(logger: logging.Logger):
    """Send warnings raised inside the block to ``logger`` at DEBUG.

    Library warnings (e.g. scikit-learn convergence notices from the
    elastic-net starting point) would otherwise flood the console once per
    fold. A one-line summary is logged at INFO when the block exits.

    Yields:
        The WarningLogger, whose ``summary()`` gives counts per category

    Example:
        >>> with capture_warnings(logger) as captured:
        ...     ElasticNetCV().fit(X, y)
        >>> captured.summary()
        {'convergence': 3}
    """
    captured = WarningLogger(logger)
    previous = warnings.showwarning

    def _show(message, category, filename, lineno, file=None, line=None):
        captured.log_warning(f"{category.__name__}: {message}")

    warnings.showwarning = _show
    try:
        yield captured
    finally:
        warnings.showwarning = previous
        counts = captured.summary()
        if counts:
            logger.info("Warning summary: " + ", ".join(f"{k}={v}" for k, v in counts.items()))


class ProgressLogger:
    """Log "desc: current/total (pct%)" every ``log_interval`` steps and at the end.

    Example:
        >>> progress = ProgressLogger(logger, total=60, desc="CV fits", log_interval=6)
        >>> for _ in range(60):
        ...     progress.update()
        # Output: "CV fits: 6/60 (10.0%)" ... "CV fits: 60/60 (100.0%)"
    """

    def __init__(
        self,
        logger: logging.Logger,
        total: int,
        desc: str,
        log_interval: int = 1,
        level: int = logging.INFO
    ):
        self.logger = logger
        self.total = total
        self.desc = desc
        self.log_interval = max(1, log_interval)
        self.level = level
        self.current = 0

    def update(self, n: int = 1, metrics: Optional[dict] = None):
        """Advance by ``n`` steps; ``metrics`` are appended to the message."""
        self.current += n
        if self.current % self.log_interval and self.current != self.total:
            return
        msg = f"{self.desc}: {self.current}/{self.total} ({100.0 * self.current / self.total:.1f}%)"
        if metrics:
            msg += " | " + ", ".join(
                f"{k}={v:.4g}" if isinstance(v, float) else f"{k}={v}" for k, v in metrics.items()
            )
        self.logger.log(self.level, msg)
