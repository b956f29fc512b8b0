"""Logging configuration for pfopn-convert.

Provides configurable logging with:
- File-based logging with rotation
- Console output for interactive runs
- Performance timing helpers for each pipeline stage

Environment Variables:
    PFOPN_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
    PFOPN_LOG_FILE: Path to log file (default: ~/.pfopn-convert/pfopn-convert.log)
    PFOPN_LOG_MAX_SIZE: Max log file size in MB (default: 10)
    PFOPN_LOG_BACKUPS: Number of backup files to keep (default: 5)

Usage:
    from pfopn_convert.utils.logging_config import setup_logging, timed

    setup_logging()  # Call once at startup

    @timed("parse_source")
    def parse(path):
        ...

    # Or use the context manager for pipeline stages:
    with timed_section("dhcp_install", target="opnsense"):
        ...
"""
import functools
import logging
import os
import time
from contextlib import contextmanager
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Callable, Optional

# Performance logger - separate from main logger for easy filtering
perf_logger = logging.getLogger("pfopn.perf")
main_logger = logging.getLogger("pfopn_convert")


def get_log_level() -> int:
    """Get log level from environment."""
    level_str = os.environ.get("PFOPN_LOG_LEVEL", "INFO").upper()
    return getattr(logging, level_str, logging.INFO)


def get_log_file() -> Path:
    """Get log file path from environment."""
    default_path = Path.home() / ".pfopn-convert" / "pfopn-convert.log"
    path_str = os.environ.get("PFOPN_LOG_FILE", str(default_path))
    return Path(path_str)


def _rotating_handler(path: Path, formatter: logging.Formatter, max_bytes: int,
                      backups: int) -> RotatingFileHandler:
    handler = RotatingFileHandler(path, maxBytes=max_bytes, backupCount=backups, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(formatter)
    return handler


def setup_logging(level: Optional[int] = None, log_to_file: bool = True) -> None:
    """Configure logging for the application.

    Sets up:
    - Console handler (INFO+ by default, respects PFOPN_LOG_LEVEL)
    - File handler with rotation (DEBUG level - captures everything)
    - Performance logger for stage timings

    Args:
        level: Console level override (e.g. from ``--verbose``)
        log_to_file: Disable to keep runs free of file handlers
    """
    log_level = level if level is not None else get_log_level()
    max_bytes = int(os.environ.get("PFOPN_LOG_MAX_SIZE", "10")) * 1024 * 1024
    backups = int(os.environ.get("PFOPN_LOG_BACKUPS", "5"))

    datefmt = "%Y-%m-%d %H:%M:%S"
    main_format = logging.Formatter(
        "%(asctime)s.%(msecs)03d | %(name)-40s | %(levelname)-7s | %(message)s", datefmt=datefmt
    )
    perf_format = logging.Formatter("%(asctime)s.%(msecs)03d | PERF | %(message)s", datefmt=datefmt)

    console = logging.StreamHandler()
    console.setLevel(log_level)
    console.setFormatter(main_format)

    main_logger.setLevel(logging.DEBUG)
    main_logger.handlers.clear()
    main_logger.addHandler(console)

    perf_logger.setLevel(logging.DEBUG)
    perf_logger.handlers.clear()
    perf_logger.propagate = False

    level_name = logging.getLevelName(log_level)
    if not log_to_file:
        main_logger.debug(f"Logging initialized: level={level_name}, console only")
        return

    log_file = get_log_file()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    perf_log_file = log_file.parent / "pfopn-convert-perf.log"

    # Stage timings go to their own file
    main_logger.addHandler(_rotating_handler(log_file, main_format, max_bytes, backups))
    perf_logger.addHandler(_rotating_handler(perf_log_file, perf_format, max_bytes, backups))

    main_logger.debug(f"Logging initialized: level={level_name}, file={log_file}")
    perf_logger.debug(f"Stage timings logged to: {perf_log_file}")


def _perf_line(operation: str, context: Optional[str], elapsed: float, status: str,
               extra: dict) -> str:
    msg = f"{operation:20s} | {context or 'N/A':10s} | {elapsed:8.2f}ms | {status}"
    if extra:
        msg += " | " + " | ".join(f"{k}={v}" for k, v in extra.items())
    return msg


def timed(operation: str, context: Optional[str] = None):
    """Decorator to log execution time of a function.

    Args:
        operation: Name of the operation (e.g., "parse_source", "diff")
        context: Optional label such as the target dialect

    Usage:
        @timed("write_output")
        def write(...):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            start = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                elapsed = (time.perf_counter() - start) * 1000
                perf_logger.warning(_perf_line(operation, context, elapsed, f"FAIL: {e}", {}))
                raise
            elapsed = (time.perf_counter() - start) * 1000
            global_stats.record(operation, elapsed)
            perf_logger.info(_perf_line(operation, context, elapsed, "OK", {}))
            return result

        return wrapper

    return decorator


@contextmanager
def timed_section(operation: str, context: Optional[str] = None, **extra):
    """Context manager for timing pipeline stages.

    Args:
        operation: Name of the stage
        context: Optional label such as the target dialect
        **extra: Additional context to log

    Usage:
        with timed_section("interfaces", context="opnsense"):
            ...
    """
    start = time.perf_counter()
    try:
        yield
    except Exception as e:
        elapsed = (time.perf_counter() - start) * 1000
        perf_logger.warning(_perf_line(operation, context, elapsed, f"FAIL: {e}", extra))
        raise
    elapsed = (time.perf_counter() - start) * 1000
    global_stats.record(operation, elapsed)
    perf_logger.info(_perf_line(operation, context, elapsed, "OK", extra))


class PerfStats:
    """Collect and report performance statistics.

    Usage:
        stats = PerfStats()
        stats.record("diff", 12.5)
        stats.record("diff", 11.2)
        stats.record("merge", 3.1)
        print(stats.summary())
    """

    def __init__(self):
        self._data: dict[str, list[float]] = {}

    def record(self, operation: str, duration_ms: float) -> None:
        """Record a timing measurement."""
        self._data.setdefault(operation, []).append(duration_ms)

    def count(self, operation: str) -> int:
        return len(self._data.get(operation, []))

    def summary(self) -> str:
        """Generate summary statistics."""
        lines = ["Performance Summary", "=" * 60]

        for op, times in sorted(self._data.items()):
            if not times:
                continue
            count = len(times)
            avg = sum(times) / count
            lines.append(
                f"{op:20s} | count={count:4d} | "
                f"avg={avg:8.2f}ms | min={min(times):8.2f}ms | max={max(times):8.2f}ms"
            )

        return "\n".join(lines)

    def clear(self) -> None:
        """Clear all recorded data."""
        self._data.clear()


# Global stats instance for convenience
global_stats = PerfStats()
