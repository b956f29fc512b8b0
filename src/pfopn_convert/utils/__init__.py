"""Logging, timing and audit helpers."""
from .logging_config import (
    setup_logging,
    timed,
    timed_section,
    perf_logger,
    PerfStats,
    global_stats,
)
from .audit_log import (
    ConversionRecord,
    setup_audit_logging,
    log_conversion,
    get_recent_conversions,
)

__all__ = [
    # Logging
    "setup_logging",
    "timed",
    "timed_section",
    "perf_logger",
    "PerfStats",
    "global_stats",
    # Audit
    "ConversionRecord",
    "setup_audit_logging",
    "log_conversion",
    "get_recent_conversions",
]
