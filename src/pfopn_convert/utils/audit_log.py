"""Audit trail for conversions.

Each conversion run appends one JSON line (source, output, dialects,
backend, outcome, summary, warnings) to a dedicated rotating log file.
"""
import json
import logging
import os
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

# Dedicated audit logger
audit_logger = logging.getLogger("pfopn.audit")

DEFAULT_AUDIT_DIR = "~/.pfopn-convert"


def setup_audit_logging(log_dir: Optional[str] = None) -> Path:
    """Configure audit logging to file.

    Args:
        log_dir: Directory for audit logs. Defaults to ~/.pfopn-convert/

    Returns:
        Path of the audit log file
    """
    if log_dir is None:
        log_dir = os.path.expanduser(DEFAULT_AUDIT_DIR)

    Path(log_dir).mkdir(parents=True, exist_ok=True)
    audit_file = Path(log_dir) / "audit.log"

    audit_logger.setLevel(logging.INFO)
    audit_logger.handlers.clear()

    handler = RotatingFileHandler(
        audit_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=10,
        encoding="utf-8",
    )
    # One JSON document per line
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit_logger.addHandler(handler)
    audit_logger.propagate = False
    return audit_file


@dataclass
class ConversionRecord:
    """Record of a single conversion run."""
    timestamp: str
    input: str
    output: str
    from_dialect: str
    to_dialect: str
    backend: Optional[str]
    success: bool
    summary: dict = field(default_factory=dict)
    warnings: list[str] = field(default_factory=list)
    error: Optional[str] = None

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(asdict(self), indent=None)

    @classmethod
    def from_json(cls, json_str: str) -> "ConversionRecord":
        """Parse from JSON string."""
        return cls(**json.loads(json_str))


def log_conversion(
    input_path: str,
    output_path: str,
    from_dialect: str,
    to_dialect: str,
    success: bool,
    backend: Optional[str] = None,
    summary: Optional[dict] = None,
    warnings: Optional[list[str]] = None,
    error: Optional[str] = None,
) -> ConversionRecord:
    """Write one conversion outcome to the audit log.

    Returns:
        The ConversionRecord that was logged
    """
    record = ConversionRecord(
        timestamp=datetime.now(timezone.utc).isoformat(),
        input=input_path,
        output=output_path,
        from_dialect=from_dialect,
        to_dialect=to_dialect,
        backend=backend,
        success=success,
        summary=dict(summary or {}),
        warnings=list(warnings or []),
        error=error,
    )
    audit_logger.info(record.to_json())
    return record


def get_recent_conversions(
    log_file: Optional[str] = None,
    to_dialect: Optional[str] = None,
    limit: int = 100,
) -> list[ConversionRecord]:
    """Read recent conversions from the audit log.

    Args:
        log_file: Path to audit log. Defaults to ~/.pfopn-convert/audit.log
        to_dialect: Filter by target dialect
        limit: Maximum number of records to return

    Returns:
        List of ConversionRecords, most recent first
    """
    if log_file is None:
        log_file = os.path.join(os.path.expanduser(DEFAULT_AUDIT_DIR), "audit.log")

    if not os.path.exists(log_file):
        return []

    records = []
    with open(log_file, "r", encoding="utf-8") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                record = ConversionRecord.from_json(line)
            except (json.JSONDecodeError, TypeError):
                continue  # Skip malformed lines
            if to_dialect and record.to_dialect != to_dialect:
                continue
            records.append(record)

    return list(reversed(records[-limit:]))
