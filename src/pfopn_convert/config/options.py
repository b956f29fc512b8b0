"""Conversion options and YAML conversion profiles.

A profile mirrors the ``convert`` command-line flags:

```yaml
to: opnsense
from: pfsense
backend: auto
transfer_users: true
transfer_certs: true
transfer_cas: true
lan_ip: 192.168.1.1
disable_dhcp: false
minimal_template: false
```
"""
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Optional, Union

import yaml

from ..detect import Dialect
from ..dhcp import BackendRequest
from ..errors import InvalidInputError

logger = logging.getLogger(__name__)

# Profile keys that differ from the dataclass field names
PROFILE_ALIASES = {
    "to": "target",
    "from": "source",
    "minimal_template": "minimal_baseline",
}


@dataclass
class ConversionOptions:
    """Everything the engine needs to know besides the two documents."""
    target: Dialect
    source: Optional[Dialect] = None
    backend: BackendRequest = BackendRequest.AUTO
    transfer_users: bool = True
    transfer_certs: bool = True
    transfer_cas: bool = True
    lan_ip: Optional[str] = None
    disable_dhcp: bool = False
    minimal_baseline: bool = False

    def __post_init__(self):
        if isinstance(self.target, str) and not isinstance(self.target, Dialect):
            self.target = parse_target(self.target)
        if isinstance(self.source, str) and not isinstance(self.source, Dialect):
            self.source = parse_source(self.source)
        if not isinstance(self.backend, BackendRequest):
            try:
                self.backend = BackendRequest.parse(str(self.backend))
            except ValueError as e:
                raise InvalidInputError(str(e)) from e

    def with_overrides(self, **overrides: Any) -> "ConversionOptions":
        """Copy with non-None overrides applied (CLI flags over profile values)."""
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        values.update({k: v for k, v in overrides.items() if v is not None})
        return ConversionOptions(**values)


def parse_target(value: str) -> Dialect:
    """
    Parse the ``--to`` value.

    Raises:
        InvalidInputError: For ``auto`` or an unknown name
    """
    dialect = _parse_dialect(value)
    if dialect is None or dialect == Dialect.UNKNOWN:
        raise InvalidInputError("--to cannot be auto; specify pfsense or opnsense")
    return dialect


def parse_source(value: Optional[str]) -> Optional[Dialect]:
    """Parse ``--from``; ``None`` and ``auto`` both mean auto-detect."""
    if value is None:
        return None
    return _parse_dialect(value)


def _parse_dialect(value: str) -> Optional[Dialect]:
    try:
        return Dialect.parse(value)
    except ValueError as e:
        raise InvalidInputError(str(e)) from e


def load_options(path: Union[str, Path], **overrides: Any) -> ConversionOptions:
    """
    Load a YAML conversion profile.

    Args:
        path: Profile file
        **overrides: Values taking precedence over the profile (None is ignored)

    Raises:
        InvalidInputError: Unreadable profile or missing target dialect
    """
    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise InvalidInputError(f"failed to read profile {path}: {e}") from e
    if not isinstance(raw, dict):
        raise InvalidInputError(f"profile {path} must be a mapping")

    known = {f.name for f in fields(ConversionOptions)}
    values: dict[str, Any] = {}
    for key, value in raw.items():
        name = PROFILE_ALIASES.get(key, key)
        if name not in known:
            logger.warning(f"Ignoring unknown profile key: {key}")
            continue
        values[name] = value
    values.update({k: v for k, v in overrides.items() if v is not None})

    if values.get("target") is None:
        raise InvalidInputError("profile does not set a target platform (to:)")
    logger.debug(f"Loaded conversion profile {path}")
    return ConversionOptions(**values)
