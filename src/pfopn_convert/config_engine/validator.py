"""Pre-flight validation before any tree is mutated.

Catches unusable inputs early: output paths that would overwrite an
input, baselines of the wrong dialect, and source interfaces the target
machine cannot host.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from ..detect import Dialect, detect_dialect
from ..errors import BaselineRejectedError, IncompatibleInterfacesError, InvalidInputError
from ..interfaces import is_virtual_if_name
from ..tree import XmlNode

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


# === Paths ===

def _normalize_for_compare(path: Path) -> Path:
    if path.exists():
        return path.resolve()
    # Paths that do not exist yet cannot be resolved through symlinks
    return path.absolute()


def ensure_output_not_same(output: PathLike, inputs: list[Optional[PathLike]]) -> None:
    """
    Refuse to write the output over one of the inputs.

    Raises:
        InvalidInputError: If the output resolves to an input path
    """
    out_path = Path(output)
    out_norm = _normalize_for_compare(out_path)
    for raw in inputs:
        if raw is None:
            continue
        in_path = Path(raw)
        if _normalize_for_compare(in_path) == out_norm:
            raise InvalidInputError(
                f"refusing to overwrite source file: output {out_path} matches input {in_path}"
            )


# === Dialects ===

def resolve_source_dialect(requested: Optional[Dialect], source: XmlNode) -> Dialect:
    """
    Explicit source dialect, else the one detected from the root tag.

    Raises:
        InvalidInputError: If auto-detection fails
    """
    if requested is not None and requested != Dialect.UNKNOWN:
        return requested
    detected = detect_dialect(source)
    if detected == Dialect.UNKNOWN:
        raise InvalidInputError("unable to auto-detect platform from root tag")
    return detected


def ensure_distinct_dialects(source: Dialect, target: Dialect) -> None:
    if source == target:
        raise InvalidInputError(
            f"from and to are the same platform ({source.value}); "
            "conversion requires different platforms"
        )


def validate_baseline(baseline: XmlNode, target: Dialect) -> None:
    """
    Check the baseline's root tag against the requested target dialect.

    Raises:
        BaselineRejectedError: On mismatch
    """
    found = detect_dialect(baseline)
    if found != target:
        label = found.value if found != Dialect.UNKNOWN else baseline.tag
        raise BaselineRejectedError(
            f"target-file platform ({label}) does not match --to ({target.value}); "
            "provide a matching baseline file"
        )


# === Interfaces ===

@dataclass
class InterfaceSpec:
    """Identity of one logical interface."""
    name: str
    descr: Optional[str] = None
    if_name: Optional[str] = None
    ipaddr: Optional[str] = None
    subnet: Optional[str] = None

    def describe(self) -> str:
        parts = []
        if self.descr:
            parts.append(f"descr={self.descr}")
        if self.if_name:
            parts.append(f"if={self.if_name}")
        return f"{self.name} ({' '.join(parts)})" if parts else self.name


def collect_interfaces(root: XmlNode) -> dict[str, InterfaceSpec]:
    interfaces = root.child("interfaces")
    if interfaces is None:
        return {}
    return {
        iface.tag: InterfaceSpec(
            name=iface.tag,
            descr=iface.value("descr"),
            if_name=iface.value("if"),
            ipaddr=iface.value("ipaddr"),
            subnet=iface.value("subnet"),
        )
        for iface in interfaces.children
    }


def enforce_interface_compat(source: XmlNode, target: XmlNode) -> None:
    """
    Every source interface must exist on the target or be virtual-backed.

    Raises:
        IncompatibleInterfacesError: Listing the interfaces that cannot be placed
    """
    source_map = collect_interfaces(source)
    target_map = collect_interfaces(target)
    if not source_map or not target_map:
        raise IncompatibleInterfacesError(
            f"interface preflight failed: source_interfaces={len(source_map)} "
            f"target_interfaces={len(target_map)}; provide --target-file with interfaces"
        )

    missing = [
        spec for name, spec in sorted(source_map.items())
        if name not in target_map and not is_virtual_if_name(spec.if_name)
    ]
    if missing:
        raise IncompatibleInterfacesError(
            "interface preflight failed: missing target interfaces: "
            + ", ".join(spec.describe() for spec in missing),
            missing=[spec.name for spec in missing],
        )
    logger.debug(f"Interface preflight passed: {len(source_map)} source interfaces")
