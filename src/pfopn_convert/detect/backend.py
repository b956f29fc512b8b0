"""DHCP backend classification.

Classifies a document as running the legacy per-interface DHCP backend, the
modern subnet-oriented backend, both at once, or neither. Every result
carries a human-readable reason and the element paths used as evidence.
"""
from dataclasses import dataclass, field
from enum import Enum

from ..tree import XmlNode, is_truthy

LEGACY_SECTIONS = ("dhcpd", "dhcpdv6", "dhcpd6")
KEA_COMPONENTS = ("dhcp4", "dhcp6", "ctrl_agent")


class DhcpBackendState(str, Enum):
    LEGACY = "legacy"
    MODERN = "modern"
    MIXED = "mixed"
    UNKNOWN = "unknown"


@dataclass
class BackendDetection:
    """Backend classification with supporting evidence."""
    state: DhcpBackendState
    reason: str
    evidence_paths: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "reason": self.reason,
            "evidence_paths": list(self.evidence_paths),
        }


def has_legacy_dhcp_data(root: XmlNode) -> bool:
    """True when any of the legacy DHCP sections exists at the root."""
    return any(root.child(tag) is not None for tag in LEGACY_SECTIONS)


def _legacy_evidence(prefix: str) -> list[str]:
    return [f"{prefix}.{tag}" for tag in LEGACY_SECTIONS]


def _kea_enabled_paths(root: XmlNode) -> list[str]:
    kea = root.find("OPNsense", "Kea")
    if kea is None:
        return []
    paths = []
    for component in KEA_COMPONENTS:
        if is_truthy(kea.text_at(component, "general", "enabled")):
            paths.append(f"{root.tag}.OPNsense.Kea.{component}.general.enabled")
    return paths


def _detect_pfsense(root: XmlNode) -> BackendDetection:
    explicit = (root.value("dhcpbackend") or "").lower()
    if explicit in ("kea", "modern"):
        return BackendDetection(
            DhcpBackendState.MODERN,
            "explicit <dhcpbackend> value",
            [f"{root.tag}.dhcpbackend"],
        )
    if explicit in ("isc", "legacy"):
        return BackendDetection(
            DhcpBackendState.LEGACY,
            "explicit <dhcpbackend> value",
            [f"{root.tag}.dhcpbackend"],
        )

    if has_legacy_dhcp_data(root):
        return BackendDetection(
            DhcpBackendState.LEGACY,
            "legacy dhcp sections present without explicit backend value",
            _legacy_evidence(root.tag),
        )

    return BackendDetection(
        DhcpBackendState.UNKNOWN, "no recognizable dhcp backend indicators found"
    )


def _detect_opnsense(root: XmlNode) -> BackendDetection:
    kea_paths = _kea_enabled_paths(root)
    legacy = has_legacy_dhcp_data(root)

    if kea_paths and legacy:
        return BackendDetection(
            DhcpBackendState.MIXED,
            "kea appears enabled while legacy dhcp sections are also present",
            kea_paths + _legacy_evidence(root.tag),
        )
    if kea_paths:
        return BackendDetection(
            DhcpBackendState.MODERN, "kea settings enabled", kea_paths
        )
    if legacy:
        return BackendDetection(
            DhcpBackendState.LEGACY,
            "legacy dhcp sections present and kea appears disabled",
            _legacy_evidence(root.tag),
        )

    return BackendDetection(
        DhcpBackendState.UNKNOWN, "no recognizable dhcp backend indicators found"
    )


def detect_dhcp_backend(root: XmlNode) -> BackendDetection:
    """
    Classify the DHCP backend of a document.

    Args:
        root: Document root (dialect P or O)

    Returns:
        BackendDetection; UNKNOWN for unsupported root tags
    """
    if root.tag == "pfsense":
        return _detect_pfsense(root)
    if root.tag == "opnsense":
        return _detect_opnsense(root)
    return BackendDetection(
        DhcpBackendState.UNKNOWN,
        "unsupported root tag for backend detection",
        [root.tag],
    )
