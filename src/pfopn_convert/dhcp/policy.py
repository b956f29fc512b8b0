"""DHCP backend policy.

Resolves the requested backend into an effective one, gates the target
baseline's readiness for it, and reshapes the output so exactly one backend
is active per IP family.
"""
import logging
import re
from enum import Enum
from typing import Optional

from ..detect import (
    Dialect,
    DhcpBackendState,
    detect_dhcp_backend,
    detect_version,
    has_legacy_dhcp_data,
)
from ..errors import BackendUnreadyError, KeaOnlySourceDowngradeError
from ..tree import XmlNode

logger = logging.getLogger(__name__)

MODERN_DEFAULT_MAJOR = 26
LEGACY_PLUGIN = "os-isc-dhcp"
LEGACY_V6_SECTIONS = ("dhcpdv6", "dhcpd6")


class BackendRequest(str, Enum):
    """Backend policy as requested by the caller."""
    AUTO = "auto"
    LEGACY = "legacy"
    MODERN = "modern"

    @classmethod
    def parse(cls, value: str) -> "BackendRequest":
        """Accept policy names plus the product names ``isc`` and ``kea``."""
        lowered = value.strip().lower()
        aliases = {"isc": cls.LEGACY, "kea": cls.MODERN}
        if lowered in aliases:
            return aliases[lowered]
        try:
            return cls(lowered)
        except ValueError:
            raise ValueError(
                f"Invalid DHCP backend: {value}. Must be 'auto', 'legacy' (isc) or 'modern' (kea)"
            )


class DhcpBackend(str, Enum):
    """Effective backend after resolution."""
    LEGACY = "legacy"
    MODERN = "modern"

    @property
    def product(self) -> str:
        return "kea" if self == DhcpBackend.MODERN else "isc"


def _mode_to_backend(state: DhcpBackendState) -> Optional[DhcpBackend]:
    if state in (DhcpBackendState.MODERN, DhcpBackendState.MIXED):
        return DhcpBackend.MODERN
    if state == DhcpBackendState.LEGACY:
        return DhcpBackend.LEGACY
    return None


def resolve_effective_backend(
    requested: BackendRequest,
    source: XmlNode,
    target: XmlNode,
    target_dialect: Dialect,
) -> DhcpBackend:
    """
    Turn a backend request into the backend the output will run.

    Explicit requests win. Under ``auto`` a dialect-O target at or above
    version 26 goes modern; otherwise the source classification decides,
    then the target's, defaulting to legacy.
    """
    if requested == BackendRequest.LEGACY:
        return DhcpBackend.LEGACY
    if requested == BackendRequest.MODERN:
        return DhcpBackend.MODERN

    if (
        target_dialect == Dialect.OPNSENSE
        and detect_version(target).major >= MODERN_DEFAULT_MAJOR
    ):
        logger.debug("Target version >= 26, auto backend resolves to modern")
        return DhcpBackend.MODERN

    from_source = _mode_to_backend(detect_dhcp_backend(source).state)
    if from_source is not None:
        return from_source

    from_target = _mode_to_backend(detect_dhcp_backend(target).state)
    if from_target == DhcpBackend.MODERN:
        return DhcpBackend.MODERN
    return DhcpBackend.LEGACY


def firmware_plugins(root: XmlNode) -> list[str]:
    raw = root.text_at("system", "firmware", "plugins") or ""
    return [token for token in re.split(r"[\s,;]+", raw) if token]


def ensure_backend_readiness(
    target: XmlNode,
    requested: BackendRequest,
    effective: DhcpBackend,
) -> None:
    """
    Verify the target baseline can host the effective backend.

    Raises:
        BackendUnreadyError: If required baseline structures are missing
    """
    if target.tag != Dialect.OPNSENSE.root_tag:
        return

    if effective == DhcpBackend.MODERN:
        if target.find("OPNsense", "Kea") is None:
            raise BackendUnreadyError(
                "target OPNsense config is missing OPNsense.Kea subtree required for Kea backend"
            )
        return

    # Releases before 26 ship the legacy server built in
    if detect_version(target).major < MODERN_DEFAULT_MAJOR:
        logger.debug(f"Legacy backend readiness not gated (requested={requested.value})")
        return
    if LEGACY_PLUGIN not in firmware_plugins(target):
        raise BackendUnreadyError(
            f"target OPNsense config requires {LEGACY_PLUGIN} plugin for ISC backend "
            "(system.firmware.plugins)"
        )
    if not has_legacy_dhcp_data(target):
        raise BackendUnreadyError(
            "target OPNsense config missing legacy ISC DHCP sections (dhcpd/dhcpdv6/dhcpd6)"
        )


def enforce_output_backend(
    out: XmlNode,
    backend: DhcpBackend,
    target_dialect: Dialect,
    preserve_ipv6_legacy: bool = False,
) -> None:
    """
    Shape the output so only ``backend`` is active.

    Args:
        out: Output tree, mutated in place
        backend: Effective backend
        target_dialect: Dialect of the output
        preserve_ipv6_legacy: Keep legacy v6 sections alongside modern v4
    """
    if target_dialect == Dialect.OPNSENSE:
        if backend == DhcpBackend.MODERN:
            out.remove_children("dhcpd")
            if not preserve_ipv6_legacy:
                out.remove_children(*LEGACY_V6_SECTIONS)
            out.ensure_path("OPNsense", "Kea")
        else:
            kea = out.find("OPNsense", "Kea")
            if kea is not None:
                for family in ("dhcp4", "dhcp6"):
                    component = kea.child(family)
                    if component is not None:
                        component.ensure_child("general").set_text_child("enabled", "0")
    elif target_dialect == Dialect.PFSENSE:
        out.set_text_child("dhcpbackend", backend.product)
        if backend == DhcpBackend.MODERN:
            out.ensure_child("kea")
            out.remove_children("dhcpd", *LEGACY_V6_SECTIONS)
        else:
            out.remove_children("kea")

    logger.debug(
        f"Output backend enforced: {target_dialect.value}/{backend.value} "
        f"(preserve_ipv6_legacy={preserve_ipv6_legacy})"
    )


def seed_pfsense_kea_from_source(out: XmlNode, source: XmlNode) -> bool:
    """
    Copy the source's modern config under root ``kea``.

    Looks at root ``kea`` first, then ``OPNsense/Kea``. Returns True when
    something was copied.
    """
    found = source.child("kea") or source.find("OPNsense", "Kea")
    if found is None:
        return False
    out.remove_children("kea")
    out.append(found.with_tag("kea"))
    return True


def guard_kea_only_downgrade(
    source: XmlNode,
    effective: DhcpBackend,
    target_dialect: Dialect,
) -> None:
    """
    Refuse to land a modern-only source on the legacy backend.

    Raises:
        KeaOnlySourceDowngradeError: If the source has no legacy DHCP data to use
    """
    if effective != DhcpBackend.LEGACY:
        return
    if detect_dhcp_backend(source).state != DhcpBackendState.MODERN:
        return
    if has_legacy_dhcp_data(source):
        return
    product = "pfSense" if target_dialect == Dialect.PFSENSE else "OPNsense"
    raise KeaOnlySourceDowngradeError(
        f"cannot convert Kea-only source to {product} ISC without source legacy DHCP data; "
        "use --backend kea or provide ISC-backed source"
    )
