"""Read-only classification of firewall documents."""
from .dialect import (
    Dialect,
    Confidence,
    VersionInfo,
    detect_dialect,
    detect_version,
    is_opnsense_at_least,
)
from .backend import (
    DhcpBackendState,
    BackendDetection,
    detect_dhcp_backend,
    has_legacy_dhcp_data,
)
from .dependencies import (
    OpenVpnInventory,
    OpenVpnGap,
    IpsecInventory,
    IpsecGap,
    WireGuardInventory,
    DependencyReport,
    DependencyFinding,
    collect_openvpn_inventory,
    collect_ipsec_inventory,
    collect_wireguard_inventory,
    openvpn_gap,
    ipsec_gap,
    compare_openvpn_dependencies,
    compare_ipsec_dependencies,
    compare_wireguard_dependencies,
    dependency_findings,
)

__all__ = [
    # Dialect
    "Dialect",
    "Confidence",
    "VersionInfo",
    "detect_dialect",
    "detect_version",
    "is_opnsense_at_least",
    # Backend
    "DhcpBackendState",
    "BackendDetection",
    "detect_dhcp_backend",
    "has_legacy_dhcp_data",
    # Dependencies
    "OpenVpnInventory",
    "OpenVpnGap",
    "IpsecInventory",
    "IpsecGap",
    "WireGuardInventory",
    "DependencyReport",
    "DependencyFinding",
    "collect_openvpn_inventory",
    "collect_ipsec_inventory",
    "collect_wireguard_inventory",
    "openvpn_gap",
    "ipsec_gap",
    "compare_openvpn_dependencies",
    "compare_ipsec_dependencies",
    "compare_wireguard_dependencies",
    "dependency_findings",
]
