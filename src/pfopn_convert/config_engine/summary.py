"""Object counts reported after a conversion."""
from typing import Optional

from ..transform.aliases import OPNSENSE_ALIAS_PATH
from ..tree import XmlNode
from .schema import ConversionSummary


def _count(node: Optional[XmlNode], tag: Optional[str] = None) -> int:
    if node is None:
        return 0
    if tag is None:
        return len(node.children)
    return len(node.children_named(tag))


def _present(root: XmlNode, *path: str) -> int:
    return 1 if root.has(*path) else 0


def count_vpns(root: XmlNode) -> int:
    openvpn = root.child("openvpn")
    tunnels = _count(openvpn, "openvpn-server") + _count(openvpn, "openvpn-client")
    ipsec = _present(root, "ipsec") + _present(root, "OPNsense", "IPsec")
    wireguard = _present(root, "wireguard") + _present(root, "OPNsense", "wireguard")
    tailscale = (
        _present(root, "tailscale")
        + _present(root, "tailscaleauth")
        + _present(root, "installedpackages", "tailscale")
        + _present(root, "OPNsense", "tailscale")
    )
    return tunnels + ipsec + wireguard + tailscale


def summarize(root: XmlNode) -> ConversionSummary:
    """Count interfaces, bridges, aliases, rules, routes and VPN sections."""
    return ConversionSummary(
        interfaces=_count(root.child("interfaces")),
        bridges=_count(root.child("bridges"), "bridged"),
        aliases=max(
            _count(root.child("aliases"), "alias"),
            _count(root.find(*OPNSENSE_ALIAS_PATH), "alias"),
        ),
        rules=_count(root.child("filter"), "rule"),
        routes=_count(root.child("staticroutes")),
        vpns=count_vpns(root),
    )
