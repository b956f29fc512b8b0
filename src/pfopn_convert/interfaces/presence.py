"""Interface presence pruning.

An interface copied over from the source survives only when the target
machine declares the same logical tag, or when its device is a software
construct that can be recreated from configuration alone.
"""
import logging
from typing import Optional

from ..tree import XmlNode

logger = logging.getLogger(__name__)

VIRTUAL_PREFIXES = (
    "vlan", "bridge", "ovpns", "ovpnc", "openvpn", "wg", "tun_wg", "gif",
    "gre", "lagg", "tap", "tun", "enc", "ipsec", "lo",
)


def is_virtual_if_name(if_name: Optional[str]) -> bool:
    """Whether a device name denotes a VLAN, tunnel, bridge or loopback."""
    if not if_name:
        return False
    lower = if_name.strip().lower()
    if "." in lower or "wg" in lower:
        return True
    return lower.startswith(VIRTUAL_PREFIXES)


def is_virtual_backed(iface: XmlNode) -> bool:
    if iface.tag.lower() == "wireguard":
        return True
    return is_virtual_if_name(iface.value("if"))


def prune_missing(out: XmlNode, baseline: XmlNode) -> list[str]:
    """
    Drop output interfaces with no baseline counterpart.

    Args:
        out: Output document, mutated in place
        baseline: Target baseline document

    Returns:
        Sorted list of removed logical tags
    """
    interfaces = out.child("interfaces")
    if interfaces is None:
        return []
    known = baseline.child("interfaces")
    known_tags = {node.tag for node in known.children} if known is not None else set()

    removed = interfaces.retain(
        lambda iface: iface.tag in known_tags or is_virtual_backed(iface)
    )
    tags = sorted(node.tag for node in removed)
    for tag in tags:
        logger.debug(f"Pruned interface {tag}: not present on target")
    return tags
