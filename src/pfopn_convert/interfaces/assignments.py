"""Rename virtual interface assignments to ``optN`` slots (dialect O)."""
import logging
import re

from ..tree import XmlNode

logger = logging.getLogger(__name__)

FIXED_TAGS = frozenset({"wan", "lan", "lo0", "openvpn", "wireguard", "tailscale"})
RENAMED_PREFIXES = ("ovpns", "ovpnc", "wg", "tun_wg", "tailscale")
OPT_TAG = re.compile(r"^opt(\d+)$")


def _is_allowed(tag: str) -> bool:
    return tag in FIXED_TAGS or OPT_TAG.match(tag) is not None


def normalize(out: XmlNode) -> dict[str, str]:
    """
    Move device-named assignments (``ovpns1``, ``wg0``...) to free ``optN`` tags.

    Returns:
        Mapping of old logical tag to new logical tag
    """
    interfaces = out.child("interfaces")
    if interfaces is None:
        return {}

    used = set()
    for iface in interfaces.children:
        match = OPT_TAG.match(iface.tag)
        if match:
            used.add(int(match.group(1)))

    renames: dict[str, str] = {}
    for iface in interfaces.children:
        if _is_allowed(iface.tag):
            continue
        if not iface.tag.lower().startswith(RENAMED_PREFIXES):
            continue
        slot = 1
        while slot in used:
            slot += 1
        used.add(slot)
        new_tag = f"opt{slot}"
        renames[iface.tag] = new_tag
        logger.debug(f"Reassigned interface {iface.tag} -> {new_tag}")
        iface.tag = new_tag
    return renames
