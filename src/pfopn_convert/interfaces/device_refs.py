"""Retarget physical device names after interfaces move to a new machine.

A device map (source ``if`` text to target ``if`` text) is built by
intersecting source and target interfaces on their logical tag. Every
device-bearing text node in the output is then rewritten token by token;
VLAN sub-interfaces (``igb0.50``) follow their mapped parent.
"""
import logging
import re
from typing import Optional

from ..tree import XmlNode

logger = logging.getLogger(__name__)

DEVICE_TAGS = frozenset({"if", "ports", "members", "parent", "device", "realif"})
DELIMITERS = re.compile(r"([,\s]+)")


def _device(iface: XmlNode) -> Optional[str]:
    return iface.value("if")


def build_device_map(source: XmlNode, target: XmlNode,
                     logical_map: Optional[dict[str, str]] = None) -> dict[str, str]:
    src_ifaces = source.child("interfaces")
    dst_ifaces = target.child("interfaces")
    if src_ifaces is None or dst_ifaces is None:
        return {}

    mapping = logical_map or {}
    device_map: dict[str, str] = {}
    for iface in src_ifaces.children:
        src_dev = _device(iface)
        if not src_dev or src_dev.lower().startswith("pppoe"):
            continue
        target_iface = dst_ifaces.child(mapping.get(iface.tag, iface.tag))
        dst_dev = _device(target_iface) if target_iface is not None else None
        if dst_dev and dst_dev != src_dev:
            device_map[src_dev] = dst_dev

    _add_pppoe_ports(device_map, source, target, mapping)
    return device_map


def _add_pppoe_ports(device_map: dict[str, str], source: XmlNode, target: XmlNode,
                     mapping: dict[str, str]) -> None:
    """Map the physical port under each PPPoE link to the target's device."""
    ppps = source.child("ppps")
    src_ifaces = source.child("interfaces")
    dst_ifaces = target.child("interfaces")
    if ppps is None or src_ifaces is None or dst_ifaces is None:
        return
    for ppp in ppps.children_named("ppp"):
        if (ppp.value("type") or "").lower() != "pppoe":
            continue
        ppp_if, port = ppp.value("if"), ppp.value("ports")
        if not ppp_if or not port:
            continue
        logical = next((i.tag for i in src_ifaces.children if _device(i) == ppp_if), None)
        if logical is None:
            continue
        target_iface = dst_ifaces.child(mapping.get(logical, logical))
        dst_dev = _device(target_iface) if target_iface is not None else None
        if dst_dev and dst_dev != port:
            device_map[port] = dst_dev


def map_token(token: str, device_map: dict[str, str]) -> str:
    if token in device_map:
        return device_map[token]
    base, dot, suffix = token.partition(".")
    if dot and suffix and base in device_map:
        return f"{device_map[base]}.{suffix}"
    return token


def _rewrite(text: str, device_map: dict[str, str]) -> str:
    parts = DELIMITERS.split(text)
    return "".join(part if DELIMITERS.fullmatch(part) else map_token(part, device_map)
                   for part in parts)


def _walk(node: XmlNode, path: tuple[str, ...], device_map: dict[str, str],
          pinned: dict[str, str]) -> int:
    changed = 0
    if node.text is not None and node.tag in DEVICE_TAGS and not _skipped(path, node, pinned):
        rewritten = _rewrite(node.text, device_map)
        if rewritten != node.text:
            node.text = rewritten
            changed += 1
    for child in node.children:
        changed += _walk(child, path + (child.tag,), device_map, pinned)
    return changed


def _skipped(path: tuple[str, ...], node: XmlNode, pinned: dict[str, str]) -> bool:
    # ppps/ppp/if is the logical PPPoE name
    if path[-3:] == ("ppps", "ppp", "if"):
        return True
    # interfaces/<tag>/if already carries the target device from the settings merge
    if len(path) == 4 and path[1] == "interfaces" and path[3] == "if":
        return pinned.get(path[-2]) == (node.text or "").strip()
    return False


def apply(out: XmlNode, source: XmlNode, target: XmlNode,
          logical_map: Optional[dict[str, str]] = None) -> int:
    """
    Rewrite device names throughout ``out``.

    Returns:
        Number of text nodes changed
    """
    device_map = build_device_map(source, target, logical_map)
    if not device_map:
        return 0
    pinned = {}
    dst_ifaces = target.child("interfaces")
    if dst_ifaces is not None:
        pinned = {i.tag: dev for i in dst_ifaces.children if (dev := _device(i))}

    changed = _walk(out, (out.tag,), device_map, pinned)
    logger.debug(f"Device rewrite: {len(device_map)} mappings, {changed} nodes changed")
    return changed
