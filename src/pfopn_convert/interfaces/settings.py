"""Carry logical interface settings onto the target's physical devices."""
import logging
from typing import Optional

from ..tree import XmlNode

logger = logging.getLogger(__name__)


def apply(out: XmlNode, source: XmlNode, target: XmlNode,
          logical_map: Optional[dict[str, str]] = None) -> int:
    """
    Overlay every source interface onto its target counterpart.

    The source node is cloned, retagged through ``logical_map`` and its
    ``if`` child replaced with the target baseline's device name, so IP
    settings move while hardware identity stays with the target machine.

    Returns:
        Number of interfaces merged
    """
    src_ifaces = source.child("interfaces")
    dst_ifaces = target.child("interfaces")
    out_ifaces = out.child("interfaces")
    if src_ifaces is None or dst_ifaces is None or out_ifaces is None:
        return 0

    mapping = logical_map or {}
    merged = 0
    for iface in src_ifaces.children:
        dest_tag = mapping.get(iface.tag, iface.tag)
        target_iface = dst_ifaces.child(dest_tag)
        if target_iface is None:
            continue
        replacement = iface.with_tag(dest_tag)
        device = target_iface.text_at("if")
        if device is not None:
            replacement.set_text_child("if", device)
        out_ifaces.upsert_child(replacement)
        merged += 1
        logger.debug(f"Merged interface settings {iface.tag} -> {dest_tag}")
    return merged
