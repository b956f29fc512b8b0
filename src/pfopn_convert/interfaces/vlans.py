"""VLAN device name canonicalization (dialect O).

Dialect O names VLAN devices ``vlan01``..``vlan999`` instead of the dotted
``<parent>.<tag>`` form; assignments pointing at a dotted name follow.
"""
import logging
import re

from ..tree import XmlNode, stable_uuid

logger = logging.getLogger(__name__)

VLANIF_PATTERN = re.compile(r"^vlan\d{2,3}$")
MAX_VLAN_INDEX = 999
DEFAULT_CHILDREN = (("pcp", "0"), ("proto", ""), ("descr", ""))


def _allocate(used: set[str]) -> str:
    for idx in range(1, MAX_VLAN_INDEX + 1):
        name = f"vlan{idx:02d}"
        if name not in used:
            return name
    raise ValueError("no free vlan device names left")


def canonicalize(out: XmlNode) -> dict[str, str]:
    """
    Give every VLAN a ``vlanNN`` device and rewrite dotted assignments.

    Returns:
        Mapping of dotted name to allocated device name
    """
    vlans = out.child("vlans")
    if vlans is None:
        return {}

    entries = vlans.children_named("vlan")
    used = {
        vlanif for vlan in entries
        if (vlanif := vlan.value("vlanif")) and VLANIF_PATTERN.match(vlanif)
    }
    assigned: set[str] = set()
    renames: dict[str, str] = {}

    for idx, vlan in enumerate(entries):
        parent, tag = vlan.value("if"), vlan.value("tag")
        if not parent or not tag:
            continue
        dotted = f"{parent}.{tag}"
        current = vlan.value("vlanif")
        if current and VLANIF_PATTERN.match(current) and current not in assigned:
            vlanif = current
        else:
            vlanif = _allocate(used | assigned)
        assigned.add(vlanif)
        vlan.set_text_child("vlanif", vlanif)

        if "uuid" not in vlan.attributes:
            vlan.attributes["uuid"] = stable_uuid("vlan", idx, f"{vlanif}|{parent}|{tag}")
        for child_tag, default in DEFAULT_CHILDREN:
            if vlan.child(child_tag) is None:
                vlan.append_text_child(child_tag, default)
        renames[dotted] = vlanif

    interfaces = out.child("interfaces")
    if interfaces is not None and renames:
        for iface in interfaces.children:
            node = iface.child("if")
            if node is None:
                continue
            new_name = renames.get((node.text or "").strip())
            if new_name:
                logger.debug(f"Interface {iface.tag}: {node.text} -> {new_name}")
                node.text = new_name
    return renames
