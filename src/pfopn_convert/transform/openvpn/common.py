"""Helpers shared by both OpenVPN mapping directions."""
import re
from typing import Optional

from ...tree import XmlNode, instance_uuid

INSTANCES_PATH = ("OPNsense", "OpenVPN", "Instances")
PF_INSTANCE_TAGS = ("openvpn-server", "openvpn-client")
ROUND_TRIP_ANCHOR = "opnsense_instance_uuid"


def source_opnsense_instances(source: XmlNode) -> Optional[XmlNode]:
    instances = source.find(*INSTANCES_PATH)
    return instances.clone() if instances is not None else None


def source_pfsense_openvpn(source: XmlNode) -> Optional[XmlNode]:
    """Top-level ``openvpn`` when it carries at least one server or client."""
    openvpn = source.child("openvpn")
    if openvpn is None:
        return None
    if any(node.tag in PF_INSTANCE_TAGS for node in openvpn.children):
        return openvpn.clone()
    return None


def is_opnsense_origin(openvpn: XmlNode) -> bool:
    """True when every server carries the round-trip anchor."""
    servers = openvpn.children_named("openvpn-server")
    if not servers:
        return False
    return all(server.value(ROUND_TRIP_ANCHOR) is not None for server in servers)


def instance_template(target: XmlNode) -> Optional[XmlNode]:
    """First ``Instance`` of the target baseline, used as a field template."""
    found = target.find(*INSTANCES_PATH, "Instance")
    return found.clone() if found is not None else None


def assigned_ovpns_units(source: XmlNode) -> list[str]:
    """Sorted unique unit numbers of ``ovpns<N>`` interface assignments."""
    interfaces = source.child("interfaces")
    if interfaces is None:
        return []
    units = set()
    for iface in interfaces.children:
        device = (iface.value("if") or "").lower()
        match = re.fullmatch(r"ovpns(\d+)", device)
        if match:
            units.add(match.group(1))
    return sorted(units)


def synthetic_instance_uuid(vpnid: str, index: int) -> str:
    """Deterministic instance UUID from the digits of ``vpnid``, else ``index + 1``."""
    digits = "".join(ch for ch in vpnid if ch.isdigit())
    return instance_uuid(int(digits) if digits else index + 1)


def split_csv(value: Optional[str]) -> list[str]:
    if not value:
        return []
    return [token.strip() for token in value.split(",") if token.strip()]


def gather_fields(node: XmlNode, keys: tuple[str, ...]) -> list[str]:
    return [value for key in keys if (value := node.value(key))]


def normalize_top_level(out: XmlNode) -> None:
    """Leave exactly one empty top-level ``openvpn`` in the output."""
    out.remove_children("openvpn")
    out.append(XmlNode("openvpn"))


def dedupe_top_level(out: XmlNode) -> None:
    seen = False
    kept = []
    for node in out.children:
        if node.tag == "openvpn":
            if seen:
                continue
            seen = True
        kept.append(node)
    out.children = kept
