"""Interface assignment and device naming shared by both WireGuard directions."""
import logging
import re
from typing import Optional

from ...tree import XmlNode

logger = logging.getLogger(__name__)

CANDIDATE_TAGS = ("name", "tun", "interface", "if")


def source_pfsense_wireguard(root: XmlNode) -> Optional[XmlNode]:
    """P-side config, top-level ``wireguard`` first, then the package location."""
    return root.child("wireguard") or root.find("installedpackages", "wireguard")


def source_opnsense_wireguard(root: XmlNode) -> Optional[XmlNode]:
    return root.find("OPNsense", "wireguard")


def wireguard_config_present(root: XmlNode) -> bool:
    return source_pfsense_wireguard(root) is not None or source_opnsense_wireguard(root) is not None


def _if_name(iface: XmlNode) -> Optional[str]:
    value = iface.value("if")
    return value.lower() if value else None


def _is_wireguard_assignment(iface: XmlNode) -> bool:
    return iface.tag.lower() == "wireguard" or "wg" in (_if_name(iface) or "")


def source_wireguard_interfaces(root: XmlNode) -> list[XmlNode]:
    interfaces = root.child("interfaces")
    if interfaces is None:
        return []
    return [iface.clone() for iface in interfaces.children if _is_wireguard_assignment(iface)]


def has_wireguard_assignment(root: XmlNode) -> bool:
    interfaces = root.child("interfaces")
    if interfaces is None:
        return False
    return any(_is_wireguard_assignment(iface) for iface in interfaces.children)


def candidate_device_names(config: Optional[XmlNode]) -> list[str]:
    """Sorted device-name candidates found anywhere in a WireGuard config subtree."""
    if config is None:
        return []
    found = set()
    for node in config.walk():
        text = (node.text or "").strip()
        if not text:
            continue
        if node.tag in CANDIDATE_TAGS and "wg" in text.lower():
            found.add(text)
        elif node.tag == "instance" and text.isdigit():
            found.add(f"wg{text}")
    return sorted(found)


def ensure_interface_assignment(out: XmlNode, source: XmlNode) -> None:
    """
    Make sure the output assigns a WireGuard interface when the source uses one.

    Source assignments are copied first. Without any, a ``wireguard``
    assignment is synthesized from the first candidate device name found
    in the source config.
    """
    source_ifaces = source_wireguard_interfaces(source)
    if not wireguard_config_present(source) and not source_ifaces:
        return
    if has_wireguard_assignment(out):
        return

    if not source_ifaces:
        candidates = (
            candidate_device_names(source_pfsense_wireguard(source))
            or candidate_device_names(source_opnsense_wireguard(source))
        )
        if candidates:
            synthesized = XmlNode("wireguard")
            synthesized.append_text_child("if", candidates[0])
            source_ifaces.append(synthesized)
    if not source_ifaces:
        return

    interfaces = out.ensure_child("interfaces")
    for iface in source_ifaces:
        clash = any(
            node.tag == iface.tag or (_if_name(node) is not None and _if_name(node) == _if_name(iface))
            for node in interfaces.children
        )
        if clash:
            continue
        interfaces.append(iface)
        logger.debug(f"Assigned WireGuard interface {iface.tag} ({iface.value('if')})")


def tun_wg_to_wg(name: str) -> Optional[str]:
    """``tun_wg3`` becomes ``wg3``; anything else gives None."""
    match = re.fullmatch(r"tun_wg(\d+)", name.strip().lower())
    return f"wg{match.group(1)}" if match else None


def instance_device_map(root: XmlNode) -> dict[str, str]:
    """Lowercased server name (and ``wg<N>`` itself) to ``wg<instance>``."""
    mapping = {}
    servers = root.find("OPNsense", "wireguard", "server", "servers")
    if servers is None:
        return mapping
    for server in servers.children_named("server"):
        instance = server.value("instance")
        if instance is None or not instance.isdigit():
            continue
        device = f"wg{instance}"
        name = server.value("name")
        if name:
            mapping[name.lower()] = device
        mapping[device] = device
    return mapping


def normalize_interface_names(out: XmlNode) -> int:
    """Rewrite O interface devices to canonical ``wg<N>``; returns the rewrite count."""
    interfaces = out.child("interfaces")
    if interfaces is None:
        return 0
    mapping = instance_device_map(out)
    rewritten = 0
    for iface in interfaces.children:
        current = iface.value("if")
        if current is None:
            continue
        mapped = mapping.get(current.lower()) or tun_wg_to_wg(current)
        if mapped and mapped != current:
            iface.set_text_child("if", mapped)
            rewritten += 1
    return rewritten
