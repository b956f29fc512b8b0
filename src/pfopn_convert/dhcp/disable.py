"""Disable every DHCP server in a converted document.

Used when the converted config must boot without handing out leases, e.g.
when it is staged next to the device it will replace.
"""
import logging

from ..tree import XmlNode

logger = logging.getLogger(__name__)

LEGACY_SECTIONS = ("dhcpd", "dhcpdv6", "dhcpd6")
KEA_SERVICES = ("dhcp4", "dhcp6", "ctrl_agent")


def _disable_flags(node: XmlNode) -> None:
    for current in node.walk():
        if current.tag in ("enabled", "enable"):
            current.text = "0"
        elif current.tag == "disabled":
            current.text = "1"


def disable_all(root: XmlNode) -> int:
    """
    Turn off legacy and modern DHCP in place.

    Returns:
        Number of legacy interface dictionaries disabled
    """
    count = 0
    for section in LEGACY_SECTIONS:
        container = root.child(section)
        if container is None:
            continue
        for iface in container.children:
            if iface.tag.startswith("#"):
                continue
            iface.set_text_child("enable", "0")
            iface.set_text_child("enabled", "0")
            iface.set_text_child("disabled", "1")
            count += 1

    kea = root.find("OPNsense", "Kea")
    if kea is not None:
        for service in KEA_SERVICES:
            node = kea.child(service)
            if node is not None:
                node.ensure_child("general").set_text_child("enabled", "0")
        _disable_flags(kea)

    for tag in ("kea", "Kea"):
        container = root.child(tag)
        if container is not None:
            _disable_flags(container)

    logger.info(f"Disabled DHCP on {count} legacy interface(s) and all modern services")
    return count
