"""Mirror shared top-level sections from the source into the output."""
import logging
from typing import Iterable

from ..tree import XmlNode

logger = logging.getLogger(__name__)

DEFAULT_SYNCED_SECTIONS = (
    "version",
    "system",
    "interfaces",
    "filter",
    "nat",
    "dhcpd",
    "dhcpdv6",
    "dhcpd6",
    "dhcrelay",
    "dhcrelay6",
    "dhcp6relay",
    "snmpd",
    "syslog",
    "rrd",
    "gateways",
)


def sync_shared_sections(out: XmlNode, source: XmlNode,
                         sections: Iterable[str] = DEFAULT_SYNCED_SECTIONS) -> None:
    """Replace each listed section with the source's copy, or drop it when the source has none."""
    for tag in sections:
        found = source.child(tag)
        if found is not None:
            out.upsert_child(found.clone())
        elif out.remove_children(tag):
            logger.debug(f"Section {tag} absent from source, removed from output")
