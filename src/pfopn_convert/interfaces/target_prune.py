"""Remove top-level sections the target dialect never carries."""
import logging

from ..detect import Dialect
from ..tree import XmlNode

logger = logging.getLogger(__name__)

COMMON_SECTIONS = (
    "version", "system", "interfaces", "filter", "nat", "dhcpd", "dhcpdv6",
    "dhcpd6", "dhcrelay", "dhcrelay6", "dhcp6relay", "vlans", "openvpn",
    "ipsec", "cert", "ca", "ifgroups", "bridges", "staticroutes", "gateways",
    "hasync", "revision", "ppps", "snmpd", "syslog", "rrd",
)

ALLOWED_SECTIONS = {
    Dialect.OPNSENSE: frozenset(COMMON_SECTIONS + ("OPNsense",)),
    Dialect.PFSENSE: frozenset(COMMON_SECTIONS + (
        "aliases", "installedpackages", "dhcpbackend", "kea",
    )),
}


def prune(out: XmlNode, dialect: Dialect, baseline: XmlNode) -> list[str]:
    """
    Drop top-level children neither the baseline nor the dialect knows.

    Returns:
        Sorted list of removed section tags
    """
    allowed = ALLOWED_SECTIONS.get(dialect, frozenset())
    baseline_tags = {node.tag for node in baseline.children}
    removed = out.retain(lambda n: n.tag in baseline_tags or n.tag in allowed)
    tags = sorted({node.tag for node in removed})
    if tags:
        logger.info(f"Pruned sections not valid on {dialect.value}: {', '.join(tags)}")
    return tags
