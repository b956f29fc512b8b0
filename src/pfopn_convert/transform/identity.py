"""System identity: hostname, domain, time servers and DNS settings."""
from ..tree import XmlNode

SINGLE_VALUE_FIELDS = ("hostname", "domain", "timeservers")
REPEATED_FIELDS = (
    "dnsallowoverride",
    "dnsallowoverride_exclude",
    *(f"dns{n}gw" for n in range(1, 9)),
    "dnsserver",
)


def _copy_identity(out: XmlNode, source: XmlNode) -> None:
    src_system = source.child("system")
    dst_system = out.child("system")
    if src_system is None or dst_system is None:
        return

    for tag in SINGLE_VALUE_FIELDS:
        value = src_system.value(tag)
        if value:
            dst_system.set_text_child(tag, value)

    # Replaced wholesale, including an empty source list
    for tag in REPEATED_FIELDS:
        dst_system.remove_children(tag)
        for node in src_system.children_named(tag):
            dst_system.append(node.clone())


def to_opnsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    _copy_identity(out, source)


def to_pfsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    _copy_identity(out, source)
