"""Harvest legacy (per-interface) DHCP data from a source document.

Only enabled interface dictionaries contribute. All harvesters are
read-only and return plain data from the model module.
"""
import ipaddress
import re
from typing import Optional

from ...tree import XmlNode, is_truthy
from .model import OptionsV4, OptionsV6, StaticMapV4, StaticMapV6

LEGACY_V6_CONTAINERS = ("dhcpdv6", "dhcpd6")

Network4 = tuple[ipaddress.IPv4Address, int]
Network6 = tuple[ipaddress.IPv6Address, int]


# === Helpers ===

def isc_iface_enabled(iface: XmlNode) -> bool:
    """
    Whether a legacy interface dictionary is enabled.

    A truthy ``disabled`` wins. Otherwise an ``enable`` child decides
    (empty ``<enable/>`` counts as enabled), then ``enabled``. Absent
    flags mean enabled.
    """
    disabled = iface.child("disabled")
    if disabled is not None and is_truthy(disabled.text):
        return False
    enable = iface.child("enable")
    if enable is not None:
        value = (enable.text or "").strip()
        return not value or is_truthy(value)
    enabled = iface.child("enabled")
    if enabled is not None:
        return is_truthy(enabled.text)
    return True


def normalize_domain_search(raw: str) -> str:
    """Collapse ``;``/``,``/whitespace separated domains into a space-separated list."""
    return " ".join(token for token in re.split(r"[;,\s]+", raw) if token)


def expand_ipv6_in_prefix(value: str, network: ipaddress.IPv6Address, prefix: int) -> Optional[str]:
    """
    Place the host bits of ``value`` inside ``network/prefix``.

    Short host suffixes like ``::123`` become full addresses within the
    subnet. Returns None when ``value`` is not an IPv6 literal.
    """
    try:
        addr = ipaddress.IPv6Address(value.strip())
    except ValueError:
        return None
    mask = ((1 << 128) - 1) ^ ((1 << (128 - prefix)) - 1) if prefix else 0
    host = int(addr) & ~mask & ((1 << 128) - 1)
    return str(ipaddress.IPv6Address((int(network) & mask) | host))


def _enabled_ifaces(root: XmlNode, containers: tuple[str, ...]):
    for tag in containers:
        container = root.child(tag)
        if container is None:
            continue
        for iface in container.children:
            if isc_iface_enabled(iface):
                yield iface


def _ranges(root: XmlNode, containers: tuple[str, ...]) -> dict[str, list[tuple[str, str]]]:
    out: dict[str, list[tuple[str, str]]] = {}
    for iface in _enabled_ifaces(root, containers):
        for entry in iface.children_named("range"):
            start, end = entry.value("from"), entry.value("to")
            if start and end:
                out.setdefault(iface.tag, []).append((start, end))
    return out


def _texts(iface: XmlNode, tag: str) -> list[str]:
    return [value for node in iface.children_named(tag) if (value := (node.text or "").strip())]


# === IPv4 ===

def extract_staticmaps_v4(root: XmlNode) -> list[StaticMapV4]:
    maps = []
    for iface in _enabled_ifaces(root, ("dhcpd",)):
        for entry in iface.children_named("staticmap"):
            mac, ip = entry.value("mac"), entry.value("ipaddr")
            if not mac or not ip:
                continue
            maps.append(StaticMapV4(
                iface=iface.tag,
                mac=mac,
                ipaddr=ip,
                hostname=entry.value_or("", "hostname"),
                cid=entry.value_or("", "cid"),
                descr=entry.value_or("", "descr"),
            ))
    return maps


def extract_ranges_v4(root: XmlNode) -> dict[str, list[tuple[str, str]]]:
    return _ranges(root, ("dhcpd",))


def extract_iface_networks_v4(root: XmlNode) -> dict[str, Network4]:
    """Map interface tag to ``(network, prefix)`` from ``ipaddr``/``subnet``."""
    out = {}
    interfaces = root.child("interfaces")
    if interfaces is None:
        return out
    for iface in interfaces.children:
        raw = iface.value("ipaddr")
        if raw is None:
            continue
        try:
            ip = ipaddress.IPv4Address(raw)
        except ValueError:
            continue
        subnet = iface.value("subnet")
        prefix = int(subnet) if subnet and subnet.isdigit() else 24
        if prefix > 32:
            continue
        network = ipaddress.IPv4Network(f"{ip}/{prefix}", strict=False)
        out[iface.tag] = (network.network_address, prefix)
    return out


def extract_options_v4(root: XmlNode) -> dict[str, OptionsV4]:
    out = {}
    for iface in _enabled_ifaces(root, ("dhcpd",)):
        opts = OptionsV4(
            dns_servers=_texts(iface, "dnsserver"),
            routers=(_texts(iface, "gateway") or [None])[-1],
            domain_name=(_texts(iface, "domain") or [None])[-1],
            ntp_servers=_texts(iface, "ntpserver"),
        )
        search = _texts(iface, "domainsearchlist")
        if search:
            opts.domain_search = normalize_domain_search(search[-1])
        if not opts.empty:
            out[iface.tag] = opts
    return out


# === IPv6 ===

def extract_staticmaps_v6(root: XmlNode) -> list[StaticMapV6]:
    maps = []
    for iface in _enabled_ifaces(root, LEGACY_V6_CONTAINERS):
        for entry in iface.children_named("staticmap"):
            duid, ip = entry.value("duid"), entry.value("ipaddrv6")
            if not duid or not ip:
                continue
            maps.append(StaticMapV6(
                iface=iface.tag,
                duid=duid,
                ipaddr=ip,
                hostname=entry.value_or("", "hostname"),
                descr=entry.value_or("", "descr"),
                domain_search=entry.value_or("", "domainsearchlist"),
            ))
    return maps


def extract_ranges_v6(root: XmlNode) -> dict[str, list[tuple[str, str]]]:
    return _ranges(root, LEGACY_V6_CONTAINERS)


def extract_iface_networks_v6(root: XmlNode) -> dict[str, Network6]:
    """Static IPv6 prefixes; ``track6`` and ``dhcp6`` provide none."""
    out = {}
    interfaces = root.child("interfaces")
    if interfaces is None:
        return out
    for iface in interfaces.children:
        raw = iface.value("ipaddrv6")
        if raw is None or raw.lower() in ("track6", "dhcp6"):
            continue
        try:
            ip = ipaddress.IPv6Address(raw)
        except ValueError:
            continue
        subnet = iface.value("subnetv6")
        prefix = int(subnet) if subnet and subnet.isdigit() else 64
        if prefix > 128:
            continue
        network = ipaddress.IPv6Network(f"{ip}/{prefix}", strict=False)
        out[iface.tag] = (network.network_address, prefix)
    return out


def collect_prefixrange_intent(root: XmlNode) -> set[str]:
    """Interfaces carrying a delegated-prefix range (from or to, plus a length)."""
    out = set()
    for tag in LEGACY_V6_CONTAINERS:
        container = root.child(tag)
        if container is None:
            continue
        for iface in container.children:
            for entry in iface.children_named("prefixrange"):
                if (entry.value("from") or entry.value("to")) and entry.value("prefixlength"):
                    out.add(iface.tag)
    return out


def extract_options_v6(root: XmlNode) -> dict[str, OptionsV6]:
    out: dict[str, OptionsV6] = {}
    for iface in _enabled_ifaces(root, LEGACY_V6_CONTAINERS):
        opts = OptionsV6(dns_servers=_texts(iface, "dnsserver"))
        search = _texts(iface, "domainsearchlist")
        if search:
            opts.domain_search = normalize_domain_search(search[-1])
        if opts.empty:
            continue
        out.setdefault(iface.tag, OptionsV6()).merge(opts)
    return out
