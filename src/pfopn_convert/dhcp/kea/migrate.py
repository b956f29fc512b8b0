"""Legacy to modern (ISC to Kea) DHCP migration for dialect-O output.

Harvests per-interface legacy dictionaries from the source and rebuilds
them as Kea subnets, pools, reservations and option data under
``OPNsense/Kea/{dhcp4,dhcp6}`` in the output.

IPv4 is strict: an interface that needs DHCP but has no derivable network
is fatal. IPv6 is lenient: such interfaces produce a warning and are
reported in ``preserved_dhcpdv6_ifaces`` so the caller can keep their
legacy block.
"""
import logging
from typing import Optional

from ...errors import MigrationFatalError
from ...tree import XmlNode
from . import extract
from .model import (
    KeaMigrationStats,
    MigrationSeverity,
    MigrationWarning,
    OptionsV4,
    OptionsV6,
    StaticMapV4,
    StaticMapV6,
)

logger = logging.getLogger(__name__)

OPTION_DATA_V4_KEYS = (
    "domain_name_servers",
    "domain_search",
    "routers",
    "static_routes",
    "classless_static_route",
    "domain_name",
    "ntp_servers",
    "time_servers",
    "tftp_server_name",
    "boot_file_name",
    "v6_only_preferred",
    "v4_dnr",
)
OPTION_DATA_V6_KEYS = ("dns_servers", "domain_search", "v6_dnr")


class _IdSequence:
    """Synthetic subnet id counter shared by both families."""

    def __init__(self, start: int = 1):
        self.value = max(start, 1)

    def next(self) -> int:
        current = self.value
        self.value += 1
        return current


# === Kea structure helpers ===

def _ensure_family(out: XmlNode, family: str) -> XmlNode:
    node = out.ensure_path("OPNsense", "Kea", family)
    for tag in ("subnets", "reservations", "general"):
        node.ensure_child(tag)
    return node


def _subnet_uuid_by_cidr(subnets: XmlNode, tag: str, cidr: str) -> Optional[str]:
    for subnet in subnets.children_named(tag):
        if (subnet.value("subnet") or "") == cidr and "uuid" in subnet.attributes:
            return subnet.attributes["uuid"]
    return None


def _subnet_by_uuid(subnets: XmlNode, tag: str, uuid: str) -> Optional[XmlNode]:
    for subnet in subnets.children_named(tag):
        if subnet.attributes.get("uuid") == uuid:
            return subnet
    return None


def _option_defaults(subnet: XmlNode, keys: tuple[str, ...]) -> None:
    option_data = subnet.ensure_child("option_data")
    for key in keys:
        option_data.set_text_child(key, "")


def _enable_family(general: XmlNode, subnet_by_iface: dict[str, str]) -> None:
    general.set_text_child("enabled", "1")
    if subnet_by_iface:
        general.set_text_child("interfaces", ",".join(sorted(subnet_by_iface)))


# === IPv4 ===

def _build_subnet4(uuid: str, cidr: str, ranges: list[tuple[str, str]]) -> XmlNode:
    subnet = XmlNode("subnet4", {"uuid": uuid})
    subnet.append_text_child("subnet", cidr)
    subnet.append_text_child("option_data_autocollect", "1")
    _option_defaults(subnet, OPTION_DATA_V4_KEYS)
    subnet.append_text_child("match-client-id", "1")
    pools = ",".join(f"{start}-{end}" for start, end in ranges)
    if pools:
        subnet.append_text_child("pools", pools)
    return subnet


def _apply_options_v4(dhcp4: XmlNode, subnet_by_iface: dict[str, str],
                      options: dict[str, OptionsV4]) -> int:
    applied = 0
    subnets = dhcp4.ensure_child("subnets")
    for iface in sorted(options):
        opts = options[iface]
        uuid = subnet_by_iface.get(iface)
        if uuid is None:
            raise MigrationFatalError(
                f"cannot apply DHCPv4 options for iface '{iface}': no matching Kea subnet"
            )
        subnet = _subnet_by_uuid(subnets, "subnet4", uuid)
        if subnet is None:
            raise MigrationFatalError(
                f"cannot apply DHCPv4 options for iface '{iface}': Kea subnet UUID '{uuid}' missing"
            )
        option_data = subnet.ensure_child("option_data")
        if opts.dns_servers:
            option_data.set_text_child("domain_name_servers", ",".join(opts.dns_servers))
        if opts.routers:
            option_data.set_text_child("routers", opts.routers)
        if opts.domain_name:
            option_data.set_text_child("domain_name", opts.domain_name)
        if opts.domain_search:
            option_data.set_text_child("domain_search", opts.domain_search)
        if opts.ntp_servers:
            option_data.set_text_child("ntp_servers", ",".join(opts.ntp_servers))
        applied += 1
    return applied


def _apply_reservations_v4(dhcp4: XmlNode, maps: list[StaticMapV4],
                           subnet_by_iface: dict[str, str]) -> tuple[int, int]:
    added = skipped = 0
    reservations = dhcp4.ensure_child("reservations")
    existing_ips = {
        ip for node in reservations.children_named("reservation")
        if (ip := node.value("ip_address"))
    }
    for entry in maps:
        if entry.ipaddr in existing_ips:
            logger.debug(f"Skipping DHCPv4 reservation {entry.ipaddr}: address already reserved")
            skipped += 1
            continue
        uuid = subnet_by_iface.get(entry.iface)
        if uuid is None:
            raise MigrationFatalError(
                f"cannot migrate DHCPv4 reservation {entry.ipaddr} "
                f"(iface={entry.iface}): no matching Kea subnet"
            )
        res = XmlNode("reservation")
        res.append_text_child("hw_address", entry.mac)
        res.append_text_child("ip_address", entry.ipaddr)
        res.append_text_child("subnet", uuid)
        if entry.hostname:
            res.append_text_child("hostname", entry.hostname)
        if entry.cid:
            res.append_text_child("client_id", entry.cid)
        if entry.descr:
            res.append_text_child("description", entry.descr)
        reservations.append(res)
        existing_ips.add(entry.ipaddr)
        added += 1
    return added, skipped


def _migrate_v4(out: XmlNode, source: XmlNode, ids: _IdSequence,
                stats: KeaMigrationStats) -> None:
    maps = extract.extract_staticmaps_v4(source)
    ranges = extract.extract_ranges_v4(source)
    networks = extract.extract_iface_networks_v4(source)
    options = extract.extract_options_v4(source)
    demanded = sorted({m.iface for m in maps} | set(ranges) | set(options))

    dhcp4 = _ensure_family(out, "dhcp4")
    subnets = dhcp4.child("subnets")
    subnet_by_iface: dict[str, str] = {}

    for iface in demanded:
        network = networks.get(iface)
        if network is None:
            raise MigrationFatalError(
                f"cannot migrate DHCPv4 interface '{iface}': "
                f"missing interfaces.{iface}.ipaddr/subnet"
            )
        cidr = f"{network[0]}/{network[1]}"
        existing = _subnet_uuid_by_cidr(subnets, "subnet4", cidr)
        if existing is not None:
            logger.debug(f"Reusing Kea subnet {existing} for {iface} ({cidr})")
            subnet_by_iface[iface] = existing
            continue
        uuid = f"migrated-subnet4-{ids.next()}"
        subnets.append(_build_subnet4(uuid, cidr, ranges.get(iface, [])))
        subnet_by_iface[iface] = uuid
        stats.subnets_added_v4 += 1

    stats.options_applied_v4 += _apply_options_v4(dhcp4, subnet_by_iface, options)
    added, skipped = _apply_reservations_v4(dhcp4, maps, subnet_by_iface)
    stats.reservations_added_v4 += added
    stats.reservations_skipped_conflict_v4 += skipped

    if subnet_by_iface or stats.reservations_added_v4:
        _enable_family(dhcp4.ensure_child("general"), subnet_by_iface)


# === IPv6 ===

def _v6_readiness_reason(has_static: bool, has_pd: bool) -> str:
    missing = []
    if not has_static:
        missing.append("no static IPv6")
    if not has_pd:
        missing.append("no PD indicators")
    return " or ".join(missing) or "unknown prefix source"


def _build_subnet6(uuid: str, cidr: str, iface: str, ranges: list[tuple[str, str]],
                   network) -> XmlNode:
    subnet = XmlNode("subnet6", {"uuid": uuid})
    subnet.append_text_child("subnet", cidr)
    _option_defaults(subnet, OPTION_DATA_V6_KEYS)
    pools = []
    for start, end in ranges:
        start = extract.expand_ipv6_in_prefix(start, network[0], network[1]) or start
        end = extract.expand_ipv6_in_prefix(end, network[0], network[1]) or end
        pools.append(f"{start}-{end}")
    if pools:
        subnet.append_text_child("pools", ",".join(pools))
    subnet.append_text_child("interface", iface)
    subnet.append_text_child("description", "")
    return subnet


def _apply_options_v6(dhcp6: XmlNode, subnet_by_iface: dict[str, str],
                      options: dict[str, OptionsV6]) -> int:
    applied = 0
    subnets = dhcp6.ensure_child("subnets")
    for iface in sorted(options):
        opts = options[iface]
        uuid = subnet_by_iface.get(iface)
        if uuid is None:
            # Interface kept on the legacy backend
            continue
        subnet = _subnet_by_uuid(subnets, "subnet6", uuid)
        if subnet is None:
            raise MigrationFatalError(
                f"cannot apply DHCPv6 options for iface '{iface}': Kea subnet UUID '{uuid}' missing"
            )
        option_data = subnet.ensure_child("option_data")
        if opts.dns_servers:
            option_data.set_text_child("dns_servers", ",".join(opts.dns_servers))
        if opts.domain_search:
            option_data.set_text_child("domain_search", opts.domain_search)
        applied += 1
    return applied


def _apply_reservations_v6(dhcp6: XmlNode, maps: list[StaticMapV6],
                           subnet_by_iface: dict[str, str], networks: dict,
                           preserved: list[str]) -> tuple[int, int]:
    added = skipped = 0
    reservations = dhcp6.ensure_child("reservations")
    existing_ips, existing_duids = set(), set()
    for node in reservations.children_named("reservation"):
        if ip := node.value("ip_address"):
            existing_ips.add(ip)
        if duid := node.value("duid"):
            existing_duids.add(duid)

    for entry in maps:
        if entry.iface in preserved:
            continue
        network = networks.get(entry.iface)
        ip_value = entry.ipaddr
        if network is not None:
            ip_value = extract.expand_ipv6_in_prefix(entry.ipaddr, *network) or entry.ipaddr
        if ip_value in existing_ips or entry.ipaddr in existing_ips or entry.duid in existing_duids:
            logger.debug(f"Skipping DHCPv6 reservation {entry.duid}: address or DUID already reserved")
            skipped += 1
            continue
        uuid = subnet_by_iface.get(entry.iface)
        if uuid is None:
            raise MigrationFatalError(
                f"cannot migrate DHCPv6 reservation {entry.ipaddr} "
                f"(iface={entry.iface}): no matching Kea subnet"
            )
        res = XmlNode("reservation")
        res.append_text_child("duid", entry.duid)
        res.append_text_child("ip_address", ip_value)
        res.append_text_child("subnet", uuid)
        if entry.hostname:
            res.append_text_child("hostname", entry.hostname)
        if entry.descr:
            res.append_text_child("description", entry.descr)
        if entry.domain_search:
            res.append_text_child(
                "domain_search", extract.normalize_domain_search(entry.domain_search)
            )
        reservations.append(res)
        existing_ips.add(ip_value)
        existing_duids.add(entry.duid)
        added += 1
    return added, skipped


def _migrate_v6(out: XmlNode, source: XmlNode, ids: _IdSequence,
                stats: KeaMigrationStats) -> None:
    maps = extract.extract_staticmaps_v6(source)
    ranges = extract.extract_ranges_v6(source)
    networks = extract.extract_iface_networks_v6(source)
    options = extract.extract_options_v6(source)
    intent = extract.collect_prefixrange_intent(source)
    demanded = sorted({m.iface for m in maps} | set(ranges) | set(options) | intent)

    dhcp6 = _ensure_family(out, "dhcp6")
    subnets = dhcp6.child("subnets")
    subnet_by_iface: dict[str, str] = {}

    for iface in demanded:
        network = networks.get(iface)
        if network is None:
            reason = _v6_readiness_reason(False, iface in intent)
            message = (
                f"DHCPv6 range on {iface} but unable to determine IPv6 prefix ({reason}); "
                f"preserving legacy block; no Kea dhcp6 for {iface}."
            )
            logger.warning(message)
            stats.warnings.append(MigrationWarning(message, MigrationSeverity.WARNING))
            stats.preserved_dhcpdv6_ifaces.append(iface)
            continue
        cidr = f"{network[0]}/{network[1]}"
        existing = _subnet_uuid_by_cidr(subnets, "subnet6", cidr)
        if existing is not None:
            subnet_by_iface[iface] = existing
            continue
        uuid = f"migrated-subnet6-{ids.next()}"
        subnets.append(_build_subnet6(uuid, cidr, iface, ranges.get(iface, []), network))
        subnet_by_iface[iface] = uuid
        stats.subnets_added_v6 += 1

    stats.options_applied_v6 += _apply_options_v6(dhcp6, subnet_by_iface, options)
    added, skipped = _apply_reservations_v6(
        dhcp6, maps, subnet_by_iface, networks, stats.preserved_dhcpdv6_ifaces
    )
    stats.reservations_added_v6 += added
    stats.reservations_skipped_conflict_v6 += skipped

    if subnet_by_iface or stats.reservations_added_v6:
        _enable_family(dhcp6.ensure_child("general"), subnet_by_iface)


def migrate_isc_to_kea(out: XmlNode, source: XmlNode) -> KeaMigrationStats:
    """
    Rebuild the source's legacy DHCP configuration as Kea config in ``out``.

    Args:
        out: Dialect-O output tree, mutated in place
        source: Source document (read-only)

    Returns:
        KeaMigrationStats with counters, warnings and preserved v6 interfaces

    Raises:
        MigrationFatalError: If a v4 interface lacks network info or an
            option/reservation cannot be tied to a subnet
    """
    stats = KeaMigrationStats()
    ids = _IdSequence(1)

    _migrate_v4(out, source, ids, stats)
    _migrate_v6(out, source, ids, stats)

    logger.info(
        f"Kea migration: v4 subnets={stats.subnets_added_v4} "
        f"reservations={stats.reservations_added_v4} options={stats.options_applied_v4}; "
        f"v6 subnets={stats.subnets_added_v6} reservations={stats.reservations_added_v6} "
        f"options={stats.options_applied_v6}; preserved v6={stats.preserved_dhcpdv6_ifaces}"
    )
    return stats


def render_migration_summary(stats: KeaMigrationStats, fell_back: bool,
                             preserve_ipv6_legacy: bool) -> list[str]:
    """
    Human-readable migration status lines, empty when nothing happened.

    Format: ``dhcp migration: v4=<status> v6=<status>`` plus an optional
    ``skipped_conflicts`` line.
    """
    if not (stats.v4_activity or stats.v6_activity or stats.preserved_dhcpdv6_ifaces):
        return []

    def family_status(subnets: int, reservations: int, options: int, active: bool) -> str:
        if not active:
            return "kea (no changes)"
        return (
            f"kea ({subnets} subnet{'' if subnets == 1 else 's'}, "
            f"{reservations} reservation{'' if reservations == 1 else 's'}, "
            f"{options} option set{'' if options == 1 else 's'})"
        )

    if fell_back:
        v4 = "isc-fallback"
    else:
        v4 = family_status(stats.subnets_added_v4, stats.reservations_added_v4,
                           stats.options_applied_v4, stats.v4_activity)
    if preserve_ipv6_legacy:
        v6 = f"isc-legacy ({', '.join(stats.preserved_dhcpdv6_ifaces)})"
    elif fell_back:
        v6 = "isc-fallback"
    else:
        v6 = family_status(stats.subnets_added_v6, stats.reservations_added_v6,
                           stats.options_applied_v6, stats.v6_activity)

    lines = [f"dhcp migration: v4={v4} v6={v6}"]
    if stats.reservations_skipped_conflict_v4 or stats.reservations_skipped_conflict_v6:
        lines.append(
            f"dhcp migration: skipped_conflicts v4={stats.reservations_skipped_conflict_v4} "
            f"v6={stats.reservations_skipped_conflict_v6}"
        )
    return lines
