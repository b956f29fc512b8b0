"""Replace the LAN IPv4 address and everything derived from it."""
import ipaddress
import logging
from typing import Optional

from ..errors import InvalidInputError, LanOverrideConflictError
from ..tree import XmlNode

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = 24


def _parse_override(value: str) -> tuple[ipaddress.IPv4Address, Optional[int]]:
    try:
        iface = ipaddress.IPv4Interface(value.strip())
    except ValueError as e:
        raise InvalidInputError(f"invalid --lan-ip value: {value}") from e
    prefix = iface.network.prefixlen if "/" in value else None
    return iface.ip, prefix


def _lan_address(root: XmlNode) -> tuple[XmlNode, ipaddress.IPv4Address, Optional[int]]:
    interfaces = root.child("interfaces")
    if interfaces is None:
        raise InvalidInputError("missing interfaces section")
    lan = interfaces.child("lan")
    if lan is None:
        raise InvalidInputError("missing interfaces.lan section")
    raw = lan.value("ipaddr")
    if raw is None:
        raise InvalidInputError("missing interfaces.lan.ipaddr")
    try:
        iface = ipaddress.IPv4Interface(raw)
    except ValueError as e:
        raise InvalidInputError(f"interfaces.lan.ipaddr is not IPv4: {raw}") from e
    prefix = iface.network.prefixlen if "/" in raw else None
    return lan, iface.ip, prefix


def _lan_prefix(lan: XmlNode, cidr_prefix: Optional[int]) -> int:
    if cidr_prefix is not None:
        return cidr_prefix
    subnet = lan.value("subnet")
    if subnet and subnet.isdigit() and int(subnet) <= 32:
        return int(subnet)
    return DEFAULT_PREFIX


def _ensure_no_conflict(root: XmlNode, new_ip: ipaddress.IPv4Address) -> None:
    for iface in root.child("interfaces").children:
        if iface.tag == "lan":
            continue
        raw = iface.value("ipaddr")
        if raw is None:
            continue
        if raw.split("/", 1)[0] == str(new_ip):
            raise LanOverrideConflictError(
                f"--lan-ip conflicts with existing interface {iface.tag}.ipaddr={new_ip}",
                interface=iface.tag,
            )


def _remap_subnet(node: XmlNode, old_net: ipaddress.IPv4Network,
                  new_net: ipaddress.IPv4Network) -> int:
    changed = 0
    host_mask = int(old_net.hostmask)
    for item in node.walk():
        if item.text is None:
            continue
        try:
            addr = ipaddress.IPv4Address(item.text.strip())
        except ValueError:
            continue
        if addr not in old_net:
            continue
        item.text = str(ipaddress.IPv4Address(
            int(new_net.network_address) | (int(addr) & host_mask)
        ))
        changed += 1
    return changed


def _replace_exact(root: XmlNode, old: str, new: str) -> int:
    changed = 0
    for node in root.walk():
        if node.text is not None and node.text.strip() == old:
            node.text = new
            changed += 1
    return changed


def apply(root: XmlNode, new_lan_ip: str) -> bool:
    """
    Move the LAN interface to ``new_lan_ip``.

    Writes the new address into ``interfaces/lan/ipaddr``, shifts every
    IPv4 literal under ``dhcpd/lan`` that lies in the old LAN subnet into
    the new one (host bits preserved), then replaces any remaining text
    equal to the old address.

    Args:
        root: Output document, mutated in place
        new_lan_ip: IPv4 address, optionally in CIDR form

    Returns:
        False when the address is unchanged, True otherwise

    Raises:
        InvalidInputError: Malformed value or missing LAN address
        LanOverrideConflictError: Another interface already uses the address
    """
    new_ip, new_prefix = _parse_override(new_lan_ip)
    lan, old_ip, old_prefix = _lan_address(root)
    if old_ip == new_ip:
        return False

    prefix = _lan_prefix(lan, new_prefix if new_prefix is not None else old_prefix)
    _ensure_no_conflict(root, new_ip)

    lan.set_text_child("ipaddr", str(new_ip))
    if lan.value("subnet") is None:
        lan.set_text_child("subnet", str(prefix))
    old_net = ipaddress.IPv4Network(f"{old_ip}/{prefix}", strict=False)
    new_net = ipaddress.IPv4Network(f"{new_ip}/{prefix}", strict=False)

    remapped = 0
    dhcp_lan = root.find("dhcpd", "lan")
    if dhcp_lan is not None:
        remapped = _remap_subnet(dhcp_lan, old_net, new_net)
    replaced = _replace_exact(root, str(old_ip), str(new_ip))
    logger.info(
        f"LAN address {old_ip} -> {new_ip}: {remapped} DHCP values remapped, "
        f"{replaced} references replaced"
    )
    return True


def rebased(source: XmlNode, new_lan_ip: str) -> XmlNode:
    """
    Copy of ``source`` with the LAN override applied.

    DHCP migration harvests from the source, so its LAN network has to move
    along with the output's. A source without an IPv4 LAN address is
    returned unchanged.
    """
    raw = source.value("interfaces", "lan", "ipaddr")
    if raw is None:
        return source
    try:
        ipaddress.IPv4Interface(raw)
    except ValueError:
        return source
    moved = source.clone()
    apply(moved, new_lan_ip)
    return moved
