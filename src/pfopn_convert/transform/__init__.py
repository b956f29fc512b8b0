"""Dialect section transformers.

Every transformer module exposes ``to_opnsense(out, source, baseline)`` and
``to_pfsense(out, source, baseline)``. ``out`` is mutated in place; the
source is the authority for the section a transformer owns.
"""
from typing import Callable

from ..detect import Dialect
from ..tree import XmlNode
from . import (
    aliases,
    certs,
    dhcp_relay,
    identity,
    ipsec,
    openvpn,
    ppps,
    staticroutes,
    system_users,
    tailscale,
    users,
    wireguard,
)
from .dependency_transfer import apply_openvpn_transfer
from .section_sync import DEFAULT_SYNCED_SECTIONS, sync_shared_sections

Transformer = Callable[[XmlNode, XmlNode, XmlNode], None]

# Order matters: identity and users settle before per-service sections
PIPELINE = (
    ("identity", identity),
    ("users", users),
    ("system_users", system_users),
    ("aliases", aliases),
    ("tailscale", tailscale),
    ("openvpn", openvpn),
    ("ppps", ppps),
    ("wireguard", wireguard),
    ("ipsec", ipsec),
    ("staticroutes", staticroutes),
    ("dhcp_relay", dhcp_relay),
    ("certs", certs),
)


def transformers_for(dialect: Dialect) -> list[tuple[str, Transformer]]:
    """
    Ordered ``(name, function)`` pairs converting into ``dialect``.

    Raises:
        ValueError: If ``dialect`` is not a concrete target
    """
    if dialect == Dialect.OPNSENSE:
        return [(name, module.to_opnsense) for name, module in PIPELINE]
    if dialect == Dialect.PFSENSE:
        return [(name, module.to_pfsense) for name, module in PIPELINE]
    raise ValueError(f"No transformers for dialect {dialect.value}")


__all__ = [
    "Transformer",
    "PIPELINE",
    "transformers_for",
    "apply_openvpn_transfer",
    "sync_shared_sections",
    "DEFAULT_SYNCED_SECTIONS",
]
