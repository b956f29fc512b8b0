"""WireGuard conversion between the P package and the O plugin.

Dialect P keeps ``tunnels/item`` and ``peers/item`` (peers name their tunnel
in ``tun``); dialect O keeps ``server/servers/server`` and
``client/clients/client`` linked by a comma-separated UUID list in each
server's ``peers``. Converting O to P embeds the complete O subtree as
``opnsense_wireguard_snapshot`` so the return trip can restore it as is.
"""
import logging

from ...tree import XmlNode
from . import common, opn_to_pf, pf_to_opn
from .common import normalize_interface_names

logger = logging.getLogger(__name__)


def to_opnsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    nested = common.source_opnsense_wireguard(source)
    if nested is not None:
        out.ensure_child("OPNsense").upsert_child(nested.clone())
    else:
        pf_config = common.source_pfsense_wireguard(source)
        if pf_config is not None:
            out.ensure_child("OPNsense").upsert_child(pf_to_opn.map_wireguard(pf_config))
            logger.debug("WireGuard: mapped P tunnels/peers to O servers/clients")
    common.ensure_interface_assignment(out, source)


def to_pfsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    pf_config = common.source_pfsense_wireguard(source)
    if pf_config is not None:
        out.ensure_child("installedpackages").upsert_child(pf_config.with_tag("wireguard"))
    else:
        nested = common.source_opnsense_wireguard(source)
        if nested is not None:
            out.ensure_child("installedpackages").upsert_child(opn_to_pf.map_wireguard(nested))
            logger.debug("WireGuard: mapped O servers/clients to P tunnels/peers")
    common.ensure_interface_assignment(out, source)


__all__ = ["to_opnsense", "to_pfsense", "normalize_interface_names"]
