"""Copy OpenVPN dependencies (CAs, certificates, users) the output lacks.

The gap is computed between the source and the target baseline inventories.
Each class of dependency can be switched off individually.
"""
import logging

from ..detect import collect_openvpn_inventory, openvpn_gap, OpenVpnGap
from ..tree import XmlNode

logger = logging.getLogger(__name__)


def transfer_by_refid(out: XmlNode, source: XmlNode, tag: str, missing: list[str]) -> int:
    """Append top-level ``tag`` entries from ``source`` whose refid is missing."""
    if not missing:
        return 0
    existing = {node.value("refid") for node in out.children_named(tag)}
    by_refid = {}
    for node in source.children_named(tag):
        refid = node.value("refid")
        if refid and refid not in by_refid:
            by_refid[refid] = node

    added = 0
    for refid in missing:
        if refid in existing or refid not in by_refid:
            continue
        out.append(by_refid[refid].clone())
        existing.add(refid)
        added += 1
        logger.debug(f"Transferred {tag} refid={refid}")
    return added


def transfer_users(out: XmlNode, source: XmlNode, baseline: XmlNode, missing: list[str]) -> int:
    """Append source users named in ``missing`` that the baseline does not define."""
    system = out.child("system")
    if not missing or system is None:
        return 0
    baseline_system = baseline.child("system")
    existing = {
        user.value("name")
        for user in (baseline_system.children_named("user") if baseline_system is not None else [])
    }
    source_system = source.child("system")
    by_name = {}
    for user in (source_system.children_named("user") if source_system is not None else []):
        name = user.value("name")
        if name and name not in by_name:
            by_name[name] = user

    added = 0
    for name in missing:
        if name in existing or name not in by_name:
            continue
        system.append(by_name[name].clone())
        existing.add(name)
        added += 1
        logger.debug(f"Transferred user {name}")
    return added


def apply_openvpn_transfer(
    out: XmlNode,
    source: XmlNode,
    baseline: XmlNode,
    transfer_cas: bool = True,
    transfer_certs: bool = True,
    transfer_users_enabled: bool = True,
) -> OpenVpnGap:
    """
    Close the OpenVPN dependency gap between ``source`` and ``baseline`` in ``out``.

    Returns:
        The gap that drove the transfer
    """
    gap = openvpn_gap(collect_openvpn_inventory(source), collect_openvpn_inventory(baseline))
    if gap.empty:
        return gap
    if transfer_cas:
        transfer_by_refid(out, source, "ca", gap.missing_ca_ids)
    if transfer_certs:
        transfer_by_refid(out, source, "cert", gap.missing_cert_ids)
    if transfer_users_enabled:
        transfer_users(out, source, baseline, gap.missing_usernames)
    logger.info(
        f"OpenVPN dependency gap: cas={len(gap.missing_ca_ids)} "
        f"certs={len(gap.missing_cert_ids)} users={len(gap.missing_usernames)}"
    )
    return gap
