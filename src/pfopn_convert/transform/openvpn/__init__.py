"""OpenVPN conversion between P ``openvpn`` entries and O ``Instances``.

Both directions prefer a source that already carries the target shape.
Servers converted to P record their O instance UUID under
``opnsense_instance_uuid`` so that a later conversion back to O restores the
same identifiers; such an "O-origin" top-level ``openvpn`` is normalized to
an empty element on the way back to avoid keeping two copies.
"""
import logging

from ...tree import XmlNode
from . import common, opn_to_pf, pf_to_opn

logger = logging.getLogger(__name__)


def to_opnsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    instances = common.source_opnsense_instances(source)
    if instances is None:
        instances = pf_to_opn.map_instances(source, baseline)
    if not instances.children:
        return

    out.ensure_path("OPNsense", "OpenVPN").upsert_child(instances)

    legacy = common.source_pfsense_openvpn(source)
    if legacy is not None and not common.is_opnsense_origin(legacy):
        out.upsert_child(legacy)
    else:
        common.normalize_top_level(out)
    common.dedupe_top_level(out)
    logger.debug(f"OpenVPN: {len(instances.children)} instance(s) written")


def to_pfsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    openvpn = common.source_pfsense_openvpn(source)
    if openvpn is None:
        openvpn = opn_to_pf.map_instances(source)
    if not openvpn.children:
        return
    out.upsert_child(openvpn)
    common.dedupe_top_level(out)
    logger.debug(f"OpenVPN: {len(openvpn.children)} entry(ies) written")
