"""IPsec conversion.

Dialect P keeps tunnels as top-level ``ipsec/{phase1,phase2}``. Dialect O
keeps daemon tunables in top-level ``ipsec`` and the tunnels under
``OPNsense/{IPsec,Swanctl}``. The top-level section is always carried
through unchanged; a P-style one is additionally rewritten into Swanctl.
"""
from ...tree import XmlNode
from .mapper import map_phases


def is_pfsense_style(ipsec: XmlNode) -> bool:
    return ipsec.child("phase1") is not None or ipsec.child("phase2") is not None


def _upsert_nested(out: XmlNode, tag: str, node: XmlNode) -> None:
    out.ensure_child("OPNsense").upsert_child(node.with_tag(tag))


def to_opnsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    top = source.child("ipsec")
    if top is not None:
        out.upsert_child(top.clone())
        if is_pfsense_style(top):
            ipsec, swanctl = map_phases(top)
            _upsert_nested(out, "IPsec", ipsec)
            _upsert_nested(out, "Swanctl", swanctl)
        else:
            _upsert_nested(out, "IPsec", top)
        return

    for tag in ("IPsec", "Swanctl"):
        nested = source.find("OPNsense", tag)
        if nested is not None:
            _upsert_nested(out, tag, nested)


def to_pfsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    top = source.child("ipsec") or source.find("OPNsense", "IPsec")
    if top is not None:
        out.upsert_child(top.with_tag("ipsec"))
        _upsert_nested(out, "IPsec", top)

    swanctl = source.find("OPNsense", "Swanctl")
    if swanctl is not None:
        _upsert_nested(out, "Swanctl", swanctl)
