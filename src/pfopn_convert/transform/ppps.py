"""PPP link settings, replaced wholesale from the source."""
from ..tree import XmlNode


def sync_ppps(out: XmlNode, source: XmlNode) -> None:
    out.remove_children("ppps")
    ppps = source.child("ppps")
    if ppps is not None:
        out.append(ppps.clone())


def to_opnsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    sync_ppps(out, source)


def to_pfsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    sync_ppps(out, source)
