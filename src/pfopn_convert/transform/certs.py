"""Certificates and CAs: O entries carry a deterministic ``uuid`` attribute."""
from ..tree import XmlNode, stable_uuid

SECTIONS = ("ca", "cert")


def _assign_uuids(root: XmlNode, tag: str) -> None:
    for ordinal, node in enumerate(root.children_named(tag)):
        if "uuid" in node.attributes:
            continue
        seed = node.value("refid") or node.value("descr") or f"{tag}:{ordinal}"
        node.attributes["uuid"] = stable_uuid(tag, ordinal, seed)


def to_opnsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    for tag in SECTIONS:
        _assign_uuids(out, tag)


def to_pfsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    for tag in SECTIONS:
        for node in out.children_named(tag):
            node.attributes.pop("uuid", None)
