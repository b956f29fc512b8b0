"""Tailscale mesh config: ``installedpackages/tailscale`` on P, ``OPNsense/tailscale`` on O."""
from typing import Optional

from ..tree import XmlNode

TAGS = ("tailscale", "tailscaleauth")


def _pfsense_node(root: XmlNode, tag: str) -> Optional[XmlNode]:
    return root.child(tag) or root.find("installedpackages", tag)


def to_opnsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    container = out.ensure_child("OPNsense")
    container.remove_children(*TAGS)
    config = _pfsense_node(source, "tailscale")
    if config is None:
        return
    container.append(config.clone())
    auth = _pfsense_node(source, "tailscaleauth")
    if auth is not None:
        container.append(auth.clone())


def to_pfsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    container = out.ensure_child("installedpackages")
    container.remove_children(*TAGS)
    config = source.find("OPNsense", "tailscale")
    if config is None:
        return
    container.append(config.clone())
    auth = source.find("OPNsense", "tailscaleauth")
    if auth is not None:
        container.append(auth.clone())
