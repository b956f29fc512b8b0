"""Firewall aliases: flat ``aliases`` on P, ``OPNsense/Firewall/Alias/aliases`` on O."""
import logging

from ..tree import XmlNode

logger = logging.getLogger(__name__)

OPNSENSE_ALIAS_PATH = ("OPNsense", "Firewall", "Alias", "aliases")


def _alias_key(alias: XmlNode):
    name = alias.value("name")
    return name.lower() if name else None


def replace_aliases(container: XmlNode, source_aliases: list[XmlNode]) -> int:
    """
    Replace the aliases in ``container`` with ``source_aliases``.

    Names are deduplicated case-insensitively, first occurrence wins. When an
    alias already existed in the container under a different case, the
    existing spelling is kept. Returns the number of aliases written.
    """
    existing_names = {}
    for alias in container.children_named("alias"):
        key = _alias_key(alias)
        if key is not None:
            existing_names.setdefault(key, alias.value("name"))
    container.remove_children("alias")

    seen = set()
    for alias in source_aliases:
        key = _alias_key(alias)
        if key is not None:
            if key in seen:
                logger.debug(f"Dropping duplicate alias {alias.value('name')}")
                continue
            seen.add(key)
        copy = alias.clone()
        if key in existing_names and existing_names[key] != alias.value("name"):
            copy.set_text_child("name", existing_names[key])
        container.append(copy)
    return len(container.children_named("alias"))


def to_opnsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    src = source.child("aliases")
    if src is None:
        return
    replace_aliases(out.ensure_path(*OPNSENSE_ALIAS_PATH), src.children_named("alias"))


def to_pfsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    src = source.find(*OPNSENSE_ALIAS_PATH)
    if src is None:
        return
    replace_aliases(out.ensure_child("aliases"), src.children_named("alias"))
