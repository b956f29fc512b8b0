"""Copy named system users that the output lacks.

The primary administrator carries a dialect-specific name (``admin`` on P,
``root`` on O); it is renamed on the way across and only added when the
output has no user under the target name.
"""
import logging
from typing import Optional

from ..tree import XmlNode

logger = logging.getLogger(__name__)

ADMIN_NAME = {"pfsense": "admin", "opnsense": "root"}


def _transfer(out: XmlNode, source: XmlNode, rename: Optional[tuple[str, str]]) -> int:
    src_system = source.child("system")
    out_system = out.child("system")
    if src_system is None or out_system is None:
        return 0

    existing = {
        name.lower() for user in out_system.children_named("user")
        if (name := user.value("name"))
    }
    added = 0
    for user in src_system.children_named("user"):
        name = user.value("name")
        if not name:
            continue
        copy = user.clone()
        if rename and name.lower() == rename[0]:
            name = rename[1]
            copy.set_text_child("name", name)
        if name.lower() in existing:
            continue
        out_system.append(copy)
        existing.add(name.lower())
        added += 1
        logger.debug(f"Copied user {name}")
    return added


def to_opnsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    _transfer(out, source, (ADMIN_NAME["pfsense"], ADMIN_NAME["opnsense"]))


def to_pfsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    _transfer(out, source, (ADMIN_NAME["opnsense"], ADMIN_NAME["pfsense"]))
