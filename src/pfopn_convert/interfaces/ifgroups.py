"""Interface group normalization.

Dialect O generates its own ``wireguard``/``tailscale`` groups (flagged
"do not edit/delete"); carried-over copies are dropped. Group membership
tokens use ``wireGuard`` on O and ``WireGuard`` on P.
"""
import logging

from ..tree import XmlNode
from .logical_refs import TOKEN_LIST_TAGS, rewrite_tokens

logger = logging.getLogger(__name__)

PLUGIN_GROUPS = frozenset({"wireguard", "tailscale"})
PLUGIN_MARKER = "do not edit/delete"
REWRITTEN_TAGS = TOKEN_LIST_TAGS | {"interface"}


def _is_plugin_group(entry: XmlNode) -> bool:
    descr = (entry.value("descr") or "").lower()
    ifname = (entry.value("ifname") or "").lower()
    return PLUGIN_MARKER in descr and ifname in PLUGIN_GROUPS


def _rewrite_group_tokens(out: XmlNode, mapping: dict[str, str]) -> int:
    changed = 0
    for node in out.walk():
        if node.tag not in REWRITTEN_TAGS or node.text is None:
            continue
        rewritten = rewrite_tokens(node.text, mapping)
        if rewritten != node.text:
            node.text = rewritten
            changed += 1
    return changed


def to_opnsense(out: XmlNode) -> int:
    ifgroups = out.child("ifgroups")
    if ifgroups is not None:
        removed = ifgroups.retain(
            lambda n: n.tag != "ifgroupentry" or not _is_plugin_group(n)
        )
        for entry in removed:
            logger.debug(f"Dropped plugin interface group {entry.value('ifname')}")
    return _rewrite_group_tokens(out, {"WireGuard": "wireGuard"})


def to_pfsense(out: XmlNode) -> int:
    return _rewrite_group_tokens(out, {"wireGuard": "WireGuard"})
