"""Drop floating rules generated by the blocklist package (dialect O)."""
import logging

from ..tree import XmlNode, is_truthy

logger = logging.getLogger(__name__)

TOP_ALIASES = frozenset({"pfb_top_v4", "pfb_top_v6"})


def _references_blocklist(rule: XmlNode) -> bool:
    for node in rule.walk():
        value = (node.text or "").strip().lower()
        if value in TOP_ALIASES or value.startswith("pfb_"):
            return True
    return False


def prune_floating_rules(out: XmlNode) -> int:
    """Remove floating ``filter/rule`` entries that reference ``pfB_*`` aliases."""
    filter_node = out.child("filter")
    if filter_node is None:
        return 0
    removed = filter_node.retain(
        lambda n: n.tag != "rule"
        or not (is_truthy(n.text_at("floating")) and _references_blocklist(n))
    )
    if removed:
        logger.info(f"Removed {len(removed)} blocklist floating rules")
    return len(removed)
