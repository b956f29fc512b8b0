"""Rewrite logical interface references after assignment renames."""
import re
from typing import Optional

from ..tree import XmlNode

TOKEN_LIST_TAGS = frozenset({"members", "interfaces"})
SINGLE_VALUE_TAGS = frozenset({"interface"})
DELIMITERS = re.compile(r"([,\s]+)")


def rewrite_tokens(text: str, mapping: dict[str, str]) -> str:
    """Replace mapped tokens in a comma/whitespace list, keeping delimiters."""
    parts = DELIMITERS.split(text)
    return "".join(part if DELIMITERS.fullmatch(part) else mapping.get(part, part)
                   for part in parts)


def apply(root: XmlNode, mapping: Optional[dict[str, str]]) -> int:
    """Rewrite ``interface``, ``interfaces`` and ``members`` texts in place."""
    if not mapping:
        return 0
    changed = 0
    for node in root.walk():
        if node.text is None:
            continue
        if node.tag in TOKEN_LIST_TAGS:
            rewritten = rewrite_tokens(node.text, mapping)
        elif node.tag in SINGLE_VALUE_TAGS:
            value = node.text.strip()
            rewritten = mapping.get(value, node.text)
        else:
            continue
        if rewritten != node.text:
            node.text = rewritten
            changed += 1
    return changed
