"""XML tree model shared by every conversion stage.

A node owns an ordered attribute mapping, optional text and an ordered list of
children. Sibling order is meaningful (rule evaluation order, DHCP pools), so
every helper here preserves it.
"""
import copy
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

TRUTHY_VALUES = frozenset({"1", "yes", "true", "enabled", "on"})


def is_truthy(value: Optional[str]) -> bool:
    """Check a config flag value (1/yes/true/enabled/on, case-insensitive)."""
    if value is None:
        return False
    return value.strip().lower() in TRUTHY_VALUES


def bool_text(value: bool) -> str:
    return "1" if value else "0"


@dataclass
class XmlNode:
    """A single XML element."""
    tag: str
    attributes: dict[str, str] = field(default_factory=dict)
    text: Optional[str] = None
    children: list["XmlNode"] = field(default_factory=list)

    # === Lookup ===

    def child(self, tag: str) -> Optional["XmlNode"]:
        """Return the first direct child with the given tag."""
        for node in self.children:
            if node.tag == tag:
                return node
        return None

    def children_named(self, tag: str) -> list["XmlNode"]:
        """Return all direct children with the given tag, in order."""
        return [node for node in self.children if node.tag == tag]

    def find(self, *path: str) -> Optional["XmlNode"]:
        """Walk a path of tags, taking the first match at each level."""
        node: Optional[XmlNode] = self
        for tag in path:
            if node is None:
                return None
            node = node.child(tag)
        return node

    def has(self, *path: str) -> bool:
        return self.find(*path) is not None

    def text_at(self, *path: str) -> Optional[str]:
        """Raw text of the node at ``path`` (None when absent)."""
        node = self.find(*path)
        return node.text if node is not None else None

    def value(self, *path: str) -> Optional[str]:
        """Trimmed, non-empty text at ``path``, else None."""
        text = self.text_at(*path)
        if text is None:
            return None
        text = text.strip()
        return text or None

    def value_or(self, default: str, *path: str) -> str:
        found = self.value(*path)
        return found if found is not None else default

    def walk(self) -> Iterator["XmlNode"]:
        """Depth-first, pre-order iteration over this node and descendants."""
        yield self
        for node in self.children:
            yield from node.walk()

    # === Mutation ===

    def ensure_child(self, tag: str) -> "XmlNode":
        """Return the first child with ``tag``, appending an empty one if missing."""
        existing = self.child(tag)
        if existing is not None:
            return existing
        created = XmlNode(tag)
        self.children.append(created)
        return created

    def ensure_path(self, *path: str) -> "XmlNode":
        node = self
        for tag in path:
            node = node.ensure_child(tag)
        return node

    def set_text_child(self, tag: str, value: str) -> "XmlNode":
        """Set the text of the first ``tag`` child, inserting it when missing."""
        node = self.ensure_child(tag)
        node.text = value
        return node

    def append_text_child(self, tag: str, value: Optional[str]) -> "XmlNode":
        """Append a new ``tag`` child carrying ``value``."""
        node = XmlNode(tag, text=value)
        self.children.append(node)
        return node

    def append(self, node: "XmlNode") -> "XmlNode":
        self.children.append(node)
        return node

    def upsert_child(self, node: "XmlNode") -> None:
        """Replace the first child sharing ``node.tag``, or append ``node``."""
        for idx, existing in enumerate(self.children):
            if existing.tag == node.tag:
                self.children[idx] = node
                return
        self.children.append(node)

    def remove_children(self, *tags: str) -> int:
        """Remove every direct child whose tag is in ``tags``."""
        before = len(self.children)
        self.children = [node for node in self.children if node.tag not in tags]
        return before - len(self.children)

    def retain(self, keep: Callable[["XmlNode"], bool]) -> list["XmlNode"]:
        """Keep only children accepted by ``keep``; return the removed ones."""
        kept, removed = [], []
        for node in self.children:
            (kept if keep(node) else removed).append(node)
        self.children = kept
        return removed

    # === Copies ===

    def clone(self) -> "XmlNode":
        return copy.deepcopy(self)

    def with_tag(self, tag: str) -> "XmlNode":
        """Deep copy of this node carrying a different tag."""
        cloned = self.clone()
        cloned.tag = tag
        return cloned
