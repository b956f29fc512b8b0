"""Structural diff between two XML trees.

Children are compared tag group by tag group. Tags with a declared key
field (``alias -> name``) are matched by key first and positionally for
leftovers; all other tags are matched purely by position.

Path selectors: ``alias[web]`` names a keyed node by its key value,
``alias[#2]`` a keyed node by 1-based position, ``system[1]`` an unkeyed
node by 1-based position.
"""
import logging
from typing import Optional

from ..tree import XmlNode
from .schema import DiffEntry, DiffKind, DiffOptions

logger = logging.getLogger(__name__)


def _normalize_text(text: Optional[str]) -> Optional[str]:
    if text is None:
        return None
    text = text.strip()
    return text or None


def local_signature(node: XmlNode) -> str:
    """Attributes and trimmed text of a node, ignoring its children."""
    return f"attributes={node.attributes!r}, text={_normalize_text(node.text)!r}"


def should_ignore(path: str, ignore_paths: list[str]) -> bool:
    return any(
        path == pattern
        or path.endswith(f".{pattern}")
        or f".{pattern}[" in path
        or path == f"{pattern}[1]"
        for pattern in ignore_paths
    )


class DiffEngine:
    """Calculate differences between two documents."""

    def __init__(self, options: Optional[DiffOptions] = None):
        self.options = options or DiffOptions()

    def calculate(self, left: XmlNode, right: XmlNode) -> list[DiffEntry]:
        """
        Diff ``left`` against ``right``.

        Args:
            left: Left document (the conversion source)
            right: Right document (the target baseline)

        Returns:
            Diff entries in document order
        """
        entries: list[DiffEntry] = []
        self._diff_node(left, right, left.tag, 0, entries)
        logger.debug(f"Diff {left.tag} vs {right.tag}: {len(entries)} entries")
        return entries

    def _diff_node(self, left: XmlNode, right: XmlNode, path: str, depth: int,
                   out: list[DiffEntry]) -> None:
        if should_ignore(path, self.options.ignore_paths):
            return
        if self.options.max_depth >= 0 and depth > self.options.max_depth:
            return

        start = len(out)
        if left.tag != right.tag:
            out.append(DiffEntry.structural(
                path, f"tag mismatch: left='{left.tag}' right='{right.tag}'"
            ))
            self._diff_children(left, right, path, depth, out)
            return

        if (left.attributes != right.attributes
                or _normalize_text(left.text) != _normalize_text(right.text)):
            out.append(DiffEntry.modified(path, local_signature(left), local_signature(right)))

        self._diff_children(left, right, path, depth, out)

        if self.options.include_identical and len(out) == start:
            out.append(DiffEntry.identical(path))

    def _diff_children(self, left: XmlNode, right: XmlNode, path: str, depth: int,
                       out: list[DiffEntry]) -> None:
        if self.options.max_depth >= 0 and depth + 1 > self.options.max_depth:
            return
        tags: list[str] = []
        for child in left.children + right.children:
            if child.tag not in tags:
                tags.append(child.tag)

        for tag in tags:
            left_nodes = left.children_named(tag)
            right_nodes = right.children_named(tag)
            key_field = self.options.key_fields.get(tag)
            if key_field:
                self._match_by_key(tag, key_field, left_nodes, right_nodes, path, depth, out)
            else:
                self._match_by_index(tag, left_nodes, right_nodes, path, depth, out)

    def _match_by_index(self, tag: str, left_nodes: list[XmlNode], right_nodes: list[XmlNode],
                        parent: str, depth: int, out: list[DiffEntry]) -> None:
        for i in range(max(len(left_nodes), len(right_nodes))):
            child_path = f"{parent}.{tag}[{i + 1}]"
            if i < len(left_nodes) and i < len(right_nodes):
                self._diff_node(left_nodes[i], right_nodes[i], child_path, depth + 1, out)
            elif i < len(left_nodes):
                self._record_only(DiffEntry.only_left(child_path, left_nodes[i]), out)
            else:
                self._record_only(DiffEntry.only_right(child_path, right_nodes[i]), out)

    def _match_by_key(self, tag: str, key_field: str, left_nodes: list[XmlNode],
                      right_nodes: list[XmlNode], parent: str, depth: int,
                      out: list[DiffEntry]) -> None:
        right_keys = [node.text_at(key_field) for node in right_nodes]
        used: set[int] = set()

        for left_idx, left_node in enumerate(left_nodes):
            left_key = left_node.text_at(key_field)
            matched = None
            if left_key is not None:
                matched = next(
                    (idx for idx, key in enumerate(right_keys)
                     if idx not in used and key == left_key),
                    None,
                )
            if matched is not None:
                used.add(matched)
                self._diff_node(left_node, right_nodes[matched],
                                f"{parent}.{tag}[{left_key}]", depth + 1, out)
                continue

            if left_idx < len(right_nodes) and left_idx not in used:
                # Positional fallback; "#n" addresses the right-hand position
                used.add(left_idx)
                self._diff_node(left_node, right_nodes[left_idx],
                                f"{parent}.{tag}[#{left_idx + 1}]", depth + 1, out)
                continue

            label = left_key if left_key is not None else f"#{left_idx + 1}"
            self._record_only(DiffEntry.only_left(f"{parent}.{tag}[{label}]", left_node), out)

        for right_idx, right_node in enumerate(right_nodes):
            if right_idx in used:
                continue
            right_key = right_node.text_at(key_field)
            label = right_key if right_key is not None else f"#{right_idx + 1}"
            self._record_only(DiffEntry.only_right(f"{parent}.{tag}[{label}]", right_node), out)

    def _record_only(self, entry: DiffEntry, out: list[DiffEntry]) -> None:
        if not should_ignore(entry.path, self.options.ignore_paths):
            out.append(entry)


def diff_trees(left: XmlNode, right: XmlNode, options: Optional[DiffOptions] = None) -> list[DiffEntry]:
    """Convenience wrapper around DiffEngine.calculate."""
    return DiffEngine(options).calculate(left, right)


def count_by_kind(entries: list[DiffEntry]) -> dict[DiffKind, int]:
    counts = {kind: 0 for kind in DiffKind}
    for entry in entries:
        counts[entry.kind] += 1
    return counts


def summarize_diff(entries: list[DiffEntry]) -> str:
    """
    One-line count summary of a diff.

    Format: ``identical=.. modified=.. only_left=.. only_right=.. structural=..``
    """
    counts = count_by_kind(entries)
    return " ".join(f"{kind.value}={counts[kind]}" for kind in DiffKind)


def format_diff(entries: list[DiffEntry]) -> str:
    """
    Plain-text diff report.

    Useful for the ``diff`` command and debug logging.
    """
    lines = []
    for entry in entries:
        if entry.kind == DiffKind.MODIFIED:
            lines.append(f"{entry.marker} {entry.path}")
            lines.append(f"  left:  {entry.left}")
            lines.append(f"  right: {entry.right}")
        elif entry.kind == DiffKind.STRUCTURAL:
            lines.append(f"{entry.marker} {entry.path}: {entry.description}")
        else:
            lines.append(f"{entry.marker} {entry.path}")
    return "\n".join(lines)
