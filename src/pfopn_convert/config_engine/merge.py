"""Insert-only merge of diff entries onto a cloned base document.

Only ONLY_LEFT (merging into the right side) or ONLY_RIGHT (merging into
the left side) entries drive the merge; existing values are never
overwritten here.
"""
import logging
import re
from typing import Optional

from ..errors import ParentNotFoundError, UnsupportedMergePathError
from ..tree import XmlNode
from .schema import DiffEntry, DiffKind, MergeTarget

logger = logging.getLogger(__name__)

SEGMENT = re.compile(r"^(?P<tag>[^\[\]]+)(?:\[(?P<selector>.*)\])?$")


def split_path(path: str) -> list[str]:
    """Split a dotted diff path, ignoring dots inside ``[...]`` selectors."""
    segments, current, depth = [], [], 0
    for char in path:
        if char == "[":
            depth += 1
        elif char == "]":
            depth = max(depth - 1, 0)
        if char == "." and depth == 0:
            segments.append("".join(current))
            current = []
            continue
        current.append(char)
    segments.append("".join(current))
    return segments


def split_parent_path(path: str) -> Optional[str]:
    """Parent portion of ``path``, or None when it has no parent."""
    segments = split_path(path)
    if len(segments) < 2 or not all(segments):
        return None
    return ".".join(segments[:-1])


def _select(parent: XmlNode, segment: str, key_fields: dict[str, str]) -> Optional[XmlNode]:
    match = SEGMENT.match(segment)
    if match is None:
        return None
    tag, selector = match.group("tag"), match.group("selector")
    candidates = parent.children_named(tag)
    if selector is None:
        return candidates[0] if candidates else None

    key_field = key_fields.get(tag)
    if selector.startswith("#"):
        position = selector[1:]
    elif key_field:
        # A bare selector on a keyed tag is always a key value, never a position
        return next((n for n in candidates if n.text_at(key_field) == selector), None)
    else:
        position = selector

    if not position.isdigit():
        return None
    idx = int(position) - 1
    return candidates[idx] if 0 <= idx < len(candidates) else None


def find_by_path(root: XmlNode, path: str, key_fields: Optional[dict[str, str]] = None) -> Optional[XmlNode]:
    """Resolve a diff path (starting with the root tag) inside ``root``."""
    segments = split_path(path)
    if not segments or segments[0] != root.tag:
        return None
    node: Optional[XmlNode] = root
    for segment in segments[1:]:
        node = _select(node, segment, key_fields or {})
        if node is None:
            return None
    return node


def normalize_root(path: str, out_root: str, left_root: str, right_root: str) -> str:
    """Rewrite the leading root segment of ``path`` to the output's root tag."""
    segments = split_path(path)
    if segments[0] in (left_root, right_root):
        segments[0] = out_root
    return ".".join(segments)


def apply_safe_merge(
    left: XmlNode,
    right: XmlNode,
    entries: list[DiffEntry],
    target: MergeTarget = MergeTarget.RIGHT,
    key_fields: Optional[dict[str, str]] = None,
) -> XmlNode:
    """
    Build the merged document.

    Args:
        left: Left document (the conversion source)
        right: Right document (the target baseline)
        entries: Diff of ``left`` against ``right``
        target: Side the output is cloned from
        key_fields: Key fields used when the diff was computed

    Returns:
        The merged clone; neither input is modified

    Raises:
        UnsupportedMergePathError: An entry path has no parent segment
        ParentNotFoundError: The parent path does not exist in the output
    """
    out = right.clone() if target == MergeTarget.RIGHT else left.clone()
    wanted = DiffKind.ONLY_LEFT if target == MergeTarget.RIGHT else DiffKind.ONLY_RIGHT

    inserted = 0
    for entry in entries:
        if entry.kind != wanted or entry.node is None:
            continue
        parent_path = split_parent_path(entry.path)
        if parent_path is None:
            raise UnsupportedMergePathError(entry.path)

        if parent_path in (left.tag, right.tag):
            parent = out
        else:
            normalized = normalize_root(parent_path, out.tag, left.tag, right.tag)
            parent = find_by_path(out, normalized, key_fields)
            if parent is None:
                raise ParentNotFoundError(parent_path)
        parent.append(entry.node.clone())
        inserted += 1

    logger.info(f"Safe merge ({target.value}): inserted {inserted} nodes")
    return out
