"""Parser and writer for firewall XML documents.

Reads bytes into the XmlNode model and renders it back with two-space
indentation. Whitespace-only text is dropped on read; CDATA content is kept
as ordinary text. Attribute and child order are preserved in both directions.
"""
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Union

from ..errors import InvalidInputError
from ..utils.logging_config import timed
from .node import XmlNode

logger = logging.getLogger(__name__)

XML_DECLARATION = '<?xml version="1.0"?>'


class ParseError(InvalidInputError):
    """Input bytes are not well-formed XML."""
    pass


def _from_element(element: ET.Element) -> XmlNode:
    text = element.text if element.text and element.text.strip() else None
    node = XmlNode(tag=element.tag, attributes=dict(element.attrib), text=text)
    for child in element:
        # Comments and processing instructions are dropped by the default parser
        if not isinstance(child.tag, str):
            continue
        node.children.append(_from_element(child))
    return node


def _to_element(node: XmlNode) -> ET.Element:
    element = ET.Element(node.tag, dict(node.attributes))
    element.text = node.text
    for child in node.children:
        element.append(_to_element(child))
    return element


def parse_bytes(data: Union[bytes, str]) -> XmlNode:
    """
    Parse an XML document into an XmlNode tree.

    Args:
        data: Raw document bytes (or an already-decoded string)

    Returns:
        Root XmlNode

    Raises:
        ParseError: If the document is not well-formed
    """
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise ParseError(f"failed to parse XML: {e}") from e
    return _from_element(root)


@timed("parse_file")
def parse_file(path: Union[str, Path]) -> XmlNode:
    """Read and parse an XML file."""
    path = Path(path)
    try:
        data = path.read_bytes()
    except OSError as e:
        raise InvalidInputError(f"failed to read {path}: {e}") from e
    logger.debug(f"Parsing {path} ({len(data)} bytes)")
    try:
        return parse_bytes(data)
    except ParseError as e:
        raise ParseError(f"{path}: {e.message}") from e


def to_string(node: XmlNode) -> str:
    """Render a tree as an indented XML document."""
    element = _to_element(node)
    ET.indent(element, space="  ")
    body = ET.tostring(element, encoding="unicode")
    return f"{XML_DECLARATION}\n{body}\n"


@timed("write_file")
def write_file(node: XmlNode, path: Union[str, Path]) -> None:
    path = Path(path)
    path.write_text(to_string(node), encoding="utf-8")
    logger.debug(f"Wrote {path}")
