"""Tree model, XML parser/writer and deterministic identifiers."""
from .node import XmlNode, is_truthy, bool_text, TRUTHY_VALUES
from .io import ParseError, parse_bytes, parse_file, to_string, write_file
from .uuids import stable_uuid, instance_uuid

__all__ = [
    # Model
    "XmlNode",
    "is_truthy",
    "bool_text",
    "TRUTHY_VALUES",
    # Parser / writer
    "ParseError",
    "parse_bytes",
    "parse_file",
    "to_string",
    "write_file",
    # Identifiers
    "stable_uuid",
    "instance_uuid",
]
