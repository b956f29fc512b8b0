"""Conversion options and mapping tables."""
from .options import ConversionOptions, load_options, parse_source, parse_target
from .mappings import (
    DEFAULT_KEY_FIELDS,
    MappingTables,
    SectionMapping,
    load_mappings,
)

__all__ = [
    # Options
    "ConversionOptions",
    "load_options",
    "parse_source",
    "parse_target",
    # Mapping tables
    "DEFAULT_KEY_FIELDS",
    "MappingTables",
    "SectionMapping",
    "load_mappings",
]
