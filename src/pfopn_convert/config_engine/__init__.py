"""Conversion engine - diff, safe merge, validation and orchestration.

Usage:
    from pfopn_convert.config_engine import ConversionEngine
    from pfopn_convert.config import ConversionOptions

    engine = ConversionEngine()
    result = engine.convert_files(
        "pfsense.xml", "opnsense-out.xml",
        ConversionOptions(target="opnsense"),
        target_file="opnsense-baseline.xml",
    )
    print(result.summary.render())
"""

from .engine import ConversionEngine
from .schema import (
    DiffKind,
    DiffEntry,
    DiffOptions,
    MergeTarget,
    ConversionSummary,
    ConversionResult,
)
from .diff import DiffEngine, diff_trees, format_diff, summarize_diff
from .merge import apply_safe_merge, split_parent_path, find_by_path
from .summary import summarize
from .validator import (
    enforce_interface_compat,
    ensure_output_not_same,
    validate_baseline,
)

__all__ = [
    # Main engine
    "ConversionEngine",
    # Schema classes
    "DiffKind",
    "DiffEntry",
    "DiffOptions",
    "MergeTarget",
    "ConversionSummary",
    "ConversionResult",
    # Diff
    "DiffEngine",
    "diff_trees",
    "format_diff",
    "summarize_diff",
    # Merge
    "apply_safe_merge",
    "split_parent_path",
    "find_by_path",
    # Summary
    "summarize",
    # Validation
    "enforce_interface_compat",
    "ensure_output_not_same",
    "validate_baseline",
]
