"""Schema definitions for the conversion engine.

Defines diff entries, merge direction and the conversion result.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from ..detect import Dialect
from ..dhcp import DhcpBackend, KeaMigrationStats, MigrationWarning
from ..tree import XmlNode


class DiffKind(str, Enum):
    """Category of a diff entry."""
    IDENTICAL = "identical"
    MODIFIED = "modified"
    ONLY_LEFT = "only_left"
    ONLY_RIGHT = "only_right"
    STRUCTURAL = "structural"


MARKERS = {
    DiffKind.IDENTICAL: "=",
    DiffKind.MODIFIED: "~",
    DiffKind.ONLY_LEFT: "-",
    DiffKind.ONLY_RIGHT: "+",
    DiffKind.STRUCTURAL: "!",
}


@dataclass
class DiffEntry:
    """A single diff outcome for a node path."""
    kind: DiffKind
    path: str
    left: Optional[str] = None          # local signature (MODIFIED)
    right: Optional[str] = None         # local signature (MODIFIED)
    node: Optional[XmlNode] = None      # snapshot (ONLY_LEFT / ONLY_RIGHT)
    description: Optional[str] = None   # STRUCTURAL

    @classmethod
    def identical(cls, path: str) -> "DiffEntry":
        return cls(DiffKind.IDENTICAL, path)

    @classmethod
    def modified(cls, path: str, left: str, right: str) -> "DiffEntry":
        return cls(DiffKind.MODIFIED, path, left=left, right=right)

    @classmethod
    def only_left(cls, path: str, node: XmlNode) -> "DiffEntry":
        return cls(DiffKind.ONLY_LEFT, path, node=node.clone())

    @classmethod
    def only_right(cls, path: str, node: XmlNode) -> "DiffEntry":
        return cls(DiffKind.ONLY_RIGHT, path, node=node.clone())

    @classmethod
    def structural(cls, path: str, description: str) -> "DiffEntry":
        return cls(DiffKind.STRUCTURAL, path, description=description)

    @property
    def marker(self) -> str:
        return MARKERS[self.kind]


@dataclass
class DiffOptions:
    """Tree diff behaviour."""
    include_identical: bool = False
    max_depth: int = -1                 # -1 means unlimited
    key_fields: dict[str, str] = field(default_factory=dict)
    ignore_paths: list[str] = field(default_factory=list)


class MergeTarget(str, Enum):
    """Which side the merged output is built from."""
    LEFT = "left"       # clone left, insert ONLY_RIGHT nodes
    RIGHT = "right"     # clone right, insert ONLY_LEFT nodes


@dataclass
class ConversionSummary:
    """Object counts of a converted document."""
    interfaces: int = 0
    bridges: int = 0
    aliases: int = 0
    rules: int = 0
    routes: int = 0
    vpns: int = 0

    def render(self) -> str:
        return (
            f"convert_summary interfaces={self.interfaces} bridges={self.bridges} "
            f"aliases={self.aliases} rules={self.rules} routes={self.routes} vpns={self.vpns}"
        )

    def to_dict(self) -> dict:
        return {
            "interfaces": self.interfaces,
            "bridges": self.bridges,
            "aliases": self.aliases,
            "rules": self.rules,
            "routes": self.routes,
            "vpns": self.vpns,
        }


@dataclass
class ConversionResult:
    """Everything a conversion produced."""
    output: XmlNode
    source_dialect: Dialect
    target_dialect: Dialect
    backend: DhcpBackend
    summary: ConversionSummary
    warnings: list[MigrationWarning] = field(default_factory=list)
    migration: Optional[KeaMigrationStats] = None
    fell_back: bool = False
    preserve_ipv6_legacy: bool = False
    removed_interfaces: list[str] = field(default_factory=list)
    removed_sections: list[str] = field(default_factory=list)
    logical_map: dict[str, str] = field(default_factory=dict)

    @property
    def warning_messages(self) -> list[str]:
        return [w.message for w in self.warnings]
