"""Dialect and version detection.

The dialect is derived from the document root tag. The version is taken
from the most specific marker available, with a confidence level that
reflects where it was found.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from ..tree import XmlNode


class Dialect(str, Enum):
    """Configuration dialect."""
    PFSENSE = "pfsense"     # dialect P: flat, package-centric
    OPNSENSE = "opnsense"   # dialect O: nested, plugin-centric
    UNKNOWN = "unknown"

    @property
    def root_tag(self) -> str:
        """Canonical root element for documents of this dialect."""
        return self.value

    @property
    def other(self) -> "Dialect":
        if self == Dialect.PFSENSE:
            return Dialect.OPNSENSE
        if self == Dialect.OPNSENSE:
            return Dialect.PFSENSE
        return Dialect.UNKNOWN

    @classmethod
    def parse(cls, value: str) -> Optional["Dialect"]:
        """
        Parse a user-supplied dialect name.

        Accepts the canonical names plus the single-letter forms "p" and "o".
        Returns None for "auto".

        Raises:
            ValueError: If the name is not recognized
        """
        lowered = value.strip().lower()
        if lowered == "auto":
            return None
        aliases = {"p": cls.PFSENSE, "o": cls.OPNSENSE}
        if lowered in aliases:
            return aliases[lowered]
        try:
            return cls(lowered)
        except ValueError:
            raise ValueError(
                f"Invalid dialect: {value}. Must be 'pfsense', 'opnsense' or 'auto'"
            )


class Confidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    NONE = "none"


@dataclass
class VersionInfo:
    """Detected document version and where it came from."""
    value: str
    source: str
    confidence: Confidence

    @property
    def major(self) -> int:
        """Leading numeric component, 0 when unparseable."""
        head = self.value.split(".", 1)[0].strip()
        return int(head) if head.isdigit() else 0


def detect_dialect(root: XmlNode) -> Dialect:
    """Classify a document by its root tag."""
    tag = root.tag.strip().lower()
    if tag == Dialect.PFSENSE.value:
        return Dialect.PFSENSE
    if tag == Dialect.OPNSENSE.value:
        return Dialect.OPNSENSE
    return Dialect.UNKNOWN


def detect_version(root: XmlNode) -> VersionInfo:
    """
    Extract the document version.

    Lookup order: ``<root>/version``, ``system/version``, then the
    ``version`` attribute of ``system/firmware``.
    """
    value = root.value("version")
    if value:
        return VersionInfo(value, f"{root.tag}.version", Confidence.HIGH)

    value = root.value("system", "version")
    if value:
        return VersionInfo(value, f"{root.tag}.system.version", Confidence.MEDIUM)

    firmware = root.find("system", "firmware")
    if firmware is not None:
        attr = firmware.attributes.get("version", "").strip()
        if attr:
            return VersionInfo(attr, f"{root.tag}.system.firmware@version", Confidence.LOW)

    return VersionInfo("unknown", "", Confidence.NONE)


def is_opnsense_at_least(root: XmlNode, major: int) -> bool:
    """True when ``root`` is a dialect-O document whose version major >= ``major``."""
    if detect_dialect(root) != Dialect.OPNSENSE:
        return False
    return detect_version(root).major >= major
