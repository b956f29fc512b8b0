"""Error taxonomy for the conversion engine.

Every fatal condition raised by the pipeline is a ConversionError subclass
tagged with an ErrorKind. Non-fatal findings are never raised; they are
collected as MigrationWarning values on the conversion result.
"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    """Category of a fatal conversion error."""
    INVALID_INPUT = "InvalidInput"
    BASELINE_REJECTED = "BaselineRejected"
    BACKEND_UNREADY = "BackendUnready"
    INCOMPATIBLE_INTERFACES = "IncompatibleInterfaces"
    UNSUPPORTED_MERGE_PATH = "UnsupportedMergePath"
    PARENT_NOT_FOUND = "ParentNotFound"
    MIGRATION_FATAL = "MigrationFatal"
    KEA_ONLY_SOURCE_DOWNGRADE = "KeaOnlySourceDowngrade"
    LAN_OVERRIDE_CONFLICT = "LanOverrideConflict"


class ConversionError(Exception):
    """Base class for fatal conversion errors."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str):
        self.message = message
        super().__init__(f"[{self.kind.value}] {message}")


class InvalidInputError(ConversionError):
    """Source/target unreadable, dialect undetectable or dialect pair invalid."""
    kind = ErrorKind.INVALID_INPUT


class BaselineRejectedError(ConversionError):
    """Target baseline root does not match the requested target dialect."""
    kind = ErrorKind.BASELINE_REJECTED


class BackendUnreadyError(ConversionError):
    """Target baseline lacks structures required by the effective DHCP backend."""
    kind = ErrorKind.BACKEND_UNREADY


class IncompatibleInterfacesError(ConversionError):
    """Source interfaces have no target counterpart and are not virtual."""
    kind = ErrorKind.INCOMPATIBLE_INTERFACES

    def __init__(self, message: str, missing: Optional[list[str]] = None):
        self.missing = list(missing or [])
        super().__init__(message)


class UnsupportedMergePathError(ConversionError):
    kind = ErrorKind.UNSUPPORTED_MERGE_PATH

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"unsupported diff path for merge: {path}")


class ParentNotFoundError(ConversionError):
    kind = ErrorKind.PARENT_NOT_FOUND

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"parent path not found in target tree: {path}")


class MigrationFatalError(ConversionError):
    """Legacy to modern DHCP migration cannot proceed."""
    kind = ErrorKind.MIGRATION_FATAL


class KeaOnlySourceDowngradeError(ConversionError):
    kind = ErrorKind.KEA_ONLY_SOURCE_DOWNGRADE


class LanOverrideConflictError(ConversionError):
    """LAN IPv4 override cannot be applied."""
    kind = ErrorKind.LAN_OVERRIDE_CONFLICT

    def __init__(self, message: str, interface: str = ""):
        self.interface = interface
        super().__init__(message)
