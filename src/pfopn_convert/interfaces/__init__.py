"""Interface subsystem: assignments, device names and dialect cleanup."""
from . import (
    assignments,
    bridges,
    device_refs,
    ifgroups,
    lan_ip,
    logical_refs,
    pfblocker,
    presence,
    settings,
    target_prune,
    vlans,
)
from .presence import is_virtual_if_name, is_virtual_backed, prune_missing

__all__ = [
    # Stages
    "settings",
    "presence",
    "assignments",
    "logical_refs",
    "device_refs",
    "target_prune",
    # Dialect cleanup
    "vlans",
    "bridges",
    "ifgroups",
    "pfblocker",
    # LAN override
    "lan_ip",
    # Helpers
    "is_virtual_if_name",
    "is_virtual_backed",
    "prune_missing",
]
