"""Legacy (ISC) to modern (Kea) DHCP migration."""
from .model import (
    StaticMapV4,
    StaticMapV6,
    OptionsV4,
    OptionsV6,
    MigrationSeverity,
    MigrationWarning,
    KeaMigrationStats,
)
from .extract import isc_iface_enabled, expand_ipv6_in_prefix, normalize_domain_search
from .migrate import migrate_isc_to_kea, render_migration_summary

__all__ = [
    # Model
    "StaticMapV4",
    "StaticMapV6",
    "OptionsV4",
    "OptionsV6",
    "MigrationSeverity",
    "MigrationWarning",
    "KeaMigrationStats",
    # Helpers
    "isc_iface_enabled",
    "expand_ipv6_in_prefix",
    "normalize_domain_search",
    # Migration
    "migrate_isc_to_kea",
    "render_migration_summary",
]
