"""DHCP backend policy, legacy to modern migration and disable-all."""
from .policy import (
    BackendRequest,
    DhcpBackend,
    resolve_effective_backend,
    ensure_backend_readiness,
    enforce_output_backend,
    seed_pfsense_kea_from_source,
    guard_kea_only_downgrade,
    firmware_plugins,
)
from .disable import disable_all
from .kea import (
    MigrationSeverity,
    MigrationWarning,
    KeaMigrationStats,
    migrate_isc_to_kea,
    render_migration_summary,
)

__all__ = [
    # Policy
    "BackendRequest",
    "DhcpBackend",
    "resolve_effective_backend",
    "ensure_backend_readiness",
    "enforce_output_backend",
    "seed_pfsense_kea_from_source",
    "guard_kea_only_downgrade",
    "firmware_plugins",
    # Disable
    "disable_all",
    # Migration
    "MigrationSeverity",
    "MigrationWarning",
    "KeaMigrationStats",
    "migrate_isc_to_kea",
    "render_migration_summary",
]
