"""Data model for legacy DHCP harvesting and migration results."""
from dataclasses import dataclass, field, asdict
from enum import Enum
from typing import Optional


@dataclass
class StaticMapV4:
    """IPv4 reservation harvested from ``dhcpd/<iface>/staticmap``."""
    iface: str
    mac: str
    ipaddr: str
    hostname: str = ""
    cid: str = ""
    descr: str = ""


@dataclass
class StaticMapV6:
    """IPv6 reservation harvested from ``dhcpdv6/<iface>/staticmap``."""
    iface: str
    duid: str
    ipaddr: str
    hostname: str = ""
    descr: str = ""
    domain_search: str = ""


@dataclass
class OptionsV4:
    dns_servers: list[str] = field(default_factory=list)
    routers: Optional[str] = None
    domain_name: Optional[str] = None
    domain_search: Optional[str] = None
    ntp_servers: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (
            self.dns_servers
            or self.routers
            or self.domain_name
            or self.domain_search
            or self.ntp_servers
        )


@dataclass
class OptionsV6:
    dns_servers: list[str] = field(default_factory=list)
    domain_search: Optional[str] = None

    @property
    def empty(self) -> bool:
        return not (self.dns_servers or self.domain_search)

    def merge(self, other: "OptionsV6") -> None:
        """Fold options from a second legacy container into this one."""
        for server in other.dns_servers:
            if server not in self.dns_servers:
                self.dns_servers.append(server)
        if self.domain_search is None:
            self.domain_search = other.domain_search


class MigrationSeverity(str, Enum):
    ERROR = "error"
    WARNING = "warning"


@dataclass
class MigrationWarning:
    """Non-fatal migration finding."""
    message: str
    severity: MigrationSeverity = MigrationSeverity.WARNING

    def __str__(self) -> str:
        return self.message


@dataclass
class KeaMigrationStats:
    """Counters and findings returned by the legacy to modern migration."""
    reservations_added_v4: int = 0
    reservations_added_v6: int = 0
    reservations_skipped_conflict_v4: int = 0
    reservations_skipped_conflict_v6: int = 0
    subnets_added_v4: int = 0
    subnets_added_v6: int = 0
    options_applied_v4: int = 0
    options_applied_v6: int = 0
    warnings: list[MigrationWarning] = field(default_factory=list)
    preserved_dhcpdv6_ifaces: list[str] = field(default_factory=list)

    @property
    def has_errors(self) -> bool:
        return any(w.severity == MigrationSeverity.ERROR for w in self.warnings)

    @property
    def v4_activity(self) -> bool:
        return bool(self.subnets_added_v4 or self.reservations_added_v4 or self.options_applied_v4)

    @property
    def v6_activity(self) -> bool:
        return bool(self.subnets_added_v6 or self.reservations_added_v6 or self.options_applied_v6)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["warnings"] = [
            {"message": w.message, "severity": w.severity.value} for w in self.warnings
        ]
        return data
