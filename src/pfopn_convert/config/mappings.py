"""Mapping tables consumed by the diff engine and the orchestrator.

Built-in defaults cover everything the engine needs. A YAML file can
override individual tables. ``key_fields`` entries merge over the defaults
(a null value removes one); the other tables are replaced wholesale:

```yaml
key_fields:
  rule: tracker
  alias: name
  user: name
synced_sections: [version, system, interfaces, filter, nat]
ignore_paths:
  - revision
section_mappings:
  - left: installedpackages
    right: [OPNsense]
    category: packages
    note: pfSense packages typically move under the OPNsense plugin container
```
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Union

import yaml

from ..errors import InvalidInputError
from ..transform import DEFAULT_SYNCED_SECTIONS

logger = logging.getLogger(__name__)

DEFAULT_KEY_FIELDS = {
    "rule": "tracker",
    "alias": "name",
    "user": "name",
}

DEFAULT_SECTION_CATEGORIES = {
    "system": ["system"],
    "interfaces": ["interfaces"],
    "firewall": ["filter", "nat", "shaper"],
    "services": ["dnsmasq", "unbound", "dhcpd", "ntpd"],
    "vpn": ["openvpn", "ipsec", "wireguard"],
    "packages": ["installedpackages", "OPNsense"],
}


@dataclass
class SectionMapping:
    """Known relationship between a dialect-P section and its dialect-O homes."""
    left: str
    right: list[str]
    category: str
    note: str = ""


DEFAULT_SECTION_MAPPINGS = (
    SectionMapping("installedpackages", ["OPNsense"], "packages",
                   "pfSense packages typically move under the OPNsense plugin container"),
    SectionMapping("aliases", ["Alias", "aliases"], "firewall",
                   "OPNsense aliases are nested under OPNsense.Firewall.Alias"),
    SectionMapping("gateways", ["Gateways", "gateway"], "network",
                   "gateway definitions may live under the OPNsense plugin subtree"),
    SectionMapping("shaper", ["TrafficShaper", "shaper"], "firewall",
                   "traffic shaper settings move to the plugin namespace"),
    SectionMapping("cron", ["cron"], "system",
                   "cron commonly appears under the OPNsense plugin tree"),
    SectionMapping("dhcpd", ["dhcpd", "Kea", "isc", "DHCRelay"], "dhcp",
                   "legacy ISC DHCP may map to dhcpd, relay or Kea settings"),
    SectionMapping("dhcpdv6", ["dhcpd6", "dhcpdv6", "Kea", "isc"], "dhcp",
                   "IPv6 DHCP appears as dhcpd6/dhcpdv6 or Kea/ISC variants"),
    SectionMapping("dnsmasq", ["dnsmasq"], "dns",
                   "dnsmasq may be enabled directly or in the plugin subtree"),
    SectionMapping("tailscale", ["tailscale"], "vpn",
                   "OPNsense stores Tailscale under OPNsense.tailscale"),
    SectionMapping("wireguard", ["wireguard"], "vpn",
                   "pfSense keeps WireGuard under installedpackages, OPNsense under OPNsense.wireguard"),
)


@dataclass
class MappingTables:
    """External data the engine is constructed with."""
    key_fields: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_KEY_FIELDS))
    synced_sections: list[str] = field(default_factory=lambda: list(DEFAULT_SYNCED_SECTIONS))
    section_categories: dict[str, list[str]] = field(
        default_factory=lambda: {k: list(v) for k, v in DEFAULT_SECTION_CATEGORIES.items()}
    )
    section_mappings: list[SectionMapping] = field(
        default_factory=lambda: list(DEFAULT_SECTION_MAPPINGS)
    )
    ignore_paths: list[str] = field(default_factory=list)

    def section_tags(self, category: str) -> Optional[list[str]]:
        """Concrete top-level tags for a logical section name."""
        return self.section_categories.get(category)

    def mappings_for(self, tag: str) -> list[SectionMapping]:
        return [m for m in self.section_mappings if m.left == tag or tag in m.right]


def _as_list(value, name: str) -> list[str]:
    if not isinstance(value, list):
        raise InvalidInputError(f"mapping table {name} must be a list")
    return [str(item) for item in value]


def load_mappings(path: Optional[Union[str, Path]] = None) -> MappingTables:
    """
    Load mapping tables, overriding the built-in defaults from YAML.

    Args:
        path: YAML file; None returns the defaults

    Raises:
        InvalidInputError: Unreadable or malformed file
    """
    tables = MappingTables()
    if path is None:
        return tables

    try:
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        raise InvalidInputError(f"failed to read mappings file {path}: {e}") from e
    if not isinstance(raw, dict):
        raise InvalidInputError(f"mappings file {path} must be a mapping")

    # Merge over defaults rather than replacing them
    key_fields = raw.get("key_fields") or {}
    if not isinstance(key_fields, dict):
        raise InvalidInputError("mapping table key_fields must be a mapping")
    for tag, key in key_fields.items():
        if key is None:
            tables.key_fields.pop(tag, None)
        else:
            tables.key_fields[str(tag)] = str(key)

    if "synced_sections" in raw:
        tables.synced_sections = _as_list(raw["synced_sections"], "synced_sections")
    if "ignore_paths" in raw:
        tables.ignore_paths = _as_list(raw["ignore_paths"], "ignore_paths")

    for category, tags in (raw.get("section_categories") or {}).items():
        tables.section_categories[str(category)] = _as_list(tags, f"section_categories.{category}")

    if "section_mappings" in raw:
        mappings = []
        for entry in raw["section_mappings"] or []:
            try:
                mappings.append(SectionMapping(
                    left=str(entry["left"]),
                    right=[str(r) for r in entry.get("right", [])],
                    category=str(entry.get("category", "")),
                    note=str(entry.get("note", "")),
                ))
            except (KeyError, TypeError, AttributeError) as e:
                raise InvalidInputError(f"invalid section mapping entry {entry!r}") from e
        tables.section_mappings = mappings

    logger.debug(
        f"Loaded mappings from {path}: key_fields={tables.key_fields}, "
        f"synced_sections={len(tables.synced_sections)}, ignore_paths={len(tables.ignore_paths)}"
    )
    return tables
