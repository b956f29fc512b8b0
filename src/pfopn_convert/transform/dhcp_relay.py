"""DHCP relay settings.

Both dialects may carry the flat ``dhcrelay``/``dhcp6relay`` sections; these
are copied through as is. Dialect O additionally keeps the relay plugin model
``OPNsense/DHCRelay`` (``destinations`` plus one ``relays`` entry per
interface), which is rebuilt from the flat sections on the way to O and
flattened back on the way to P.
"""
import logging
from typing import Optional

from ..tree import XmlNode, bool_text, instance_uuid, is_truthy

logger = logging.getLogger(__name__)

RELAY_TAGS = ("dhcrelay", "dhcrelay6", "dhcp6relay")
PLUGIN_VERSION = "1.0.1"
PLUGIN_DESCRIPTION = "DHCRelay configuration"
RELAY_UUID_OFFSET = 100


def sync_relay_sections(out: XmlNode, source: XmlNode) -> None:
    out.remove_children(*RELAY_TAGS)
    for node in source.children:
        if node.tag in RELAY_TAGS:
            out.append(node.clone())


def relay_enabled(relay: XmlNode) -> bool:
    """A present ``enable`` that is empty or truthy."""
    flag = relay.child("enable")
    if flag is None:
        return False
    text = (flag.text or "").strip()
    return not text or is_truthy(text)


def _split(value: Optional[str]) -> list[str]:
    return [token.strip() for token in (value or "").split(",") if token.strip()]


def build_plugin(source: XmlNode) -> Optional[XmlNode]:
    """Rebuild ``DHCRelay`` from the source's flat relay sections."""
    entries = []
    if source.child("dhcrelay") is not None:
        entries.append((source.child("dhcrelay"), "v4"))
    relay6 = source.child("dhcp6relay") or source.child("dhcrelay6")
    if relay6 is not None:
        entries.append((relay6, "v6"))
    if not entries:
        return None

    plugin = XmlNode("DHCRelay", {"version": PLUGIN_VERSION, "description": PLUGIN_DESCRIPTION})
    seed = 1
    for relay, family in entries:
        interfaces = _split(relay.text_at("interface"))
        server = relay.value("server")
        if not server or not interfaces:
            logger.debug(f"Skipping {relay.tag}: needs both server and interface")
            continue
        destination_uuid = instance_uuid(seed)
        seed += 1
        destination = plugin.append(XmlNode("destinations", {"uuid": destination_uuid}))
        destination.append_text_child("name", f"relay_destination_{family}")
        destination.append_text_child("server", server)

        enabled = bool_text(relay_enabled(relay))
        for iface in interfaces:
            item = plugin.append(XmlNode("relays", {"uuid": instance_uuid(seed + RELAY_UUID_OFFSET)}))
            seed += 1
            item.append_text_child("enabled", enabled)
            item.append_text_child("interface", iface)
            item.append_text_child("destination", destination_uuid)
            item.append_text_child("agent_info", "0")
            item.append_text_child("carp_depend_on", "")
    return plugin


def flatten_plugin(plugin: XmlNode) -> list[XmlNode]:
    """Turn ``DHCRelay`` back into flat ``dhcrelay``/``dhcp6relay`` sections."""
    servers_by_uuid = {
        dest.attributes.get("uuid"): dest.value("server")
        for dest in plugin.children_named("destinations")
    }
    families = {
        "v4": {"ifaces": [], "servers": [], "enabled": False},
        "v6": {"ifaces": [], "servers": [], "enabled": False},
    }
    for relay in plugin.children_named("relays"):
        iface = relay.value("interface")
        dest = relay.value("destination")
        if not iface or not dest:
            continue
        server = servers_by_uuid.get(dest)
        if not server:
            continue
        bucket = families["v6" if ":" in server else "v4"]
        if iface not in bucket["ifaces"]:
            bucket["ifaces"].append(iface)
        if server not in bucket["servers"]:
            bucket["servers"].append(server)
        if relay.value("enabled") == "1":
            bucket["enabled"] = True

    sections = []
    for family, tag in (("v4", "dhcrelay"), ("v6", "dhcp6relay")):
        bucket = families[family]
        if not bucket["ifaces"] and not bucket["servers"]:
            continue
        relay = XmlNode(tag)
        if bucket["enabled"]:
            relay.append(XmlNode("enable"))
        relay.append_text_child("interface", ",".join(bucket["ifaces"]))
        relay.append_text_child("server", ",".join(bucket["servers"]))
        sections.append(relay)
    return sections


def to_opnsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    plugin = build_plugin(source)
    if plugin is not None:
        container = out.ensure_child("OPNsense")
        container.remove_children("DHCRelay")
        container.append(plugin)
    sync_relay_sections(out, source)


def to_pfsense(out: XmlNode, source: XmlNode, baseline: XmlNode) -> None:
    sync_relay_sections(out, source)
    plugin = source.find("OPNsense", "DHCRelay")
    if plugin is None:
        return
    out.remove_children(*RELAY_TAGS)
    for section in flatten_plugin(plugin):
        out.append(section)
