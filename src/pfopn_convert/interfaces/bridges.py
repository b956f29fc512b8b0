"""Bridge identifiers: dialect O keys ``bridged`` entries by uuid, P does not."""
from ..tree import XmlNode, stable_uuid


def _bridged(out: XmlNode) -> list[XmlNode]:
    bridges = out.child("bridges")
    return bridges.children_named("bridged") if bridges is not None else []


def to_opnsense(out: XmlNode) -> int:
    added = 0
    for idx, bridge in enumerate(_bridged(out)):
        if "uuid" in bridge.attributes:
            continue
        seed = bridge.value("members") or bridge.value("bridgeif") or "bridge"
        bridge.attributes["uuid"] = stable_uuid("bridge", idx, seed)
        added += 1
    return added


def to_pfsense(out: XmlNode) -> int:
    stripped = 0
    for bridge in _bridged(out):
        if bridge.attributes.pop("uuid", None) is not None:
            stripped += 1
    return stripped
