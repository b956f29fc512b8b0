"""Rewrite P ``phase1``/``phase2`` tunnels into the O Swanctl model.

Each phase1 becomes a ``Connection`` with one ``local`` and one ``remote``
authentication record (plus a ``preSharedKey`` when a key is set). Each
phase2 sharing the phase1's ``ikeid`` becomes a ``child`` linked to that
connection. Identifiers are derived from ``(kind, index, ikeid)``.
"""
import logging

from ...tree import XmlNode, stable_uuid
from .base import base_ipsec, base_swanctl

logger = logging.getLogger(__name__)

CONNECTION_DEFAULTS = {
    "proposals": "default",
    "unique": "no",
    "aggressive": "0",
    "version": "0",
    "pools": "radius",
    "send_certreq": "1",
}


def _text(node: XmlNode, tag: str, default: str = "") -> str:
    value = node.text_at(tag)
    return value.strip() if value is not None else default


def on_off(value: str) -> str:
    return "1" if value.strip().lower() == "on" else "0"


def enabled_from_disabled(node: XmlNode) -> str:
    """A present ``disabled`` element, even an empty one, disables the entry."""
    return "0" if node.child("disabled") is not None else "1"


def auth_method(value: str) -> str:
    return "psk" if value.strip().lower() == "pre_shared_key" else "pubkey"


def start_action(phase1: XmlNode) -> str:
    return "start" if _text(phase1, "startaction", "none").lower() == "start" else "none"


def traffic_selector(selector) -> str:
    """``network`` gives address/netbits, ``address`` the address, ``range`` from-to."""
    if selector is None:
        return ""
    kind = _text(selector, "type").lower()
    if kind == "network":
        address, bits = _text(selector, "address"), _text(selector, "netbits")
        return f"{address}/{bits}" if address and bits else ""
    if kind == "address":
        return _text(selector, "address")
    if kind == "range":
        start, end = _text(selector, "from"), _text(selector, "to")
        return f"{start}-{end}" if start and end else ""
    return ""


def _fields(node: XmlNode, pairs) -> None:
    for tag, value in pairs:
        node.append_text_child(tag, value)


def _connection(phase1: XmlNode, uuid: str) -> XmlNode:
    conn = XmlNode("Connection", {"uuid": uuid})
    _fields(conn, [
        ("enabled", enabled_from_disabled(phase1)),
        ("proposals", CONNECTION_DEFAULTS["proposals"]),
        ("unique", CONNECTION_DEFAULTS["unique"]),
        ("aggressive", CONNECTION_DEFAULTS["aggressive"]),
        ("version", CONNECTION_DEFAULTS["version"]),
        ("mobike", on_off(_text(phase1, "mobike", "off"))),
        ("local_addrs", ""),
        ("local_port", ""),
        ("remote_addrs", _text(phase1, "remote-gateway")),
        ("remote_port", ""),
        ("encap", on_off(_text(phase1, "nat_traversal", "off"))),
        ("reauth_time", ""),
        ("rekey_time", ""),
        ("over_time", ""),
        ("dpd_delay", _text(phase1, "dpd_delay")),
        ("dpd_timeout", _text(phase1, "dpd_maxfail")),
        ("pools", CONNECTION_DEFAULTS["pools"]),
        ("send_certreq", CONNECTION_DEFAULTS["send_certreq"]),
        ("send_cert", ""),
        ("keyingtries", ""),
        ("description", _text(phase1, "descr")),
    ])
    return conn


def _local(phase1: XmlNode, uuid: str, conn_uuid: str) -> XmlNode:
    local = XmlNode("local", {"uuid": uuid})
    _fields(local, [
        ("enabled", enabled_from_disabled(phase1)),
        ("connection", conn_uuid),
        ("round", "0"),
        ("auth", auth_method(_text(phase1, "authentication_method", "pre_shared_key"))),
        ("id", _text(phase1, "myid_data")),
        ("eap_id", ""),
        ("certs", _text(phase1, "certref")),
        ("pubkeys", ""),
        ("description", _text(phase1, "descr")),
    ])
    return local


def _remote(phase1: XmlNode, uuid: str, conn_uuid: str) -> XmlNode:
    remote = XmlNode("remote", {"uuid": uuid})
    _fields(remote, [
        ("enabled", enabled_from_disabled(phase1)),
        ("connection", conn_uuid),
        ("round", "0"),
        ("auth", auth_method(_text(phase1, "authentication_method", "pre_shared_key"))),
        ("id", _text(phase1, "peerid_data")),
        ("eap_id", ""),
        ("groups", ""),
        ("certs", ""),
        ("cacerts", _text(phase1, "caref")),
        ("pubkeys", ""),
        ("description", _text(phase1, "descr")),
    ])
    return remote


def _pre_shared_key(phase1: XmlNode, uuid: str, key: str) -> XmlNode:
    psk = XmlNode("preSharedKey", {"uuid": uuid})
    _fields(psk, [
        ("ident", _text(phase1, "myid_data")),
        ("remote_ident", _text(phase1, "peerid_data")),
        ("keyType", "PSK"),
        ("Key", key),
        ("description", _text(phase1, "descr")),
    ])
    return psk


def _child(phase1: XmlNode, phase2: XmlNode, uuid: str, conn_uuid: str) -> XmlNode:
    child = XmlNode("child", {"uuid": uuid})
    _fields(child, [
        ("enabled", enabled_from_disabled(phase2)),
        ("connection", conn_uuid),
        ("reqid", _text(phase2, "reqid")),
        ("esp_proposals", "default"),
        ("sha256_96", "0"),
        ("start_action", start_action(phase1)),
        ("close_action", "none"),
        ("dpd_action", "clear"),
        ("mode", _text(phase2, "mode", "tunnel")),
        ("policies", "1"),
        ("local_ts", traffic_selector(phase2.child("localid"))),
        ("remote_ts", traffic_selector(phase2.child("remoteid"))),
        ("rekey_time", _text(phase2, "lifetime")),
        ("description", _text(phase2, "descr")),
    ])
    return child


def map_phases(source_ipsec: XmlNode) -> tuple[XmlNode, XmlNode]:
    """
    Build ``(IPsec, Swanctl)`` for dialect O from a P ``ipsec`` section.

    Args:
        source_ipsec: Top-level ``ipsec`` holding ``phase1``/``phase2`` entries

    Returns:
        The ``IPsec`` container (pre-shared keys) and the ``Swanctl`` container
    """
    ipsec = base_ipsec()
    swanctl = base_swanctl()
    phase2s = source_ipsec.children_named("phase2")

    for idx, phase1 in enumerate(source_ipsec.children_named("phase1")):
        ikeid = phase1.value("ikeid") or str(idx + 1)
        conn_uuid = stable_uuid("conn", idx, ikeid)
        swanctl.child("Connections").append(_connection(phase1, conn_uuid))
        swanctl.child("locals").append(
            _local(phase1, stable_uuid("local", idx, ikeid), conn_uuid)
        )
        swanctl.child("remotes").append(
            _remote(phase1, stable_uuid("remote", idx, ikeid), conn_uuid)
        )
        key = _text(phase1, "pre-shared-key")
        if key:
            ipsec.child("preSharedKeys").append(
                _pre_shared_key(phase1, stable_uuid("psk", idx, ikeid), key)
            )

        linked = [p2 for p2 in phase2s if _text(p2, "ikeid") == ikeid]
        for cidx, phase2 in enumerate(linked):
            swanctl.child("children").append(
                _child(phase1, phase2, stable_uuid("child", cidx, ikeid), conn_uuid)
            )
        logger.debug(f"IPsec phase1 ikeid={ikeid}: {len(linked)} child SA(s)")

    return ipsec, swanctl
