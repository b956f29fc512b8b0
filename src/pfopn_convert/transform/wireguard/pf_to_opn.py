"""Map the P WireGuard package (tunnels/peers) to the O plugin (servers/clients)."""
from collections import defaultdict

from ...tree import XmlNode, bool_text, is_truthy, stable_uuid

SNAPSHOT_TAG = "opnsense_wireguard_snapshot"


def _peer_tunnel_address(peer: XmlNode) -> str:
    allowed = peer.child("allowedips")
    if allowed is None:
        return ""
    cidrs = []
    for row in allowed.children_named("row"):
        address = row.value("address")
        if address:
            cidrs.append(f"{address}/{row.value_or('32', 'mask')}")
    return ",".join(cidrs)


def _instance_id(tun_name: str) -> str:
    digits = "".join(ch for ch in tun_name if ch.isdigit())
    return digits or "0"


def _leaf(node: XmlNode, tag: str, value: str) -> None:
    node.append_text_child(tag, value)


def map_wireguard(config: XmlNode) -> XmlNode:
    """
    Convert a P WireGuard config into an O ``wireguard`` plugin subtree.

    A snapshot left by an earlier O to P conversion is restored verbatim
    instead of mapping field by field.
    """
    snapshot = config.child(SNAPSHOT_TAG)
    if snapshot is not None:
        return snapshot.with_tag("wireguard")

    out = XmlNode("wireguard")
    peers_by_tun: dict[str, list[str]] = defaultdict(list)

    clients = XmlNode("clients")
    peers = config.child("peers")
    for idx, peer in enumerate(peers.children_named("item") if peers is not None else []):
        uuid = stable_uuid("pf-peer", idx, peer.value_or("", "publickey"))
        client = XmlNode("client", {"uuid": uuid})
        _leaf(client, "enabled", bool_text(is_truthy(peer.value("enabled"))))
        _leaf(client, "name", peer.value("descr") or f"wg_peer_{idx + 1}")
        _leaf(client, "pubkey", peer.value_or("", "publickey"))
        _leaf(client, "psk", peer.value_or("", "presharedkey"))
        _leaf(client, "tunneladdress", _peer_tunnel_address(peer))
        _leaf(client, "serveraddress", peer.value_or("", "endpoint", "address"))
        _leaf(client, "serverport", peer.value_or("", "endpoint", "port"))
        _leaf(client, "keepalive", peer.value_or("", "persistentkeepalive"))
        tun = peer.value("tun")
        if tun:
            peers_by_tun[tun].append(uuid)
        clients.append(client)
    out.append(XmlNode("client", children=[clients]))

    general = XmlNode("general")
    enabled = config.value("config", "enable") or config.value("config", "enabled")
    _leaf(general, "enabled", bool_text(is_truthy(enabled)))
    out.append(general)

    servers = XmlNode("servers")
    tunnels = config.child("tunnels")
    for idx, tunnel in enumerate(tunnels.children_named("item") if tunnels is not None else []):
        tun_name = tunnel.value("name") or f"tun_wg{idx}"
        server = XmlNode("server", {"uuid": stable_uuid("pf-tunnel", idx, tun_name)})
        _leaf(server, "enabled", bool_text(is_truthy(tunnel.value("enabled"))))
        _leaf(server, "name", tun_name)
        _leaf(server, "instance", _instance_id(tun_name))
        _leaf(server, "pubkey", tunnel.value_or("", "publickey"))
        _leaf(server, "privkey", tunnel.value_or("", "privatekey"))
        _leaf(server, "port", tunnel.value_or("", "listenport"))
        _leaf(server, "mtu", tunnel.value_or("", "mtu"))
        _leaf(server, "tunneladdress", tunnel.value_or("", "addresses"))
        _leaf(server, "disableroutes", "1")
        _leaf(server, "gateway", "")
        _leaf(server, "carp_depend_on", "")
        _leaf(server, "peers", ",".join(peers_by_tun.get(tun_name, [])))
        _leaf(server, "debug", "0")
        _leaf(server, "endpoint", "")
        _leaf(server, "peer_dns", "")
        servers.append(server)
    out.append(XmlNode("server", children=[servers]))
    return out
