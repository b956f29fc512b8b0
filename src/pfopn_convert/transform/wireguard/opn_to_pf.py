"""Map the O WireGuard plugin (servers/clients) to the P package (tunnels/peers)."""
from ...tree import XmlNode, is_truthy
from .pf_to_opn import SNAPSHOT_TAG

CONFIG_DEFAULTS = (
    ("keep_conf", "yes"),
    ("resolve_interval", "300"),
    ("resolve_interval_track", "no"),
    ("interface_group", "all"),
    ("hide_secrets", "yes"),
    ("hide_peers", "yes"),
)


def _yes_no(value) -> str:
    return "yes" if is_truthy(value) else "no"


def _tunnel_name(server: XmlNode, idx: int) -> str:
    name = server.value("name") or f"tun_wg{idx}"
    return name if name.startswith("tun_") else f"tun_{name}"


def _servers(wireguard: XmlNode) -> list[XmlNode]:
    servers = wireguard.find("server", "servers")
    return servers.children_named("server") if servers is not None else []


def _server_peer_map(wireguard: XmlNode) -> dict[str, str]:
    """Client UUID to the P tunnel name of the server listing it."""
    mapping = {}
    for idx, server in enumerate(_servers(wireguard)):
        tun = _tunnel_name(server, idx)
        for peer_id in (server.value("peers") or "").split(","):
            if peer_id.strip():
                mapping[peer_id.strip()] = tun
    return mapping


def _split_cidr(value: str) -> tuple[str, str]:
    address, sep, mask = value.partition("/")
    return (address.strip(), mask.strip() if sep else "32")


def map_wireguard(wireguard: XmlNode) -> XmlNode:
    """Convert an O ``wireguard`` subtree, embedding it as a round-trip snapshot."""
    out = XmlNode("wireguard")
    peer_map = _server_peer_map(wireguard)

    tunnels = out.append(XmlNode("tunnels"))
    for idx, server in enumerate(_servers(wireguard)):
        item = tunnels.append(XmlNode("item"))
        item.append_text_child("addresses", server.value_or("", "tunneladdress"))
        item.append_text_child("name", _tunnel_name(server, idx))
        item.append_text_child("enabled", _yes_no(server.value("enabled")))
        item.append_text_child("descr", server.value_or("", "name"))
        item.append_text_child("listenport", server.value_or("", "port"))
        item.append_text_child("privatekey", server.value_or("", "privkey"))
        item.append_text_child("publickey", server.value_or("", "pubkey"))
        item.append_text_child("mtu", server.value_or("", "mtu"))

    peers = out.append(XmlNode("peers"))
    clients = wireguard.find("client", "clients")
    for idx, client in enumerate(clients.children_named("client") if clients is not None else []):
        item = peers.append(XmlNode("item"))
        allowed = item.append(XmlNode("allowedips"))
        for cidr in (client.value("tunneladdress") or "").split(","):
            if not cidr.strip():
                continue
            address, mask = _split_cidr(cidr)
            row = allowed.append(XmlNode("row"))
            row.append_text_child("address", address)
            row.append_text_child("mask", mask)
            row.append_text_child("descr", "")
        item.append_text_child("enabled", _yes_no(client.value("enabled")))
        uuid = client.attributes.get("uuid", "")
        item.append_text_child("tun", peer_map.get(uuid, f"tun_wg{idx}"))
        item.append_text_child("descr", client.value_or("imported_peer", "name"))
        item.append_text_child("persistentkeepalive", client.value_or("", "keepalive"))
        item.append_text_child("publickey", client.value_or("", "pubkey"))
        item.append_text_child("presharedkey", client.value_or("", "psk"))

    config = out.append(XmlNode("config"))
    enabled = wireguard.value("general", "enabled") or wireguard.value("general", "enable")
    config.append_text_child("enable", "on" if is_truthy(enabled) else "off")
    for tag, value in CONFIG_DEFAULTS:
        config.append_text_child(tag, value)

    out.append(wireguard.with_tag(SNAPSHOT_TAG))
    return out
