"""Map dialect-O ``Instance`` entries to P ``openvpn-server``/``openvpn-client``."""
from typing import Optional

from ...tree import XmlNode, is_truthy
from .common import INSTANCES_PATH, ROUND_TRIP_ANCHOR, split_csv


def _has_flag(flags: list[str], name: str) -> bool:
    return any(flag.lower() == name for flag in flags)


def _add(node: XmlNode, tag: str, value: Optional[str]) -> None:
    if value:
        node.append_text_child(tag, value)


def _begin(tag: str, instance: XmlNode) -> XmlNode:
    entry = XmlNode(tag)
    uuid = instance.attributes.get("uuid")
    if uuid:
        entry.append_text_child(ROUND_TRIP_ANCHOR, uuid)
    entry.append_text_child("vpnid", instance.value_or("1", "vpnid"))
    if not is_truthy(instance.value_or("1", "enabled")):
        entry.append(XmlNode("disable"))
    return entry


def _map_server(instance: XmlNode) -> XmlNode:
    server = _begin("openvpn-server", instance)
    server.append_text_child("mode", "server_tls")
    server.append_text_child("protocol", instance.value_or("udp", "proto").upper())
    server.append_text_child("dev_mode", instance.value_or("tun", "dev_type").lower())
    server.append_text_child("interface", "wan")
    server.append_text_child("local_port", instance.value_or("", "port"))
    server.append_text_child("description", instance.value_or("", "description"))
    server.append_text_child("caref", instance.value_or("", "ca"))
    server.append_text_child("certref", instance.value_or("", "cert"))
    server.append_text_child("cert_depth", instance.value_or("1", "cert_depth"))
    server.append_text_child("tunnel_network", instance.value_or("", "server"))
    server.append_text_child("local_network", instance.value_or("", "push_route"))
    server.append_text_child("topology", instance.value_or("subnet", "topology"))

    _add(server, "dns_domain", instance.value("dns_domain"))
    _add(server, "dns_domain_search", instance.value("dns_domain_search"))
    for idx, dns in enumerate(split_csv(instance.value("dns_servers"))[:4], start=1):
        server.append_text_child(f"dns_server{idx}", dns)
    for idx, ntp in enumerate(split_csv(instance.value("ntp_servers"))[:2], start=1):
        server.append_text_child(f"ntp_server{idx}", ntp)
    _add(server, "custom_options", instance.value("custom_options"))

    _add(server, "username", instance.value("username"))
    if is_truthy(instance.value("username_as_common_name")):
        server.append_text_child("username_as_common_name", "enabled")
    if is_truthy(instance.value("strictusercn")):
        server.append_text_child("strictusercn", "1")

    flags = split_csv(instance.value("various_push_flags"))
    if _has_flag(flags, "block-outside-dns"):
        server.append_text_child("push_blockoutsidedns", "yes")
    if _has_flag(flags, "register-dns") or is_truthy(instance.value("register_dns")):
        server.append_text_child("push_register_dns", "yes")
    if _has_flag(flags, "explicit-exit-notify"):
        server.append_text_child("exit_notify", "explicit")

    if is_truthy(instance.value("netbios_enable")):
        server.append_text_child("netbios_enable", "yes")
    _add(server, "netbios_ntype", instance.value("netbios_ntype"))
    _add(server, "netbios_scope", instance.value("netbios_scope"))
    return server


def _map_client(instance: XmlNode) -> XmlNode:
    client = _begin("openvpn-client", instance)
    client.append_text_child("mode", "p2p_tls")
    client.append_text_child("protocol", instance.value_or("udp", "proto").upper())
    client.append_text_child("dev_mode", instance.value_or("tun", "dev_type").lower())
    client.append_text_child("interface", "wan")
    remote = instance.value("remote") or ""
    host, _, port = remote.rpartition(":") if remote.count(":") == 1 else (remote, "", "")
    client.append_text_child("server_addr", host)
    client.append_text_child("server_port", port)
    _add(client, "local_port", instance.value("port"))
    client.append_text_child("description", instance.value_or("", "description"))
    client.append_text_child("caref", instance.value_or("", "ca"))
    client.append_text_child("certref", instance.value_or("", "cert"))
    _add(client, "auth_user", instance.value("username"))
    _add(client, "custom_options", instance.value("custom_options"))
    return client


def map_instances(source: XmlNode) -> XmlNode:
    """Build a P ``openvpn`` container from the source's O instances."""
    openvpn = XmlNode("openvpn")
    instances = source.find(*INSTANCES_PATH)
    if instances is None:
        return openvpn
    for instance in instances.children_named("Instance"):
        role = instance.value_or("server", "role").lower()
        if role == "server":
            openvpn.append(_map_server(instance))
        elif role == "client":
            openvpn.append(_map_client(instance))
    return openvpn
