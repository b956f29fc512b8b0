"""Map dialect-P ``openvpn-server``/``openvpn-client`` entries to O instances."""
import logging
from typing import Optional

from ...tree import XmlNode, bool_text, is_truthy
from .common import (
    ROUND_TRIP_ANCHOR,
    assigned_ovpns_units,
    gather_fields,
    instance_template,
    synthetic_instance_uuid,
)

logger = logging.getLogger(__name__)

DNS_FIELDS = ("dns_server1", "dns_server2", "dns_server3", "dns_server4")
NTP_FIELDS = ("ntp_server1", "ntp_server2")


def is_disabled(entry: XmlNode) -> bool:
    """P marks disabled entries with a present ``disable`` (empty or truthy)."""
    flag = entry.child("disable")
    if flag is None:
        return False
    text = (flag.text or "").strip()
    return not text or is_truthy(text)


def _new_instance(template: Optional[XmlNode]) -> XmlNode:
    if template is None:
        return XmlNode("Instance")
    instance = template.clone()
    instance.tag = "Instance"
    return instance


def _common_fields(instance: XmlNode, entry: XmlNode) -> None:
    instance.set_text_child("enabled", bool_text(not is_disabled(entry)))
    instance.set_text_child("dev_type", entry.value_or("tun", "dev_mode").lower())
    instance.set_text_child("proto", entry.value_or("udp", "protocol").lower())
    instance.set_text_child("cert", entry.value_or("", "certref"))
    instance.set_text_child("ca", entry.value_or("", "caref"))
    instance.set_text_child("description", entry.value_or("", "description"))


def _optional(instance: XmlNode, tag: str, value: Optional[str]) -> None:
    if value:
        instance.set_text_child(tag, value)


def _map_server(instance: XmlNode, server: XmlNode) -> None:
    _common_fields(instance, server)
    instance.set_text_child("port", server.value_or("", "local_port"))
    instance.set_text_child("role", "server")
    instance.set_text_child("server", server.value_or("", "tunnel_network"))
    instance.set_text_child("push_route", server.value_or("", "local_network"))
    instance.set_text_child("cert_depth", server.value_or("1", "cert_depth"))
    instance.set_text_child("topology", server.value_or("subnet", "topology"))

    dns = gather_fields(server, DNS_FIELDS)
    if dns:
        instance.set_text_child("dns_servers", ",".join(dns))
    _optional(instance, "dns_domain", server.value("dns_domain"))
    _optional(instance, "dns_domain_search", server.value("dns_domain_search"))
    ntp = gather_fields(server, NTP_FIELDS)
    if ntp:
        instance.set_text_child("ntp_servers", ",".join(ntp))
    _optional(instance, "custom_options", server.value("custom_options"))

    flags = []
    if is_truthy(server.value("push_blockoutsidedns")):
        flags.append("block-outside-dns")
    register_dns = is_truthy(server.value("push_register_dns"))
    if register_dns:
        flags.append("register-dns")
    if (server.value("exit_notify") or "").lower() == "explicit":
        flags.append("explicit-exit-notify")
    instance.set_text_child("register_dns", bool_text(register_dns))
    if flags:
        instance.set_text_child("various_push_flags", ",".join(flags))

    username = server.value("username")
    if username and username != "0":
        instance.set_text_child("username", username)
    if is_truthy(server.value("username_as_common_name")):
        instance.set_text_child("username_as_common_name", "1")
    if is_truthy(server.value("strictusercn")):
        instance.set_text_child("strictusercn", "1")
    if is_truthy(server.value("netbios_enable")):
        instance.set_text_child("netbios_enable", "1")
    _optional(instance, "netbios_ntype", server.value("netbios_ntype"))
    _optional(instance, "netbios_scope", server.value("netbios_scope"))


def _map_client(instance: XmlNode, client: XmlNode) -> None:
    _common_fields(instance, client)
    instance.set_text_child("role", "client")
    host = client.value("server_addr")
    port = client.value("server_port")
    if host:
        instance.set_text_child("remote", f"{host}:{port}" if port else host)
    _optional(instance, "port", client.value("local_port"))
    _optional(instance, "username", client.value("auth_user"))
    _optional(instance, "custom_options", client.value("custom_options"))


def map_instances(source: XmlNode, target: XmlNode) -> XmlNode:
    """
    Build an O ``Instances`` container from the source's P entries.

    Servers get their vpnid reconciled against ``ovpns<N>`` interface
    assignments when the counts line up (or there is exactly one of each).
    A server carrying the round-trip anchor keeps its previous UUID.
    """
    instances = XmlNode("Instances")
    openvpn = source.child("openvpn")
    if openvpn is None:
        return instances

    template = instance_template(target)
    units = assigned_ovpns_units(source)
    servers = openvpn.children_named("openvpn-server")

    for idx, server in enumerate(servers):
        mapped_unit = None
        if len(units) == len(servers):
            mapped_unit = units[idx]
        elif len(servers) == 1 and len(units) == 1:
            mapped_unit = units[0]
        vpnid = mapped_unit or server.value_or("1", "vpnid")
        if mapped_unit and mapped_unit != server.value("vpnid"):
            logger.debug(f"OpenVPN server {idx} vpnid reconciled to ovpns{mapped_unit}")

        instance = _new_instance(template)
        instance.attributes["uuid"] = (
            server.value(ROUND_TRIP_ANCHOR)
            or synthetic_instance_uuid(vpnid, len(instances.children))
        )
        instance.set_text_child("vpnid", vpnid)
        _map_server(instance, server)
        instances.append(instance)

    for client in openvpn.children_named("openvpn-client"):
        vpnid = client.value_or(str(len(instances.children) + 1), "vpnid")
        instance = _new_instance(template)
        instance.attributes["uuid"] = (
            client.value(ROUND_TRIP_ANCHOR)
            or synthetic_instance_uuid(vpnid, len(instances.children))
        )
        instance.set_text_child("vpnid", vpnid)
        _map_client(instance, client)
        instances.append(instance)

    return instances
