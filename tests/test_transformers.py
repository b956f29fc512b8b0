"""Tests for the per-section dialect transformers."""
import pytest

from pfopn_convert.detect import Dialect
from pfopn_convert.transform import (
    aliases,
    certs,
    dhcp_relay,
    identity,
    ipsec,
    openvpn,
    ppps,
    staticroutes,
    system_users,
    tailscale,
    transformers_for,
    users,
    wireguard,
)
from pfopn_convert.transform.dependency_transfer import transfer_by_refid, transfer_users
from pfopn_convert.transform.ipsec.mapper import map_phases, traffic_selector
from pfopn_convert.transform.openvpn import opn_to_pf, pf_to_opn
from pfopn_convert.transform.section_sync import sync_shared_sections
from pfopn_convert.transform.wireguard import common as wg_common
from pfopn_convert.transform.wireguard import opn_to_pf as wg_opn_to_pf
from pfopn_convert.transform.wireguard import pf_to_opn as wg_pf_to_opn
from pfopn_convert.tree import XmlNode, instance_uuid, parse_bytes, stable_uuid


def names(container, tag="alias"):
    return [node.value("name") for node in container.children_named(tag)]


class TestPipeline:
    def test_order_is_fixed(self):
        """Transformers run in a fixed order."""
        order = [name for name, _ in transformers_for(Dialect.OPNSENSE)]
        assert order[:3] == ["identity", "users", "system_users"]
        assert order[-1] == "certs"

    def test_unknown_dialect(self):
        """Unknown dialect raises ValueError."""
        with pytest.raises(ValueError):
            transformers_for(Dialect.UNKNOWN)


class TestAliases:
    """Alias relocation and case-insensitive dedup."""

    def test_dedup_keeps_existing_spelling(self):
        """Test dedup keeps the first spelling of a name."""
        container = parse_bytes("<aliases><alias><name>Web</name></alias></aliases>")
        source = parse_bytes(
            "<aliases>"
            "<alias><name>web</name><address>10.0.0.1</address></alias>"
            "<alias><name>WEB</name><address>10.0.0.2</address></alias>"
            "<alias><name>dns</name></alias>"
            "</aliases>"
        ).children_named("alias")
        assert aliases.replace_aliases(container, source) == 2
        assert names(container) == ["Web", "dns"]
        assert container.child("alias").value("address") == "10.0.0.1"

    def test_to_opnsense_relocates(self):
        """Flat aliases move under OPNsense.Firewall.Alias."""
        source = parse_bytes("<pfsense><aliases><alias><name>lan_hosts</name></alias></aliases></pfsense>")
        out = parse_bytes("<opnsense/>")
        aliases.to_opnsense(out, source, out.clone())
        assert names(out.find(*aliases.OPNSENSE_ALIAS_PATH)) == ["lan_hosts"]

    def test_to_pfsense_flattens(self):
        """Nested aliases come back to the top level."""
        source = parse_bytes(
            "<opnsense><OPNsense><Firewall><Alias><aliases>"
            "<alias><name>a</name></alias>"
            "</aliases></Alias></Firewall></OPNsense></opnsense>"
        )
        out = parse_bytes("<pfsense/>")
        aliases.to_pfsense(out, source, out.clone())
        assert names(out.child("aliases")) == ["a"]


class TestIdentity:
    def test_copies_identity_fields(self):
        """Hostname and DNS servers follow the source."""
        source = parse_bytes(
            "<pfsense><system><hostname>edge</hostname>"
            "<dnsserver>9.9.9.9</dnsserver><dnsserver>8.8.8.8</dnsserver></system></pfsense>"
        )
        out = parse_bytes(
            "<opnsense><system><hostname>old</hostname><domain>home.arpa</domain>"
            "<dnsserver>1.1.1.1</dnsserver></system></opnsense>"
        )
        identity.to_opnsense(out, source, out.clone())
        system = out.child("system")
        assert system.value("hostname") == "edge"
        assert system.value("domain") == "home.arpa"
        assert [n.value() for n in system.children_named("dnsserver")] == ["9.9.9.9", "8.8.8.8"]

    def test_empty_source_list_clears(self):
        """An empty source list clears the target's."""
        source = parse_bytes("<pfsense><system/></pfsense>")
        out = parse_bytes("<opnsense><system><dnsserver>1.1.1.1</dnsserver></system></opnsense>")
        identity.to_opnsense(out, source, out.clone())
        assert out.child("system").children_named("dnsserver") == []


class TestUsers:
    def test_admin_renamed_and_not_duplicated(self):
        """admin becomes root without a second root."""
        source = parse_bytes(
            "<pfsense><system>"
            "<user><name>admin</name></user><user><name>alice</name></user>"
            "</system></pfsense>"
        )
        out = parse_bytes("<opnsense><system><user><name>root</name></user></system></opnsense>")
        users.to_opnsense(out, source, out.clone())
        assert names(out.child("system"), "user") == ["root", "alice"]


class TestSystemUsers:
    """Login administrator mapping and GUI users."""

    SOURCE = """
    <pfsense><system>
      <user><name>admin</name><uid>0</uid><bcrypt-hash>$2y$pf</bcrypt-hash></user>
      <user>
        <name>bob</name><uid>2000</uid><groupname>admins</groupname>
        <bcrypt-hash>$2y$bob</bcrypt-hash><expires>2030-01-01</expires>
      </user>
      <user><name>carol</name><uid>2001</uid><priv>page-all</priv><disabled>1</disabled></user>
      <user><name>dave</name><uid>2002</uid><priv>user-shell-access</priv></user>
    </system></pfsense>
    """

    def test_to_opnsense(self):
        """Test admin credential and GUI users on O."""
        out = parse_bytes(
            "<opnsense><system><user><name>root</name><uid>0</uid>"
            "<password>old</password></user></system></opnsense>"
        )
        system_users.to_opnsense(out, parse_bytes(self.SOURCE), out.clone())

        system = out.child("system")
        assert names(system, "user") == ["root", "bob"]
        root = system.child("user")
        assert root.value("password") == "$2y$pf"
        bob = system.children_named("user")[1]
        assert bob.value("password") == "$2y$bob"
        assert bob.child("bcrypt-hash") is None
        assert bob.child("expires") is None

    def test_to_pfsense(self):
        """root credential lands on admin."""
        source = parse_bytes(
            "<opnsense><system><user><name>root</name><uid>0</uid>"
            "<password>$2y$opn</password></user></system></opnsense>"
        )
        out = parse_bytes(
            "<pfsense><system><user><name>admin</name><uid>0</uid>"
            "<bcrypt-hash>old</bcrypt-hash></user></system></pfsense>"
        )
        system_users.to_pfsense(out, source, out.clone())
        admin = out.find("system", "user")
        assert admin.value("bcrypt-hash") == "$2y$opn"
        assert names(out.child("system"), "user") == ["admin"]

    def test_credential_priority(self):
        """bcrypt-hash wins over sha512-hash."""
        user = parse_bytes(
            "<user><sha512-hash>s</sha512-hash><bcrypt-hash>b</bcrypt-hash></user>"
        )
        assert system_users.user_credential(user) == "b"

    def test_gui_user_filter(self):
        """Disabled and shell-only users are skipped."""
        found = system_users.collect_gui_users(parse_bytes(self.SOURCE))
        assert [u.name for u in found] == ["bob"]


class TestOpenVpn:
    """OpenVPN instance mapping."""

    def test_pf_to_opn_reconciles_vpnid(self):
        """vpnid follows the assigned ovpns device."""
        source = parse_bytes(
            "<pfsense>"
            "<interfaces><opt1><if>ovpns2</if></opt1></interfaces>"
            "<openvpn><openvpn-server>"
            "<vpnid>1</vpnid><disable/><local_port>1194</local_port>"
            "<push_blockoutsidedns>yes</push_blockoutsidedns>"
            "</openvpn-server></openvpn>"
            "</pfsense>"
        )
        baseline = parse_bytes(
            "<opnsense><OPNsense><OpenVPN><Instances>"
            '<Instance uuid="t"><keepalive_interval>10</keepalive_interval></Instance>'
            "</Instances></OpenVPN></OPNsense></opnsense>"
        )
        instances = pf_to_opn.map_instances(source, baseline)
        instance = instances.child("Instance")
        assert instance.attributes["uuid"] == instance_uuid(2)
        assert instance.value("vpnid") == "2"
        assert instance.value("enabled") == "0"
        assert instance.value("port") == "1194"
        assert instance.value("various_push_flags") == "block-outside-dns"
        assert instance.value("register_dns") == "0"
        assert instance.value("keepalive_interval") == "10"

    def test_opn_to_pf_client_remote(self):
        """Client remotes split into address and port."""
        source = parse_bytes(
            "<opnsense><OPNsense><OpenVPN><Instances>"
            '<Instance uuid="c-1"><role>client</role><remote>vpn.example.com:1194</remote>'
            "<proto>tcp</proto><username>joe</username></Instance>"
            "</Instances></OpenVPN></OPNsense></opnsense>"
        )
        client = opn_to_pf.map_instances(source).child("openvpn-client")
        assert client.value("opnsense_instance_uuid") == "c-1"
        assert client.value("server_addr") == "vpn.example.com"
        assert client.value("server_port") == "1194"
        assert client.value("protocol") == "TCP"
        assert client.value("auth_user") == "joe"

    def test_to_opnsense_keeps_legacy_section(self):
        """One legacy openvpn section is kept next to the instances."""
        source = parse_bytes(
            "<pfsense><openvpn><openvpn-server><vpnid>1</vpnid></openvpn-server></openvpn></pfsense>"
        )
        out = parse_bytes("<opnsense><openvpn/><openvpn/></opnsense>")
        openvpn.to_opnsense(out, source, parse_bytes("<opnsense/>"))
        top = out.children_named("openvpn")
        assert len(top) == 1
        assert top[0].child("openvpn-server") is not None
        assert out.find("OPNsense", "OpenVPN", "Instances", "Instance") is not None

    def test_nothing_to_map(self):
        """Nothing is added without OpenVPN config."""
        out = parse_bytes("<opnsense/>")
        openvpn.to_opnsense(out, parse_bytes("<pfsense/>"), out.clone())
        assert out.children == []


class TestIpsec:
    """Phase rewriting into the Swanctl model."""

    SOURCE = """
    <ipsec>
      <phase1>
        <ikeid>1</ikeid><descr>hq</descr>
        <remote-gateway>203.0.113.5</remote-gateway>
        <authentication_method>pre_shared_key</authentication_method>
        <pre-shared-key>secret</pre-shared-key>
        <myid_data>edge</myid_data>
        <mobike>on</mobike>
      </phase1>
      <phase1>
        <ikeid>2</ikeid><disabled/>
        <authentication_method>cert</authentication_method>
        <caref>ca9</caref>
      </phase1>
      <phase2>
        <ikeid>1</ikeid>
        <localid><type>network</type><address>10.0.0.0</address><netbits>24</netbits></localid>
        <remoteid><type>address</type><address>10.9.9.9</address></remoteid>
      </phase2>
    </ipsec>
    """

    def test_connections_and_children(self):
        """Phase 1 and phase 2 become connections and children."""
        ipsec_node, swanctl = map_phases(parse_bytes(self.SOURCE))
        connections = swanctl.child("Connections").children_named("Connection")
        assert len(connections) == 2
        conn_uuid = stable_uuid("conn", 0, "1")
        assert connections[0].attributes["uuid"] == conn_uuid
        assert connections[0].value("remote_addrs") == "203.0.113.5"
        assert connections[0].value("mobike") == "1"

        child = swanctl.find("children", "child")
        assert child.value("connection") == conn_uuid
        assert child.value("local_ts") == "10.0.0.0/24"
        assert child.value("remote_ts") == "10.9.9.9"
        assert len(swanctl.child("children").children) == 1

    def test_auth_and_keys(self):
        """Auth methods map and PSKs move to preSharedKeys."""
        ipsec_node, swanctl = map_phases(parse_bytes(self.SOURCE))
        remotes = swanctl.child("remotes").children_named("remote")
        assert [r.value("auth") for r in remotes] == ["psk", "pubkey"]
        assert remotes[1].value("cacerts") == "ca9"
        assert remotes[1].text_at("enabled") == "0"
        keys = ipsec_node.child("preSharedKeys").children_named("preSharedKey")
        assert len(keys) == 1
        assert keys[0].value("Key") == "secret"
        assert keys[0].value("ident") == "edge"

    @pytest.mark.parametrize("xml,expected", [
        ("<id><type>range</type><from>10.0.0.1</from><to>10.0.0.9</to></id>", "10.0.0.1-10.0.0.9"),
        ("<id><type>network</type><address>10.0.0.0</address></id>", ""),
        ("<id><type>lan</type></id>", ""),
    ])
    def test_traffic_selector(self, xml, expected):
        """Selectors render ranges and drop incomplete networks."""
        assert traffic_selector(parse_bytes(xml)) == expected

    def test_to_opnsense(self):
        """Legacy and Swanctl sections both land on O."""
        source = XmlNode("pfsense", children=[parse_bytes(self.SOURCE)])
        out = parse_bytes("<opnsense/>")
        ipsec.to_opnsense(out, source, out.clone())
        assert out.find("ipsec", "phase1") is not None
        assert out.find("OPNsense", "Swanctl", "Connections", "Connection") is not None
        assert out.find("OPNsense", "IPsec", "preSharedKeys", "preSharedKey") is not None

    def test_to_pfsense_from_nested(self):
        """Nested IPsec returns to the top level."""
        source = parse_bytes(
            "<opnsense><OPNsense><IPsec><general><enabled>1</enabled></general></IPsec>"
            "<Swanctl><Connections/></Swanctl></OPNsense></opnsense>"
        )
        out = parse_bytes("<pfsense/>")
        ipsec.to_pfsense(out, source, out.clone())
        assert out.value("ipsec", "general", "enabled") == "1"
        assert out.find("OPNsense", "Swanctl") is not None


class TestWireGuard:
    """Tunnel/peer and server/client mapping."""

    PF_CONFIG = """
    <wireguard>
      <tunnels><item>
        <name>tun_wg0</name><enabled>yes</enabled><listenport>51820</listenport>
        <addresses>10.6.0.1/24</addresses>
      </item></tunnels>
      <peers><item>
        <tun>tun_wg0</tun><enabled>yes</enabled><publickey>PK</publickey>
        <allowedips><row><address>10.6.0.2</address><mask>32</mask></row></allowedips>
      </item></peers>
      <config><enable>on</enable></config>
    </wireguard>
    """

    def test_pf_to_opn_links_peers(self):
        """Servers reference their peers by uuid."""
        mapped = wg_pf_to_opn.map_wireguard(parse_bytes(self.PF_CONFIG))
        client = mapped.find("client", "clients", "client")
        server = mapped.find("server", "servers", "server")
        assert server.value("peers") == client.attributes["uuid"]
        assert server.value("instance") == "0"
        assert server.value("port") == "51820"
        assert client.value("tunneladdress") == "10.6.0.2/32"
        assert mapped.value("general", "enabled") == "1"

    def test_snapshot_restored_verbatim(self):
        """A stored O snapshot is restored as is."""
        config = parse_bytes(
            "<wireguard><opnsense_wireguard_snapshot>"
            '<server><servers><server uuid="srv-1"/></servers></server>'
            "</opnsense_wireguard_snapshot></wireguard>"
        )
        mapped = wg_pf_to_opn.map_wireguard(config)
        assert mapped.tag == "wireguard"
        assert mapped.find("server", "servers", "server").attributes["uuid"] == "srv-1"

    def test_opn_to_pf_names_tunnels(self):
        """Servers become tun_ tunnels with matching peers."""
        wireguard_node = parse_bytes(
            "<wireguard><general><enabled>1</enabled></general>"
            '<server><servers><server uuid="s"><name>home</name><peers>c</peers></server></servers></server>'
            '<client><clients><client uuid="c"><tunneladdress>10.6.0.2</tunneladdress></client></clients></client>'
            "</wireguard>"
        )
        mapped = wg_opn_to_pf.map_wireguard(wireguard_node)
        assert mapped.value("tunnels", "item", "name") == "tun_home"
        peer = mapped.find("peers", "item")
        assert peer.value("tun") == "tun_home"
        assert peer.value("allowedips", "row", "mask") == "32"
        assert mapped.value("config", "enable") == "on"
        assert mapped.child(wg_pf_to_opn.SNAPSHOT_TAG) is not None

    def test_normalize_interface_names(self):
        """Interface devices are rewritten to wgN."""
        out = parse_bytes(
            "<opnsense>"
            "<interfaces><opt2><if>tun_wg3</if></opt2><opt3><if>home</if></opt3></interfaces>"
            "<OPNsense><wireguard><server><servers>"
            "<server><name>home</name><instance>1</instance></server>"
            "</servers></server></wireguard></OPNsense>"
            "</opnsense>"
        )
        assert wg_common.normalize_interface_names(out) == 2
        assert out.value("interfaces", "opt2", "if") == "wg3"
        assert out.value("interfaces", "opt3", "if") == "wg1"

    def test_assignment_synthesized(self):
        """A wireguard assignment is added on O."""
        source = parse_bytes(f"<pfsense><installedpackages>{self.PF_CONFIG}</installedpackages></pfsense>")
        out = parse_bytes("<opnsense/>")
        wireguard.to_opnsense(out, source, out.clone())
        assert out.value("interfaces", "wireguard", "if") == "tun_wg0"
        assert out.find("OPNsense", "wireguard", "server") is not None


class TestDhcpRelay:
    SOURCE = """
    <pfsense>
      <dhcrelay><enable/><interface>lan,opt1</interface><server>10.0.0.2</server></dhcrelay>
    </pfsense>
    """

    def test_build_plugin(self):
        """Relay config becomes destinations and per-interface relays."""
        plugin = dhcp_relay.build_plugin(parse_bytes(self.SOURCE))
        destination = plugin.child("destinations")
        assert destination.attributes["uuid"] == instance_uuid(1)
        assert destination.value("name") == "relay_destination_v4"
        relays = plugin.children_named("relays")
        assert [r.attributes["uuid"] for r in relays] == [instance_uuid(102), instance_uuid(103)]
        assert [r.value("interface") for r in relays] == ["lan", "opt1"]
        assert all(r.value("enabled") == "1" for r in relays)

    def test_flatten_plugin(self):
        """Plugin relays flatten back to dhcrelay."""
        plugin = dhcp_relay.build_plugin(parse_bytes(self.SOURCE))
        sections = dhcp_relay.flatten_plugin(plugin)
        assert [s.tag for s in sections] == ["dhcrelay"]
        assert sections[0].child("enable") is not None
        assert sections[0].value("interface") == "lan,opt1"
        assert sections[0].value("server") == "10.0.0.2"

    def test_missing_server_skipped(self):
        """No server means no plugin entries."""
        source = parse_bytes("<pfsense><dhcrelay><interface>lan</interface></dhcrelay></pfsense>")
        assert dhcp_relay.build_plugin(source).children == []

    def test_to_opnsense(self):
        """Both the flat and plugin sections are written."""
        out = parse_bytes("<opnsense/>")
        dhcp_relay.to_opnsense(out, parse_bytes(self.SOURCE), out.clone())
        assert out.child("dhcrelay") is not None
        assert out.find("OPNsense", "DHCRelay", "relays") is not None


class TestSimpleSections:
    def test_staticroutes(self):
        """Routes get uuid and disabled on O and lose them on P."""
        out = parse_bytes(
            "<opnsense><staticroutes><route><network>10.1.0.0/16</network>"
            "<gateway>GW</gateway></route></staticroutes></opnsense>"
        )
        staticroutes.to_opnsense(out, out.clone(), out.clone())
        route = out.find("staticroutes", "route")
        assert "uuid" in route.attributes
        assert route.text_at("disabled") == "0"

        staticroutes.to_pfsense(out, out.clone(), out.clone())
        assert route.attributes == {}
        assert route.child("disabled") is None

    def test_certs(self):
        """CAs and certs gain a uuid on O only."""
        out = parse_bytes("<opnsense><ca><refid>r1</refid></ca><cert><refid>c1</refid></cert></opnsense>")
        certs.to_opnsense(out, out.clone(), out.clone())
        assert out.child("ca").attributes["uuid"] == stable_uuid("ca", 0, "r1")
        certs.to_pfsense(out, out.clone(), out.clone())
        assert "uuid" not in out.child("cert").attributes

    def test_tailscale(self):
        """Tailscale moves between installedpackages and OPNsense."""
        source = parse_bytes(
            "<pfsense><installedpackages><tailscale><enable>on</enable></tailscale>"
            "<tailscaleauth><key>k</key></tailscaleauth></installedpackages></pfsense>"
        )
        out = parse_bytes("<opnsense/>")
        tailscale.to_opnsense(out, source, out.clone())
        assert out.value("OPNsense", "tailscale", "enable") == "on"
        assert out.value("OPNsense", "tailscaleauth", "key") == "k"

        back = parse_bytes("<pfsense/>")
        tailscale.to_pfsense(back, out, back.clone())
        assert back.value("installedpackages", "tailscale", "enable") == "on"

    def test_ppps_replaced(self):
        """Target ppps are replaced by the source's."""
        out = parse_bytes("<opnsense><ppps><ppp><if>old</if></ppp></ppps></opnsense>")
        ppps.to_opnsense(out, parse_bytes("<pfsense/>"), out.clone())
        assert out.child("ppps") is None


class TestSectionSync:
    def test_replace_and_remove(self):
        """Shared sections are replaced or removed."""
        out = parse_bytes(
            "<opnsense><system><hostname>old</hostname></system><nat/><OPNsense/></opnsense>"
        )
        source = parse_bytes("<pfsense><system><hostname>new</hostname></system></pfsense>")
        sync_shared_sections(out, source, ["system", "nat"])
        assert [n.tag for n in out.children] == ["system", "OPNsense"]
        assert out.value("system", "hostname") == "new"


class TestDependencyTransfer:
    def test_transfer_by_refid(self):
        """Only missing refids are copied."""
        out = parse_bytes("<opnsense><ca><refid>a</refid></ca></opnsense>")
        source = parse_bytes(
            "<pfsense><ca><refid>a</refid></ca><ca><refid>b</refid></ca></pfsense>"
        )
        assert transfer_by_refid(out, source, "ca", ["a", "b", "c"]) == 1
        assert [n.value("refid") for n in out.children_named("ca")] == ["a", "b"]

    def test_transfer_users_skips_baseline_users(self):
        """Users already on the baseline are skipped."""
        out = parse_bytes("<opnsense><system/></opnsense>")
        baseline = parse_bytes("<opnsense><system><user><name>bob</name></user></system></opnsense>")
        source = parse_bytes(
            "<pfsense><system><user><name>bob</name></user><user><name>eve</name></user></system></pfsense>"
        )
        assert transfer_users(out, source, baseline, ["bob", "eve"]) == 1
        assert names(out.child("system"), "user") == ["eve"]
