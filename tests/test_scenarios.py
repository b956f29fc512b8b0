"""End-to-end conversion scenarios."""
import pytest

from pfopn_convert.config import ConversionOptions
from pfopn_convert.config_engine import ConversionEngine, MergeTarget, apply_safe_merge
from pfopn_convert.detect import Dialect
from pfopn_convert.dhcp import BackendRequest, DhcpBackend, migrate_isc_to_kea
from pfopn_convert.dhcp.kea import isc_iface_enabled
from pfopn_convert.errors import ErrorKind, KeaOnlySourceDowngradeError
from pfopn_convert.interfaces import vlans
from pfopn_convert.transform import PIPELINE, transformers_for
from pfopn_convert.tree import parse_bytes, to_string


OPNSENSE_26_BASELINE = """
<opnsense>
  <version>26.1</version>
  <interfaces>
    <lan><if>igb1</if><ipaddr>192.168.1.1</ipaddr><subnet>24</subnet></lan>
  </interfaces>
  <OPNsense>
    <Kea>
      <dhcp4>
        <general><enabled>0</enabled></general>
        <subnets/>
        <reservations/>
      </dhcp4>
      <dhcp6>
        <general><enabled>0</enabled></general>
        <subnets/>
        <reservations/>
      </dhcp6>
    </Kea>
  </OPNsense>
</opnsense>
"""


def convert(source: str, baseline: str, target: Dialect, **options):
    engine = ConversionEngine()
    return engine.convert(
        parse_bytes(source),
        ConversionOptions(target=target, **options),
        parse_bytes(baseline),
    )


class TestLegacyToModernMinimal:
    """A single ISC LAN scope becomes one Kea subnet."""

    SOURCE = """
    <pfsense>
      <interfaces>
        <lan><if>em1</if><ipaddr>192.168.1.1</ipaddr><subnet>24</subnet></lan>
      </interfaces>
      <dhcpd>
        <lan>
          <enable/>
          <range><from>192.168.1.100</from><to>192.168.1.200</to></range>
          <staticmap>
            <mac>aa:bb:cc:dd:ee:ff</mac>
            <ipaddr>192.168.1.25</ipaddr>
            <hostname>printer</hostname>
          </staticmap>
        </lan>
      </dhcpd>
    </pfsense>
    """

    @pytest.fixture
    def result(self):
        return convert(self.SOURCE, OPNSENSE_26_BASELINE, Dialect.OPNSENSE)

    def test_backend_resolves_to_modern(self, result):
        """A version 26 target under auto policy runs Kea."""
        assert result.backend == DhcpBackend.MODERN
        assert result.fell_back is False

    def test_subnet_and_pool(self, result):
        """The LAN range becomes the pool of a /24 subnet."""
        subnets = result.output.find("OPNsense", "Kea", "dhcp4", "subnets").children_named("subnet4")
        assert len(subnets) == 1
        assert subnets[0].value("subnet") == "192.168.1.0/24"
        assert subnets[0].value("pools") == "192.168.1.100-192.168.1.200"

    def test_reservation(self, result):
        """The static mapping becomes a reservation linked to the subnet."""
        dhcp4 = result.output.find("OPNsense", "Kea", "dhcp4")
        reservations = dhcp4.child("reservations").children_named("reservation")
        assert len(reservations) == 1
        res = reservations[0]
        assert res.value("hw_address") == "aa:bb:cc:dd:ee:ff"
        assert res.value("ip_address") == "192.168.1.25"
        assert res.value("hostname") == "printer"
        subnet_uuid = dhcp4.child("subnets").child("subnet4").attributes["uuid"]
        assert res.value("subnet") == subnet_uuid

    def test_kea_enabled_and_legacy_removed(self, result):
        """Kea v4 is enabled and the ISC section is gone."""
        out = result.output
        assert out.value("OPNsense", "Kea", "dhcp4", "general", "enabled") == "1"
        assert out.child("dhcpd") is None

    def test_root_tag(self, result):
        """Output carries the O root tag."""
        assert result.output.tag == "opnsense"

    def test_migration_counters(self, result):
        """One v4 subnet and one reservation are migrated."""
        assert result.migration.subnets_added_v4 == 1
        assert result.migration.reservations_added_v4 == 1
        assert result.migration.subnets_added_v6 == 0


class TestPartialV6Fallback:
    """A v6 range without a derivable prefix stays on the legacy server."""

    SOURCE = """
    <pfsense>
      <interfaces>
        <lan>
          <if>em1</if>
          <ipaddr>192.168.1.1</ipaddr>
          <subnet>24</subnet>
          <ipaddrv6>track6</ipaddrv6>
        </lan>
      </interfaces>
      <dhcpdv6>
        <lan>
          <range><from>::100</from><to>::200</to></range>
        </lan>
      </dhcpdv6>
    </pfsense>
    """

    @pytest.fixture
    def result(self):
        return convert(self.SOURCE, OPNSENSE_26_BASELINE, Dialect.OPNSENSE)

    def test_v4_path_empty(self, result):
        """No v4 scope means no Kea v4 subnet and v4 stays disabled."""
        dhcp4 = result.output.find("OPNsense", "Kea", "dhcp4")
        assert dhcp4.child("subnets").children_named("subnet4") == []
        assert dhcp4.value("general", "enabled") != "1"

    def test_warning_names_interface_and_reason(self, result):
        """The warning explains why the interface was not migrated."""
        matching = [
            msg for msg in result.warning_messages
            if "lan" in msg and "no static IPv6 or no PD indicators" in msg
        ]
        assert len(matching) == 1

    def test_legacy_v6_retained(self, result):
        """The legacy v6 block survives next to modern v4."""
        out = result.output
        assert out.child("dhcpdv6") is not None
        assert out.find("dhcpdv6", "lan") is not None
        assert result.preserve_ipv6_legacy is True
        assert result.migration.preserved_dhcpdv6_ifaces == ["lan"]

    def test_kea_v6_not_enabled(self, result):
        """Kea v6 stays off while v6 is on ISC."""
        assert result.output.value("OPNsense", "Kea", "dhcp6", "general", "enabled") != "1"


class TestKeaOnlySourceToLegacy:
    """A Kea-only source cannot land on the ISC backend."""

    SOURCE = """
    <opnsense>
      <interfaces>
        <lan><if>igb1</if><ipaddr>10.0.0.1</ipaddr><subnet>24</subnet></lan>
      </interfaces>
      <OPNsense>
        <Kea>
          <dhcp4>
            <general><enabled>1</enabled><interfaces>lan</interfaces></general>
            <subnets>
              <subnet4 uuid="s-1"><subnet>10.0.0.0/24</subnet><pools>10.0.0.10-10.0.0.50</pools></subnet4>
            </subnets>
          </dhcp4>
        </Kea>
      </OPNsense>
    </opnsense>
    """

    BASELINE = """
    <pfsense>
      <interfaces><lan><if>em1</if></lan></interfaces>
    </pfsense>
    """

    def test_explicit_legacy_rejected(self):
        """Requesting legacy without ISC data in the source is fatal."""
        with pytest.raises(KeaOnlySourceDowngradeError) as exc_info:
            convert(self.SOURCE, self.BASELINE, Dialect.PFSENSE, backend=BackendRequest.LEGACY)
        assert exc_info.value.kind == ErrorKind.KEA_ONLY_SOURCE_DOWNGRADE
        assert "cannot convert Kea-only source to pfSense ISC" in str(exc_info.value)

    def test_auto_keeps_modern(self):
        """Under auto the Kea source keeps Kea on the P side."""
        result = convert(self.SOURCE, self.BASELINE, Dialect.PFSENSE)
        assert result.backend == DhcpBackend.MODERN
        assert result.output.value("dhcpbackend") == "kea"
        assert result.output.find("kea", "dhcp4", "subnets", "subnet4") is not None


class TestWireGuardRoundTrip:
    """O-only WireGuard fields survive a trip through P."""

    SOURCE = """
    <opnsense>
      <interfaces>
        <wan><if>igb0</if><ipaddr>dhcp</ipaddr></wan>
        <lan><if>igb1</if><ipaddr>10.1.10.1</ipaddr><subnet>24</subnet></lan>
      </interfaces>
      <OPNsense>
        <wireguard>
          <general><enabled>1</enabled></general>
          <server>
            <servers>
              <server uuid="srv-1">
                <enabled>1</enabled>
                <name>wg_home</name>
                <instance>0</instance>
                <pubkey>SERVERPUB</pubkey>
                <privkey>SERVERPRIV</privkey>
                <port>51820</port>
                <tunneladdress>10.6.0.1/24</tunneladdress>
                <dns>10.1.10.1</dns>
                <peers>peer-1</peers>
              </server>
            </servers>
          </server>
          <client>
            <clients>
              <client uuid="peer-1">
                <enabled>1</enabled>
                <name>phone</name>
                <pubkey>PEERPUB</pubkey>
                <tunneladdress>10.6.0.2/32</tunneladdress>
              </client>
            </clients>
          </client>
        </wireguard>
      </OPNsense>
    </opnsense>
    """

    PF_BASELINE = """
    <pfsense>
      <interfaces>
        <wan><if>em0</if></wan>
        <lan><if>em1</if></lan>
      </interfaces>
    </pfsense>
    """

    OPN_BASELINE = """
    <opnsense>
      <interfaces>
        <wan><if>igb0</if></wan>
        <lan><if>igb1</if></lan>
      </interfaces>
    </opnsense>
    """

    @pytest.fixture
    def round_trip(self):
        engine = ConversionEngine()
        to_pf = engine.convert(
            parse_bytes(self.SOURCE),
            ConversionOptions(target=Dialect.PFSENSE),
            parse_bytes(self.PF_BASELINE),
        )
        back = engine.convert(
            to_pf.output,
            ConversionOptions(target=Dialect.OPNSENSE),
            parse_bytes(self.OPN_BASELINE),
        )
        return to_pf.output, back.output

    def test_pfsense_side_has_tunnels(self, round_trip):
        """The intermediate P document carries the package layout."""
        pf, _ = round_trip
        wireguard = pf.find("installedpackages", "wireguard")
        assert wireguard is not None
        assert wireguard.find("tunnels", "item", "name").text == "tun_wg_home"
        assert wireguard.find("peers", "item", "tun").text == "tun_wg_home"

    def test_server_dns_retained(self, round_trip):
        """Server DNS and uuid survive the round trip."""
        _, opn = round_trip
        server = opn.find("OPNsense", "wireguard", "server", "servers", "server")
        assert server.value("dns") == "10.1.10.1"
        assert server.attributes["uuid"] == "srv-1"

    def test_client_uuid_retained(self, round_trip):
        """Peer uuid and key survive the round trip."""
        _, opn = round_trip
        client = opn.find("OPNsense", "wireguard", "client", "clients", "client")
        assert client.attributes["uuid"] == "peer-1"
        assert client.value("pubkey") == "PEERPUB"


class TestAliasDeduplication:
    """Alias names are compared case-insensitively against the target."""

    SOURCE = """
    <pfsense>
      <interfaces>
        <lan><if>em1</if><ipaddr>192.168.1.1</ipaddr><subnet>24</subnet></lan>
      </interfaces>
      <aliases>
        <alias>
          <name>Mullvad_Hosts</name>
          <type>host</type>
          <address>10.64.0.1</address>
        </alias>
      </aliases>
    </pfsense>
    """

    BASELINE = """
    <opnsense>
      <interfaces><lan><if>igb1</if></lan></interfaces>
      <OPNsense>
        <Firewall>
          <Alias>
            <aliases>
              <alias uuid="a-1"><name>mullvad_hosts</name><type>host</type></alias>
            </aliases>
          </Alias>
        </Firewall>
      </OPNsense>
    </opnsense>
    """

    def test_single_alias_with_target_spelling(self):
        """Test one alias remains, spelled as on the target."""
        result = convert(self.SOURCE, self.BASELINE, Dialect.OPNSENSE)
        aliases = result.output.find("OPNsense", "Firewall", "Alias", "aliases")
        names = [alias.value("name") for alias in aliases.children_named("alias")]
        assert names == ["mullvad_hosts"]
        assert aliases.child("alias").value("address") == "10.64.0.1"

    def test_flat_alias_section_pruned(self):
        """P's top-level aliases section has no place on O."""
        result = convert(self.SOURCE, self.BASELINE, Dialect.OPNSENSE)
        assert result.output.child("aliases") is None
        assert "aliases" in result.removed_sections


class TestLanRemap:
    """Moving the LAN shifts DHCP ranges and references."""

    SOURCE = """
    <pfsense>
      <interfaces>
        <wan><if>em0</if><ipaddr>dhcp</ipaddr></wan>
        <lan><if>em1</if><ipaddr>10.1.10.1/24</ipaddr></lan>
      </interfaces>
      <dhcpd>
        <lan>
          <enable/>
          <range><from>10.1.10.100</from><to>10.1.10.200</to></range>
        </lan>
      </dhcpd>
      <staticroutes>
        <route>
          <network>10.20.0.0/16</network>
          <gateway>10.1.10.1</gateway>
          <descr>lab</descr>
        </route>
      </staticroutes>
    </pfsense>
    """

    BASELINE = """
    <opnsense>
      <interfaces>
        <wan><if>igb0</if><ipaddr>dhcp</ipaddr></wan>
        <lan><if>igb1</if><ipaddr>192.168.1.1</ipaddr><subnet>24</subnet></lan>
      </interfaces>
    </opnsense>
    """

    @pytest.fixture
    def result(self):
        return convert(self.SOURCE, self.BASELINE, Dialect.OPNSENSE, lan_ip="192.168.1.1")

    def test_lan_address(self, result):
        """The LAN keeps the target device with the new address."""
        lan = result.output.find("interfaces", "lan")
        assert lan.value("ipaddr") == "192.168.1.1"
        assert lan.value("subnet") == "24"
        assert lan.value("if") == "igb1"

    def test_dhcp_range_remapped(self, result):
        """Host bits are kept while the network moves."""
        assert result.backend == DhcpBackend.LEGACY
        lan = result.output.find("dhcpd", "lan")
        assert lan.value("range", "from") == "192.168.1.100"
        assert lan.value("range", "to") == "192.168.1.200"

    def test_route_gateway_follows(self, result):
        """A route via the LAN address follows it."""
        route = result.output.find("staticroutes", "route")
        assert route.value("gateway") == "192.168.1.1"
        assert route.value("network") == "10.20.0.0/16"


class TestLanRemapKea:
    """A LAN override also moves the migrated Kea subnet."""

    SOURCE = """
    <pfsense>
      <interfaces>
        <lan><if>em1</if><ipaddr>10.1.10.1</ipaddr><subnet>24</subnet></lan>
      </interfaces>
      <dhcpd>
        <lan>
          <enable/>
          <range><from>10.1.10.100</from><to>10.1.10.200</to></range>
          <staticmap><mac>aa:bb:cc:dd:ee:01</mac><ipaddr>10.1.10.25</ipaddr></staticmap>
        </lan>
      </dhcpd>
    </pfsense>
    """

    @pytest.fixture
    def source(self):
        return parse_bytes(self.SOURCE)

    @pytest.fixture
    def result(self, source):
        return ConversionEngine().convert(
            source,
            ConversionOptions(target=Dialect.OPNSENSE, lan_ip="192.168.1.1"),
            parse_bytes(OPNSENSE_26_BASELINE),
        )

    def test_subnet_on_new_network(self, result):
        """The Kea subnet and pool sit on the overridden LAN network."""
        assert result.backend == DhcpBackend.MODERN
        subnet = result.output.find("OPNsense", "Kea", "dhcp4", "subnets", "subnet4")
        assert subnet.value("subnet") == "192.168.1.0/24"
        assert subnet.value("pools") == "192.168.1.100-192.168.1.200"

    def test_reservation_follows(self, result):
        """Static mappings keep their host bits on the new network."""
        reservation = result.output.find("OPNsense", "Kea", "dhcp4", "reservations", "reservation")
        assert reservation.value("ip_address") == "192.168.1.25"

    def test_source_untouched(self, result, source):
        """The source document keeps its LAN."""
        assert source.value("interfaces", "lan", "ipaddr") == "10.1.10.1"
        assert source.value("dhcpd", "lan", "range", "from") == "10.1.10.100"


# === Invariants ===

PF_RICH = """
<pfsense>
  <system>
    <hostname>fw</hostname>
    <domain>home.arpa</domain>
    <dnsserver>1.1.1.1</dnsserver>
    <dnsserver>9.9.9.9</dnsserver>
    <user><name>admin</name><uid>0</uid><bcrypt-hash>$2y$admin</bcrypt-hash></user>
    <user>
      <name>alice</name>
      <uid>2000</uid>
      <priv>page-all</priv>
      <descr>Alice</descr>
      <groupname>admins</groupname>
      <bcrypt-hash>$2y$alice</bcrypt-hash>
    </user>
  </system>
  <interfaces>
    <wan><if>em0</if><ipaddr>dhcp</ipaddr></wan>
    <lan><if>em1</if><ipaddr>192.168.1.1</ipaddr><subnet>24</subnet></lan>
  </interfaces>
  <aliases>
    <alias><name>Servers</name><type>host</type><address>10.0.0.5</address></alias>
  </aliases>
  <openvpn>
    <openvpn-server>
      <vpnid>1</vpnid>
      <local_port>1194</local_port>
      <tunnel_network>10.8.0.0/24</tunnel_network>
      <description>road</description>
    </openvpn-server>
  </openvpn>
  <installedpackages>
    <wireguard>
      <config><enable>on</enable></config>
      <tunnels>
        <item><name>tun_wg0</name><enabled>yes</enabled><listenport>51820</listenport></item>
      </tunnels>
      <peers>
        <item><tun>tun_wg0</tun><enabled>yes</enabled><descr>phone</descr><publickey>PUB</publickey></item>
      </peers>
    </wireguard>
    <tailscale><enable>on</enable></tailscale>
  </installedpackages>
  <ipsec>
    <phase1>
      <ikeid>1</ikeid>
      <remote-gateway>203.0.113.9</remote-gateway>
      <pre-shared-key>s3cret</pre-shared-key>
      <descr>branch</descr>
    </phase1>
    <phase2>
      <ikeid>1</ikeid>
      <mode>tunnel</mode>
      <localid><type>network</type><address>192.168.1.0</address><netbits>24</netbits></localid>
      <remoteid><type>network</type><address>10.9.0.0</address><netbits>16</netbits></remoteid>
    </phase2>
  </ipsec>
  <staticroutes>
    <route><network>10.20.0.0/16</network><gateway>WAN_DHCP</gateway><descr>lab</descr></route>
  </staticroutes>
  <dhcrelay><enable/><interface>lan</interface><server>10.0.0.2</server></dhcrelay>
  <ppps><ppp><type>pppoe</type><if>pppoe0</if><ports>em0</ports></ppp></ppps>
  <ca><refid>ca1</refid><descr>Root</descr></ca>
  <cert><refid>c1</refid><descr>Server</descr></cert>
</pfsense>
"""

OPN_RICH = """
<opnsense>
  <system>
    <hostname>opn</hostname>
    <user><name>root</name><uid>0</uid><password>$2y$root</password></user>
    <user>
      <name>bob</name>
      <uid>2001</uid>
      <groupname>admins</groupname>
      <priv>page-all</priv>
      <descr>Bob</descr>
      <password>$2y$bob</password>
    </user>
  </system>
  <interfaces>
    <wan><if>igb0</if><ipaddr>dhcp</ipaddr></wan>
    <lan><if>igb1</if><ipaddr>10.0.0.1</ipaddr><subnet>24</subnet></lan>
  </interfaces>
  <ipsec><enable>1</enable></ipsec>
  <staticroutes>
    <route uuid="r-1"><network>10.30.0.0/16</network><gateway>WAN_DHCP</gateway><disabled>0</disabled></route>
  </staticroutes>
  <ca uuid="ca-u"><refid>ca1</refid><descr>Root</descr></ca>
  <OPNsense>
    <Firewall>
      <Alias>
        <aliases>
          <alias uuid="a-1"><name>Servers</name><type>host</type><content>10.0.0.5</content></alias>
        </aliases>
      </Alias>
    </Firewall>
    <OpenVPN>
      <Instances>
        <Instance uuid="i-1"><vpnid>1</vpnid><role>server</role><port>1194</port><server>10.8.0.0/24</server></Instance>
      </Instances>
    </OpenVPN>
    <wireguard>
      <general><enabled>1</enabled></general>
      <server>
        <servers>
          <server uuid="srv-1"><name>wg_home</name><instance>0</instance><peers>peer-1</peers></server>
        </servers>
      </server>
      <client>
        <clients>
          <client uuid="peer-1"><name>phone</name><tunneladdress>10.6.0.2/32</tunneladdress></client>
        </clients>
      </client>
    </wireguard>
    <DHCRelay>
      <destinations uuid="d-1"><name>relay</name><server>10.0.0.2</server></destinations>
      <relays uuid="r-2"><enabled>1</enabled><interface>lan</interface><destination>d-1</destination></relays>
    </DHCRelay>
    <Swanctl><Connections/></Swanctl>
    <tailscale><enabled>1</enabled></tailscale>
  </OPNsense>
</opnsense>
"""

PF_BASE = """
<pfsense>
  <system>
    <hostname>pfSense</hostname>
    <user><name>admin</name><uid>0</uid><bcrypt-hash>x</bcrypt-hash></user>
  </system>
  <interfaces><wan><if>em0</if></wan><lan><if>em1</if></lan></interfaces>
  <installedpackages/>
</pfsense>
"""

OPN_BASE = """
<opnsense>
  <system>
    <hostname>OPNsense</hostname>
    <user><name>root</name><uid>0</uid><password>x</password></user>
  </system>
  <interfaces><wan><if>igb0</if></wan><lan><if>igb1</if></lan></interfaces>
  <OPNsense/>
</opnsense>
"""


def merged(source: str, baseline: str):
    """Source safe-merged onto the baseline, as the engine does before transformers run."""
    engine = ConversionEngine()
    left, right = parse_bytes(source), parse_bytes(baseline)
    entries = engine.diff(left, right)
    out = apply_safe_merge(left, right, entries, MergeTarget.RIGHT, engine.mappings.key_fields)
    return out, left, right


class TestTransformerIdempotence:
    """A transformer run a second time leaves the document as it was."""

    def assert_stable(self, dialect: Dialect, name: str, source: str, baseline: str):
        transformer = dict(transformers_for(dialect))[name]
        out, left, right = merged(source, baseline)
        transformer(out, left, right)
        once = to_string(out)
        transformer(out, left, right)
        assert to_string(out) == once

    @pytest.mark.parametrize("name", [name for name, _ in PIPELINE])
    def test_to_opnsense(self, name):
        """Each transformer toward O is stable on a re-run."""
        self.assert_stable(Dialect.OPNSENSE, name, PF_RICH, OPN_BASE)

    @pytest.mark.parametrize("name", [name for name, _ in PIPELINE])
    def test_to_pfsense(self, name):
        """Each transformer toward P is stable on a re-run."""
        self.assert_stable(Dialect.PFSENSE, name, OPN_RICH, PF_BASE)

    def test_gui_user_privileges_keep_their_slot(self):
        """Updating a GUI user replaces privileges in place."""
        transformer = dict(transformers_for(Dialect.OPNSENSE))["system_users"]
        out, left, right = merged(PF_RICH, OPN_BASE)
        transformer(out, left, right)
        alice = next(u for u in out.child("system").children_named("user")
                     if u.value("name") == "alice")
        tags = [child.tag for child in alice.children]
        assert tags.index("priv") == 2
        assert alice.value("password") == "$2y$alice"


class TestRoundTripStability:
    """Converting P to O and back settles after the first round trip."""

    SOURCE = """
    <pfsense>
      <system><hostname>edge</hostname><domain>home.arpa</domain></system>
      <interfaces>
        <wan><if>em0</if><ipaddr>dhcp</ipaddr></wan>
        <lan><if>em1</if><ipaddr>192.168.1.1</ipaddr><subnet>24</subnet></lan>
      </interfaces>
      <filter>
        <rule><tracker>100</tracker><type>pass</type><interface>lan</interface><descr>lan out</descr></rule>
        <rule><tracker>200</tracker><type>block</type><interface>wan</interface><descr>wan in</descr></rule>
      </filter>
      <staticroutes>
        <route><network>10.20.0.0/16</network><gateway>WAN_DHCP</gateway><descr>lab</descr></route>
      </staticroutes>
      <dhcpd>
        <lan>
          <enable/>
          <range><from>192.168.1.100</from><to>192.168.1.199</to></range>
        </lan>
      </dhcpd>
    </pfsense>
    """

    PF_BASELINE = """
    <pfsense>
      <system><hostname>pfSense</hostname></system>
      <interfaces><wan><if>em0</if></wan><lan><if>em1</if></lan></interfaces>
    </pfsense>
    """

    OPN_BASELINE = """
    <opnsense>
      <system><hostname>OPNsense</hostname></system>
      <interfaces><wan><if>igb0</if></wan><lan><if>igb1</if></lan></interfaces>
    </opnsense>
    """

    def round_trip(self, engine: ConversionEngine, document):
        to_opn = engine.convert(
            document, ConversionOptions(target=Dialect.OPNSENSE), parse_bytes(self.OPN_BASELINE)
        )
        back = engine.convert(
            to_opn.output, ConversionOptions(target=Dialect.PFSENSE), parse_bytes(self.PF_BASELINE)
        )
        return back.output

    def test_second_round_trip_changes_nothing(self):
        """to_P(to_O(x)) equals to_P(to_O(to_P(to_O(x))))."""
        engine = ConversionEngine()
        first = self.round_trip(engine, parse_bytes(self.SOURCE))
        second = self.round_trip(engine, first)
        assert to_string(second) == to_string(first)

    def test_content_survives(self):
        """Rules, routes and DHCP come back on the original devices."""
        back = self.round_trip(ConversionEngine(), parse_bytes(self.SOURCE))
        trackers = [rule.value("tracker") for rule in back.child("filter").children_named("rule")]
        assert trackers == ["100", "200"]
        route = back.find("staticroutes", "route")
        assert route.value("network") == "10.20.0.0/16"
        assert "uuid" not in route.attributes
        assert back.value("interfaces", "lan", "if") == "em1"
        assert back.value("dhcpd", "lan", "range", "from") == "192.168.1.100"


class TestInterfaceReferenceIntegrity:
    """References follow a virtual assignment moved to an optN slot."""

    SOURCE = """
    <pfsense>
      <interfaces>
        <wan><if>em0</if><ipaddr>dhcp</ipaddr></wan>
        <lan><if>em1</if><ipaddr>192.168.1.1</ipaddr><subnet>24</subnet></lan>
        <ovpns1><if>ovpns1</if><enable/></ovpns1>
      </interfaces>
      <filter>
        <rule><tracker>1</tracker><type>pass</type><interface>ovpns1</interface><descr>vpn in</descr></rule>
        <rule><tracker>2</tracker><type>pass</type><interface>lan</interface><descr>lan out</descr></rule>
      </filter>
      <nat>
        <rule><interface>ovpns1</interface><target>192.168.1.10</target><local-port>443</local-port></rule>
      </nat>
      <gateways>
        <gateway_item><interface>ovpns1</interface><gateway>10.8.0.1</gateway><name>VPN_GW</name></gateway_item>
        <gateway_item><interface>wan</interface><gateway>dynamic</gateway><name>WAN_DHCP</name></gateway_item>
      </gateways>
      <staticroutes>
        <route><network>10.50.0.0/16</network><gateway>VPN_GW</gateway><descr>remote office</descr></route>
      </staticroutes>
    </pfsense>
    """

    BASELINE = """
    <opnsense>
      <interfaces>
        <wan><if>igb0</if></wan>
        <lan><if>igb1</if></lan>
      </interfaces>
    </opnsense>
    """

    @pytest.fixture
    def result(self):
        return convert(self.SOURCE, self.BASELINE, Dialect.OPNSENSE)

    def test_assignment_renamed(self, result):
        """ovpns1 is assigned as opt1."""
        assert result.logical_map == {"ovpns1": "opt1"}
        interfaces = result.output.child("interfaces")
        assert interfaces.child("ovpns1") is None
        assert interfaces.value("opt1", "if") == "ovpns1"

    def test_every_interface_reference_resolves(self, result):
        """Filter, NAT and gateway interfaces all name an assigned interface."""
        out = result.output
        assigned = {iface.tag for iface in out.child("interfaces").children}
        referenced = [
            node.value("interface")
            for section, tag in (("filter", "rule"), ("nat", "rule"), ("gateways", "gateway_item"))
            for node in out.child(section).children_named(tag)
        ]
        assert len(referenced) == 5
        assert set(referenced) <= assigned
        assert out.value("filter", "rule", "interface") == "opt1"

    def test_routes_name_existing_gateways(self, result):
        """Every route names a gateway that exists."""
        out = result.output
        gateways = {gw.value("name") for gw in out.child("gateways").children_named("gateway_item")}
        routes = out.child("staticroutes").children_named("route")
        assert routes
        assert all(route.value("gateway") in gateways for route in routes)


class TestVlanAllocation:
    def test_hundredth_device_name(self):
        """With vlan01 to vlan99 taken the next VLAN gets vlan100."""
        existing = "".join(
            f"<vlan><if>igb0</if><tag>{n}</tag><vlanif>vlan{n:02d}</vlanif></vlan>"
            for n in range(1, 100)
        )
        out = parse_bytes(
            "<opnsense><interfaces><opt1><if>igb0.500</if></opt1></interfaces>"
            f"<vlans>{existing}<vlan><if>igb0</if><tag>500</tag></vlan></vlans></opnsense>"
        )
        renames = vlans.canonicalize(out)
        names = [vlan.value("vlanif") for vlan in out.child("vlans").children_named("vlan")]
        assert names[-1] == "vlan100"
        assert len(set(names)) == len(names)
        assert renames["igb0.500"] == "vlan100"
        assert out.value("interfaces", "opt1", "if") == "vlan100"


class TestDhcpv6Migration:
    """IPv6 legacy data migrates the same whichever container holds it."""

    SOURCE = """
    <pfsense>
      <interfaces>
        <lan><if>em1</if><ipaddrv6>2001:db8:1::1</ipaddrv6><subnetv6>64</subnetv6></lan>
      </interfaces>
      <dhcpdv6>
        <lan>
          <range><from>::100</from><to>::200</to></range>
          <dnsserver>2001:db8:1::53</dnsserver>
          <staticmap><duid>00:01:00:01:aa</duid><ipaddrv6>::50</ipaddrv6><hostname>nas</hostname></staticmap>
          <staticmap><duid>00:01:00:01:bb</duid><ipaddrv6>::51</ipaddrv6></staticmap>
        </lan>
      </dhcpdv6>
    </pfsense>
    """

    def migrate(self, source: str, out: str = "<opnsense/>"):
        output = parse_bytes(out)
        stats = migrate_isc_to_kea(output, parse_bytes(source))
        return output, stats

    def test_dhcpd6_container_matches_dhcpdv6(self):
        """A dhcpd6-only source yields the same Kea config and counters."""
        from_v6, stats_v6 = self.migrate(self.SOURCE)
        from_6, stats_6 = self.migrate(self.SOURCE.replace("dhcpdv6", "dhcpd6"))
        assert to_string(from_6) == to_string(from_v6)
        assert stats_6 == stats_v6
        subnet = from_6.find("OPNsense", "Kea", "dhcp6", "subnets", "subnet6")
        assert subnet.value("subnet") == "2001:db8:1::/64"
        assert subnet.value("pools") == "2001:db8:1::100-2001:db8:1::200"
        assert stats_6.reservations_added_v6 == 2

    def test_reservation_skipped_on_duid_conflict(self):
        """An existing reservation with the same DUID wins."""
        existing = (
            "<opnsense><OPNsense><Kea><dhcp6><reservations>"
            "<reservation><duid>00:01:00:01:aa</duid><ip_address>2001:db8:1::99</ip_address></reservation>"
            "</reservations></dhcp6></Kea></OPNsense></opnsense>"
        )
        out, stats = self.migrate(self.SOURCE, existing)
        assert stats.reservations_added_v6 == 1
        assert stats.reservations_skipped_conflict_v6 == 1
        reservations = out.find("OPNsense", "Kea", "dhcp6", "reservations").children_named("reservation")
        assert [r.value("duid") for r in reservations] == ["00:01:00:01:aa", "00:01:00:01:bb"]
        assert reservations[0].value("ip_address") == "2001:db8:1::99"
        assert reservations[1].value("ip_address") == "2001:db8:1::51"


LEGACY_BASELINE_WITH_KEA = """
<opnsense>
  <interfaces>
    <lan><if>igb1</if><ipaddr>192.168.1.1</ipaddr><subnet>24</subnet></lan>
  </interfaces>
  <OPNsense>
    <Kea>
      <dhcp4><general><enabled>1</enabled></general></dhcp4>
      <dhcp6><general><enabled>1</enabled></general></dhcp6>
    </Kea>
  </OPNsense>
</opnsense>
"""


def active_backends(out, legacy_tags: tuple[str, ...], family: str) -> set[str]:
    """Backends serving one address family in a dialect-O document."""
    active = set()
    for tag in legacy_tags:
        container = out.child(tag)
        if container is not None and any(isc_iface_enabled(i) for i in container.children):
            active.add("isc")
    if out.value("OPNsense", "Kea", family, "general", "enabled") == "1":
        active.add("kea")
    return active


class TestSingleBackendPerFamily:
    """At most one DHCP server runs per address family."""

    @pytest.mark.parametrize("source,baseline,backend,expected_v4,expected_v6", [
        (TestLegacyToModernMinimal.SOURCE, OPNSENSE_26_BASELINE, BackendRequest.AUTO, {"kea"}, set()),
        (TestLegacyToModernMinimal.SOURCE, LEGACY_BASELINE_WITH_KEA, BackendRequest.LEGACY, {"isc"}, set()),
        (TestPartialV6Fallback.SOURCE, OPNSENSE_26_BASELINE, BackendRequest.AUTO, set(), {"isc"}),
    ], ids=["modern", "legacy", "partial-v6"])
    def test_one_backend(self, source, baseline, backend, expected_v4, expected_v6):
        """Each family is served by the expected backend and no other."""
        result = convert(source, baseline, Dialect.OPNSENSE, backend=backend)
        out = result.output
        assert active_backends(out, ("dhcpd",), "dhcp4") == expected_v4
        assert active_backends(out, ("dhcpdv6", "dhcpd6"), "dhcp6") == expected_v6
