"""Tests for dialect, version, backend and dependency detection."""
import pytest

from pfopn_convert.detect import (
    Confidence,
    Dialect,
    DhcpBackendState,
    collect_openvpn_inventory,
    collect_wireguard_inventory,
    compare_ipsec_dependencies,
    compare_openvpn_dependencies,
    detect_dhcp_backend,
    detect_dialect,
    dependency_findings,
    detect_version,
    has_legacy_dhcp_data,
    is_opnsense_at_least,
)
from pfopn_convert.tree import parse_bytes


class TestDialect:
    @pytest.mark.parametrize("xml,expected", [
        ("<pfsense/>", Dialect.PFSENSE),
        ("<opnsense/>", Dialect.OPNSENSE),
        ("<config/>", Dialect.UNKNOWN),
    ])
    def test_detect_from_root(self, xml, expected):
        """The root tag decides the dialect."""
        assert detect_dialect(parse_bytes(xml)) == expected

    def test_parse_names(self):
        """Dialect names parse case-insensitively and auto means none."""
        assert Dialect.parse("OPNsense") == Dialect.OPNSENSE
        assert Dialect.parse("p") == Dialect.PFSENSE
        assert Dialect.parse("auto") is None

    def test_parse_invalid(self):
        """Unknown dialect names raise ValueError."""
        with pytest.raises(ValueError, match="Invalid dialect"):
            Dialect.parse("sophos")

    def test_other(self):
        """Each dialect knows its counterpart and root tag."""
        assert Dialect.PFSENSE.other == Dialect.OPNSENSE
        assert Dialect.OPNSENSE.root_tag == "opnsense"


class TestVersion:
    """Version lookup order and confidence."""

    def test_root_version_is_high(self):
        """A root version element is read with high confidence."""
        info = detect_version(parse_bytes("<opnsense><version>26.1</version></opnsense>"))
        assert info.value == "26.1"
        assert info.confidence == Confidence.HIGH
        assert info.major == 26

    def test_system_version_is_medium(self):
        """system/version is the medium-confidence fallback."""
        info = detect_version(parse_bytes(
            "<pfsense><system><version>2.7.2</version></system></pfsense>"
        ))
        assert info.source == "pfsense.system.version"
        assert info.confidence == Confidence.MEDIUM

    def test_firmware_attribute_is_low(self):
        """The firmware version attribute is the last resort."""
        info = detect_version(parse_bytes(
            '<opnsense><system><firmware version="25.7"/></system></opnsense>'
        ))
        assert info.value == "25.7"
        assert info.confidence == Confidence.LOW

    def test_unknown(self):
        """No version anywhere gives unknown with major 0."""
        info = detect_version(parse_bytes("<opnsense/>"))
        assert info.value == "unknown"
        assert info.major == 0
        assert info.confidence == Confidence.NONE

    def test_opnsense_at_least(self):
        """Version gates only apply to OPNsense documents."""
        assert is_opnsense_at_least(parse_bytes("<opnsense><version>26.1</version></opnsense>"), 26)
        assert not is_opnsense_at_least(parse_bytes("<pfsense><version>26.1</version></pfsense>"), 26)


class TestBackendDetection:
    """DHCP backend classification."""

    def test_pfsense_explicit_kea(self):
        """An explicit dhcpbackend of kea means modern."""
        result = detect_dhcp_backend(parse_bytes("<pfsense><dhcpbackend>kea</dhcpbackend></pfsense>"))
        assert result.state == DhcpBackendState.MODERN
        assert result.evidence_paths == ["pfsense.dhcpbackend"]

    def test_pfsense_legacy_sections(self):
        """ISC sections on pfSense mean legacy."""
        result = detect_dhcp_backend(parse_bytes("<pfsense><dhcpd><lan/></dhcpd></pfsense>"))
        assert result.state == DhcpBackendState.LEGACY
        assert "pfsense.dhcpd" in result.evidence_paths

    def test_opnsense_mixed(self):
        """Enabled Kea next to ISC data is mixed."""
        root = parse_bytes(
            "<opnsense><dhcpd><lan/></dhcpd>"
            "<OPNsense><Kea><dhcp4><general><enabled>1</enabled></general></dhcp4></Kea></OPNsense>"
            "</opnsense>"
        )
        result = detect_dhcp_backend(root)
        assert result.state == DhcpBackendState.MIXED
        assert "opnsense.OPNsense.Kea.dhcp4.general.enabled" in result.evidence_paths

    def test_opnsense_kea_disabled_is_legacy(self):
        """A disabled Kea section does not count as modern."""
        root = parse_bytes(
            "<opnsense><dhcpd6><lan/></dhcpd6>"
            "<OPNsense><Kea><dhcp4><general><enabled>0</enabled></general></dhcp4></Kea></OPNsense>"
            "</opnsense>"
        )
        assert detect_dhcp_backend(root).state == DhcpBackendState.LEGACY
        assert has_legacy_dhcp_data(root)

    def test_unknown(self):
        """An empty document has no backend evidence."""
        result = detect_dhcp_backend(parse_bytes("<opnsense/>"))
        assert result.state == DhcpBackendState.UNKNOWN
        assert result.to_dict()["state"] == "unknown"


class TestDependencies:
    """VPN dependency inventories and gaps."""

    PF = """
    <pfsense>
      <system><user><name>alice</name></user></system>
      <ca><refid>ca1</refid></ca>
      <openvpn>
        <openvpn-server>
          <caref>ca1</caref>
          <certref>cert1</certref>
          <username>bob</username>
        </openvpn-server>
        <openvpn-server><disable/><caref>ca1</caref></openvpn-server>
      </openvpn>
      <ipsec>
        <phase1><caref>ca2</caref><interface>wan</interface></phase1>
      </ipsec>
      <interfaces><wan/></interfaces>
    </pfsense>
    """

    def test_openvpn_inventory(self):
        """The OpenVPN inventory counts instances and references."""
        inv = collect_openvpn_inventory(parse_bytes(self.PF))
        assert inv.instance_count == 2
        assert inv.enabled_instances == 1
        assert inv.disabled_instances == 1
        assert inv.referenced_ca_ids == {"ca1"}
        assert inv.available_usernames == {"alice"}

    def test_openvpn_gap_against_empty_target(self):
        """Every OpenVPN reference is missing from an empty target."""
        report = compare_openvpn_dependencies(parse_bytes(self.PF), parse_bytes("<opnsense/>"))
        gap = report.left_to_right
        assert gap.missing_ca_ids == ["ca1"]
        assert gap.missing_cert_ids == ["cert1"]
        assert gap.missing_usernames == ["bob"]
        assert report.right_to_left.empty

    def test_ipsec_gap(self):
        """IPsec CAs and interfaces missing on the target are reported."""
        report = compare_ipsec_dependencies(parse_bytes(self.PF), parse_bytes("<opnsense/>"))
        assert report.left.configured
        assert report.left_to_right.missing_ca_ids == ["ca2"]
        assert report.left_to_right.missing_interfaces == ["wan"]

    def test_wireguard_inventory(self):
        """WireGuard inventory counts enabled entries and records paths."""
        root = parse_bytes(
            "<opnsense><OPNsense><wireguard>"
            "<general><enabled>1</enabled></general>"
            "<server><servers><server><enabled>1</enabled></server></servers></server>"
            "</wireguard></OPNsense></opnsense>"
        )
        inv = collect_wireguard_inventory(root)
        assert inv.configured
        assert inv.enabled_entries == 2
        assert inv.paths == ["opnsense.OPNsense.wireguard"]

    def test_findings(self):
        """Findings come out in a fixed order with their paths."""
        right = parse_bytes(
            "<opnsense><OPNsense><wireguard>"
            "<general><enabled>0</enabled></general>"
            "</wireguard></OPNsense></opnsense>"
        )
        findings = dependency_findings(parse_bytes(self.PF), right)
        assert [(f.kind, f.side) for f in findings] == [
            ("vpn_disabled_config_present", "left"),
            ("vpn_dependency_gap", "left_to_right"),
            ("ipsec_dependency_gap", "left_to_right"),
            ("wireguard_dependency_gap", "right_to_left"),
            ("wireguard_disabled_config_present", "right"),
        ]
        assert findings[1].paths == ["missing_ca: ca1", "missing_cert: cert1", "missing_user: bob"]
        assert findings[2].paths == ["missing_ca: ca2", "missing_interface: wan"]
        assert findings[3].render().splitlines()[1] == "    opnsense.OPNsense.wireguard"

    def test_self_comparison_reports_dangling_references(self):
        """References missing from the document itself are reported on both sides."""
        root = parse_bytes(self.PF)
        findings = dependency_findings(root, root)
        assert [(f.kind, f.side) for f in findings] == [
            ("vpn_disabled_config_present", "left"),
            ("vpn_disabled_config_present", "right"),
            ("vpn_dependency_gap", "left_to_right"),
            ("vpn_dependency_gap", "right_to_left"),
            ("ipsec_dependency_gap", "left_to_right"),
            ("ipsec_dependency_gap", "right_to_left"),
        ]
        # ca1 and wan exist in the document itself
        assert findings[2].paths == ["missing_cert: cert1", "missing_user: bob"]
        assert findings[4].paths == ["missing_ca: ca2"]
