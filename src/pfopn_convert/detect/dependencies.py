"""Dependency inventories for the VPN subsystems.

For each VPN family the inventory lists what a document *references*
(CA refids, certificate refids, usernames, interface names) and what it
makes *available* at the root. A gap between two inventories is the sorted
set difference used to drive dependency transfer.
"""
import logging
from dataclasses import dataclass, field
from typing import Optional

from ..tree import XmlNode, is_truthy

logger = logging.getLogger(__name__)

OPENVPN_CA_TAGS = frozenset({"caref", "authcertca", "ca"})
OPENVPN_CERT_TAGS = frozenset({"certref", "authcertname", "cert"})
OPENVPN_USER_TAGS = frozenset({"username", "user", "local_user"})

IPSEC_CA_TAGS = frozenset({"caref", "ca_ref"})
IPSEC_CERT_TAGS = frozenset({"certref", "cert_ref", "localcertref", "peercertref"})
IPSEC_IFACE_TAGS = frozenset({"interface", "if"})


# === Shared helpers ===

def _find_roots(root: XmlNode, tags: set[str]) -> list[XmlNode]:
    """Outermost descendants (or root itself) whose lowercased tag is in ``tags``."""
    found = []
    stack = [root]
    while stack:
        node = stack.pop()
        if node.tag.lower() in tags:
            found.append(node)
            continue
        stack.extend(reversed(node.children))
    return found


def _collect_refs(node: XmlNode, buckets: list[tuple[frozenset, set]]) -> None:
    for current in node.walk():
        value = (current.text or "").strip()
        if not value:
            continue
        tag = current.tag.lower()
        for tags, bucket in buckets:
            if tag in tags:
                bucket.add(value)


def available_refids(root: XmlNode, section: str) -> set[str]:
    """Refids of top-level ``ca`` / ``cert`` entries."""
    refids = set()
    for entry in root.children_named(section):
        refid = entry.value("refid")
        if refid:
            refids.add(refid)
    return refids


def available_usernames(root: XmlNode) -> set[str]:
    system = root.child("system")
    if system is None:
        return set()
    return {name for user in system.children_named("user") if (name := user.value("name"))}


def available_interfaces(root: XmlNode) -> set[str]:
    interfaces = root.child("interfaces")
    if interfaces is None:
        return set()
    return {iface.tag for iface in interfaces.children}


def sorted_gap(referenced: set[str], available: set[str]) -> list[str]:
    return sorted(referenced - available)


# === VPN-A (OpenVPN) ===

@dataclass
class OpenVpnInventory:
    instance_count: int = 0
    enabled_instances: int = 0
    disabled_instances: int = 0
    referenced_ca_ids: set[str] = field(default_factory=set)
    referenced_cert_ids: set[str] = field(default_factory=set)
    referenced_usernames: set[str] = field(default_factory=set)
    available_ca_ids: set[str] = field(default_factory=set)
    available_cert_ids: set[str] = field(default_factory=set)
    available_usernames: set[str] = field(default_factory=set)


@dataclass
class OpenVpnGap:
    direction: str
    missing_ca_ids: list[str] = field(default_factory=list)
    missing_cert_ids: list[str] = field(default_factory=list)
    missing_usernames: list[str] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.missing_ca_ids or self.missing_cert_ids or self.missing_usernames)


def _instance_disabled(node: XmlNode) -> bool:
    disable = node.child("disable")
    if disable is not None:
        value = (disable.text or "").strip()
        # Bare <disable/> counts as set
        return not value or is_truthy(value)
    enabled = node.value("enabled")
    if enabled is not None:
        return not is_truthy(enabled)
    return False


def collect_openvpn_inventory(root: XmlNode) -> OpenVpnInventory:
    """Build the VPN-A inventory for one document."""
    inventory = OpenVpnInventory(
        available_ca_ids=available_refids(root, "ca"),
        available_cert_ids=available_refids(root, "cert"),
        available_usernames=available_usernames(root),
    )
    for vpn_root in _find_roots(root, {"openvpn"}):
        _collect_refs(vpn_root, [
            (OPENVPN_CA_TAGS, inventory.referenced_ca_ids),
            (OPENVPN_CERT_TAGS, inventory.referenced_cert_ids),
            (OPENVPN_USER_TAGS, inventory.referenced_usernames),
        ])
        for node in vpn_root.walk():
            if node.tag not in ("openvpn-server", "Instance"):
                continue
            inventory.instance_count += 1
            if _instance_disabled(node):
                inventory.disabled_instances += 1
            else:
                inventory.enabled_instances += 1
    return inventory


def openvpn_gap(source: OpenVpnInventory, target: OpenVpnInventory,
                direction: str = "left_to_right") -> OpenVpnGap:
    return OpenVpnGap(
        direction=direction,
        missing_ca_ids=sorted_gap(source.referenced_ca_ids, target.available_ca_ids),
        missing_cert_ids=sorted_gap(source.referenced_cert_ids, target.available_cert_ids),
        missing_usernames=sorted_gap(source.referenced_usernames, target.available_usernames),
    )


# === VPN-B (IPsec) ===

@dataclass
class IpsecInventory:
    configured: bool = False
    referenced_ca_ids: set[str] = field(default_factory=set)
    referenced_cert_ids: set[str] = field(default_factory=set)
    referenced_interfaces: set[str] = field(default_factory=set)
    available_ca_ids: set[str] = field(default_factory=set)
    available_cert_ids: set[str] = field(default_factory=set)
    available_interfaces: set[str] = field(default_factory=set)


@dataclass
class IpsecGap:
    direction: str
    missing_ca_ids: list[str] = field(default_factory=list)
    missing_cert_ids: list[str] = field(default_factory=list)
    missing_interfaces: list[str] = field(default_factory=list)


def collect_ipsec_inventory(root: XmlNode) -> IpsecInventory:
    """Build the VPN-B inventory for one document."""
    roots = _find_roots(root, {"ipsec", "swanctl"})
    inventory = IpsecInventory(
        configured=bool(roots),
        available_ca_ids=available_refids(root, "ca"),
        available_cert_ids=available_refids(root, "cert"),
        available_interfaces=available_interfaces(root),
    )
    for node in roots:
        _collect_refs(node, [
            (IPSEC_CA_TAGS, inventory.referenced_ca_ids),
            (IPSEC_CERT_TAGS, inventory.referenced_cert_ids),
            (IPSEC_IFACE_TAGS, inventory.referenced_interfaces),
        ])
    return inventory


def ipsec_gap(source: IpsecInventory, target: IpsecInventory,
              direction: str = "left_to_right") -> IpsecGap:
    return IpsecGap(
        direction=direction,
        missing_ca_ids=sorted_gap(source.referenced_ca_ids, target.available_ca_ids),
        missing_cert_ids=sorted_gap(source.referenced_cert_ids, target.available_cert_ids),
        missing_interfaces=sorted_gap(source.referenced_interfaces, target.available_interfaces),
    )


# === VPN-C (WireGuard) ===

@dataclass
class WireGuardInventory:
    configured: bool = False
    enabled_entries: int = 0
    paths: list[str] = field(default_factory=list)


def collect_wireguard_inventory(root: XmlNode) -> WireGuardInventory:
    """Locate every ``wireguard`` subtree and count truthy ``enabled`` flags under it."""
    paths = []
    enabled = 0
    stack = [(root, root.tag)]
    while stack:
        node, path = stack.pop()
        if node.tag.lower() == "wireguard":
            paths.append(path)
            enabled += sum(
                1 for n in node.walk()
                if n.tag.lower() == "enabled" and is_truthy(n.text)
            )
            continue
        for child in node.children:
            stack.append((child, f"{path}.{child.tag}"))
    paths.sort()
    return WireGuardInventory(configured=bool(paths), enabled_entries=enabled, paths=paths)


# === Reports ===

@dataclass
class DependencyReport:
    """Inventories of both sides plus gaps in both directions."""
    left: object
    right: object
    left_to_right: object = None
    right_to_left: object = None


def compare_openvpn_dependencies(left: XmlNode, right: XmlNode) -> DependencyReport:
    left_inv = collect_openvpn_inventory(left)
    right_inv = collect_openvpn_inventory(right)
    return DependencyReport(
        left=left_inv,
        right=right_inv,
        left_to_right=openvpn_gap(left_inv, right_inv, "left_to_right"),
        right_to_left=openvpn_gap(right_inv, left_inv, "right_to_left"),
    )


def compare_ipsec_dependencies(left: XmlNode, right: XmlNode) -> DependencyReport:
    left_inv = collect_ipsec_inventory(left)
    right_inv = collect_ipsec_inventory(right)
    return DependencyReport(
        left=left_inv,
        right=right_inv,
        left_to_right=ipsec_gap(left_inv, right_inv, "left_to_right"),
        right_to_left=ipsec_gap(right_inv, left_inv, "right_to_left"),
    )


def compare_wireguard_dependencies(left: XmlNode, right: XmlNode) -> DependencyReport:
    return DependencyReport(
        left=collect_wireguard_inventory(left),
        right=collect_wireguard_inventory(right),
    )


# === Findings ===

@dataclass
class DependencyFinding:
    """One reportable dependency problem between two documents."""
    kind: str
    section: str
    side: str
    reason: str
    paths: list[str] = field(default_factory=list)

    def render(self) -> str:
        line = f"[{self.kind}] {self.section} ({self.side}): {self.reason}"
        return "\n".join([line] + [f"    {path}" for path in self.paths])


def _gap_finding(kind: str, section: str, gap, reason: str, extra_field: str,
                 extra_label: str) -> Optional[DependencyFinding]:
    paths = (
        [f"missing_ca: {ref}" for ref in gap.missing_ca_ids]
        + [f"missing_cert: {ref}" for ref in gap.missing_cert_ids]
        + [f"missing_{extra_label}: {ref}" for ref in getattr(gap, extra_field)]
    )
    if not paths:
        return None
    return DependencyFinding(kind, section, gap.direction, reason, paths[:12])


def dependency_findings(left: XmlNode, right: XmlNode) -> list[DependencyFinding]:
    """
    Compare VPN dependencies of two documents.

    Reports disabled OpenVPN instances that still carry references, missing
    CA/cert/user/interface referents in either direction, and WireGuard
    configuration present on one side only or fully disabled.
    """
    findings = []

    openvpn = compare_openvpn_dependencies(left, right)
    for side, inventory in (("left", openvpn.left), ("right", openvpn.right)):
        if inventory.disabled_instances:
            findings.append(DependencyFinding(
                "vpn_disabled_config_present", "openvpn", side,
                "disabled OpenVPN configs still carry users/certs/CAs and should be migrated",
                [f"disabled_instances={inventory.disabled_instances}"],
            ))
    for gap in (openvpn.left_to_right, openvpn.right_to_left):
        finding = _gap_finding(
            "vpn_dependency_gap", "openvpn", gap,
            "OpenVPN references do not exist on target side; migrate system users, certs and CAs",
            "missing_usernames", "user",
        )
        if finding is not None:
            findings.append(finding)

    ipsec = compare_ipsec_dependencies(left, right)
    for gap in (ipsec.left_to_right, ipsec.right_to_left):
        finding = _gap_finding(
            "ipsec_dependency_gap", "ipsec", gap,
            "IPsec references do not exist on target side; migrate certs/CAs/interfaces",
            "missing_interfaces", "interface",
        )
        if finding is not None:
            findings.append(finding)

    wireguard = compare_wireguard_dependencies(left, right)
    wg_left, wg_right = wireguard.left, wireguard.right
    if wg_left.configured and not wg_right.configured:
        findings.append(DependencyFinding(
            "wireguard_dependency_gap", "wireguard", "left_to_right",
            "WireGuard config exists on left but not on right", wg_left.paths[:6],
        ))
    if wg_right.configured and not wg_left.configured:
        findings.append(DependencyFinding(
            "wireguard_dependency_gap", "wireguard", "right_to_left",
            "WireGuard config exists on right but not on left", wg_right.paths[:6],
        ))
    for side, inventory in (("left", wg_left), ("right", wg_right)):
        if inventory.configured and inventory.enabled_entries == 0:
            findings.append(DependencyFinding(
                "wireguard_disabled_config_present", "wireguard", side,
                f"WireGuard config is present but currently disabled on {side}",
                inventory.paths[:4],
            ))

    logger.debug(f"Dependency comparison produced {len(findings)} findings")
    return findings
