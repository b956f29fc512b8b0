"""Empty O IPsec and Swanctl containers the P mapper fills in."""
from ...tree import XmlNode

SWANCTL_BUCKETS = ("Connections", "locals", "remotes", "children", "Pools", "VTIs", "SPDs")

GENERAL_DEFAULTS = (
    ("enabled", ""),
    ("preferred_oldsa", "0"),
    ("disablevpnrules", "0"),
    ("passthrough_networks", ""),
    ("user_source", ""),
    ("local_group", ""),
)
CHARON_DEFAULTS = (("threads", "16"), ("install_routes", "0"))


def base_ipsec() -> XmlNode:
    ipsec = XmlNode("IPsec")
    general = ipsec.append(XmlNode("general"))
    for tag, value in GENERAL_DEFAULTS:
        general.append_text_child(tag, value)
    charon = ipsec.append(XmlNode("charon"))
    for tag, value in CHARON_DEFAULTS:
        charon.append_text_child(tag, value)
    ipsec.append(XmlNode("keyPairs"))
    ipsec.append(XmlNode("preSharedKeys"))
    return ipsec


def base_swanctl() -> XmlNode:
    return XmlNode("Swanctl", children=[XmlNode(bucket) for bucket in SWANCTL_BUCKETS])
