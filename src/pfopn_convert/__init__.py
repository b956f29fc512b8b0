"""pfopn-convert: convert firewall configurations between pfSense and OPNsense."""

__version__ = "0.1.0"
