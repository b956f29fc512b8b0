#!/usr/bin/env python3
"""Command-line interface for pfopn-convert.

Usage:
    pfopn-convert convert INPUT -o OUTPUT --to opnsense --target-file BASELINE
    pfopn-convert diff LEFT RIGHT [--summary]
    pfopn-convert detect FILE
    pfopn-convert deps LEFT RIGHT
    pfopn-convert history [--to opnsense] [--limit N]

Environment variables:
    PFOPN_LOG_LEVEL     Console log level (default: INFO)
    PFOPN_LOG_FILE      Log file path (default: ~/.pfopn-convert/pfopn-convert.log)
"""
import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .config import ConversionOptions, load_mappings, load_options, parse_source, parse_target
from .config_engine import ConversionEngine, ConversionResult, format_diff, summarize_diff
from .detect import dependency_findings, detect_dhcp_backend, detect_dialect, detect_version
from .dhcp import render_migration_summary
from .errors import ConversionError, InvalidInputError
from .tree import parse_file
from .utils.audit_log import get_recent_conversions, setup_audit_logging
from .utils.logging_config import get_log_file, global_stats, setup_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pfopn-convert",
        description="Convert firewall configurations between pfSense and OPNsense",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    # pfSense backup onto an OPNsense baseline
    pfopn-convert convert config-pf.xml -o config-opn.xml --to opnsense \\
        --target-file opnsense-baseline.xml

    # Keep legacy ISC DHCP and move the LAN
    pfopn-convert convert config-pf.xml -o out.xml --to opnsense \\
        --target-file base.xml --backend isc --lan-ip 192.168.1.1

    # Options from a profile, flags still win
    pfopn-convert convert config-pf.xml -o out.xml --profile lab.yaml --disable-dhcp

    # Compare two documents
    pfopn-convert diff left.xml right.xml --summary

    # VPN references that would dangle on the other side
    pfopn-convert deps config-pf.xml opnsense-baseline.xml

Environment:
    PFOPN_LOG_LEVEL     Console log level
    PFOPN_LOG_FILE      Log file path
""",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--no-log-file", action="store_true",
        help="Do not write log or audit files",
    )
    parser.add_argument("--timings", action="store_true", help="Print stage timings to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    convert = sub.add_parser("convert", help="Convert one config toward a target platform")
    convert.add_argument("input", type=Path, help="Source config file")
    convert.add_argument("-o", "--output", type=Path, required=True, help="Output file path")
    convert.add_argument("--from", dest="source", default=None,
                         help="Source platform: pfsense, opnsense or auto (default: auto)")
    convert.add_argument("--to", dest="target", default=None,
                         help="Destination platform: pfsense or opnsense")
    convert.add_argument("--target-file", type=Path, default=None,
                         help="Target baseline config (required unless --minimal-template)")
    convert.add_argument("--minimal-template", action="store_true",
                         help="Build from an empty target root (dev/testing only)")
    convert.add_argument("--backend", default=None,
                         help="DHCP backend policy: auto, kea (modern) or isc (legacy)")
    convert.add_argument("--no-transfer-users", action="store_true",
                         help="Do not transfer users referenced by OpenVPN")
    convert.add_argument("--no-transfer-certs", action="store_true",
                         help="Do not transfer certificates referenced by OpenVPN")
    convert.add_argument("--no-transfer-cas", action="store_true",
                         help="Do not transfer CAs referenced by OpenVPN")
    convert.add_argument("--lan-ip", default=None,
                         help="Set the LAN IPv4 address and remap LAN DHCP values")
    convert.add_argument("--disable-dhcp", action="store_true",
                         help="Disable every DHCP service in the output")
    convert.add_argument("--profile", type=Path, default=None,
                         help="YAML conversion profile")
    convert.add_argument("--mappings", type=Path, default=None,
                         help="YAML mapping tables overriding the built-in ones")

    diff = sub.add_parser("diff", help="Compare two XML files and show differences")
    diff.add_argument("left", type=Path)
    diff.add_argument("right", type=Path)
    diff.add_argument("--ignore", action="append", default=[],
                      help="Path or tag to ignore (repeatable)")
    diff.add_argument("--depth", type=int, default=-1, help="Maximum depth (-1 unlimited)")
    diff.add_argument("--identical", action="store_true", help="Include identical nodes")
    diff.add_argument("--summary", action="store_true", help="Only print the count summary")
    diff.add_argument("--mappings", type=Path, default=None,
                      help="YAML mapping tables overriding the built-in ones")

    detect = sub.add_parser("detect", help="Report platform, version and DHCP backend")
    detect.add_argument("file", type=Path)

    deps = sub.add_parser("deps", help="Report VPN dependency gaps between two XML files")
    deps.add_argument("left", type=Path)
    deps.add_argument("right", type=Path)

    history = sub.add_parser("history", help="List recent conversions from the audit log")
    history.add_argument("--to", dest="target", default=None, help="Only show runs toward this platform")
    history.add_argument("--limit", type=int, default=20, help="Maximum entries (default: 20)")

    return parser


def _flag(value: bool, when_set):
    """CLI switches only override the profile when given."""
    return when_set if value else None


def options_from_args(args: argparse.Namespace) -> ConversionOptions:
    """
    Combine an optional profile with command-line flags.

    Raises:
        InvalidInputError: Missing or invalid platform/backend values
    """
    overrides = {
        "target": parse_target(args.target) if args.target else None,
        "source": parse_source(args.source) if args.source else None,
        "backend": args.backend,
        "lan_ip": args.lan_ip,
        "transfer_users": _flag(args.no_transfer_users, False),
        "transfer_certs": _flag(args.no_transfer_certs, False),
        "transfer_cas": _flag(args.no_transfer_cas, False),
        "disable_dhcp": _flag(args.disable_dhcp, True),
        "minimal_baseline": _flag(args.minimal_template, True),
    }
    if args.profile is not None:
        return load_options(args.profile, **overrides)
    if overrides["target"] is None:
        raise InvalidInputError("missing --to; specify pfsense or opnsense")
    return ConversionOptions(**{k: v for k, v in overrides.items() if v is not None})


def render_result(result: ConversionResult) -> list[str]:
    """Lines printed after a successful conversion."""
    lines = [f"warning: {message}" for message in result.warning_messages]
    if result.migration is not None:
        lines.extend(render_migration_summary(
            result.migration, result.fell_back, result.preserve_ipv6_legacy
        ))
    lines.append(result.summary.render())
    return lines


def run_convert(args: argparse.Namespace) -> int:
    options = options_from_args(args)
    engine = ConversionEngine(load_mappings(args.mappings))
    result = engine.convert_files(args.input, args.output, options, args.target_file)
    for line in render_result(result):
        print(line)
    return 0


def run_diff(args: argparse.Namespace) -> int:
    mappings = load_mappings(args.mappings)
    mappings.ignore_paths.extend(args.ignore)
    engine = ConversionEngine(mappings)
    entries = engine.diff(parse_file(args.left), parse_file(args.right),
                          include_identical=args.identical, max_depth=args.depth)
    if not args.summary and entries:
        print(format_diff(entries))
    print(summarize_diff(entries))
    return 0


def run_detect(args: argparse.Namespace) -> int:
    root = parse_file(args.file)
    version = detect_version(root)
    backend = detect_dhcp_backend(root)
    print(f"platform: {detect_dialect(root).value}")
    print(f"version: {version.value} (source={version.source}, confidence={version.confidence.value})")
    print(f"dhcp_backend: {backend.state.value} ({backend.reason})")
    for path in backend.evidence_paths:
        print(f"  evidence: {path}")
    return 0


def run_deps(args: argparse.Namespace) -> int:
    findings = dependency_findings(parse_file(args.left), parse_file(args.right))
    for finding in findings:
        print(finding.render())
    print(f"findings={len(findings)}")
    return 0


def run_history(args: argparse.Namespace) -> int:
    target = parse_target(args.target).value if args.target else None
    log_file = get_log_file().parent / "audit.log"
    records = get_recent_conversions(str(log_file), to_dialect=target, limit=args.limit)
    if not records:
        print(f"No conversions recorded in {log_file}")
        return 0
    for record in records:
        status = "OK" if record.success else f"FAILED: {record.error}"
        print(f"{record.timestamp}  {record.from_dialect} -> {record.to_dialect}  "
              f"{record.input} -> {record.output}  {status}")
    return 0


COMMANDS = {
    "convert": run_convert,
    "diff": run_diff,
    "detect": run_detect,
    "deps": run_deps,
    "history": run_history,
}


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    level = logging.DEBUG if args.verbose else None
    setup_logging(level=level, log_to_file=not args.no_log_file)
    if not args.no_log_file:
        setup_audit_logging(str(get_log_file().parent))

    global_stats.clear()
    try:
        return COMMANDS[args.command](args)
    except ConversionError as e:
        logger.error(str(e))
        return 2
    except Exception as e:
        logger.exception(f"Unexpected failure: {e}")
        return 1
    finally:
        if args.timings:
            print(global_stats.summary(), file=sys.stderr)


if __name__ == "__main__":
    sys.exit(main())
