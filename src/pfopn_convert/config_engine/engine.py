"""Conversion engine - orchestrates the full pfSense/OPNsense pipeline.

Provides a single entry point for:
1. Resolving dialects and the target baseline
2. Resolving and gating the DHCP backend
3. Diffing and safe-merging the source onto the baseline
4. Running dialect transformers and the interface subsystem
5. Installing the DHCP backend and writing the result
"""
import logging
from pathlib import Path
from typing import Optional, Union

from ..config import ConversionOptions, MappingTables
from ..detect import Dialect
from ..dhcp import (
    BackendRequest,
    DhcpBackend,
    MigrationSeverity,
    MigrationWarning,
    disable_all,
    enforce_output_backend,
    ensure_backend_readiness,
    guard_kea_only_downgrade,
    migrate_isc_to_kea,
    resolve_effective_backend,
    seed_pfsense_kea_from_source,
)
from ..errors import ConversionError, InvalidInputError, MigrationFatalError
from ..interfaces import (
    assignments,
    bridges,
    device_refs,
    ifgroups,
    lan_ip,
    logical_refs,
    pfblocker,
    presence,
    settings,
    target_prune,
    vlans,
)
from ..transform import apply_openvpn_transfer, sync_shared_sections, transformers_for
from ..transform.wireguard import normalize_interface_names
from ..tree import XmlNode, parse_file, write_file
from ..utils.audit_log import log_conversion
from ..utils.logging_config import timed_section
from .diff import DiffEngine
from .merge import apply_safe_merge
from .schema import ConversionResult, DiffEntry, DiffOptions, MergeTarget
from .summary import summarize
from .validator import (
    enforce_interface_compat,
    ensure_distinct_dialects,
    ensure_output_not_same,
    resolve_source_dialect,
    validate_baseline,
)

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


class ConversionEngine:
    """
    Converts a firewall document into the other dialect.

    Usage:
        engine = ConversionEngine()
        result = engine.convert(source, ConversionOptions(target=Dialect.OPNSENSE), baseline)
        write_file(result.output, "out.xml")
    """

    def __init__(self, mappings: Optional[MappingTables] = None):
        """
        Initialize the engine.

        Args:
            mappings: Key fields, synced sections and ignore paths (defaults if omitted)
        """
        self.mappings = mappings or MappingTables()

    # === Baselines ===

    def resolve_baseline(
        self,
        target: Dialect,
        baseline: Optional[XmlNode] = None,
        minimal: bool = False,
    ) -> XmlNode:
        """
        Validated target baseline, or a bare root element in minimal mode.

        Raises:
            BaselineRejectedError: Baseline of the wrong dialect
            InvalidInputError: Neither a baseline nor minimal mode
        """
        if baseline is not None:
            validate_baseline(baseline, target)
            return baseline
        if minimal:
            logger.warning("Using minimal target baseline (dev/testing only)")
            return XmlNode(target.root_tag)
        raise InvalidInputError(
            "missing --target-file; provide a destination baseline config "
            "or use --minimal-template for dev/testing"
        )

    # === Diff ===

    def diff(self, left: XmlNode, right: XmlNode, include_identical: bool = False,
             max_depth: int = -1) -> list[DiffEntry]:
        """Structural diff using the configured key fields and ignore paths."""
        options = DiffOptions(
            include_identical=include_identical,
            max_depth=max_depth,
            key_fields=dict(self.mappings.key_fields),
            ignore_paths=list(self.mappings.ignore_paths),
        )
        return DiffEngine(options).calculate(left, right)

    # === Conversion ===

    def convert(
        self,
        source: XmlNode,
        options: ConversionOptions,
        baseline: Optional[XmlNode] = None,
    ) -> ConversionResult:
        """
        Convert ``source`` into ``options.target``.

        Neither input tree is modified.

        Args:
            source: Parsed source document
            options: Conversion options
            baseline: Parsed target baseline (required unless minimal mode)

        Returns:
            ConversionResult with the output tree, summary and warnings

        Raises:
            ConversionError: Any fatal condition of the pipeline
        """
        target_dialect = options.target
        ctx = target_dialect.value

        # Step 1: Dialects and baseline
        source_dialect = resolve_source_dialect(options.source, source)
        ensure_distinct_dialects(source_dialect, target_dialect)
        target = self.resolve_baseline(target_dialect, baseline, options.minimal_baseline)
        logger.info(f"Converting {source_dialect.value} -> {target_dialect.value}")

        # Step 2: DHCP backend policy
        requested = options.backend
        effective = resolve_effective_backend(requested, source, target, target_dialect)
        ensure_backend_readiness(target, requested, effective)
        logger.info(f"DHCP backend: requested={requested.value} effective={effective.value}")

        # Step 3: Interface compatibility
        enforce_interface_compat(source, target)

        # Step 4: Diff and safe merge onto the baseline
        with timed_section("diff", context=ctx):
            entries = self.diff(source, target)
        with timed_section("merge", context=ctx, entries=len(entries)):
            out = apply_safe_merge(source, target, entries, MergeTarget.RIGHT,
                                   self.mappings.key_fields)

        # Step 5: Dependency transfer and shared sections
        apply_openvpn_transfer(
            out, source, target,
            transfer_cas=options.transfer_cas,
            transfer_certs=options.transfer_certs,
            transfer_users_enabled=options.transfer_users,
        )
        sync_shared_sections(out, source, self.mappings.synced_sections)

        # Step 6: Dialect transformers
        with timed_section("transformers", context=ctx):
            for name, transformer in transformers_for(target_dialect):
                logger.debug(f"Running transformer {name}")
                transformer(out, source, target)
        out.tag = target_dialect.root_tag

        # Step 7: Interface subsystem
        with timed_section("interfaces", context=ctx):
            removed_interfaces, removed_sections, logical_map = self._apply_interfaces(
                out, source, target, target_dialect
            )

        # Step 8: Dialect cleanup
        self._cleanup(out, target_dialect)

        # Step 9: LAN override, mirrored onto the DHCP harvest source
        harvest = source
        if options.lan_ip:
            lan_ip.apply(out, options.lan_ip)
            harvest = lan_ip.rebased(source, options.lan_ip)

        # Step 10: DHCP backend installation
        with timed_section("dhcp", context=ctx, backend=effective.value):
            install = self._install_backend(out, harvest, target_dialect, requested, effective)
        effective, stats, fell_back, preserve, warnings = install

        guard_kea_only_downgrade(source, effective, target_dialect)

        if options.disable_dhcp:
            disable_all(out)

        summary = summarize(out)
        logger.info(summary.render())
        return ConversionResult(
            output=out,
            source_dialect=source_dialect,
            target_dialect=target_dialect,
            backend=effective,
            summary=summary,
            warnings=warnings,
            migration=stats,
            fell_back=fell_back,
            preserve_ipv6_legacy=preserve,
            removed_interfaces=removed_interfaces,
            removed_sections=removed_sections,
            logical_map=logical_map or {},
        )

    def _apply_interfaces(self, out: XmlNode, source: XmlNode, target: XmlNode,
                          dialect: Dialect):
        settings.apply(out, source, target, None)
        removed_interfaces = presence.prune_missing(out, target)

        logical_map = None
        if dialect == Dialect.OPNSENSE:
            logical_map = assignments.normalize(out) or None
        logical_refs.apply(out, logical_map)

        removed_sections = target_prune.prune(out, dialect, target)
        device_refs.apply(out, source, target, None)
        return removed_interfaces, removed_sections, logical_map

    def _cleanup(self, out: XmlNode, dialect: Dialect) -> None:
        if dialect == Dialect.OPNSENSE:
            pfblocker.prune_floating_rules(out)
            vlans.canonicalize(out)
            normalize_interface_names(out)
            bridges.to_opnsense(out)
            ifgroups.to_opnsense(out)
        else:
            bridges.to_pfsense(out)
            ifgroups.to_pfsense(out)

    def _install_backend(self, out: XmlNode, source: XmlNode, dialect: Dialect,
                         requested: BackendRequest, effective: DhcpBackend):
        """Returns ``(effective, stats, fell_back, preserve_ipv6_legacy, warnings)``."""
        warnings: list[MigrationWarning] = []

        if dialect == Dialect.PFSENSE and effective == DhcpBackend.MODERN:
            seed_pfsense_kea_from_source(out, source)

        if not (dialect == Dialect.OPNSENSE and effective == DhcpBackend.MODERN):
            enforce_output_backend(out, effective, dialect, False)
            return effective, None, False, False, warnings

        # Migrate into a scratch copy so a fallback leaves no half-built Kea data
        scratch = out.clone()
        try:
            stats = migrate_isc_to_kea(scratch, source)
        except MigrationFatalError as e:
            if requested != BackendRequest.AUTO:
                raise
            message = f"Kea migration failed in auto mode ({e.message}); falling back to ISC backend"
            logger.warning(message)
            warnings.append(MigrationWarning(message))
            enforce_output_backend(out, DhcpBackend.LEGACY, dialect, False)
            return DhcpBackend.LEGACY, None, True, False, warnings

        warnings.extend(stats.warnings)
        if stats.has_errors:
            errors = [w.message for w in stats.warnings if w.severity == MigrationSeverity.ERROR]
            if requested != BackendRequest.AUTO:
                raise MigrationFatalError("; ".join(errors))
            message = "Kea migration skipped due to fatal errors; falling back to ISC backend"
            logger.warning(message)
            warnings.append(MigrationWarning(message))
            enforce_output_backend(out, DhcpBackend.LEGACY, dialect, False)
            return DhcpBackend.LEGACY, stats, True, False, warnings

        out.children = scratch.children
        for warning in stats.warnings:
            logger.warning(f"DHCP migration: {warning.message}")
        preserve = bool(stats.preserved_dhcpdv6_ifaces)
        enforce_output_backend(out, DhcpBackend.MODERN, dialect, preserve)
        return DhcpBackend.MODERN, stats, False, preserve, warnings

    # === File-backed conversion ===

    def convert_files(
        self,
        input_path: PathLike,
        output_path: PathLike,
        options: ConversionOptions,
        target_file: Optional[PathLike] = None,
    ) -> ConversionResult:
        """
        Parse, convert, write and audit one conversion.

        Raises:
            ConversionError: Any fatal condition; nothing is written
        """
        source_label = options.source.value if options.source else "auto"
        try:
            ensure_output_not_same(output_path, [input_path, target_file])
            source = parse_file(input_path)
            baseline = parse_file(target_file) if target_file is not None else None
            result = self.convert(source, options, baseline)
            write_file(result.output, output_path)
        except ConversionError as e:
            log_conversion(
                str(input_path), str(output_path), source_label, options.target.value,
                success=False, error=str(e),
            )
            raise

        log_conversion(
            str(input_path), str(output_path), result.source_dialect.value,
            result.target_dialect.value, success=True, backend=result.backend.product,
            summary=result.summary.to_dict(), warnings=result.warning_messages,
        )
        logger.info(f"Wrote {output_path}")
        return result
