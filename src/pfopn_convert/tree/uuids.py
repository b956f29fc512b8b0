"""Deterministic identifier generation.

All UUIDs written into converted documents are pure functions of their
inputs so that converting the same files twice yields identical bytes.
"""
import hashlib
import uuid


def stable_uuid(kind: str, index: int, seed: str = "") -> str:
    """
    Derive an RFC 4122 shaped (version 4) UUID from ``(kind, index, seed)``.

    Args:
        kind: Entity family, e.g. "conn", "child", "vlan"
        index: Position of the entity within its family
        seed: Stable natural key (ikeid, refid, member list, ...)

    Returns:
        Canonical lowercase UUID string
    """
    digest = hashlib.sha256(f"{kind}\x1f{index}\x1f{seed}".encode("utf-8")).digest()
    return str(uuid.UUID(bytes=digest[:16], version=4))


def instance_uuid(numeric_id: int) -> str:
    """UUID used for tunnel instances: ``00000000-0000-4000-8000-<12 hex>``."""
    return f"00000000-0000-4000-8000-{numeric_id % (1 << 48):012x}"
