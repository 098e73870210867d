"""Static ink cost table.

``estimate`` is a pure lookup: operation kind (plus nesting depth and, for
context calls, the primitive's sub-kind) to an ink charge. It never raises;
a nonsensical depth is clamped to 1.
"""

from __future__ import annotations

from typing import Optional

from ..config import DEFAULT_COSTS, GAS_DIVISOR, CostPolicy
from .models import OperationKind, Severity


def estimate(
    kind: OperationKind,
    nesting_depth: int = 1,
    sub_kind: Optional[str] = None,
    policy: CostPolicy = DEFAULT_COSTS,
) -> int:
    """Ink estimate for one operation.

    Args:
        kind: Operation kind
        nesting_depth: Intermediate accessor hops (nested map access only)
        sub_kind: Context primitive family, e.g. ``msg_sender`` or ``block``
        policy: Base cost table

    Returns:
        Non-negative ink estimate
    """
    depth = max(1, nesting_depth)

    if kind == OperationKind.STORAGE_READ:
        return policy.storage_read
    if kind == OperationKind.STORAGE_WRITE:
        return policy.storage_write
    if kind == OperationKind.STORAGE_WRITE_EMBEDDED:
        return policy.storage_write + policy.storage_read
    if kind == OperationKind.NESTED_MAP_ACCESS:
        return policy.storage_read * depth
    if kind == OperationKind.CONTEXT_CALL:
        table = policy.context_call
        return table.get(sub_kind or "default", table["default"])
    if kind == OperationKind.EVENT_EMIT:
        return policy.event_emit
    if kind == OperationKind.EXTERNAL_CALL:
        return policy.external_call
    if kind == OperationKind.CRYPTO:
        return policy.crypto
    return policy.other


def severity_for(kind: OperationKind) -> Severity:
    """Display severity of an operation, by kind."""
    if kind.is_storage or kind == OperationKind.EXTERNAL_CALL:
        return Severity.HIGH
    if kind in (OperationKind.EVENT_EMIT, OperationKind.CRYPTO):
        return Severity.MEDIUM
    return Severity.LOW


def gas_equivalent(ink: int) -> int:
    return ink // GAS_DIVISOR
