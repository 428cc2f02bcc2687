"""
payment_utilities/calculations.py

Pure helpers for payment allocation previews against an order total.

Do not call collaborators here.
Only compute numbers; formatting belongs in the UI.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from ....constants import RECONCILE_TOLERANCE

__all__ = [
    "clamp_non_negative",
    "allocated_total",
    "reconciliation_difference",
    "is_reconciled",
    "remaining_to_allocate",
    "status_from_allocated",
]

_ZERO = Decimal("0")


# -----------------------------
# Core utilities
# -----------------------------

def clamp_non_negative(x: Decimal) -> Decimal:
    """Return x if x > 0, else 0."""
    return x if x > 0 else _ZERO


def allocated_total(amounts: Iterable[Decimal]) -> Decimal:
    """Plain sum of the payment-line amounts (no rounding)."""
    return sum((Decimal(a) for a in amounts), _ZERO)


# -----------------------------
# Reconciliation
# -----------------------------

def reconciliation_difference(allocated: Decimal, grand_total: Decimal) -> Decimal:
    """
    allocated - grand_total.

    Positive means over-allocated, negative means something is still
    unallocated (e.g. a forgotten payment line).
    """
    return allocated - grand_total


def is_reconciled(
    allocated: Decimal,
    grand_total: Decimal,
    tolerance: Decimal = RECONCILE_TOLERANCE,
) -> bool:
    """
    True iff |allocated - grand_total| < tolerance (strict).

    The tolerance absorbs rounding noise from the GST step; a gap of a full
    paisa or more is a genuine mismatch.
    """
    return abs(reconciliation_difference(allocated, grand_total)) < tolerance


def remaining_to_allocate(allocated: Decimal, grand_total: Decimal) -> Decimal:
    """
    What is still left to spread across payment lines, clamped at >= 0.
    """
    return clamp_non_negative(grand_total - allocated)


# -----------------------------
# Common status helper
# -----------------------------

def status_from_allocated(grand_total: Decimal, allocated: Decimal) -> str:
    """
    Badge for the split-tender summary:
      - 'balanced' if reconciled within tolerance
      - 'over'     if more than the total is allocated
      - 'short'    otherwise
    """
    if is_reconciled(allocated, grand_total):
        return "balanced"
    if allocated > grand_total:
        return "over"
    return "short"
