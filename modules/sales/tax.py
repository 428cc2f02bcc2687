"""
sales/tax.py

GST treatment and order totals.

Subtotal and GST are accumulated unrounded; only the grand total is rounded
(2 places, half-up). The difference is kept as `rounding_adjustment` so
ledger postings reconcile to the displayed total to the paisa.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Iterable, List, Optional

from ...utils.helpers import round_money
from ...utils.validators import NumberLike, parse_percent
from .pricing import OrderLineDraft, is_priced, line_base, order_subtotal

__all__ = [
    "TaxTreatment",
    "PricingResult",
    "resolve_line_rate",
    "compute_pricing",
    "apply_default_tax_rates",
    "line_tax_rates_for_payload",
]

_log = logging.getLogger(__name__)

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


class TaxTreatment(str, Enum):
    NONE = "NONE"
    PER_LINE = "PER_LINE"
    ORDER_TOTAL = "ORDER_TOTAL"

    @property
    def wire_code(self) -> str:
        # the order endpoint calls per-line GST "PER_ITEM"
        return "PER_ITEM" if self is TaxTreatment.PER_LINE else self.value

    @classmethod
    def parse(cls, value) -> "TaxTreatment":
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().upper()
        if text == "PER_ITEM":
            return cls.PER_LINE
        try:
            return cls(text)
        except ValueError:
            raise ValueError(f"Unknown GST treatment: {value!r}") from None


@dataclass(frozen=True)
class PricingResult:
    subtotal: Decimal = _ZERO
    tax_total: Decimal = _ZERO
    rounded_total: Decimal = _ZERO
    rounding_adjustment: Decimal = _ZERO

    @property
    def raw_total(self) -> Decimal:
        return self.subtotal + self.tax_total


def resolve_line_rate(line: OrderLineDraft) -> Decimal:
    """The line's own rate if the operator set one, else the product default (0 if none)."""
    if line.tax_rate_percent is not None:
        return parse_percent(line.tax_rate_percent)
    if line.product is not None:
        return parse_percent(line.product.default_tax_rate_percent)
    return _ZERO


def compute_pricing(
    lines: Iterable[OrderLineDraft],
    treatment: TaxTreatment,
    order_rate_percent: NumberLike = None,
) -> PricingResult:
    lines = list(lines)
    treatment = TaxTreatment.parse(treatment)

    subtotal = order_subtotal(lines)
    if subtotal <= 0:
        return PricingResult()

    if treatment is TaxTreatment.PER_LINE:
        tax_total = sum(
            (line_base(ln) * resolve_line_rate(ln) / _HUNDRED for ln in lines if is_priced(ln)),
            _ZERO,
        )
    elif treatment is TaxTreatment.ORDER_TOTAL:
        tax_total = subtotal * parse_percent(order_rate_percent) / _HUNDRED
    else:
        tax_total = _ZERO

    raw_total = subtotal + tax_total
    rounded_total = round_money(raw_total)
    return PricingResult(
        subtotal=subtotal,
        tax_total=tax_total,
        rounded_total=rounded_total,
        rounding_adjustment=rounded_total - raw_total,
    )


def apply_default_tax_rates(lines: Iterable[OrderLineDraft], treatment: TaxTreatment) -> int:
    """
    One-shot default fill, run when the treatment switches to PER_LINE.

    Lines without an explicit rate take their product's default rate; rates
    the operator already typed are left alone. Returns how many were filled.
    """
    if TaxTreatment.parse(treatment) is not TaxTreatment.PER_LINE:
        return 0
    filled = 0
    for ln in lines:
        if ln.tax_rate_percent is not None or ln.product is None:
            continue
        default = ln.product.default_tax_rate_percent
        if default is None:
            continue
        ln.tax_rate_percent = parse_percent(default)
        filled += 1
    if filled:
        _log.debug("Filled default GST rate on %d line(s)", filled)
    return filled


def line_tax_rates_for_payload(lines: Iterable[OrderLineDraft], treatment: TaxTreatment) -> List[Optional[Decimal]]:
    """
    Per-line rate to send with the order: only explicit operator rates and
    only under PER_LINE. The server applies product defaults itself.
    """
    treatment = TaxTreatment.parse(treatment)
    out: List[Optional[Decimal]] = []
    for ln in lines:
        if treatment is TaxTreatment.PER_LINE and ln.tax_rate_percent is not None:
            out.append(parse_percent(ln.tax_rate_percent))
        else:
            out.append(None)
    return out
