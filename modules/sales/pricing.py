"""
sales/pricing.py

Line pricing for the order draft: which lines count toward the total, what
each contributes, and the advisory minimum selling price per product.

The floor is shown to the operator only; the backend enforces hard minimums.
"""
from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, List, Optional

from ...utils.validators import (
    NumberLike,
    parse_amount,
    parse_optional_percent,
    parse_quantity,
)
from .gateways import ProductPricingPolicy

__all__ = [
    "OrderLineDraft",
    "resolve_min_price",
    "is_priced",
    "line_base",
    "priced_lines",
    "order_subtotal",
    "below_floor",
]

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")


@dataclass
class OrderLineDraft:
    product: Optional[ProductPricingPolicy] = None
    quantity: int = 1
    unit_price: Decimal = _ZERO
    tax_rate_percent: Optional[Decimal] = None   # None => not overridden by the operator

    @classmethod
    def from_raw(
        cls,
        product: Optional[ProductPricingPolicy],
        quantity: NumberLike = 1,
        unit_price: NumberLike = "",
        tax_rate: NumberLike = "",
    ) -> "OrderLineDraft":
        return cls(
            product=product,
            quantity=parse_quantity(quantity),
            unit_price=parse_amount(unit_price),
            tax_rate_percent=parse_optional_percent(tax_rate),
        )


def resolve_min_price(policy: Optional[ProductPricingPolicy]) -> Decimal:
    """
    floor = max(discount_floor, min_selling_price, 0) where
    discount_floor = base - base * min_discount_percent / 100 when both are
    positive, else base.
    """
    if policy is None:
        return _ZERO
    base = parse_amount(policy.base_price)
    pct = parse_amount(policy.min_discount_percent)
    explicit = parse_amount(policy.min_selling_price)
    if base > 0 and pct > 0:
        discount_floor = base - base * pct / _HUNDRED
    else:
        discount_floor = base
    return max(discount_floor, explicit, _ZERO)


def is_priced(line: OrderLineDraft) -> bool:
    """Product resolved, quantity > 0 and unit price > 0."""
    return line.product is not None and line.quantity > 0 and line.unit_price > 0


def line_base(line: OrderLineDraft) -> Decimal:
    """quantity * unit_price, or 0 for a line that is not priced yet."""
    if not is_priced(line):
        return _ZERO
    return Decimal(line.quantity) * line.unit_price


def priced_lines(lines: Iterable[OrderLineDraft]) -> List[OrderLineDraft]:
    return [ln for ln in lines if is_priced(ln)]


def order_subtotal(lines: Iterable[OrderLineDraft]) -> Decimal:
    return sum((line_base(ln) for ln in lines), _ZERO)


def below_floor(line: OrderLineDraft) -> bool:
    if not is_priced(line):
        return False
    return line.unit_price < resolve_min_price(line.product)
