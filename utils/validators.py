# utils/validators.py
from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from ..constants import PERCENT_MAX, PERCENT_MIN

NumberLike = Union[Decimal, float, int, str, None]

_ZERO = Decimal("0")

# "1,442.50" is accepted; "12,5" and "1,2,3" are not numbers
_GROUPED = re.compile(r"^[+-]?\d{1,3}(,\d{3})+(\.\d*)?$")


def non_empty(text) -> bool:
    """
    True if `text` is not None/empty after stripping whitespace.
    """
    return bool(text is not None and str(text).strip())


# ---- Numeric parsing & validators ----

def try_parse_decimal(x):
    """
    Best-effort parse to a finite Decimal.

    Returns:
        (ok: bool, value: Decimal|None)

    ok == False means parsing failed and value is None. Booleans, blanks,
    NaN and infinities are rejected, as is any comma that is not thousands
    grouping.
    """
    if x is None or isinstance(x, bool):
        return False, None
    if isinstance(x, Decimal):
        val = x
    elif isinstance(x, (int, float)):
        # str() keeps the shortest repr, so 0.1 parses as Decimal("0.1")
        try:
            val = Decimal(str(x))
        except (InvalidOperation, ValueError):
            return False, None
    else:
        text = str(x).strip()
        if "," in text:
            if not _GROUPED.match(text):
                return False, None
            text = text.replace(",", "")
        if not text:
            return False, None
        try:
            val = Decimal(text)
        except (InvalidOperation, ValueError):
            return False, None
    if not val.is_finite():
        return False, None
    return True, val


def parse_amount(raw: NumberLike) -> Decimal:
    """
    Money input -> non-negative Decimal.

    Empty, non-numeric and negative input all degrade to 0; there is no
    upper bound. Never raises.
    """
    ok, val = try_parse_decimal(raw)
    if not ok or val is None or val < 0:
        return _ZERO
    return val


def parse_percent(raw: NumberLike) -> Decimal:
    """
    Percentage input -> Decimal clamped to [0, 100]. Invalid input is 0.
    """
    ok, val = try_parse_decimal(raw)
    if not ok or val is None:
        return _ZERO
    if val < PERCENT_MIN:
        return PERCENT_MIN
    if val > PERCENT_MAX:
        return PERCENT_MAX
    return val


def parse_optional_percent(raw: NumberLike) -> Optional[Decimal]:
    """
    Like parse_percent(), but a blank value means "not set" and returns None.

    Anything typed (even garbage) counts as an explicit operator value.
    """
    if not non_empty(raw):
        return None
    return parse_percent(raw)


def parse_quantity(raw: NumberLike) -> int:
    """
    Quantity input -> non-negative int. Fractions and invalid input are 0.
    """
    ok, val = try_parse_decimal(raw)
    if not ok or val is None or val < 0:
        return 0
    if val != val.to_integral_value():
        return 0
    return int(val)


def is_strictly_positive_number(x) -> bool:
    """
    True iff x parses to a finite number and value > 0.
    """
    ok, val = try_parse_decimal(x)
    return bool(ok and val is not None and val > 0)
