# utils/helpers.py
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP, localcontext
import logging
import uuid
from typing import Union, Optional

from ..constants import IDEMPOTENCY_KEY_PREFIX, MONEY_PLACES, MONEY_QUANTUM

NumberLike = Union[Decimal, float, int, str]

_log = logging.getLogger(__name__)


def _quantize(v: Decimal, q: Decimal) -> Decimal:
    # quantize raises once the result has more digits than the context precision
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, v.adjusted() - q.adjusted() + 2)
        return v.quantize(q, rounding=ROUND_HALF_UP)


def round_money(v: Decimal) -> Decimal:
    """Round to 2 decimal places, halves away from zero (1.005 -> 1.01). No upper bound."""
    return _quantize(Decimal(v), MONEY_QUANTUM)


def new_idempotency_key(now: Optional[datetime] = None) -> str:
    """
    Fresh key for one submission attempt: 'order-<epoch ms>-<random hex>'.

    A retried request must reuse the key of the attempt it retries; a new
    attempt always gets a new one.
    """
    now = now or datetime.now()
    millis = int(now.timestamp() * 1000)
    return f"{IDEMPOTENCY_KEY_PREFIX}-{millis}-{uuid.uuid4().hex[:12]}"


def fmt_money(
    v: NumberLike,
    places: int = MONEY_PLACES,
    *,
    strict: bool = False,
    sentinel: Optional[str] = None,
) -> str:
    """
    Format a number as money with thousands separators and a fixed number of decimals.

    Behavior on parse failure:
      - By default (strict=False, sentinel=None), returns str(v).
      - If `sentinel` is provided (e.g., "N/A"), returns that sentinel instead.
      - If `strict=True`, raises ValueError on parse failures.

    Decimal input is quantized half-up, so 1442.505 shows as 1,442.51.
    """
    try:
        x = Decimal(str(v).strip()) if not isinstance(v, Decimal) else v
        if not x.is_finite():
            raise ValueError(v)
    except Exception as e:
        _log.debug("fmt_money: failed to parse %r as a number: %s", v, e)
        if strict:
            raise ValueError(f"Could not parse {v!r} as a number.") from e
        return str(sentinel) if sentinel is not None else str(v)
    q = Decimal(1).scaleb(-places) if places > 0 else Decimal(1)
    return f"{_quantize(x, q):,.{places}f}"
