"""
sales/rejections.py

Turns a failed order submission into one of a fixed set of operator-facing
categories.

In production the backend sanitizes internal exceptions into generic 409s,
so this is best-effort: match whatever fragment of the original message
survives against an ordered rule list, and never guess beyond it. The one
deliberate guess (a bare 409 on a cash/split order is most likely the credit
limit) is flagged `best_guess=True` and worded as such.

New patterns go into RULES; order matters, first match wins.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from ...constants import GENERIC_CONFLICT_MESSAGES, IDEMPOTENCY_CONFLICT_CODE
from ..payments.customer_payments.receipt_tenders_model import PaymentMethod
from .gateways import ApiError

__all__ = [
    "RejectionCategory",
    "Rejection",
    "RULES",
    "classify_rejection",
]

_log = logging.getLogger(__name__)


class RejectionCategory(str, Enum):
    DUPLICATE_SUBMISSION = "DuplicateSubmission"
    COUNTERPARTY_ON_HOLD = "CounterpartyOnHold"
    CREDIT_LIMIT_EXCEEDED = "CreditLimitExceeded"
    INACTIVE_PRODUCT = "InactiveProduct"
    PRODUCT_MISCONFIGURED = "ProductMisconfigured"
    MISSING_REVENUE_ACCOUNT = "MissingRevenueAccount"
    MISSING_TAX_ACCOUNT = "MissingTaxAccount"
    MISSING_PRODUCT_MAPPING = "MissingProductMapping"
    FORBIDDEN = "Forbidden"
    NETWORK_FAILURE = "NetworkFailure"
    UNCLASSIFIED = "Unclassified"


@dataclass(frozen=True)
class Rejection:
    category: RejectionCategory
    message: str                        # what the operator sees
    status: Optional[int] = None
    server_message: str = ""
    best_guess: bool = False


@dataclass(frozen=True)
class _Context:
    status: Optional[int]
    code: str
    text: str            # server message as sent
    lower: str           # lower-cased for matching
    method: PaymentMethod


Predicate = Callable[[_Context], bool]
Describe = Callable[[_Context], str]


def _contains(*needles: str) -> Predicate:
    def pred(ctx: _Context) -> bool:
        return ctx.status is not None and ctx.status != 403 and any(n in ctx.lower for n in needles)
    return pred


def _status_contains(statuses: Tuple[int, ...], *needles: str) -> Predicate:
    def pred(ctx: _Context) -> bool:
        return ctx.status in statuses and any(n in ctx.lower for n in needles)
    return pred


def _credit_limit_message(ctx: _Context) -> str:
    if ctx.method.moves_cash:
        return (
            "Cannot create order: Dealer credit limit exceeded. Even for cash/split payments, "
            "the server enforces credit limits during order creation. Workaround: increase the "
            "dealer's credit limit or clear the outstanding balance first."
        )
    return (
        "Cannot create order: Dealer credit limit has been exceeded. Request a credit limit "
        "increase or clear the outstanding balance first."
    )


RULES: List[Tuple[Predicate, RejectionCategory, Describe]] = [
    (
        lambda ctx: ctx.status == 409 and ctx.code == IDEMPOTENCY_CONFLICT_CODE,
        RejectionCategory.DUPLICATE_SUBMISSION,
        lambda ctx: "This order may have already been submitted. Refresh and check your orders before retrying.",
    ),
    (
        _contains("on hold", "suspended", "blocked"),
        RejectionCategory.COUNTERPARTY_ON_HOLD,
        lambda ctx: "Cannot create order: This dealer is currently on hold. Please contact an administrator.",
    ),
    (
        _contains("credit limit"),
        RejectionCategory.CREDIT_LIMIT_EXCEEDED,
        _credit_limit_message,
    ),
    (
        _contains("inactive"),
        RejectionCategory.INACTIVE_PRODUCT,
        lambda ctx: "Cannot create order: One or more selected products are inactive. Remove them and try again.",
    ),
    (
        _contains("finished good", "not configured"),
        RejectionCategory.PRODUCT_MISCONFIGURED,
        lambda ctx: (
            "Cannot create order: Product configuration is incomplete. A finished good mapping "
            "may be missing. Please contact an administrator."
        ),
    ),
    (
        _contains("revenue account"),
        RejectionCategory.MISSING_REVENUE_ACCOUNT,
        lambda ctx: (
            "Cannot create order: A revenue account has not been configured for one or more "
            "products. Please contact an administrator."
        ),
    ),
    (
        _contains("gst", "liability account"),
        RejectionCategory.MISSING_TAX_ACCOUNT,
        lambda ctx: (
            "Cannot create order: GST liability account is missing for one or more products. "
            "Please contact an administrator."
        ),
    ),
    (
        _status_contains((400, 422), "mapping"),
        RejectionCategory.MISSING_PRODUCT_MAPPING,
        lambda ctx: "Cannot create order: Required product mappings are missing. Please contact an administrator.",
    ),
    (
        lambda ctx: ctx.status == 403,
        RejectionCategory.FORBIDDEN,
        lambda ctx: "You do not have permission to create orders. Sign in with a sales or admin role.",
    ),
    (
        lambda ctx: ctx.status is None,
        RejectionCategory.NETWORK_FAILURE,
        lambda ctx: (
            "No response from the server. The order may or may not have been created; "
            "retrying is safe because the request carries an idempotency key."
        ),
    ),
]


def _is_generic(text: str) -> bool:
    t = (text or "").strip().lower()
    return not t or t in GENERIC_CONFLICT_MESSAGES


def _fallback(ctx: _Context) -> Rejection:
    if ctx.status == 409 and _is_generic(ctx.text):
        if ctx.method.moves_cash:
            return Rejection(
                RejectionCategory.CREDIT_LIMIT_EXCEEDED,
                "Cannot create order: The server rejected this order (likely credit limit exceeded). "
                "Cash payment does not bypass credit limit checks during order creation. "
                "Increase the dealer's credit limit or clear the outstanding balance first.",
                ctx.status, ctx.text, best_guess=True,
            )
        return Rejection(
            RejectionCategory.UNCLASSIFIED,
            "Cannot create order: A business rule prevented this operation. Possible causes: "
            "dealer on hold, credit limit exceeded, or incomplete product configuration.",
            ctx.status, ctx.text, best_guess=True,
        )
    if ctx.status == 409:
        message = f"Cannot create order: {ctx.text}"
    elif ctx.status in (400, 422):
        message = ctx.text or "Validation failed. Please check your inputs and try again."
    else:
        message = ctx.text or "An unexpected error occurred."
    return Rejection(RejectionCategory.UNCLASSIFIED, message, ctx.status, ctx.text)


def classify_rejection(error: ApiError, method: PaymentMethod = PaymentMethod.CREDIT) -> Rejection:
    """Map a failed submit_order call to a Rejection. Pure; never raises for an ApiError."""
    text = error.server_message() or ""
    ctx = _Context(
        status=error.status,
        code=error.error_code(),
        text=text,
        lower=text.lower(),
        method=PaymentMethod(method),
    )
    for pred, category, describe in RULES:
        if pred(ctx):
            return Rejection(category, describe(ctx), ctx.status, ctx.text)
    rejection = _fallback(ctx)
    if rejection.best_guess:
        _log.info("409 without diagnostic detail; reporting best guess %s", rejection.category.value)
    return rejection
