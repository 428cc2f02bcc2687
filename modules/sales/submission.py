"""
sales/submission.py

The admission gate for a new sales order and the submit sequence behind it.

Submitting is two independent side effects run one after the other:
create the order, then (cash/split only) record one receipt per payment
line against the dealer. A failed receipt never undoes the order; it is
reported as CREATED_RECEIPT_FAILED so the operator can record it by hand.
Nothing is retried automatically.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Iterable, List, Optional

from ...config import CURRENCY
from ...utils.helpers import fmt_money, new_idempotency_key
from ...utils.validators import NumberLike, parse_percent
from ..payments.customer_payments.receipt_tenders_model import (
    PaymentAllocationModel,
    PaymentValidation,
    ReceiptRequest,
)
from .gateways import ApiError, Counterparty, CreatedOrder, SalesOrdersGateway
from .pricing import OrderLineDraft, is_priced
from .rejections import Rejection, classify_rejection
from .tax import PricingResult, TaxTreatment, compute_pricing, line_tax_rates_for_payload

__all__ = [
    "OrderDraft",
    "can_submit",
    "admission_errors",
    "build_order_payload",
    "SubmissionStatus",
    "FailedReceipt",
    "SubmissionOutcome",
    "OrderSubmissionService",
]

_log = logging.getLogger(__name__)


@dataclass
class OrderDraft:
    counterparty: Optional[Counterparty] = None
    lines: List[OrderLineDraft] = field(default_factory=lambda: [OrderLineDraft()])
    tax_treatment: TaxTreatment = TaxTreatment.NONE
    order_tax_rate: NumberLike = None
    payment: PaymentAllocationModel = field(default_factory=PaymentAllocationModel)
    currency: str = CURRENCY
    notes: Optional[str] = None

    def pricing(self) -> PricingResult:
        return compute_pricing(self.lines, self.tax_treatment, self.order_tax_rate)

    def payment_validation(self, pricing: Optional[PricingResult] = None, *, known_accounts=None) -> PaymentValidation:
        pricing = pricing or self.pricing()
        return self.payment.validation(pricing.rounded_total, known_accounts=known_accounts)


def admission_errors(draft: OrderDraft, *, known_accounts=None) -> List[str]:
    """
    Reasons the order cannot be submitted yet, in form order. Empty means
    admissible. Computed locally; nothing here touches the network.
    """
    errors: List[str] = []
    if draft.counterparty is None:
        errors.append("Select a dealer.")
    if not any(is_priced(ln) for ln in draft.lines):
        errors.append("Add at least one product with a quantity and unit price.")
    pricing = draft.pricing()
    if pricing.rounded_total <= 0:
        errors.append("Order total must be greater than zero.")
    payment = draft.payment_validation(pricing, known_accounts=known_accounts)
    if not payment.valid:
        errors.append(payment.message or "Payment details are incomplete.")
    return errors


def can_submit(draft: OrderDraft, *, known_accounts=None) -> bool:
    return not admission_errors(draft, known_accounts=known_accounts)


def _money(v: Decimal) -> str:
    return str(v)


def build_order_payload(draft: OrderDraft, pricing: PricingResult, idempotency_key: str) -> dict:
    """
    Request body for submit_order. Amounts are sent as decimal strings so
    nothing is lost to float conversion.
    """
    treatment = TaxTreatment.parse(draft.tax_treatment)
    priced = [ln for ln in draft.lines if is_priced(ln)]
    rates = line_tax_rates_for_payload(priced, treatment)
    items = []
    for ln, rate in zip(priced, rates):
        item = {
            "productCode": ln.product.sku_code,
            "description": ln.product.description,
            "quantity": ln.quantity,
            "unitPrice": _money(ln.unit_price),
        }
        if rate is not None:
            item["gstRate"] = _money(rate)
        items.append(item)

    payload = {
        "dealerId": draft.counterparty.id if draft.counterparty else None,
        "totalAmount": _money(pricing.rounded_total),
        "currency": draft.currency,
        "gstTreatment": treatment.wire_code,
        "gstInclusive": False,   # GST is added on top of the unit price
        "idempotencyKey": idempotency_key,
        "items": items,
    }
    if treatment is TaxTreatment.ORDER_TOTAL:
        payload["gstRate"] = _money(parse_percent(draft.order_tax_rate))
    if draft.notes:
        payload["notes"] = draft.notes
    return payload


class SubmissionStatus(str, Enum):
    BLOCKED = "blocked"                                   # gate closed, nothing sent
    CREATED = "created"
    CREATED_RECEIPT_FAILED = "created_receipt_failed"     # order exists, >=1 receipt missing
    REJECTED = "rejected"                                 # order not created


@dataclass(frozen=True)
class FailedReceipt:
    request: ReceiptRequest
    error: str


@dataclass
class SubmissionOutcome:
    status: SubmissionStatus
    message: str
    idempotency_key: Optional[str] = None
    order: Optional[CreatedOrder] = None
    pricing: Optional[PricingResult] = None
    receipt_ids: List[Any] = field(default_factory=list)
    failed_receipts: List[FailedReceipt] = field(default_factory=list)
    rejection: Optional[Rejection] = None
    errors: List[str] = field(default_factory=list)

    @property
    def order_created(self) -> bool:
        return self.status in (SubmissionStatus.CREATED, SubmissionStatus.CREATED_RECEIPT_FAILED)


class OrderSubmissionService:
    """
    Runs one submission: gate -> submit_order -> receipts.

    `key_factory` is injectable so tests can pin idempotency keys.
    """

    def __init__(
        self,
        gateway: SalesOrdersGateway,
        *,
        key_factory: Callable[[], str] = new_idempotency_key,
    ):
        self.gateway = gateway
        self._key_factory = key_factory

    def submit(self, draft: OrderDraft, *, known_accounts: Optional[Iterable[Any]] = None) -> SubmissionOutcome:
        known = list(known_accounts) if known_accounts is not None else None
        errors = admission_errors(draft, known_accounts=known)
        if errors:
            return SubmissionOutcome(SubmissionStatus.BLOCKED, errors[0], errors=errors)

        pricing = draft.pricing()
        key = self._key_factory()
        payload = build_order_payload(draft, pricing, key)
        method = draft.payment.method

        _log.info(
            "Submitting order for dealer %s: total=%s gst=%s payment=%s key=%s",
            draft.counterparty.id, pricing.rounded_total, payload["gstTreatment"], method.value, key,
        )
        try:
            order = self.gateway.submit_order(payload)
        except ApiError as e:
            rejection = classify_rejection(e, method)
            _log.warning(
                "Order rejected (status=%s, category=%s): %s",
                e.status, rejection.category.value, e.server_message(),
            )
            return SubmissionOutcome(
                SubmissionStatus.REJECTED,
                rejection.message,
                idempotency_key=key,
                pricing=pricing,
                rejection=rejection,
            )

        _log.info("Order %s created (id=%s)", order.label, order.id)
        receipts = draft.payment.receipt_requests(draft.counterparty.id, order.label, pricing.rounded_total)
        receipt_ids: List[Any] = []
        failed: List[FailedReceipt] = []
        for req in receipts:
            try:
                receipt_ids.append(self.gateway.create_receipt(req))
            except ApiError as e:
                _log.error(
                    "Receipt %s for order %s failed (account=%s, amount=%s): %s",
                    req.reference, order.label, req.cash_account_id, req.amount, e.server_message(),
                )
                failed.append(FailedReceipt(req, e.server_message() or "Unknown error"))

        if failed:
            missing = ", ".join(f"{fmt_money(f.request.amount)} ({f.request.reference})" for f in failed)
            message = (
                f"Order {order.label} created successfully, but recording the payment failed for: "
                f"{missing}. Record the receipt manually; the order has not been cancelled."
            )
            status = SubmissionStatus.CREATED_RECEIPT_FAILED
        else:
            message = f"Order {order.label} created."
            status = SubmissionStatus.CREATED

        return SubmissionOutcome(
            status,
            message,
            idempotency_key=key,
            order=order,
            pricing=pricing,
            receipt_ids=receipt_ids,
            failed_receipts=failed,
        )
