# sales_orders/modules/sales/__init__.py

"""
Sales-order package exports.

Pure engine (no Qt):
- pricing / tax / submission / rejections

Qt binding for the create-order dialog:
- OrderDraftController
- OrderLinesTableModel
"""

from .gateways import ApiError, CashAccount, Counterparty, CreatedOrder, ProductPricingPolicy
from .pricing import OrderLineDraft, resolve_min_price
from .tax import PricingResult, TaxTreatment, compute_pricing
from .rejections import Rejection, RejectionCategory, classify_rejection
from .submission import (
    OrderDraft,
    OrderSubmissionService,
    SubmissionOutcome,
    SubmissionStatus,
    can_submit,
)
from .controller import DomainError, OrderDraftController
from .model import OrderLinesTableModel

__all__ = [
    # records
    "ApiError",
    "CashAccount",
    "Counterparty",
    "CreatedOrder",
    "ProductPricingPolicy",
    # engine
    "OrderLineDraft",
    "resolve_min_price",
    "PricingResult",
    "TaxTreatment",
    "compute_pricing",
    "Rejection",
    "RejectionCategory",
    "classify_rejection",
    "OrderDraft",
    "OrderSubmissionService",
    "SubmissionOutcome",
    "SubmissionStatus",
    "can_submit",
    # Qt
    "DomainError",
    "OrderDraftController",
    "OrderLinesTableModel",
]
