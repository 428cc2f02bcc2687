from __future__ import annotations

from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from PySide6.QtCore import Signal

from ...utils.helpers import new_idempotency_key
from ...utils.loggers import get_logger
from ...utils.validators import (
    NumberLike,
    parse_optional_percent,
    parse_quantity,
    parse_amount,
)
from ..base_module import BaseModule
from ..payments.customer_payments.receipt_tenders_model import (
    PaymentMethod,
    PaymentValidation,
)
from .gateways import (
    AccountsDirectory,
    ApiError,
    CashAccount,
    Counterparty,
    CounterpartyDirectory,
    ProductCatalog,
    ProductPricingPolicy,
    SalesOrdersGateway,
)
from .model import OrderLinesTableModel
from .pricing import OrderLineDraft, resolve_min_price
from .rejections import Rejection, classify_rejection
from .submission import (
    OrderDraft,
    OrderSubmissionService,
    SubmissionOutcome,
    SubmissionStatus,
    admission_errors,
)
from .tax import PricingResult, TaxTreatment, apply_default_tax_rates, compute_pricing

log = get_logger(__name__)


class DomainError(Exception):
    pass


class OrderDraftController(BaseModule):
    """
    State holder for one in-progress order, bound to the create-order dialog.

    Every edit recomputes pricing, payment validation and the submit gate and
    emits the matching signals. The draft is thrown away on cancel and after
    the order has been created.
    """

    pricingChanged = Signal(object)      # PricingResult
    paymentChanged = Signal(object)      # PaymentValidation
    canSubmitChanged = Signal(bool)
    orderCreated = Signal(object)        # SubmissionOutcome (CREATED or CREATED_RECEIPT_FAILED)
    orderRejected = Signal(object)       # SubmissionOutcome (REJECTED)
    receiptFailed = Signal(object)       # SubmissionOutcome (CREATED_RECEIPT_FAILED)

    def __init__(
        self,
        gateway: SalesOrdersGateway,
        *,
        directory: Optional[CounterpartyDirectory] = None,
        catalog: Optional[ProductCatalog] = None,
        accounts: Optional[AccountsDirectory] = None,
        key_factory: Callable[[], str] = new_idempotency_key,
        parent=None,
    ):
        super().__init__(parent)
        self.directory = directory
        self.catalog = catalog
        self.accounts = accounts
        self.service = OrderSubmissionService(gateway, key_factory=key_factory)

        self._products: Dict[int, List[ProductPricingPolicy]] = {}
        self._cash_accounts: List[CashAccount] = []
        self._accounts_loaded = False
        self.draft = OrderDraft()
        self.lines_model = OrderLinesTableModel(self.draft.lines)
        self._pricing = PricingResult()
        self._payment = PaymentValidation(valid=True, total=Decimal("0"))
        self._can_submit = False
        self._recompute()

    # ---- lookups ----------------------------------------------------------

    def search_counterparties(self, query: str) -> List[Counterparty]:
        if self.directory is None or not (query or "").strip():
            return []
        try:
            return list(self.directory.search_counterparties(query.strip()))
        except ApiError as e:
            log.warning("Dealer search failed for %r: %s", query, e.server_message())
            return []

    def load_products(self, brand_id: int) -> List[ProductPricingPolicy]:
        """Products for a brand, fetched once per draft and cached."""
        if brand_id in self._products:
            return self._products[brand_id]
        if self.catalog is None:
            return []
        try:
            products = list(self.catalog.list_products_for_brand(brand_id))
        except ApiError as e:
            log.warning("Could not load products for brand %s: %s", brand_id, e.server_message())
            return []
        self._products[brand_id] = products
        return products

    def load_cash_accounts(self) -> List[CashAccount]:
        """Cash-like asset accounts; preselects the first one for CASH payments."""
        if self.accounts is None:
            return []
        try:
            rows = self.accounts.list_cash_accounts()
        except ApiError as e:
            log.warning("Could not load cash accounts: %s", e.server_message())
            return []
        self._cash_accounts = [a for a in rows if a.is_cash_like]
        self._accounts_loaded = True
        if self._cash_accounts and not self.draft.payment.cash_account_id:
            self.draft.payment.cash_account_id = self._cash_accounts[0].id
        self._recompute()
        return list(self._cash_accounts)

    @property
    def cash_accounts(self) -> List[CashAccount]:
        return list(self._cash_accounts)

    # ---- counterparty -----------------------------------------------------

    def select_counterparty(self, counterparty: Optional[Counterparty]) -> None:
        self.draft.counterparty = counterparty
        self._recompute()

    # ---- lines ------------------------------------------------------------

    def _line(self, idx: int) -> OrderLineDraft:
        if not 0 <= idx < len(self.draft.lines):
            raise DomainError(f"No order line at index {idx}.")
        return self.draft.lines[idx]

    def add_line(self) -> int:
        self.draft.lines.append(OrderLineDraft())
        self._recompute()
        return len(self.draft.lines) - 1

    def remove_line(self, idx: int) -> None:
        self._line(idx)
        self.draft.lines.pop(idx)
        self._recompute()

    def set_line_product(self, idx: int, product: Optional[ProductPricingPolicy]) -> None:
        line = self._line(idx)
        line.product = product
        # picking a product under PER_LINE pre-fills its default rate unless one was typed
        if (
            product is not None
            and self.draft.tax_treatment is TaxTreatment.PER_LINE
            and line.tax_rate_percent is None
            and product.default_tax_rate_percent is not None
        ):
            line.tax_rate_percent = parse_optional_percent(product.default_tax_rate_percent)
        self._recompute()

    def set_line_quantity(self, idx: int, raw: NumberLike) -> None:
        self._line(idx).quantity = parse_quantity(raw)
        self._recompute()

    def set_line_unit_price(self, idx: int, raw: NumberLike) -> None:
        self._line(idx).unit_price = parse_amount(raw)
        self._recompute()

    def set_line_tax_rate(self, idx: int, raw: NumberLike) -> None:
        self._line(idx).tax_rate_percent = parse_optional_percent(raw)
        self._recompute()

    def min_price(self, idx: int) -> Decimal:
        return resolve_min_price(self._line(idx).product)

    # ---- GST --------------------------------------------------------------

    def set_tax_treatment(self, treatment) -> None:
        treatment = TaxTreatment.parse(treatment)
        if treatment is self.draft.tax_treatment:
            return
        self.draft.tax_treatment = treatment
        apply_default_tax_rates(self.draft.lines, treatment)
        self._recompute()

    def set_order_tax_rate(self, raw: NumberLike) -> None:
        self.draft.order_tax_rate = raw
        self._recompute()

    # ---- payment ----------------------------------------------------------

    def set_payment_method(self, method) -> None:
        self.draft.payment.set_method(PaymentMethod(method))
        self._recompute()

    def set_cash_account(self, account_id: Optional[int]) -> None:
        self.draft.payment.cash_account_id = account_id
        self._recompute()

    def add_payment_line(self) -> int:
        self.draft.payment.add_line()
        self._recompute()
        return len(self.draft.payment.rows()) - 1

    def update_payment_line(self, idx: int, **fields: Any) -> None:
        try:
            self.draft.payment.update_line(idx, **fields)
        except IndexError as e:
            raise DomainError(str(e)) from e
        self._recompute()

    def remove_payment_line(self, idx: int) -> None:
        self.draft.payment.remove_index(idx)
        self._recompute()

    def spread_payments_evenly(self) -> None:
        self.draft.payment.spread_amount_evenly(self._pricing.rounded_total)
        self._recompute()

    # ---- exposed state ----------------------------------------------------

    @property
    def pricing_result(self) -> PricingResult:
        return self._pricing

    @property
    def payment_validation(self) -> PaymentValidation:
        return self._payment

    @property
    def can_submit(self) -> bool:
        return self._can_submit

    def admission_errors(self) -> List[str]:
        return admission_errors(self.draft, known_accounts=self._known_accounts())

    def classify_rejection(self, error: ApiError) -> Rejection:
        return classify_rejection(error, self.draft.payment.method)

    # ---- actions ----------------------------------------------------------

    def submit(self) -> SubmissionOutcome:
        """
        Create the order and its receipts. Runs to completion; the outcome is
        also broadcast through orderCreated / orderRejected / receiptFailed.
        """
        outcome = self.service.submit(self.draft, known_accounts=self._known_accounts())

        if outcome.status is SubmissionStatus.BLOCKED:
            log.info("Submit blocked: %s", "; ".join(outcome.errors))
            return outcome
        if outcome.status is SubmissionStatus.REJECTED:
            self.orderRejected.emit(outcome)
            return outcome

        if outcome.status is SubmissionStatus.CREATED_RECEIPT_FAILED:
            self.receiptFailed.emit(outcome)
        self.orderCreated.emit(outcome)
        self.reset()
        return outcome

    def reset(self) -> None:
        """Discard the draft (cancel, or after a successful submit)."""
        self.draft = OrderDraft()
        self._products.clear()
        if self._cash_accounts:
            self.draft.payment.cash_account_id = self._cash_accounts[0].id
        self._recompute()

    cancel = reset

    # ---- internals --------------------------------------------------------

    def _known_accounts(self) -> Optional[List[CashAccount]]:
        # until accounts are loaded, any positive id is accepted
        return self._cash_accounts if self._accounts_loaded else None

    def _recompute(self) -> None:
        self._pricing = compute_pricing(
            self.draft.lines, self.draft.tax_treatment, self.draft.order_tax_rate
        )
        self._payment = self.draft.payment_validation(self._pricing, known_accounts=self._known_accounts())
        self.lines_model.replace(self.draft.lines)
        self.pricingChanged.emit(self._pricing)
        self.paymentChanged.emit(self._payment)

        ok = not admission_errors(self.draft, known_accounts=self._known_accounts())
        if ok != self._can_submit:
            self._can_submit = ok
            self.canSubmitChanged.emit(ok)
