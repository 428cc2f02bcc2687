# sales_orders/tests/sales/test_order_controller.py
from __future__ import annotations

from decimal import Decimal

import pytest

from sales_orders.modules.sales.controller import DomainError, OrderDraftController
from sales_orders.modules.sales.gateways import ApiError
from sales_orders.modules.sales.rejections import RejectionCategory
from sales_orders.modules.sales.submission import SubmissionStatus
from sales_orders.modules.sales.tax import TaxTreatment


# --------------------------- helpers ---------------------------

@pytest.fixture()
def ctrl(qtbot, gateway, directory, catalog, accounts, fixed_key):
    c = OrderDraftController(
        gateway,
        directory=directory,
        catalog=catalog,
        accounts=accounts,
        key_factory=fixed_key,
    )
    c.load_cash_accounts()
    return c


def _fill(ctrl, products, dealer):
    """Scenario-C style draft: 10 x 100 @18% + 5 x 50 @5%."""
    ctrl.select_counterparty(dealer)
    ctrl.set_tax_treatment(TaxTreatment.PER_LINE)
    ctrl.set_line_product(0, products["A"])
    ctrl.set_line_quantity(0, "10")
    ctrl.set_line_unit_price(0, "100")
    idx = ctrl.add_line()
    ctrl.set_line_product(idx, products["B"])
    ctrl.set_line_quantity(idx, "5")
    ctrl.set_line_unit_price(idx, "50")


# --------------------------- lookups ---------------------------

def test_only_cash_like_accounts_are_offered(ctrl):
    assert [a.id for a in ctrl.cash_accounts] == [101, 102]
    # first one is preselected for CASH
    assert ctrl.draft.payment.cash_account_id == 101


def test_counterparty_search(ctrl, directory):
    assert [c.id for c in ctrl.search_counterparties("gupta")] == [8]
    assert ctrl.search_counterparties("   ") == []
    directory.error = ApiError("down", status=503)
    assert ctrl.search_counterparties("sharma") == []


def test_products_are_cached_per_brand(ctrl, catalog):
    assert {p.sku_code for p in ctrl.load_products(1)} == {"PNT-A", "PNT-B"}
    ctrl.load_products(1)
    ctrl.load_products(2)
    assert catalog.calls == [1, 2]


def test_failed_product_lookup_is_not_cached(ctrl, catalog):
    catalog.error = ApiError("timeout")
    assert ctrl.load_products(1) == []
    catalog.error = None
    assert len(ctrl.load_products(1)) == 2


def test_failed_account_lookup_returns_empty(qtbot, gateway, accounts):
    accounts.error = ApiError("boom", status=500)
    c = OrderDraftController(gateway, accounts=accounts)
    assert c.load_cash_accounts() == []
    assert c.cash_accounts == []


# --------------------------- editing ---------------------------

def test_pricing_signal_tracks_edits(qtbot, ctrl, products, dealer):
    _fill(ctrl, products, dealer)
    assert ctrl.pricing_result.rounded_total == Decimal("1442.50")

    with qtbot.waitSignal(ctrl.pricingChanged, timeout=1000) as blocker:
        ctrl.set_tax_treatment("ORDER_TOTAL")
    assert blocker.args[0].rounded_total == Decimal("1250.00")

    with qtbot.waitSignal(ctrl.pricingChanged, timeout=1000) as blocker:
        ctrl.set_order_tax_rate("18")
    assert blocker.args[0].rounded_total == Decimal("1475.00")


def test_switch_to_per_line_fills_defaults_once(ctrl, products):
    ctrl.set_line_product(0, products["A"])
    idx = ctrl.add_line()
    ctrl.set_line_product(idx, products["B"])
    ctrl.set_line_tax_rate(idx, "12")
    ctrl.set_tax_treatment(TaxTreatment.PER_LINE)
    assert [ln.tax_rate_percent for ln in ctrl.draft.lines] == [Decimal("18"), Decimal("12")]

    # clearing a rate afterwards is not undone by later edits
    ctrl.set_line_tax_rate(0, "")
    ctrl.set_line_quantity(0, "3")
    assert ctrl.draft.lines[0].tax_rate_percent is None


def test_picking_a_product_under_per_line_prefills_rate(ctrl, products):
    ctrl.set_tax_treatment(TaxTreatment.PER_LINE)
    ctrl.set_line_product(0, products["A"])
    assert ctrl.draft.lines[0].tax_rate_percent == Decimal("18")


def test_bad_indices_raise_domain_error(ctrl):
    with pytest.raises(DomainError):
        ctrl.set_line_quantity(4, "1")
    with pytest.raises(DomainError):
        ctrl.remove_line(-1)
    with pytest.raises(DomainError):
        ctrl.update_payment_line(9, amount="5")


def test_min_price_is_advisory(ctrl, products):
    ctrl.set_line_product(0, products["C"])
    assert ctrl.min_price(0) == Decimal("90")
    ctrl.set_line_unit_price(0, "10")
    assert ctrl.draft.lines[0].unit_price == Decimal("10")


def test_can_submit_signal_flips(qtbot, ctrl, products, dealer):
    assert not ctrl.can_submit
    ctrl.set_line_product(0, products["A"])
    ctrl.set_line_quantity(0, "1")
    ctrl.set_line_unit_price(0, "100")
    with qtbot.waitSignal(ctrl.canSubmitChanged, timeout=1000) as blocker:
        ctrl.select_counterparty(dealer)
    assert blocker.args == [True]
    assert ctrl.admission_errors() == []

    with qtbot.waitSignal(ctrl.canSubmitChanged, timeout=1000) as blocker:
        ctrl.set_payment_method("split")
    assert blocker.args == [False]


def test_split_payment_editing(qtbot, ctrl, products, dealer):
    _fill(ctrl, products, dealer)
    ctrl.set_payment_method("split")
    ctrl.add_payment_line()
    ctrl.update_payment_line(0, cash_account_id=101)
    ctrl.update_payment_line(1, cash_account_id=102)
    with qtbot.waitSignal(ctrl.paymentChanged, timeout=1000) as blocker:
        ctrl.spread_payments_evenly()
    assert blocker.args[0].valid
    assert [r.amount for r in ctrl.draft.payment.rows()] == [Decimal("721.25"), Decimal("721.25")]
    assert ctrl.can_submit

    ctrl.update_payment_line(1, cash_account_id=103)   # not a cash account
    assert not ctrl.payment_validation.valid
    assert not ctrl.can_submit


# --------------------------- submit ---------------------------

def test_submit_blocked_sends_nothing(qtbot, ctrl, gateway):
    with qtbot.assertNotEmitted(ctrl.orderCreated):
        outcome = ctrl.submit()
    assert outcome.status is SubmissionStatus.BLOCKED
    assert gateway.orders == []


def test_submit_creates_and_resets(qtbot, ctrl, gateway, products, dealer):
    _fill(ctrl, products, dealer)
    ctrl.set_payment_method("cash")
    with qtbot.waitSignal(ctrl.orderCreated, timeout=1000) as blocker:
        ctrl.submit()
    outcome = blocker.args[0]
    assert outcome.status is SubmissionStatus.CREATED
    assert gateway.orders[0]["gstTreatment"] == "PER_ITEM"
    [receipt] = gateway.receipts
    assert (receipt.cash_account_id, receipt.amount) == (101, Decimal("1442.50"))

    # draft discarded; cash account preselected again
    assert ctrl.draft.counterparty is None
    assert ctrl.pricing_result.rounded_total == 0
    assert ctrl.draft.payment.cash_account_id == 101
    assert not ctrl.can_submit


def test_submit_receipt_failure_is_reported(qtbot, ctrl, gateway, products, dealer):
    _fill(ctrl, products, dealer)
    ctrl.set_payment_method("cash")
    gateway.failing_accounts = {101}
    with qtbot.waitSignals([ctrl.receiptFailed, ctrl.orderCreated], order="strict", timeout=1000):
        outcome = ctrl.submit()
    assert outcome.status is SubmissionStatus.CREATED_RECEIPT_FAILED
    assert outcome.failed_receipts[0].request.amount == Decimal("1442.50")


def test_submit_rejected_keeps_the_draft(qtbot, ctrl, gateway, products, dealer):
    _fill(ctrl, products, dealer)
    ctrl.set_payment_method("split")
    ctrl.update_payment_line(0, cash_account_id=101, amount="1442.50")
    gateway.order_error = ApiError("Conflict", status=409, body={"message": "Operation not allowed in current state"})
    with qtbot.waitSignal(ctrl.orderRejected, timeout=1000) as blocker:
        ctrl.submit()
    rejection = blocker.args[0].rejection
    assert rejection.category is RejectionCategory.CREDIT_LIMIT_EXCEEDED
    assert rejection.best_guess
    assert ctrl.draft.counterparty == dealer
    assert ctrl.can_submit
    assert gateway.receipts == []

    # a retry is a new attempt with a new key
    gateway.order_error = None
    ctrl.submit()
    assert gateway.orders[0]["idempotencyKey"] != gateway.orders[1]["idempotencyKey"]


def test_cancel_discards_draft(ctrl, products, dealer, catalog):
    _fill(ctrl, products, dealer)
    ctrl.load_products(1)
    ctrl.cancel()
    assert len(ctrl.draft.lines) == 1
    assert ctrl.draft.tax_treatment is TaxTreatment.NONE
    assert ctrl.lines_model.rowCount() == 1
    ctrl.load_products(1)
    assert catalog.calls == [1, 1]


def test_huge_unit_price_keeps_the_draft_usable(ctrl, products, dealer):
    ctrl.select_counterparty(dealer)
    ctrl.set_line_product(0, products["A"])
    ctrl.set_line_unit_price(0, "1e30")
    assert ctrl.pricing_result.rounded_total == Decimal("1e30")
    assert ctrl.can_submit
    m = ctrl.lines_model
    assert m.data(m.index(0, 6)) == "1,000,000,000,000,000,000,000,000,000,000.00"


def test_decimal_comma_is_not_read_as_thousands(ctrl, products):
    ctrl.set_line_product(0, products["A"])
    ctrl.set_line_unit_price(0, "12,5")
    assert ctrl.draft.lines[0].unit_price == 0
    ctrl.set_line_unit_price(0, "1,250.50")
    assert ctrl.draft.lines[0].unit_price == Decimal("1250.50")


def test_payment_line_account_can_be_cleared(ctrl, products, dealer):
    _fill(ctrl, products, dealer)
    ctrl.set_payment_method("split")
    ctrl.update_payment_line(0, cash_account_id=101, amount="1442.50")
    assert ctrl.can_submit
    ctrl.update_payment_line(0, cash_account_id=None)
    assert ctrl.draft.payment.rows()[0].cash_account_id is None
    assert not ctrl.can_submit
