# sales_orders/tests/conftest.py
# ---------------------------------------------------------------------
# Ground rules:
# - pytest-qt owns QApplication (use qapp/qtbot fixtures)
# - Qt runs headless (offscreen platform)
# - Collaborators are in-memory fakes; nothing touches the network
# - Silence benign Qt signal warnings
# ---------------------------------------------------------------------

from __future__ import annotations

import os
import re
from decimal import Decimal
from typing import Any, Dict, List, Optional

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

import pytest
from PySide6 import QtCore

from sales_orders.modules.sales.gateways import (
    ApiError,
    CashAccount,
    Counterparty,
    CreatedOrder,
    ProductPricingPolicy,
)


# ---------- Qt: let pytest-qt own the app ----------
@pytest.fixture(scope="session")
def app(qapp):  # alias to match code that expects an `app` fixture
    return qapp


# ---------- Silence benign Qt warnings ----------
_BENIGN_QT_PATTERNS = [
    r"^QObject::connect: .* already connected",
    r"^QObject::disconnect: Unexpected null parameter",
    r"^This plugin does not support propagateSizeHints",
]

@pytest.fixture(autouse=True, scope="session")
def _silence_benign_qt():
    """Filter common harmless Qt messages during tests."""
    original = QtCore.qInstallMessageHandler(None)
    rx = [re.compile(p) for p in _BENIGN_QT_PATTERNS]

    def handler(msg_type, context, message):
        text = str(message)
        for r in rx:
            if r.search(text):
                return
        QtCore.qInstallMessageHandler(None)
        try:
            QtCore.qDebug(message)
        finally:
            QtCore.qInstallMessageHandler(handler)

    QtCore.qInstallMessageHandler(handler)
    try:
        yield
    finally:
        QtCore.qInstallMessageHandler(original)


# ---------- Reference data ----------
@pytest.fixture()
def dealer() -> Counterparty:
    return Counterparty(id=7, name="Sharma Traders", code="D-007")


@pytest.fixture()
def products() -> Dict[str, ProductPricingPolicy]:
    """Two paints with different GST defaults and a thinner with a hard floor."""
    return {
        "A": ProductPricingPolicy(
            product_id=1, sku_code="PNT-A", product_name="Primer White",
            base_price=Decimal("100"), min_discount_percent=Decimal("10"),
            min_selling_price=Decimal("0"), default_tax_rate_percent=Decimal("18"), brand_id=1,
        ),
        "B": ProductPricingPolicy(
            product_id=2, sku_code="PNT-B", product_name="Enamel Blue",
            base_price=Decimal("50"), min_discount_percent=Decimal("0"),
            min_selling_price=Decimal("0"), default_tax_rate_percent=Decimal("5"), brand_id=1,
        ),
        "C": ProductPricingPolicy(
            product_id=3, sku_code="THN-1", product_name="Thinner",
            base_price=Decimal("100"), min_discount_percent=Decimal("20"),
            min_selling_price=Decimal("90"), default_tax_rate_percent=None, brand_id=2,
        ),
    }


@pytest.fixture()
def cash_accounts() -> List[CashAccount]:
    return [
        CashAccount(id=101, code="1000", name="Cash in Hand", type="Asset"),
        CashAccount(id=102, code="1010", name="HDFC Bank Current", type="Asset"),
        CashAccount(id=103, code="1200", name="Inventory", type="Asset"),
        CashAccount(id=104, code="2000", name="Bank Overdraft", type="Liability"),
    ]


# ---------- Collaborator fakes ----------
class FakeSalesGateway:
    """
    Records every call. Set `order_error` to make submit_order raise, and put
    account ids in `failing_accounts` to make their receipts fail.
    """

    def __init__(self, order: Optional[CreatedOrder] = None):
        self.order = order or CreatedOrder(id=501, order_number="SO-0501")
        self.order_error: Optional[ApiError] = None
        self.failing_accounts: set = set()
        self.orders: List[dict] = []
        self.receipts: List[Any] = []
        self._next_receipt = 9000

    def submit_order(self, payload: dict) -> CreatedOrder:
        self.orders.append(payload)
        if self.order_error is not None:
            raise self.order_error
        return self.order

    def create_receipt(self, request):
        self.receipts.append(request)
        if request.cash_account_id in self.failing_accounts:
            raise ApiError("Receipt failed", status=500, body={"message": "Ledger is locked"})
        self._next_receipt += 1
        return self._next_receipt


class FakeDirectory:
    def __init__(self, rows: List[Counterparty]):
        self.rows = rows
        self.error: Optional[ApiError] = None
        self.queries: List[str] = []

    def search_counterparties(self, query: str) -> List[Counterparty]:
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        q = query.lower()
        return [c for c in self.rows if q in c.name.lower() or q in c.code.lower()]


class FakeCatalog:
    def __init__(self, rows: List[ProductPricingPolicy]):
        self.rows = rows
        self.error: Optional[ApiError] = None
        self.calls: List[int] = []

    def list_products_for_brand(self, brand_id: int) -> List[ProductPricingPolicy]:
        self.calls.append(brand_id)
        if self.error is not None:
            raise self.error
        return [p for p in self.rows if p.brand_id == brand_id]


class FakeAccounts:
    def __init__(self, rows: List[CashAccount]):
        self.rows = rows
        self.error: Optional[ApiError] = None

    def list_cash_accounts(self) -> List[CashAccount]:
        if self.error is not None:
            raise self.error
        return list(self.rows)


@pytest.fixture()
def gateway() -> FakeSalesGateway:
    return FakeSalesGateway()


@pytest.fixture()
def directory(dealer) -> FakeDirectory:
    return FakeDirectory([dealer, Counterparty(id=8, name="Gupta Hardware", code="D-008")])


@pytest.fixture()
def catalog(products) -> FakeCatalog:
    return FakeCatalog(list(products.values()))


@pytest.fixture()
def accounts(cash_accounts) -> FakeAccounts:
    return FakeAccounts(cash_accounts)


@pytest.fixture()
def fixed_key():
    """Deterministic idempotency keys: order-1-000000000001, order-1-000000000002, ..."""
    counter = {"n": 0}

    def make() -> str:
        counter["n"] += 1
        return f"order-1-{counter['n']:012x}"

    return make
