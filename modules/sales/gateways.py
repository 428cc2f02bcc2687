from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Protocol

from ...constants import CASH_ACCOUNT_KEYWORDS, CASH_ACCOUNT_TYPE
from ..payments.customer_payments.receipt_tenders_model import ReceiptRequest


class ApiError(Exception):
    """
    Failure reported by a back-office collaborator.

    `status` is the HTTP status of the response, or None when no response
    arrived at all (timeout, connection reset). `body` is the decoded error
    payload if it was a mapping; anything else (a raw text error page) is dropped.
    """

    def __init__(self, message: str, status: Optional[int] = None, body: Any = None):
        super().__init__(message)
        self.status = status
        self.body = dict(body) if isinstance(body, Mapping) else {}

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else ""

    @property
    def is_network_failure(self) -> bool:
        return self.status is None

    def server_message(self) -> str:
        """Most specific message available: body.data.message, body.message, then our own text."""
        data = self.body.get("data")
        if isinstance(data, Mapping):
            nested = data.get("message")
            if isinstance(nested, str) and nested.strip():
                return nested
        top = self.body.get("message")
        if isinstance(top, str) and top.strip():
            return top
        return self.message

    def error_code(self) -> str:
        data = self.body.get("data")
        if isinstance(data, Mapping) and isinstance(data.get("code"), str):
            return data["code"]
        code = self.body.get("code")
        return code if isinstance(code, str) else ""


# ---- records handed to us by collaborators (read-only) ----

@dataclass(frozen=True)
class Counterparty:
    id: int
    name: str
    code: str = ""


@dataclass(frozen=True)
class CashAccount:
    id: int
    code: str
    name: str
    type: str

    @property
    def is_cash_like(self) -> bool:
        if (self.type or "") != CASH_ACCOUNT_TYPE:
            return False
        name = (self.name or "").lower()
        return any(k in name for k in CASH_ACCOUNT_KEYWORDS)


@dataclass(frozen=True)
class ProductPricingPolicy:
    product_id: int
    sku_code: str
    product_name: str
    base_price: Decimal = Decimal("0")
    min_discount_percent: Decimal = Decimal("0")
    min_selling_price: Decimal = Decimal("0")
    default_tax_rate_percent: Optional[Decimal] = None
    brand_id: Optional[int] = None

    @property
    def description(self) -> str:
        name = (self.product_name or "").strip()
        code = (self.sku_code or "").strip()
        return f"{name} ({code})" if name else code


@dataclass(frozen=True)
class CreatedOrder:
    id: int
    order_number: Optional[str] = None

    @property
    def label(self) -> str:
        """Order number if the server assigned one, else the numeric id."""
        return self.order_number or str(self.id)


# ---- collaborator contracts ----

class CounterpartyDirectory(Protocol):
    def search_counterparties(self, query: str) -> List[Counterparty]: ...


class ProductCatalog(Protocol):
    def list_products_for_brand(self, brand_id: int) -> List[ProductPricingPolicy]: ...


class AccountsDirectory(Protocol):
    def list_cash_accounts(self) -> List[CashAccount]: ...


class SalesOrdersGateway(Protocol):
    def submit_order(self, payload: dict) -> CreatedOrder:
        """Create the order; raise ApiError on rejection or transport failure."""
        ...

    def create_receipt(self, request: ReceiptRequest) -> Any:
        """Record one dealer receipt; returns the receipt id or raises ApiError."""
        ...
