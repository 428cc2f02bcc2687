from __future__ import annotations
from dataclasses import dataclass, replace
from decimal import Decimal
from enum import Enum
from typing import Optional, List, Iterable, Dict, Any

from ....constants import ORDER_REFERENCE_PREFIX
from ....utils.helpers import fmt_money, round_money
from ....utils.validators import NumberLike, parse_amount
from ..payment_utilities.calculations import (
    allocated_total,
    is_reconciled,
    reconciliation_difference,
)

_ZERO = Decimal("0")
_UNCHANGED: Any = object()


class PaymentMethod(str, Enum):
    CREDIT = "credit"    # whole total becomes a receivable; no cash moves now
    CASH = "cash"        # one cash account takes the full total
    SPLIT = "split"      # several cash accounts, amounts must add up to the total

    @property
    def moves_cash(self) -> bool:
        return self is not PaymentMethod.CREDIT


@dataclass(frozen=True)
class ReceiptRequest:
    counterparty_id: int
    cash_account_id: int
    amount: Decimal
    reference: Optional[str] = None
    memo: Optional[str] = None


@dataclass
class PaymentLine:
    cash_account_id: Optional[int] = None
    amount: Decimal = _ZERO
    reference: Optional[str] = None
    memo: Optional[str] = None


@dataclass(frozen=True)
class PaymentValidation:
    valid: bool
    total: Decimal                # implied payment total
    difference: Decimal = _ZERO   # total - grand_total (split only)
    message: Optional[str] = None


def _account_ok(account_id: Optional[int], known: Optional[set]) -> bool:
    if account_id is None or isinstance(account_id, bool):
        return False
    try:
        ok = int(account_id) > 0
    except (TypeError, ValueError):
        return False
    return ok and (known is None or int(account_id) in known)


def _known_ids(known_accounts: Optional[Iterable[Any]]) -> Optional[set]:
    if known_accounts is None:
        return None
    ids = set()
    for a in known_accounts:
        ids.add(int(getattr(a, "id", a)))
    return ids


def validate_payment(
    method: PaymentMethod,
    grand_total: Decimal,
    cash_account_id: Optional[int] = None,
    split_lines: Optional[Iterable[PaymentLine]] = None,
    *,
    known_accounts: Optional[Iterable[Any]] = None,
) -> PaymentValidation:
    """
    Check a payment allocation against the order's grand total.

    `known_accounts` (CashAccount records or bare ids) restricts which
    accounts resolve; without it any positive id is accepted.
    """
    method = PaymentMethod(method)
    known = _known_ids(known_accounts)

    if method is PaymentMethod.CREDIT:
        return PaymentValidation(valid=True, total=_ZERO)

    if method is PaymentMethod.CASH:
        if not _account_ok(cash_account_id, known):
            return PaymentValidation(valid=False, total=grand_total, message="Select a cash account.")
        return PaymentValidation(valid=True, total=grand_total)

    lines = list(split_lines or [])
    total = allocated_total(parse_amount(p.amount) for p in lines)
    diff = reconciliation_difference(total, grand_total)
    if not lines:
        return PaymentValidation(False, total, diff, "Add at least one payment line.")
    for idx, p in enumerate(lines, start=1):
        if not _account_ok(p.cash_account_id, known):
            return PaymentValidation(False, total, diff, f"Payment line {idx}: select a cash account.")
        if parse_amount(p.amount) <= 0:
            return PaymentValidation(False, total, diff, f"Payment line {idx}: amount must be greater than zero.")
    if not is_reconciled(total, grand_total):
        return PaymentValidation(
            False, total, diff,
            f"Payment lines add up to {fmt_money(total)} but the order total is {fmt_money(grand_total)}.",
        )
    return PaymentValidation(True, total, diff)


def order_reference(order_label: str) -> str:
    return f"{ORDER_REFERENCE_PREFIX}-{order_label}"


class PaymentAllocationModel:
    """
    Editing model for how an order will be paid.

    Holds the chosen method, the single cash account (CASH) and the ordered
    payment lines (SPLIT). Lines live only as long as the order draft and are
    turned into receipts in one go after the order exists.
    """

    def __init__(self, method: PaymentMethod = PaymentMethod.CREDIT) -> None:
        self.method: PaymentMethod = PaymentMethod(method)
        self.cash_account_id: Optional[int] = None
        self._lines: List[PaymentLine] = [PaymentLine()]

    # ---- mutate ----
    def set_method(self, method: PaymentMethod) -> None:
        self.method = PaymentMethod(method)

    def add_line(self, line: Optional[PaymentLine] = None) -> None:
        self._lines.append(line or PaymentLine())

    def update_line(
        self,
        idx: int,
        *,
        cash_account_id: Optional[int] = _UNCHANGED,
        amount: NumberLike = None,
        reference: Optional[str] = None,
        memo: Optional[str] = None,
    ) -> None:
        if not 0 <= idx < len(self._lines):
            raise IndexError(f"No payment line at index {idx}.")
        line = self._lines[idx]
        if cash_account_id is not _UNCHANGED:
            line.cash_account_id = cash_account_id
        if amount is not None:
            line.amount = parse_amount(amount)
        if reference is not None:
            line.reference = reference.strip() or None
        if memo is not None:
            line.memo = memo.strip() or None

    def remove_index(self, idx: int) -> None:
        if 0 <= idx < len(self._lines):
            self._lines.pop(idx)

    def clone_row(self, idx: int) -> None:
        if 0 <= idx < len(self._lines):
            self._lines.insert(idx + 1, replace(self._lines[idx]))

    def clear(self) -> None:
        self.cash_account_id = None
        self._lines = [PaymentLine()]

    def spread_amount_evenly(self, total: NumberLike) -> None:
        """Split total equally across existing lines.
        Rounds to 0.01; last line gets the remainder so the sum equals total.
        """
        n = len(self._lines)
        if n == 0:
            return
        total_d = parse_amount(total)
        if total_d == 0:
            for p in self._lines:
                p.amount = _ZERO
            return
        base = round_money(total_d / n)
        assigned = _ZERO
        for i in range(n - 1):
            self._lines[i].amount = base
            assigned += base
        self._lines[-1].amount = round_money(total_d - assigned)

    # ---- read ----
    def rows(self) -> List[PaymentLine]:
        return list(self._lines)

    def totals(self) -> Dict[str, Any]:
        amounts = [parse_amount(p.amount) for p in self._lines]
        return {
            "count": len(self._lines),
            "sum": allocated_total(amounts),
            "complete": sum(1 for p, a in zip(self._lines, amounts) if p.cash_account_id and a > 0),
        }

    # ---- validation & output ----
    def validation(self, grand_total: Decimal, *, known_accounts=None) -> PaymentValidation:
        return validate_payment(
            self.method,
            grand_total,
            self.cash_account_id,
            self._lines,
            known_accounts=known_accounts,
        )

    def validate(self, grand_total: Decimal, *, known_accounts=None) -> None:
        """Raise ValueError with the operator-facing reason if the allocation is not admissible."""
        result = self.validation(grand_total, known_accounts=known_accounts)
        if not result.valid:
            raise ValueError(result.message or "Payment allocation is not valid.")

    def receipt_requests(self, counterparty_id: int, order_label: str, grand_total: Decimal) -> List[ReceiptRequest]:
        """
        Receipts to record once the order exists: none for CREDIT, one for the
        full total for CASH, one per complete line for SPLIT.
        """
        ref = order_reference(order_label)
        if self.method is PaymentMethod.CREDIT:
            return []
        if self.method is PaymentMethod.CASH:
            if not self.cash_account_id:
                return []
            return [ReceiptRequest(
                counterparty_id=counterparty_id,
                cash_account_id=int(self.cash_account_id),
                amount=grand_total,
                reference=ref,
                memo=f"Cash payment for order {order_label}",
            )]
        out: List[ReceiptRequest] = []
        for p in self._lines:
            amount = parse_amount(p.amount)
            if not p.cash_account_id or amount <= 0:
                continue
            out.append(ReceiptRequest(
                counterparty_id=counterparty_id,
                cash_account_id=int(p.cash_account_id),
                amount=amount,
                reference=p.reference or f"{ref}-{p.cash_account_id}",
                memo=p.memo or f"Split payment for {ref}",
            ))
        return out
