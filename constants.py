from decimal import Decimal

# ---- Money ----
DEFAULT_CURRENCY = "INR"
MONEY_PLACES = 2
MONEY_QUANTUM = Decimal("0.01")

# Split-tender lines must sum to the order total within this (strict) margin
RECONCILE_TOLERANCE = Decimal("0.01")

PERCENT_MIN = Decimal("0")
PERCENT_MAX = Decimal("100")

# ---- Submission ----
IDEMPOTENCY_KEY_PREFIX = "order"
ORDER_REFERENCE_PREFIX = "ORDER"

# Server-side error code for a replayed idempotency key
IDEMPOTENCY_CONFLICT_CODE = "CONC_001"

# Sanitized 409 messages that carry no diagnostic detail
GENERIC_CONFLICT_MESSAGES = (
    "operation not allowed in current state",
    "invalid state",
)

# ---- Cash accounts ----
CASH_ACCOUNT_TYPE = "Asset"
CASH_ACCOUNT_KEYWORDS = ("cash", "bank")

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
