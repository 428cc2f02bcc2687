import logging
import os

from .constants import DEFAULT_CURRENCY


# Currency stamped on every order payload (no conversion is performed)
CURRENCY = os.getenv("SALES_ORDERS_CURRENCY", DEFAULT_CURRENCY).strip().upper() or DEFAULT_CURRENCY

LOG_LEVEL = logging.getLevelName(os.getenv("SALES_ORDERS_LOG_LEVEL", "INFO").strip().upper())
if not isinstance(LOG_LEVEL, int):
    LOG_LEVEL = logging.INFO
