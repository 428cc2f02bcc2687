import logging

from ..config import LOG_LEVEL
from ..constants import LOG_FORMAT


def get_logger(name="sales_orders"):
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(LOG_LEVEL)
        ch = logging.StreamHandler()
        ch.setFormatter(logging.Formatter(LOG_FORMAT))
        logger.addHandler(ch)
    return logger
