"""Stdout logging for the crypto portfolio tracker.

The ledger store, price service, tracker and web layer each log under
``crypto_portfolio.<area>.<module>``. The FIFO engine and the valuation
aggregator are pure and do not log.
"""

import logging
import sys


def get_logger(name: str, level: int = logging.INFO) -> logging.Logger:
    """Return a ``crypto_portfolio.<name>`` logger with one stdout handler.

    ``name`` is the dotted area path, e.g. ``"prices.coingecko"``.
    """
    logger = logging.getLogger(f"crypto_portfolio.{name}")
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            "%(asctime)s | %(name)s | %(levelname)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(level)
    return logger
