"""Refresh cycle: transaction list -> FIFO snapshot -> quotes -> valuation."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Awaitable, List, Optional, Tuple

from crypto_portfolio.accounting.fifo import PortfolioSnapshot, compute
from crypto_portfolio.accounting.valuation import (
    ValuedPortfolio,
    ValuePoint,
    historical_value_series,
    value,
)
from crypto_portfolio.core.logger import get_logger
from crypto_portfolio.core.response import ApiResponse, StatusCode
from crypto_portfolio.ledger.store import TransactionStore
from crypto_portfolio.ledger.transaction import Transaction, normalize_asset
from crypto_portfolio.prices.coingecko import PriceQuoteService

logger = get_logger("service.tracker")


@dataclass
class RefreshResult:
    generation: int
    snapshot: PortfolioSnapshot
    valuation: ValuedPortfolio
    history: List[ValuePoint]
    warnings: List[str] = field(default_factory=list)


class PortfolioTracker:
    """Owns the in-memory transaction list and persists it after each change.

    The list is never touched while a refresh is computing: ``refresh``
    works on a tuple copy taken when it starts. Mutations go through the
    store, and the in-memory list is replaced with what the store wrote.
    """

    def __init__(
        self,
        store: TransactionStore,
        price_service: PriceQuoteService,
        history_days: int = 30,
    ):
        self._store = store
        self._prices = price_service
        self._history_days = history_days
        self._transactions: List[Transaction] = store.load()
        self._generation = 0
        # guards _generation and _latest across request threads
        self._lock = threading.Lock()
        self._latest: Optional[RefreshResult] = None
        logger.info(
            f"Loaded {len(self._transactions)} transactions from {store.path}"
        )

    @property
    def transactions(self) -> Tuple[Transaction, ...]:
        return tuple(self._transactions)

    @property
    def latest(self) -> Optional[RefreshResult]:
        return self._latest

    @property
    def history_days(self) -> int:
        return self._history_days

    @property
    def vs_currency(self) -> str:
        return self._prices.vs_currency

    def add_transaction(self, transaction: Transaction) -> None:
        self._transactions = self._store.append(transaction)

    def delete_transaction(self, index: int) -> Transaction:
        """Delete by store position. Raises IndexError if out of range."""
        remaining = self._store.delete(index)
        removed = self._transactions[index]
        self._transactions = remaining
        return removed

    def clear(self) -> None:
        self._transactions = []
        self._store.clear()

    def snapshot(self) -> PortfolioSnapshot:
        return compute(self.transactions)

    async def refresh(self) -> Optional[RefreshResult]:
        """Recompute everything from the current list and fetch quotes.

        Returns None when a newer refresh started while this one was
        waiting on the network; its results are dropped.
        """
        with self._lock:
            self._generation += 1
            generation = self._generation
        snapshot = compute(self.transactions)
        warnings: List[str] = []

        spot = await self._fetch(self._prices.current_prices(snapshot.assets), {})
        if self._superseded(generation):
            return None
        _note_degraded(spot, warnings)

        held = snapshot.held_assets()
        history_resp = await self._fetch(
            self._prices.historical_prices_many(held, self._history_days), {}
        )
        if self._superseded(generation):
            return None
        _note_degraded(history_resp, warnings)

        result = RefreshResult(
            generation=generation,
            snapshot=snapshot,
            valuation=value(snapshot, spot.data_or({})),
            history=historical_value_series(snapshot, history_resp.data_or({})),
            warnings=warnings,
        )
        with self._lock:
            if self._superseded(generation):
                return None
            self._latest = result
        return result

    async def coin_history(self, asset: str, days: Optional[int] = None) -> ApiResponse:
        return await self._fetch(
            self._prices.historical_prices(
                normalize_asset(asset), days or self._history_days
            ),
            [],
        )

    def _superseded(self, generation: int) -> bool:
        current = self._generation
        if generation != current:
            logger.info(f"Discarding refresh {generation}, superseded by {current}")
            return True
        return False

    async def _fetch(self, pending: Awaitable[ApiResponse], fallback) -> ApiResponse:
        try:
            return await pending
        except Exception as e:
            logger.error(f"Price service failure: {e}")
            return ApiResponse.error(str(e), data=fallback)


def _note_degraded(response: ApiResponse, warnings: List[str]) -> None:
    if response.status_code != StatusCode.SUCCESS and response.message:
        warnings.append(response.message)
