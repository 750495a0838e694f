"""Shared test fixtures for crypto portfolio tests."""

from datetime import date, timedelta

import pytest

from crypto_portfolio.accounting.valuation import PricePoint
from crypto_portfolio.core.response import ApiResponse
from crypto_portfolio.ledger.store import TransactionStore
from crypto_portfolio.ledger.transaction import create_transaction


def tx(asset, action, quantity, price, day=None):
    return create_transaction(asset, action, quantity, price, trade_date=day)


@pytest.fixture
def make_tx():
    """Factory for valid transactions: make_tx("bitcoin", "buy", 1, 100)."""
    return tx


@pytest.fixture
def sample_transactions():
    """Two coins, one partially sold, one closed out, in date order."""
    return [
        tx("bitcoin", "buy", 1.0, 30000.0, "2024-01-02"),
        tx("ethereum", "buy", 10.0, 2000.0, "2024-01-05"),
        tx("bitcoin", "buy", 0.5, 40000.0, "2024-02-01"),
        tx("ethereum", "sell", 10.0, 2500.0, "2024-03-01"),
        tx("bitcoin", "sell", 0.5, 50000.0, "2024-03-15"),
    ]


@pytest.fixture
def tmp_store(tmp_path):
    return TransactionStore(str(tmp_path / "transactions.json"))


def price_series(start: date, prices):
    return [
        PricePoint(date=start + timedelta(days=i), price=p)
        for i, p in enumerate(prices)
    ]


class StubPriceService:
    """Price service double returning canned ApiResponses."""

    vs_currency = "usd"

    def __init__(self, spot=None, history=None, spot_error=None, failing=()):
        self.spot = spot or {}
        self.history = history or {}
        self.spot_error = spot_error
        self.failing = set(failing)
        self.spot_calls = []
        self.history_calls = []

    async def current_prices(self, assets):
        assets = list(assets)
        self.spot_calls.append(assets)
        if self.spot_error:
            return ApiResponse.error(self.spot_error, data={})
        return ApiResponse.success(
            data={a: self.spot[a] for a in assets if a in self.spot}
        )

    async def historical_prices(self, asset, days=30):
        self.history_calls.append((asset, days))
        if asset in self.failing:
            return ApiResponse.error(f"{asset} unavailable", data=[])
        return ApiResponse.success(data=self.history.get(asset, []))

    async def historical_prices_many(self, assets, days=30):
        assets = list(assets)
        data = {}
        failed = []
        for a in assets:
            resp = await self.historical_prices(a, days)
            data[a] = resp.data_or([])
            if not resp.ok:
                failed.append(a)
        if failed:
            return ApiResponse.warning(
                data=data, message=f"History unavailable for: {', '.join(failed)}"
            )
        return ApiResponse.success(data=data)


@pytest.fixture
def make_series():
    """Daily PricePoints from ``start``: make_series(date(2024, 1, 1), [1, 2])."""
    return price_series


@pytest.fixture
def stub_prices():
    """Factory for StubPriceService instances."""
    return StubPriceService
