"""Tests for the refresh cycle and transaction lifecycle."""

import asyncio
from datetime import date

import pytest

from crypto_portfolio.core.response import ApiResponse
from crypto_portfolio.service.tracker import PortfolioTracker


class TestTransactionLifecycle:
    def test_loads_existing_transactions(
        self, tmp_store, sample_transactions, stub_prices
    ):
        tmp_store.save(sample_transactions)
        tracker = PortfolioTracker(tmp_store, stub_prices())
        assert tracker.transactions == tuple(sample_transactions)

    def test_add_persists(self, tmp_store, make_tx, stub_prices):
        tracker = PortfolioTracker(tmp_store, stub_prices())
        tracker.add_transaction(make_tx("btc", "buy", 1, 10))
        assert len(tmp_store.load()) == 1

    def test_delete_by_index_persists(
        self, tmp_store, sample_transactions, stub_prices
    ):
        tmp_store.save(sample_transactions)
        tracker = PortfolioTracker(tmp_store, stub_prices())
        removed = tracker.delete_transaction(0)
        assert removed == sample_transactions[0]
        assert tmp_store.load() == sample_transactions[1:]

    def test_delete_out_of_range(self, tmp_store, stub_prices):
        tracker = PortfolioTracker(tmp_store, stub_prices())
        with pytest.raises(IndexError):
            tracker.delete_transaction(0)

    def test_clear(self, tmp_store, sample_transactions, stub_prices):
        tmp_store.save(sample_transactions)
        tracker = PortfolioTracker(tmp_store, stub_prices())
        tracker.clear()
        assert tracker.transactions == ()
        assert tmp_store.load() == []

    def test_mutations_mirror_store(self, tmp_store, make_tx, stub_prices):
        tracker = PortfolioTracker(tmp_store, stub_prices())
        tracker.add_transaction(make_tx("btc", "buy", 1, 10))
        tracker.add_transaction(make_tx("eth", "buy", 2, 20))
        assert list(tracker.transactions) == tmp_store.load()
        tracker.delete_transaction(0)
        assert list(tracker.transactions) == tmp_store.load()
        assert tracker.transactions[0].asset == "eth"

    def test_delete_out_of_range_leaves_file(self, tmp_store, make_tx, stub_prices):
        tracker = PortfolioTracker(tmp_store, stub_prices())
        tracker.add_transaction(make_tx("btc", "buy", 1, 10))
        with pytest.raises(IndexError):
            tracker.delete_transaction(-1)
        assert len(tmp_store.load()) == 1
        assert len(tracker.transactions) == 1

    def test_snapshot_reflects_mutations(self, tmp_store, make_tx, stub_prices):
        tracker = PortfolioTracker(tmp_store, stub_prices())
        tracker.add_transaction(make_tx("btc", "buy", 2, 10))
        assert tracker.snapshot()["btc"].quantity_held == 2.0
        tracker.delete_transaction(0)
        assert len(tracker.snapshot()) == 0


class TestRefresh:
    @pytest.mark.asyncio
    async def test_full_refresh(
        self, tmp_store, sample_transactions, stub_prices, make_series
    ):
        tmp_store.save(sample_transactions)
        prices = stub_prices(
            spot={"bitcoin": 60000.0, "ethereum": 3000.0},
            history={"bitcoin": make_series(date(2024, 4, 1), [50000.0, 55000.0])},
        )
        tracker = PortfolioTracker(tmp_store, prices, history_days=7)
        result = await tracker.refresh()

        assert result is not None
        assert tracker.latest is result
        assert sorted(prices.spot_calls[0]) == ["bitcoin", "ethereum"]
        assert prices.history_calls == [("bitcoin", 7)]
        assert result.valuation.total_value == pytest.approx(60000.0)
        assert result.valuation.total_realized_pnl == pytest.approx(15000.0)
        assert [p.total_value for p in result.history] == [50000.0, 55000.0]
        assert result.warnings == []

    @pytest.mark.asyncio
    async def test_price_outage_degrades_to_zero(
        self, tmp_store, sample_transactions, stub_prices
    ):
        tmp_store.save(sample_transactions)
        prices = stub_prices(spot_error="service unavailable", failing={"bitcoin"})
        tracker = PortfolioTracker(tmp_store, prices)
        result = await tracker.refresh()

        assert result.valuation.total_value == 0.0
        assert result.valuation.total_realized_pnl == pytest.approx(15000.0)
        assert result.snapshot["bitcoin"].quantity_held == 1.0
        assert result.history == []
        assert "service unavailable" in result.warnings
        assert any("bitcoin" in w for w in result.warnings)

    @pytest.mark.asyncio
    async def test_price_service_exception_does_not_abort(self, tmp_store, make_tx):
        class ExplodingService:
            vs_currency = "usd"

            async def current_prices(self, assets):
                raise RuntimeError("socket closed")

            async def historical_prices_many(self, assets, days=30):
                raise RuntimeError("socket closed")

        tracker = PortfolioTracker(tmp_store, ExplodingService())
        tracker.add_transaction(make_tx("btc", "buy", 1, 10))
        result = await tracker.refresh()
        assert result.snapshot["btc"].quantity_held == 1.0
        assert result.valuation.total_value == 0.0

    @pytest.mark.asyncio
    async def test_empty_portfolio(self, tmp_store, stub_prices):
        result = await PortfolioTracker(tmp_store, stub_prices()).refresh()
        assert len(result.snapshot) == 0
        assert result.valuation.total_value == 0.0
        assert result.history == []

    @pytest.mark.asyncio
    async def test_superseded_refresh_is_discarded(self, tmp_store, make_tx):
        release_first = asyncio.Event()

        class GatedService:
            vs_currency = "usd"

            def __init__(self):
                self.calls = 0

            async def current_prices(self, assets):
                self.calls += 1
                if self.calls == 1:
                    await release_first.wait()
                    return ApiResponse.success(data={"btc": 1.0})
                return ApiResponse.success(data={"btc": 2.0})

            async def historical_prices_many(self, assets, days=30):
                return ApiResponse.success(data={})

        tracker = PortfolioTracker(tmp_store, GatedService())
        tracker.add_transaction(make_tx("btc", "buy", 1, 1))

        slow = asyncio.create_task(tracker.refresh())
        await asyncio.sleep(0)
        fast = await tracker.refresh()
        release_first.set()
        stale = await slow

        assert stale is None
        assert fast.valuation.assets["btc"].current_price == 2.0
        assert tracker.latest is fast

    @pytest.mark.asyncio
    async def test_refresh_uses_list_as_of_start(self, tmp_store, make_tx):
        release = asyncio.Event()

        class GatedService:
            vs_currency = "usd"

            async def current_prices(self, assets):
                await release.wait()
                return ApiResponse.success(data={})

            async def historical_prices_many(self, assets, days=30):
                return ApiResponse.success(data={})

        tracker = PortfolioTracker(tmp_store, GatedService())
        tracker.add_transaction(make_tx("btc", "buy", 1, 1))
        pending = asyncio.create_task(tracker.refresh())
        await asyncio.sleep(0)
        tracker.add_transaction(make_tx("btc", "buy", 5, 1))
        release.set()
        result = await pending
        assert result.snapshot["btc"].quantity_held == 1.0
        assert len(tracker.transactions) == 2

    @pytest.mark.asyncio
    async def test_coin_history(self, tmp_store, stub_prices, make_series):
        series = make_series(date(2024, 1, 1), [1.0, 2.0])
        tracker = PortfolioTracker(tmp_store, stub_prices(history={"btc": series}))
        resp = await tracker.coin_history("btc", 2)
        assert resp.data == series

    @pytest.mark.asyncio
    async def test_coin_history_normalizes_asset(
        self, tmp_store, stub_prices, make_series
    ):
        series = make_series(date(2024, 1, 1), [1.0, 2.0])
        prices = stub_prices(history={"bitcoin": series})
        tracker = PortfolioTracker(tmp_store, prices)
        resp = await tracker.coin_history("  Bitcoin ", 2)
        assert prices.history_calls == [("bitcoin", 2)]
        assert resp.data == series
