"""CoinGecko spot and historical price quotes.

``CoinGeckoClient`` speaks HTTP and raises ``PriceQuoteError``.
``PriceQuoteService`` never raises: it wraps every lookup in an
``ApiResponse`` so a price outage only degrades valuations.
"""

from __future__ import annotations

import asyncio
from typing import Any, Dict, Iterable, List, Optional

import httpx

from crypto_portfolio.accounting.valuation import PricePoint
from crypto_portfolio.core.cache import DiskCache
from crypto_portfolio.core.dates import from_timestamp_ms, parse_date
from crypto_portfolio.core.logger import get_logger
from crypto_portfolio.core.response import ApiResponse
from crypto_portfolio.ledger.transaction import normalize_asset

logger = get_logger("prices.coingecko")

BASE_URL = "https://api.coingecko.com/api/v3"


class PriceQuoteError(RuntimeError):
    """Raised when the quote API fails or returns an unexpected payload."""


class CoinGeckoClient:
    def __init__(
        self,
        base_url: str = BASE_URL,
        *,
        timeout: float = 10.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._client = client

    async def _get_json(self, path: str, params: Dict[str, Any]) -> Any:
        url = f"{self._base_url}{path}"
        try:
            if self._client is not None:
                response = await self._client.get(url, params=params)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as http:
                    response = await http.get(url, params=params)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise PriceQuoteError(f"GET {path} failed: {e}") from e

    async def simple_price(
        self, ids: Iterable[str], vs_currency: str = "usd"
    ) -> Dict[str, float]:
        """Spot price per coin id. Coins unknown to the API are left out."""
        id_list = [normalize_asset(i) for i in ids if normalize_asset(i)]
        if not id_list:
            return {}
        payload = await self._get_json(
            "/simple/price",
            {"ids": ",".join(id_list), "vs_currencies": vs_currency},
        )
        if not isinstance(payload, dict):
            raise PriceQuoteError("simple/price payload is not an object")
        prices = {}
        for coin, quote in payload.items():
            if isinstance(quote, dict) and quote.get(vs_currency) is not None:
                prices[coin] = float(quote[vs_currency])
        return prices

    async def market_chart(
        self, coin: str, days: int = 30, vs_currency: str = "usd"
    ) -> List[PricePoint]:
        """Daily price points over the trailing ``days``, oldest first.

        The API returns intraday samples for short windows; the first sample
        of each calendar day is kept.
        """
        payload = await self._get_json(
            f"/coins/{normalize_asset(coin)}/market_chart",
            {"vs_currency": vs_currency, "days": days},
        )
        raw = payload.get("prices") if isinstance(payload, dict) else None
        if not isinstance(raw, list):
            raise PriceQuoteError(f"market_chart payload for {coin} has no prices")

        points: List[PricePoint] = []
        seen = set()
        for item in raw:
            if not isinstance(item, (list, tuple)) or len(item) < 2 or item[1] is None:
                continue
            try:
                day = from_timestamp_ms(float(item[0]))
                price = float(item[1])
            except (TypeError, ValueError, OverflowError, OSError) as e:
                raise PriceQuoteError(f"Malformed price sample {item!r}") from e
            if day in seen:
                continue
            seen.add(day)
            points.append(PricePoint(date=day, price=price))
        return points


class PriceQuoteService:
    def __init__(
        self,
        client: CoinGeckoClient,
        vs_currency: str = "usd",
        cache: Optional[DiskCache] = None,
    ) -> None:
        self._client = client
        self._vs_currency = vs_currency
        self._cache = cache

    @property
    def vs_currency(self) -> str:
        return self._vs_currency

    async def current_prices(self, assets: Iterable[str]) -> ApiResponse:
        ids = sorted({normalize_asset(a) for a in assets if normalize_asset(a)})
        if not ids:
            return ApiResponse.success(data={})
        cache_key = f"spot:{self._vs_currency}:{','.join(ids)}"
        prices = self._cache.get(cache_key) if self._cache else None
        if prices is None:
            try:
                prices = await self._client.simple_price(ids, self._vs_currency)
            except PriceQuoteError as e:
                logger.warning(f"Spot price lookup failed for {ids}: {e}")
                return ApiResponse.error(str(e), data={})
            if self._cache:
                self._cache.set(cache_key, prices)
        missing = [i for i in ids if i not in prices]
        if missing:
            return ApiResponse.warning(
                data=prices, message=f"No quote for: {', '.join(missing)}"
            )
        return ApiResponse.success(data=prices)

    async def historical_prices(self, asset: str, days: int = 30) -> ApiResponse:
        coin = normalize_asset(asset)
        cache_key = f"chart:{self._vs_currency}:{coin}:{days}"
        cached = self._cache.get(cache_key) if self._cache else None
        if cached is not None:
            return ApiResponse.success(
                data=[_point_from_cache(p) for p in cached], message="cache"
            )
        try:
            points = await self._client.market_chart(coin, days, self._vs_currency)
        except PriceQuoteError as e:
            logger.warning(f"Historical price lookup failed for {coin}: {e}")
            return ApiResponse.error(str(e), data=[])
        if self._cache:
            self._cache.set(
                cache_key, [[p.date.isoformat(), p.price] for p in points]
            )
        return ApiResponse.success(data=points)

    async def historical_prices_many(
        self, assets: Iterable[str], days: int = 30
    ) -> ApiResponse:
        """Fetch every asset's history concurrently and join the results.

        A failed asset contributes an empty series instead of failing the
        whole join.
        """
        coins = list(dict.fromkeys(normalize_asset(a) for a in assets))
        results = await asyncio.gather(
            *(self.historical_prices(coin, days) for coin in coins),
            return_exceptions=True,
        )
        history: Dict[str, List[PricePoint]] = {}
        failed = []
        for coin, result in zip(coins, results):
            if isinstance(result, BaseException):
                logger.error(f"Historical fetch for {coin} crashed: {result}")
                history[coin] = []
                failed.append(coin)
            elif not result.ok:
                history[coin] = []
                failed.append(coin)
            else:
                history[coin] = result.data
        if failed:
            return ApiResponse.warning(
                data=history, message=f"History unavailable for: {', '.join(failed)}"
            )
        return ApiResponse.success(data=history)


def _point_from_cache(item: list) -> PricePoint:
    return PricePoint(date=parse_date(item[0]), price=float(item[1]))
