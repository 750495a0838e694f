"""Mark FIFO positions to market and build the portfolio value history."""

from dataclasses import asdict, dataclass, field
from datetime import date
from typing import Dict, List, Mapping, Optional, Sequence

import pandas as pd

from crypto_portfolio.accounting.fifo import PortfolioSnapshot
from crypto_portfolio.ledger.transaction import normalize_asset


@dataclass(frozen=True)
class PricePoint:
    date: date
    price: float


@dataclass(frozen=True)
class ValuePoint:
    date: date
    total_value: float

    def to_dict(self) -> dict:
        return {"date": self.date.isoformat(), "totalValue": self.total_value}


@dataclass(frozen=True)
class AssetValuation:
    asset: str
    quantity_held: float
    average_cost: float
    current_price: float
    current_value: float
    unrealized_pnl: float
    realized_pnl: float

    @property
    def is_visible(self) -> bool:
        """Closed positions with nothing realized are hidden from holdings."""
        return not (self.quantity_held == 0 and self.realized_pnl == 0)


@dataclass
class ValuedPortfolio:
    assets: Dict[str, AssetValuation] = field(default_factory=dict)
    total_value: float = 0.0
    total_unrealized_pnl: float = 0.0
    total_realized_pnl: float = 0.0

    def visible_assets(self) -> List[AssetValuation]:
        return [v for v in self.assets.values() if v.is_visible]

    def to_dict(self) -> dict:
        return {
            "assets": {a: asdict(v) for a, v in self.assets.items()},
            "totals": {
                "totalValue": self.total_value,
                "totalUnrealizedPnl": self.total_unrealized_pnl,
                "totalRealizedPnl": self.total_realized_pnl,
            },
        }


def value(
    snapshot: PortfolioSnapshot, current_prices: Optional[Mapping[str, float]] = None
) -> ValuedPortfolio:
    """Value each position at ``current_prices``; a missing price counts as 0."""
    prices = {normalize_asset(k): v for k, v in (current_prices or {}).items()}
    result = ValuedPortfolio()
    for asset, position in snapshot.positions.items():
        price = float(prices.get(asset) or 0.0)
        qty = position.quantity_held
        unrealized = (price - position.average_cost) * qty if qty > 0 else 0.0
        valuation = AssetValuation(
            asset=asset,
            quantity_held=qty,
            average_cost=position.average_cost,
            current_price=price,
            current_value=qty * price,
            unrealized_pnl=unrealized,
            realized_pnl=position.realized_pnl,
        )
        result.assets[asset] = valuation
        result.total_value += valuation.current_value
        result.total_unrealized_pnl += valuation.unrealized_pnl
        result.total_realized_pnl += valuation.realized_pnl
    return result


def historical_value_series(
    snapshot: PortfolioSnapshot,
    price_history: Mapping[str, Sequence[PricePoint]],
) -> List[ValuePoint]:
    """Portfolio value on every date that appears in any held asset's history.

    Uses today's ``quantity_held`` for the whole window instead of
    reconstructing holdings at each date. An asset without a point on a
    date adds nothing on that date; repeated points on one date keep the
    first.
    """
    history = {normalize_asset(k): v for k, v in price_history.items()}
    columns: Dict[str, pd.Series] = {}
    for asset in snapshot.held_assets():
        points = history.get(asset) or []
        if not points:
            continue
        series = pd.Series(
            [float(p.price) for p in points],
            index=[p.date for p in points],
            dtype=float,
        )
        series = series[~series.index.duplicated(keep="first")]
        columns[asset] = series * snapshot[asset].quantity_held

    if not columns:
        return []
    frame = pd.concat(columns, axis=1).sort_index()
    totals = frame.fillna(0.0).sum(axis=1)
    return [ValuePoint(date=d, total_value=float(v)) for d, v in totals.items()]
