"""FIFO cost-basis accounting over a transaction history.

``compute`` rebuilds every position from scratch on each call: the oldest
open lot of an asset is always the first consumed by a sell. Sells that
exceed the recorded buys are tolerated. The unmatched part earns no
realized P&L and drives ``quantity_held`` negative.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List

from crypto_portfolio.ledger.transaction import Action, Transaction, normalize_asset


@dataclass
class Lot:
    quantity: float
    unit_price: float

    def cost_basis(self) -> float:
        return self.quantity * self.unit_price


@dataclass
class AssetPosition:
    asset: str
    quantity_held: float = 0.0
    open_lots: List[Lot] = field(default_factory=list)
    cost_basis: float = 0.0
    average_cost: float = 0.0
    realized_pnl: float = 0.0

    @property
    def is_open(self) -> bool:
        return self.quantity_held > 0

    def buy(self, quantity: float, unit_price: float) -> None:
        self.open_lots.append(Lot(quantity=quantity, unit_price=unit_price))
        self.quantity_held += quantity

    def sell(self, quantity: float, unit_price: float) -> float:
        """Consume lots oldest-first and return this sell's realized P&L."""
        remaining = quantity
        pnl = 0.0
        while remaining > 0 and self.open_lots:
            lot = self.open_lots[0]
            matched = min(remaining, lot.quantity)
            pnl += matched * (unit_price - lot.unit_price)
            lot.quantity -= matched
            remaining -= matched
            if lot.quantity <= 0:
                self.open_lots.pop(0)
        self.realized_pnl += pnl
        self.quantity_held -= quantity
        return pnl

    def close_books(self) -> None:
        self.cost_basis = sum(lot.cost_basis() for lot in self.open_lots)
        if self.quantity_held > 0:
            self.average_cost = self.cost_basis / self.quantity_held
        else:
            self.average_cost = 0.0


@dataclass
class PortfolioSnapshot:
    """Positions keyed by asset, including fully closed ones."""

    positions: Dict[str, AssetPosition] = field(default_factory=dict)

    def __getitem__(self, asset: str) -> AssetPosition:
        return self.positions[normalize_asset(asset)]

    def __contains__(self, asset: object) -> bool:
        return isinstance(asset, str) and normalize_asset(asset) in self.positions

    def __iter__(self) -> Iterator[str]:
        return iter(self.positions)

    def __len__(self) -> int:
        return len(self.positions)

    def get(self, asset: str):
        return self.positions.get(normalize_asset(asset))

    @property
    def assets(self) -> List[str]:
        return list(self.positions)

    def held_assets(self) -> List[str]:
        return [a for a, pos in self.positions.items() if pos.is_open]

    @property
    def total_realized_pnl(self) -> float:
        return sum(pos.realized_pnl for pos in self.positions.values())


def compute(transactions: Iterable[Transaction]) -> PortfolioSnapshot:
    """Replay ``transactions`` in the given order and return the resulting positions.

    The sequence is not sorted here; callers pass it in chronological order.
    """
    positions: Dict[str, AssetPosition] = {}
    for tx in transactions:
        asset = normalize_asset(tx.asset)
        position = positions.get(asset)
        if position is None:
            position = positions[asset] = AssetPosition(asset=asset)

        if tx.action == Action.BUY:
            position.buy(tx.quantity, tx.unit_price)
        elif tx.action == Action.SELL:
            position.sell(tx.quantity, tx.unit_price)

    for position in positions.values():
        position.close_books()
    return PortfolioSnapshot(positions=positions)
