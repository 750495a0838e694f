"""Display rows for holdings and transaction history.

Rounding happens only here, never in the accounting totals.
"""

from typing import Iterable, List

from crypto_portfolio.accounting.valuation import ValuedPortfolio
from crypto_portfolio.ledger.transaction import Transaction

QUANTITY_DECIMALS = 6
MONEY_DECIMALS = 2


def display_name(asset: str) -> str:
    return asset[:1].upper() + asset[1:]


def money(amount: float) -> float:
    return round(amount, MONEY_DECIMALS)


def quantity(amount: float) -> float:
    return round(amount, QUANTITY_DECIMALS)


def holding_rows(valued: ValuedPortfolio) -> List[dict]:
    rows = []
    for v in valued.visible_assets():
        rows.append(
            {
                "asset": v.asset,
                "name": display_name(v.asset),
                "holding": quantity(v.quantity_held),
                "avgBuy": money(v.average_cost),
                "currentPrice": money(v.current_price),
                "value": money(v.current_value),
                "unrealizedPnl": money(v.unrealized_pnl),
                "realizedPnl": money(v.realized_pnl),
                "unrealizedClass": "profit" if v.unrealized_pnl >= 0 else "loss",
                "realizedClass": "profit" if v.realized_pnl >= 0 else "loss",
            }
        )
    return rows


def totals_row(valued: ValuedPortfolio) -> dict:
    return {
        "totalValue": money(valued.total_value),
        "totalUnrealizedPnl": money(valued.total_unrealized_pnl),
        "totalRealizedPnl": money(valued.total_realized_pnl),
    }


def history_rows(transactions: Iterable[Transaction]) -> List[dict]:
    """Newest first; ``index`` is the store position used for deletion."""
    indexed = list(enumerate(transactions))
    indexed.sort(key=lambda pair: pair[1].date, reverse=True)
    return [
        {
            "index": i,
            "date": tx.date.isoformat(),
            "coin": display_name(tx.asset),
            "action": tx.action.value,
            "actionLabel": display_name(tx.action.value),
            "quantity": quantity(tx.quantity),
            "price": money(tx.unit_price),
            "total": money(tx.total),
        }
        for i, tx in indexed
    ]
