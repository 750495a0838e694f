"""Buy/sell transaction records and their validation."""

import math
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Optional, Union

from crypto_portfolio.core.dates import parse_date


class Action(Enum):
    BUY = "buy"
    SELL = "sell"


class TransactionValidationError(ValueError):
    """Raised when user input cannot become a Transaction."""


@dataclass(frozen=True)
class Transaction:
    asset: str
    action: Action
    quantity: float
    unit_price: float
    date: date

    @property
    def total(self) -> float:
        return self.quantity * self.unit_price

    def to_dict(self) -> dict:
        return {
            "asset": self.asset,
            "action": self.action.value,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
            "date": self.date.isoformat(),
        }

    @classmethod
    def from_dict(cls, record: dict) -> "Transaction":
        """Build from a persisted record, validating like new input.

        Records written by the browser version of the tracker use ``coin``
        and ``price`` instead of ``asset`` and ``unitPrice``.
        """
        return create_transaction(
            asset=record.get("asset", record.get("coin")),
            action=record.get("action"),
            quantity=record.get("quantity"),
            unit_price=record.get("unitPrice", record.get("price")),
            trade_date=record.get("date"),
        )


def create_transaction(
    asset: Any,
    action: Union[str, Action, None],
    quantity: Any,
    unit_price: Any,
    trade_date: Union[str, date, None] = None,
    today: Optional[date] = None,
) -> Transaction:
    """Validate raw input and return a normalized Transaction.

    Args:
        asset: Coin identifier; stripped and lower-cased.
        action: "buy"/"sell" in any case, or an Action.
        quantity: Strictly positive number.
        unit_price: Non-negative number, price per unit at trade time.
        trade_date: ISO date string or date. Defaults to ``today``.
        today: Override for the default date.

    Raises:
        TransactionValidationError: If any field is invalid.
    """
    normalized_asset = normalize_asset(asset)
    if not normalized_asset:
        raise TransactionValidationError("Asset identifier must not be empty")

    parsed_action = _parse_action(action)

    qty = _to_number(quantity, "quantity")
    if qty <= 0:
        raise TransactionValidationError(f"Quantity must be positive, got {qty}")

    price = _to_number(unit_price, "unit price")
    if price < 0:
        raise TransactionValidationError(
            f"Unit price must not be negative, got {price}"
        )

    try:
        trade_day = parse_date(trade_date, default=today)
    except ValueError as e:
        raise TransactionValidationError(f"Invalid date {trade_date!r}") from e

    return Transaction(
        asset=normalized_asset,
        action=parsed_action,
        quantity=qty,
        unit_price=price,
        date=trade_day,
    )


def normalize_asset(asset: Any) -> str:
    if asset is None:
        return ""
    return str(asset).strip().lower()


def _parse_action(action: Union[str, Action, None]) -> Action:
    if isinstance(action, Action):
        return action
    try:
        return Action(str(action).strip().lower())
    except ValueError as e:
        raise TransactionValidationError(
            f"Action must be 'buy' or 'sell', got {action!r}"
        ) from e


def _to_number(value: Any, field_name: str) -> float:
    if isinstance(value, bool):
        raise TransactionValidationError(f"Invalid {field_name}: {value!r}")
    try:
        number = float(value)
    except (TypeError, ValueError) as e:
        raise TransactionValidationError(f"Invalid {field_name}: {value!r}") from e
    if not math.isfinite(number):
        raise TransactionValidationError(f"Invalid {field_name}: {value!r}")
    return number
