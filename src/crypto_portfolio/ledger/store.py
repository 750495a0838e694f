"""JSON file store for the transaction list."""

import json
from pathlib import Path
from typing import Iterable, List

from crypto_portfolio.core.logger import get_logger
from crypto_portfolio.ledger.transaction import (
    Transaction,
    TransactionValidationError,
)

logger = get_logger("ledger.store")


class TransactionStore:
    """Whole-list persistence: every mutation rewrites the file (last write wins)."""

    def __init__(self, path: str):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> List[Transaction]:
        if not self._path.exists():
            return []
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                records = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Unreadable transaction file {self._path}: {e}")
            return []
        if not isinstance(records, list):
            logger.warning(f"Transaction file {self._path} is not a list, ignoring")
            return []

        transactions = []
        for i, record in enumerate(records):
            if not isinstance(record, dict):
                logger.warning(f"Skipping record {i}: not an object")
                continue
            try:
                transactions.append(Transaction.from_dict(record))
            except TransactionValidationError as e:
                logger.warning(f"Skipping record {i}: {e}")
        return transactions

    def save(self, transactions: Iterable[Transaction]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        records = [tx.to_dict() for tx in transactions]
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(records, f, ensure_ascii=False, indent=2)

    def append(self, transaction: Transaction) -> List[Transaction]:
        transactions = self.load()
        transactions.append(transaction)
        self.save(transactions)
        return transactions

    def delete(self, index: int) -> List[Transaction]:
        """Remove the transaction at ``index``. Raises IndexError if out of range."""
        transactions = self.load()
        if index < 0 or index >= len(transactions):
            raise IndexError(f"No transaction at index {index}")
        removed = transactions.pop(index)
        self.save(transactions)
        logger.info(f"Deleted {removed.action.value} {removed.asset} at index {index}")
        return transactions

    def clear(self) -> None:
        if self._path.exists():
            self._path.unlink()
        logger.info("Cleared all transactions")
