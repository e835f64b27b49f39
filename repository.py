import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Sequence

from schema import Transaction

logger = logging.getLogger(__name__)


class TransactionRepository(ABC):
    """Durable store for parsed transactions."""

    @abstractmethod
    def save_all(self, transactions: Sequence[Transaction]) -> int:
        """Persist a whole batch; returns the number of records stored."""

    @abstractmethod
    def list_all(self) -> List[Transaction]:
        """Every persisted transaction, in no particular order."""


class InMemoryTransactionRepository(TransactionRepository):
    def __init__(self):
        self._rows: Dict[int, Transaction] = {}
        self._next_id = 1

    def save_all(self, transactions: Sequence[Transaction]) -> int:
        for txn in transactions:
            self._rows[self._next_id] = txn
            self._next_id += 1
        logger.info(f"Saved {len(transactions)} transactions ({len(self._rows)} stored)")
        return len(transactions)

    def list_all(self) -> List[Transaction]:
        return list(self._rows.values())
