"""
In-memory transaction with an undo log.

Memory repositories apply writes immediately and register a compensating
callback on the transaction. ``rollback()`` replays the callbacks in
reverse order, restoring exactly the rows the transaction touched.
"""

import itertools
import logging
from typing import Callable, List

logger = logging.getLogger(__name__)

_ids = itertools.count(1)


class MemoryTransaction:
    """Undo-log transaction shared by the memory repositories."""

    def __init__(self) -> None:
        self.transaction_id = next(_ids)
        self.state = "active"
        self._undo: List[Callable[[], None]] = []

    @property
    def is_active(self) -> bool:
        return self.state == "active"

    def record(self, undo: Callable[[], None]) -> None:
        """Register a callback that reverts one write."""
        if not self.is_active:
            raise RuntimeError(
                f"Transaction {self.transaction_id} is {self.state}"
            )
        self._undo.append(undo)

    async def commit(self) -> None:
        if not self.is_active:
            raise RuntimeError(
                f"Transaction {self.transaction_id} is {self.state}"
            )
        self.state = "committed"
        logger.debug(
            "Memory transaction committed",
            extra={
                "transaction_id": self.transaction_id,
                "writes": len(self._undo),
            },
        )
        self._undo.clear()

    async def rollback(self) -> None:
        if not self.is_active:
            return
        for undo in reversed(self._undo):
            undo()
        logger.debug(
            "Memory transaction rolled back",
            extra={
                "transaction_id": self.transaction_id,
                "writes": len(self._undo),
            },
        )
        self._undo.clear()
        self.state = "rolled_back"


def record_write(tx: object, undo: Callable[[], None]) -> None:
    """Register ``undo`` on ``tx`` when it is a memory transaction."""
    if isinstance(tx, MemoryTransaction):
        tx.record(undo)
