"""Optimistic category moves with deterministic rollback."""

from collections import deque
from dataclasses import dataclass
from enum import Enum
from typing import Iterable

from loguru import logger

from memosync.errors import MoveInProgressError
from memosync.gateway.types import Memo

HISTORY_LIMIT = 100


class MoveStatus(str, Enum):
    PENDING = "pending"
    COMMITTED = "committed"
    REJECTED = "rejected"


@dataclass
class PendingMove:
    """One drag-and-drop reassignment awaiting backend confirmation."""
    memo_id: int
    from_category: str
    to_category: str
    status: MoveStatus = MoveStatus.PENDING
    error: str | None = None


class MoveTracker:
    """
    Local overlay of pending category moves.

    The stored memo is never touched: the overlay is applied when reading
    and dropped when the move resolves, so a rejected move shows the stored
    category again.
    """

    def __init__(self):
        self._pending: dict[int, PendingMove] = {}
        self.history: deque[PendingMove] = deque(maxlen=HISTORY_LIMIT)

    def begin(self, memo: Memo, to_category: str) -> PendingMove | None:
        """
        Record a move. Dropping onto the current category is a no-op.

        Raises:
            MoveInProgressError: The memo's previous move has not resolved.
        """
        pending = self._pending.get(memo.id)
        if pending is not None:
            raise MoveInProgressError(
                f"Memo {memo.id} is still being moved to {pending.to_category!r}"
            )
        if to_category == memo.category:
            return None
        move = PendingMove(memo_id=memo.id, from_category=memo.category, to_category=to_category)
        self._pending[memo.id] = move
        logger.debug(f"Move {memo.id}: {memo.category!r} -> {to_category!r} pending")
        return move

    def commit(self, memo_id: int) -> PendingMove | None:
        return self._resolve(memo_id, MoveStatus.COMMITTED)

    def reject(self, memo_id: int, error: str) -> PendingMove | None:
        return self._resolve(memo_id, MoveStatus.REJECTED, error)

    def _resolve(self, memo_id: int, status: MoveStatus, error: str | None = None) -> PendingMove | None:
        move = self._pending.pop(memo_id, None)
        if move is None:
            return None
        move.status = status
        move.error = error
        self.history.append(move)
        logger.debug(f"Move {memo_id} {status.value}")
        return move

    def pending(self, memo_id: int) -> PendingMove | None:
        return self._pending.get(memo_id)

    def category_of(self, memo: Memo) -> str:
        move = self._pending.get(memo.id)
        return move.to_category if move else memo.category

    def overlay(self, memos: Iterable[Memo]) -> list[Memo]:
        """Memos as they should display, pending moves applied."""
        if not self._pending:
            return list(memos)
        return [
            m.model_copy(update={"category": self._pending[m.id].to_category})
            if m.id in self._pending else m
            for m in memos
        ]

    def __len__(self) -> int:
        return len(self._pending)
