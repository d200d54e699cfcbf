"""Cached copies of the three memo-derived collections."""

import asyncio
from typing import Iterable

from loguru import logger

from memosync.gateway.base import MemoGateway
from memosync.gateway.types import DerivedRecord, Schedule, Todo, Transaction


class DerivedCollections:
    """
    Schedules, todos and transactions as last fetched from the backend.

    Records are never created or edited locally: every mutation goes to the
    backend and the affected collection is refetched. Each collection is
    replaced wholesale, never merged.
    """

    def __init__(self, gateway: MemoGateway):
        self.gateway = gateway
        self.schedules: tuple[Schedule, ...] = ()
        self.todos: tuple[Todo, ...] = ()
        self.transactions: tuple[Transaction, ...] = ()

    async def refresh_all(self) -> None:
        """Refetch all three; replace them together or not at all."""
        schedules, todos, transactions = await asyncio.gather(
            self.gateway.get_schedules(),
            self.gateway.get_todos(),
            self.gateway.get_transactions(),
        )
        self.schedules = tuple(schedules)
        self.todos = tuple(todos)
        self.transactions = tuple(transactions)
        logger.debug(
            f"Derived collections refreshed: {len(schedules)} schedules, "
            f"{len(todos)} todos, {len(transactions)} transactions"
        )

    async def refresh_schedules(self) -> None:
        self.schedules = tuple(await self.gateway.get_schedules())

    async def refresh_todos(self) -> None:
        self.todos = tuple(await self.gateway.get_todos())

    async def refresh_transactions(self) -> None:
        self.transactions = tuple(await self.gateway.get_transactions())

    # Mutations

    async def toggle_todo(self, todo_id: int) -> None:
        await self.gateway.toggle_todo(todo_id)
        await self.refresh_todos()

    async def delete_todo(self, todo_id: int) -> None:
        await self.gateway.delete_todo(todo_id)
        await self.refresh_todos()

    async def delete_schedule(self, schedule_id: int) -> None:
        await self.gateway.delete_schedule(schedule_id)
        await self.refresh_schedules()

    async def update_transaction(
        self,
        transaction_id: int,
        tx_type: str,
        amount: int,
        description: str,
        category: str | None = None,
        tx_date: str | None = None,
    ) -> None:
        if tx_type not in ("income", "expense"):
            raise ValueError(f"tx_type must be 'income' or 'expense', got {tx_type!r}")
        await self.gateway.update_transaction(transaction_id, tx_type, amount, description, category, tx_date)
        await self.refresh_transactions()

    async def delete_transaction(self, transaction_id: int) -> None:
        await self.gateway.delete_transaction(transaction_id)
        await self.refresh_transactions()

    # Lookups

    def all_records(self) -> list[DerivedRecord]:
        return [*self.schedules, *self.todos, *self.transactions]

    def for_memo(self, memo_id: int) -> list[DerivedRecord]:
        return [r for r in self.all_records() if r.memo_id == memo_id]

    def orphans(self, memo_ids: Iterable[int]) -> list[DerivedRecord]:
        """
        Records whose memo back-reference does not resolve.

        Only meaningful against the complete id set; with a partial working
        set a record may merely point at a memo that is not loaded yet.
        """
        known = set(memo_ids)
        return [r for r in self.all_records() if r.memo_id is not None and r.memo_id not in known]

    def balance(self) -> int:
        """Income minus expenses across all transactions."""
        return sum(t.amount if t.tx_type == "income" else -t.amount for t in self.transactions)
