"""Abstract base class for backend command gateways."""

from abc import ABC, abstractmethod

from memosync.gateway.types import (
    InputResult,
    Memo,
    ReanalyzeResult,
    Schedule,
    SearchResult,
    Todo,
    Transaction,
    UsageStats,
)


class MemoGateway(ABC):
    """
    Typed request/response boundary to the memo backend.

    One coroutine per backend command, no logic. Every method raises
    ``GatewayError`` carrying the backend's message when the command fails.
    """

    # Memos

    @abstractmethod
    async def get_memos_paginated(self, offset: int, limit: int) -> list[Memo]:
        """Fetch one page of memos, most recently updated first."""
        ...

    @abstractmethod
    async def get_memo_count(self) -> int:
        ...

    @abstractmethod
    async def update_memo(
        self,
        id: int,
        title: str,
        formatted_content: str,
        category: str,
        tags: str,
    ) -> None:
        """Persist the four user-editable fields of a memo."""
        ...

    @abstractmethod
    async def delete_memo(self, id: int) -> None:
        ...

    @abstractmethod
    async def delete_all_memos(self) -> int:
        """Delete every memo. Returns the number deleted."""
        ...

    @abstractmethod
    async def reanalyze_memo(self, id: int, new_content: str) -> ReanalyzeResult:
        """Re-run AI extraction for a memo; may rewrite its derived records."""
        ...

    @abstractmethod
    async def input_memo(self, content: str) -> InputResult:
        ...

    @abstractmethod
    async def search_memo(self, question: str) -> SearchResult:
        ...

    # Derived collections

    @abstractmethod
    async def get_schedules(self) -> list[Schedule]:
        ...

    @abstractmethod
    async def get_todos(self) -> list[Todo]:
        ...

    @abstractmethod
    async def get_transactions(self) -> list[Transaction]:
        ...

    @abstractmethod
    async def toggle_todo(self, id: int) -> None:
        ...

    @abstractmethod
    async def delete_todo(self, id: int) -> None:
        ...

    @abstractmethod
    async def delete_schedule(self, id: int) -> None:
        ...

    @abstractmethod
    async def update_transaction(
        self,
        id: int,
        tx_type: str,
        amount: int,
        description: str,
        category: str | None,
        tx_date: str | None,
    ) -> None:
        ...

    @abstractmethod
    async def delete_transaction(self, id: int) -> None:
        ...

    # Misc

    @abstractmethod
    async def get_usage(self) -> UsageStats:
        ...

    @abstractmethod
    async def get_setting(self, key: str) -> str:
        ...

    @abstractmethod
    async def save_setting(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    async def export_db(self) -> str:
        """Serialize every memo to a JSON string."""
        ...

    @abstractmethod
    async def import_db(self, json_data: str) -> int:
        """Import memos from a JSON string. Returns the number imported."""
        ...

    async def close(self) -> None:
        """Release transport resources. No-op by default."""
        return None
