"""HTTP gateway: backend commands over ``POST /invoke/{command}``."""

from typing import Any

import httpx
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from memosync.errors import GatewayError
from memosync.gateway.base import MemoGateway
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

_MEMO_LIST = TypeAdapter(list[Memo])
_SCHEDULE_LIST = TypeAdapter(list[Schedule])
_TODO_LIST = TypeAdapter(list[Todo])
_TRANSACTION_LIST = TypeAdapter(list[Transaction])


class HttpGateway(MemoGateway):
    """
    Gateway for a backend exposing its command handlers over HTTP.

    Each command is a JSON POST whose body holds the command's arguments
    under the backend's camelCase names. A 2xx response carries the JSON
    result; anything else is raised as ``GatewayError`` with the backend's
    message.
    """

    def __init__(
        self,
        base_url: str = "http://127.0.0.1:1421",
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Initialize the gateway.

        Args:
            base_url: Backend root URL.
            timeout: Request timeout in seconds. None waits indefinitely.
            transport: Optional custom transport (tests use httpx.MockTransport).
        """
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            transport=transport,
            headers={"Content-Type": "application/json"},
        )

    async def _invoke(self, command: str, **args: Any) -> Any:
        logger.debug(f"invoke {command} {args if len(str(args)) < 200 else '...'}")
        try:
            response = await self.client.post(f"/invoke/{command}", json=args)
        except httpx.RequestError as e:
            raise GatewayError(f"Error connecting to backend: {e}", command=command) from e

        if response.is_error:
            raise GatewayError(self._error_message(response), command=command)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise GatewayError(f"Invalid response for {command}: {e}", command=command) from e

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            data = response.json()
        except ValueError:
            return response.text or f"HTTP {response.status_code}"
        if isinstance(data, dict) and "error" in data:
            return str(data["error"])
        if isinstance(data, str):
            return data
        return response.text

    @staticmethod
    def _parse(command: str, adapter_or_model: Any, data: Any) -> Any:
        try:
            if isinstance(adapter_or_model, TypeAdapter):
                return adapter_or_model.validate_python(data)
            return adapter_or_model.model_validate(data)
        except ValidationError as e:
            raise GatewayError(f"Invalid response for {command}: {e}", command=command) from e

    # Memos

    async def get_memos_paginated(self, offset: int, limit: int) -> list[Memo]:
        data = await self._invoke("get_memos_paginated", offset=offset, limit=limit)
        return self._parse("get_memos_paginated", _MEMO_LIST, data or [])

    async def get_memo_count(self) -> int:
        return int(await self._invoke("get_memo_count") or 0)

    async def update_memo(
        self,
        id: int,
        title: str,
        formatted_content: str,
        category: str,
        tags: str,
    ) -> None:
        await self._invoke(
            "update_memo",
            id=id,
            title=title,
            formattedContent=formatted_content,
            category=category,
            tags=tags,
        )

    async def delete_memo(self, id: int) -> None:
        await self._invoke("delete_memo", id=id)

    async def delete_all_memos(self) -> int:
        return int(await self._invoke("delete_all_memos") or 0)

    async def reanalyze_memo(self, id: int, new_content: str) -> ReanalyzeResult:
        data = await self._invoke("reanalyze_memo", id=id, newContent=new_content)
        return self._parse("reanalyze_memo", ReanalyzeResult, data)

    async def input_memo(self, content: str) -> InputResult:
        data = await self._invoke("input_memo", content=content)
        return self._parse("input_memo", InputResult, data)

    async def search_memo(self, question: str) -> SearchResult:
        data = await self._invoke("search_memo", question=question)
        return self._parse("search_memo", SearchResult, data)

    # Derived collections

    async def get_schedules(self) -> list[Schedule]:
        return self._parse("get_schedules", _SCHEDULE_LIST, await self._invoke("get_schedules") or [])

    async def get_todos(self) -> list[Todo]:
        return self._parse("get_todos", _TODO_LIST, await self._invoke("get_todos") or [])

    async def get_transactions(self) -> list[Transaction]:
        return self._parse("get_transactions", _TRANSACTION_LIST, await self._invoke("get_transactions") or [])

    async def toggle_todo(self, id: int) -> None:
        await self._invoke("toggle_todo", id=id)

    async def delete_todo(self, id: int) -> None:
        await self._invoke("delete_todo", id=id)

    async def delete_schedule(self, id: int) -> None:
        await self._invoke("delete_schedule", id=id)

    async def update_transaction(
        self,
        id: int,
        tx_type: str,
        amount: int,
        description: str,
        category: str | None,
        tx_date: str | None,
    ) -> None:
        await self._invoke(
            "update_transaction",
            id=id,
            txType=tx_type,
            amount=amount,
            description=description,
            category=category,
            txDate=tx_date,
        )

    async def delete_transaction(self, id: int) -> None:
        await self._invoke("delete_transaction", id=id)

    # Misc

    async def get_usage(self) -> UsageStats:
        return self._parse("get_usage", UsageStats, await self._invoke("get_usage") or {})

    async def get_setting(self, key: str) -> str:
        return str(await self._invoke("get_setting", key=key) or "")

    async def save_setting(self, key: str, value: str) -> None:
        await self._invoke("save_setting", key=key, value=value)

    async def export_db(self) -> str:
        return str(await self._invoke("export_db") or "")

    async def import_db(self, json_data: str) -> int:
        return int(await self._invoke("import_db", jsonData=json_data) or 0)

    async def close(self) -> None:
        await self.client.aclose()
