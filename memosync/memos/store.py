"""Paginated working set over the remote memo collection."""

import asyncio
from typing import Any

from loguru import logger

from memosync.gateway.base import MemoGateway
from memosync.gateway.types import Memo

DEFAULT_PAGE_SIZE = 30


class PaginatedMemoStore:
    """
    Owns the loaded subset of memos and the pagination cursor.

    Only this class mutates the working set. Every ``reset`` bumps
    ``generation``; a page fetched under an older generation is discarded
    when it arrives, so a reset always wins over a load started before it.
    Failed fetches leave the previous state untouched and propagate
    ``GatewayError`` to the caller.
    """

    def __init__(self, gateway: MemoGateway, page_size: int = DEFAULT_PAGE_SIZE):
        if page_size < 1:
            raise ValueError("page_size must be positive")
        self.gateway = gateway
        self.page_size = page_size
        self._items: list[Memo] = []
        self.offset = 0
        self.total = 0
        self.generation = 0
        self._exhausted = False
        self._loading_generation: int | None = None
        self._resets_in_flight = 0

    @property
    def items(self) -> tuple[Memo, ...]:
        return tuple(self._items)

    @property
    def has_more(self) -> bool:
        return not self._exhausted and self.offset < self.total

    @property
    def loading(self) -> bool:
        """True while a load_more for the current generation is in flight."""
        return self._loading_generation == self.generation

    @property
    def resetting(self) -> bool:
        return self._resets_in_flight > 0

    def __len__(self) -> int:
        return len(self._items)

    def get(self, memo_id: int) -> Memo | None:
        for memo in self._items:
            if memo.id == memo_id:
                return memo
        return None

    def ids(self) -> set[int]:
        return {m.id for m in self._items}

    async def reset(self) -> bool:
        """
        Reload page 0 and the total count, replacing the working set.

        Returns:
            True if the result was applied, False if a newer reset superseded it.
        """
        self.generation += 1
        generation = self.generation
        self._resets_in_flight += 1
        try:
            page, total = await asyncio.gather(
                self.gateway.get_memos_paginated(0, self.page_size),
                self.gateway.get_memo_count(),
            )
        finally:
            self._resets_in_flight -= 1

        if generation != self.generation:
            logger.debug(f"Discarding superseded reset (generation {generation} < {self.generation})")
            return False

        self._items = list(page)
        self.offset = len(page)
        self.total = max(total, len(page))
        self._exhausted = not page
        logger.info(f"Memo store reset: {len(page)}/{self.total} loaded")
        return True

    async def load_more(self) -> int:
        """
        Append the next page.

        No-op (no gateway call) while a load or reset is in flight or when
        the collection is exhausted.

        Returns:
            Number of memos appended.
        """
        if self.loading or self.resetting or not self.has_more:
            return 0

        generation = self.generation
        offset = self.offset
        self._loading_generation = generation
        try:
            page = await self.gateway.get_memos_paginated(offset, self.page_size)
        finally:
            if self._loading_generation == generation:
                self._loading_generation = None

        if generation != self.generation:
            logger.debug(f"Discarding page at offset {offset}: store was reset meanwhile")
            return 0

        if not page:
            self._exhausted = True
            logger.debug(f"Empty page at offset {offset}, collection exhausted")
            return 0

        # A concurrent insert on the backend shifts the window; skip repeats.
        known = self.ids()
        fresh = [m for m in page if m.id not in known]
        self._items.extend(fresh)
        self.offset = min(offset + len(page), self.total)
        if self.offset >= self.total:
            self._exhausted = True
        logger.debug(f"Loaded {len(fresh)} memos at offset {offset}, has_more={self.has_more}")
        return len(fresh)

    def apply_patch(self, memo_id: int, **fields: Any) -> Memo | None:
        """Update a loaded memo in place after a confirmed write."""
        unknown = set(fields) - set(Memo.model_fields)
        if unknown:
            raise ValueError(f"Unknown memo fields: {', '.join(sorted(unknown))}")

        for i, memo in enumerate(self._items):
            if memo.id == memo_id:
                patched = memo.model_copy(update=fields)
                self._items[i] = patched
                return patched
        return None

    def remove(self, memo_id: int) -> bool:
        """Drop a memo after the backend confirmed its deletion."""
        before = len(self._items)
        self._items = [m for m in self._items if m.id != memo_id]
        if len(self._items) == before:
            return False
        # The server window shifted down by one.
        self.offset = max(0, self.offset - 1)
        self.total = max(0, self.total - 1)
        return True

    def remove_all(self) -> None:
        """Clear the working set after a confirmed bulk delete."""
        self.generation += 1
        self._items = []
        self.offset = 0
        self.total = 0
        self._exhausted = False
