"""Subscription bus for engine state changes and user-facing notices."""

import inspect
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Literal

from loguru import logger

NoticeLevel = Literal["info", "error"]

NOTICE_LIMIT = 200


@dataclass(frozen=True)
class Notice:
    """A transient, non-blocking message for the user."""
    level: NoticeLevel
    message: str
    source: str = ""  # intent or component that produced it
    created_at: datetime = field(default_factory=datetime.now)


Callback = Callable[[Any], Awaitable[None] | None]


class EngineBus:
    """
    Fan-out of engine events to subscribers.

    Topics are plain strings ("state", "notice"). A subscriber may be a plain
    function or a coroutine function; a failing subscriber is logged and does
    not stop delivery to the others.
    """

    def __init__(self):
        self._subscribers: dict[str, list[Callback]] = {}
        self.notices: deque[Notice] = deque(maxlen=NOTICE_LIMIT)

    def subscribe(self, topic: str, callback: Callback) -> Callable[[], None]:
        """Register a callback. Returns a function that unsubscribes it."""
        self._subscribers.setdefault(topic, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(topic, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    async def publish(self, topic: str, payload: Any) -> None:
        for callback in list(self._subscribers.get(topic, [])):
            try:
                result = callback(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"Error dispatching {topic} to subscriber: {e}")

    async def notify(self, level: NoticeLevel, message: str, source: str = "") -> Notice:
        notice = Notice(level=level, message=message, source=source)
        self.notices.append(notice)
        if level == "error":
            logger.warning(f"[{source or 'engine'}] {message}")
        else:
            logger.info(f"[{source or 'engine'}] {message}")
        await self.publish("notice", notice)
        return notice

    def clear_notices(self) -> None:
        self.notices.clear()
