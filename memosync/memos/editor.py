"""Edit sessions and debounced, serialized autosave."""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import AsyncIterator, Callable

from loguru import logger

from memosync.bus import EngineBus
from memosync.errors import GatewayError, MemoNotLoadedError, SaveTimeoutError
from memosync.gateway.base import MemoGateway
from memosync.gateway.types import Memo
from memosync.memos.store import PaginatedMemoStore

DEFAULT_DEBOUNCE_S = 0.8


class DebounceTimer:
    """
    A single cancellable timer owned by one edit session.

    ``arm`` (re)starts the quiet window, ``cancel`` stops it. Once the window
    elapses the callback is invoked synchronously and the timer is idle
    again, so cancelling never reaches work the callback has started.
    """

    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self._task: asyncio.Task | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def arm(self) -> None:
        self.cancel()
        self._task = asyncio.create_task(self._run())

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    async def _run(self) -> None:
        await asyncio.sleep(self.delay)
        self._task = None
        self.callback()


class SessionState(str, Enum):
    """Autosave state of an edit session."""
    CLEAN = "clean"
    DIRTY = "dirty"
    SAVING = "saving"


@dataclass(frozen=True)
class EditFields:
    """The four user-editable memo fields."""
    title: str
    body: str
    category: str
    tags: str

    @classmethod
    def from_memo(cls, memo: Memo) -> "EditFields":
        return cls(
            title=memo.title,
            body=memo.formatted_content,
            category=memo.category,
            tags=memo.tags,
        )

    def as_memo_fields(self) -> dict[str, str]:
        return {
            "title": self.title,
            "formatted_content": self.body,
            "category": self.category,
            "tags": self.tags,
        }


FIELD_NAMES = frozenset(f.name for f in fields(EditFields))


class EditSession:
    """Shadow copy of the selected memo's editable fields."""

    def __init__(self, memo: Memo):
        self.memo_id = memo.id
        self.snapshot = EditFields.from_memo(memo)  # last persisted
        self.shadow = self.snapshot
        self.saving = False
        self.closed = False
        self.last_error: str | None = None
        self.timer: DebounceTimer | None = None

    @property
    def dirty_fields(self) -> set[str]:
        return {
            name for name in FIELD_NAMES
            if getattr(self.shadow, name) != getattr(self.snapshot, name)
        }

    @property
    def dirty(self) -> bool:
        return self.shadow != self.snapshot

    @property
    def state(self) -> SessionState:
        if self.saving:
            return SessionState.SAVING
        if self.dirty:
            return SessionState.DIRTY
        return SessionState.CLEAN

    def __repr__(self) -> str:
        return f"EditSession(memo_id={self.memo_id}, state={self.state.value})"


class AutosaveCoordinator:
    """
    Coalesces edits of the selected memo into debounced ``update_memo`` calls.

    - At most one session is open; selecting another memo flushes first.
    - Saves for one memo id are serialized, including a timed-out call that
      is still running, so the backend never sees an older write last.
    - A successful save patches the store instead of reloading it.
    - Failures keep the edits, leave the session dirty and publish a notice.
    """

    def __init__(
        self,
        gateway: MemoGateway,
        store: PaginatedMemoStore,
        debounce: float = DEFAULT_DEBOUNCE_S,
        save_timeout: float | None = None,
        bus: EngineBus | None = None,
    ):
        self.gateway = gateway
        self.store = store
        self.debounce = debounce
        self.save_timeout = save_timeout
        self.bus = bus
        self._session: EditSession | None = None
        self._locks: dict[int, asyncio.Lock] = {}
        self._lock_users: dict[int, int] = {}
        self._inflight: dict[int, asyncio.Future] = {}
        self._tasks: set[asyncio.Task] = set()

    @property
    def session(self) -> EditSession | None:
        return self._session

    @property
    def idle(self) -> bool:
        """No debounce timer armed and no timer-started save running."""
        session = self._session
        return not self._tasks and not (session is not None and session.timer.pending)

    async def select(self, memo_id: int) -> EditSession:
        """Open a session for a loaded memo, flushing the previous one."""
        if self._session is not None and self._session.memo_id == memo_id:
            return self._session

        memo = self.store.get(memo_id)
        if memo is None:
            raise MemoNotLoadedError(f"Memo {memo_id} is not loaded")

        await self.deselect()

        session = EditSession(memo)
        session.timer = DebounceTimer(self.debounce, lambda: self._spawn_save(session))
        self._session = session
        logger.debug(f"Opened edit session for memo {memo_id}")
        return session

    async def deselect(self) -> bool:
        """
        Close the current session, saving pending edits first.

        Returns:
            False if the final save failed, True otherwise.
        """
        session = self._session
        if session is None:
            return True
        self._session = None
        session.timer.cancel()
        ok = await self._save(session)
        session.closed = True
        logger.debug(f"Closed edit session for memo {session.memo_id}")
        return ok

    def discard(self, memo_id: int | None = None) -> None:
        """Close the session without saving (the memo is gone)."""
        session = self._session
        if session is None or (memo_id is not None and session.memo_id != memo_id):
            return
        session.timer.cancel()
        session.closed = True
        self._session = None
        logger.debug(f"Discarded edit session for memo {session.memo_id}")

    def edit(self, **changes: str) -> EditSession:
        """Apply field edits to the open session and (re)arm the timer."""
        session = self._session
        if session is None:
            raise MemoNotLoadedError("No memo is selected")
        unknown = set(changes) - FIELD_NAMES
        if unknown:
            raise ValueError(f"Unknown editable fields: {', '.join(sorted(unknown))}")

        session.shadow = replace(session.shadow, **changes)
        if session.dirty:
            session.timer.arm()
        elif not session.saving:
            session.timer.cancel()
        return session

    async def flush(self) -> bool:
        """Save the open session now instead of waiting for the timer."""
        session = self._session
        if session is None:
            return True
        session.timer.cancel()
        ok = await self._save(session)
        if not session.dirty:
            session.timer.cancel()
        return ok

    async def close(self) -> None:
        await self.deselect()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def _spawn_save(self, session: EditSession) -> None:
        task = asyncio.create_task(self._save(session))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _save(self, session: EditSession) -> bool:
        async with self._memo_lock(session.memo_id):
            if session.closed or not session.dirty:
                return True

            sent = session.shadow
            session.saving = True
            try:
                await self._persist(session.memo_id, sent)
            except (GatewayError, SaveTimeoutError) as e:
                session.last_error = str(e)
                if session.closed:
                    logger.debug(f"Dropping save failure for closed session {session.memo_id}: {e}")
                    return False
                logger.error(f"Autosave failed for memo {session.memo_id}: {e}")
                if self.bus is not None:
                    await self.bus.notify("error", str(e), source="autosave")
                    await self.bus.publish("autosave", session)
                return False
            finally:
                session.saving = False

            # The backend accepted the write, so the loaded copy follows it.
            self.store.apply_patch(session.memo_id, **sent.as_memo_fields())

            if session.closed:
                logger.debug(f"Save for closed session {session.memo_id} completed")
                return True

            session.snapshot = sent
            session.last_error = None
            if session.dirty:
                session.timer.arm()
            logger.info(f"Autosaved memo {session.memo_id}")

        if self.bus is not None:
            await self.bus.publish("autosave", session)
        return True

    async def persist_fields(self, memo_id: int, **overrides: str) -> EditFields:
        """
        Write a memo with some fields overridden, in turn with its autosaves.

        The payload starts from the open session's shadow when that memo is
        selected (so unsaved edits go along), otherwise from the loaded copy.
        On success the store is patched and the session's snapshot follows
        the write; edits typed meanwhile stay dirty and are saved next.

        Raises:
            MemoNotLoadedError: The memo is neither selected nor loaded.
            GatewayError, SaveTimeoutError: The write failed.
        """
        unknown = set(overrides) - FIELD_NAMES
        if unknown:
            raise ValueError(f"Unknown editable fields: {', '.join(sorted(unknown))}")

        async with self._memo_lock(memo_id):
            session = self._session if self._session is not None and self._session.memo_id == memo_id else None
            if session is not None:
                session.timer.cancel()
                base = session.shadow
            else:
                memo = self.store.get(memo_id)
                if memo is None:
                    raise MemoNotLoadedError(f"Memo {memo_id} is not loaded")
                base = EditFields.from_memo(memo)
            sent = replace(base, **overrides)

            if session is not None:
                session.saving = True
            try:
                await self._persist(memo_id, sent)
            except (GatewayError, SaveTimeoutError):
                if session is not None and not session.closed and session.dirty:
                    session.timer.arm()
                raise
            finally:
                if session is not None:
                    session.saving = False

            self.store.apply_patch(memo_id, **sent.as_memo_fields())
            if session is not None and not session.closed:
                # Overrides also apply to the shadow unless the user changed
                # that field while the write was running.
                untouched = {k: v for k, v in overrides.items() if getattr(session.shadow, k) == getattr(base, k)}
                session.shadow = replace(session.shadow, **untouched)
                session.snapshot = sent
                session.last_error = None
                if session.dirty:
                    session.timer.arm()
            logger.info(f"Wrote memo {memo_id} with {', '.join(sorted(overrides)) or 'no'} overrides")

        if session is not None and self.bus is not None:
            await self.bus.publish("autosave", session)
        return sent

    @asynccontextmanager
    async def _memo_lock(self, memo_id: int) -> AsyncIterator[None]:
        """Per-memo write lock, dropped once nobody holds or waits for it."""
        lock = self._locks.setdefault(memo_id, asyncio.Lock())
        self._lock_users[memo_id] = self._lock_users.get(memo_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._lock_users[memo_id] -= 1
            if not self._lock_users[memo_id]:
                del self._lock_users[memo_id]
                del self._locks[memo_id]

    async def _persist(self, memo_id: int, sent: EditFields) -> None:
        previous = self._inflight.get(memo_id)
        if previous is not None and not previous.done():
            # A timed-out call is still running; let it land first.
            await asyncio.wait([previous])

        call = asyncio.ensure_future(self.gateway.update_memo(
            memo_id,
            title=sent.title,
            formatted_content=sent.body,
            category=sent.category,
            tags=sent.tags,
        ))
        self._inflight[memo_id] = call
        call.add_done_callback(self._forget_call(memo_id))

        if self.save_timeout is None:
            await call
            return
        try:
            await asyncio.wait_for(asyncio.shield(call), self.save_timeout)
        except asyncio.TimeoutError:
            raise SaveTimeoutError(
                f"Saving memo {memo_id} did not finish within {self.save_timeout:g}s"
            ) from None

    def _forget_call(self, memo_id: int) -> Callable[[asyncio.Future], None]:
        def done(call: asyncio.Future) -> None:
            if self._inflight.get(memo_id) is call:
                del self._inflight[memo_id]
            if not call.cancelled() and call.exception() is not None:
                logger.debug(f"update_memo for {memo_id} ended with: {call.exception()}")
        return done
