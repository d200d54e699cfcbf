"""MemoEngine: the single owner of client-side memo state."""

import asyncio
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Coroutine

from loguru import logger

from memosync.bus import EngineBus, Notice
from memosync.config.schema import Config
from memosync.derived.collections import DerivedCollections
from memosync.derived.reanalysis import ReanalysisCoordinator
from memosync.errors import BackupFileError, MemoNotLoadedError, MemoSyncError
from memosync.gateway.base import MemoGateway
from memosync.gateway.types import InputResult, Memo, Schedule, Todo, Transaction, UsageStats
from memosync.memos.categories import CategoryTree, ExpansionState, build_category_tree
from memosync.memos.editor import AutosaveCoordinator, SessionState
from memosync.memos.moves import MoveTracker
from memosync.memos.store import PaginatedMemoStore


# ---------------------------------------------------------------------------
# Intents
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Refresh:
    pass


@dataclass(frozen=True)
class LoadMore:
    pass


@dataclass(frozen=True)
class Select:
    memo_id: int


@dataclass(frozen=True)
class Deselect:
    pass


@dataclass(frozen=True)
class Edit:
    title: str | None = None
    body: str | None = None
    category: str | None = None
    tags: str | None = None


@dataclass(frozen=True)
class Flush:
    pass


@dataclass(frozen=True)
class ToggleCategory:
    path: str


@dataclass(frozen=True)
class MoveMemo:
    memo_id: int
    category: str


@dataclass(frozen=True)
class DeleteMemo:
    memo_id: int


@dataclass(frozen=True)
class DeleteAllMemos:
    pass


@dataclass(frozen=True)
class Reanalyze:
    memo_id: int
    content: str | None = None


@dataclass(frozen=True)
class ToggleTodo:
    todo_id: int


@dataclass(frozen=True)
class DeleteTodo:
    todo_id: int


@dataclass(frozen=True)
class DeleteSchedule:
    schedule_id: int


@dataclass(frozen=True)
class UpdateTransaction:
    transaction_id: int
    tx_type: str
    amount: int
    description: str
    category: str | None = None
    tx_date: str | None = None


@dataclass(frozen=True)
class DeleteTransaction:
    transaction_id: int


@dataclass(frozen=True)
class SubmitMemo:
    content: str


@dataclass(frozen=True)
class Ask:
    question: str


@dataclass(frozen=True)
class ExportBackup:
    path: str


@dataclass(frozen=True)
class ImportBackup:
    path: str


_HANDLERS: dict[type, str] = {
    Refresh: "refresh",
    LoadMore: "load_more",
    Select: "select",
    Deselect: "deselect",
    Edit: "edit",
    Flush: "flush",
    ToggleCategory: "toggle_category",
    MoveMemo: "move_memo",
    DeleteMemo: "delete_memo",
    DeleteAllMemos: "delete_all_memos",
    Reanalyze: "reanalyze",
    ToggleTodo: "toggle_todo",
    DeleteTodo: "delete_todo",
    DeleteSchedule: "delete_schedule",
    UpdateTransaction: "update_transaction",
    DeleteTransaction: "delete_transaction",
    SubmitMemo: "submit_memo",
    Ask: "ask",
    ExportBackup: "export_backup",
    ImportBackup: "import_backup",
}


# ---------------------------------------------------------------------------
# State snapshot
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EngineState:
    """Read-only view handed to rendering code."""
    memos: tuple[Memo, ...]
    tree: CategoryTree
    expanded: frozenset[str]
    offset: int
    total: int
    has_more: bool
    loading: bool
    selected_id: int | None
    session_state: SessionState | None
    dirty_fields: frozenset[str]
    session_error: str | None
    schedules: tuple[Schedule, ...]
    todos: tuple[Todo, ...]
    transactions: tuple[Transaction, ...]
    usage: UsageStats | None
    busy: frozenset[str]
    pending_moves: int

    @property
    def loaded(self) -> int:
        return len(self.memos)


StateCallback = Callable[[EngineState], Awaitable[None] | None]
NoticeCallback = Callable[[Notice], Awaitable[None] | None]


class MemoEngine:
    """
    Memo sync engine facade.

    Owns the paginated store, the category expansion state, the autosave
    coordinator, pending moves and the derived collections. Callers change
    state only through intents (``dispatch`` or the matching coroutine
    methods) and observe it through ``state`` and subscriptions. Failures
    are caught here, turned into notices and never leave partial state.
    """

    def __init__(self, gateway: MemoGateway, config: Config | None = None):
        self.config = config or Config()
        sync = self.config.sync
        self.gateway = gateway
        self.bus = EngineBus()
        self.store = PaginatedMemoStore(gateway, page_size=sync.page_size)
        self.expansion = ExpansionState()
        self.autosave = AutosaveCoordinator(
            gateway,
            self.store,
            debounce=sync.debounce_s,
            save_timeout=sync.save_timeout_s,
            bus=self.bus,
        )
        self.moves = MoveTracker()
        self.derived = DerivedCollections(gateway)
        self.reanalysis = ReanalysisCoordinator(gateway, self.derived)
        self.usage: UsageStats | None = None
        self._busy: set[str] = set()
        self.bus.subscribe("autosave", lambda _session: self._publish())

    # -- observation --------------------------------------------------------

    @property
    def state(self) -> EngineState:
        memos = tuple(self.moves.overlay(self.store.items))
        session = self.autosave.session
        return EngineState(
            memos=memos,
            tree=build_category_tree(memos, self.config.sync.max_category_depth),
            expanded=self.expansion.snapshot(),
            offset=self.store.offset,
            total=self.store.total,
            has_more=self.store.has_more,
            loading=self.store.loading or self.store.resetting,
            selected_id=session.memo_id if session else None,
            session_state=session.state if session else None,
            dirty_fields=frozenset(session.dirty_fields) if session else frozenset(),
            session_error=session.last_error if session else None,
            schedules=self.derived.schedules,
            todos=self.derived.todos,
            transactions=self.derived.transactions,
            usage=self.usage,
            busy=frozenset(self._busy),
            pending_moves=len(self.moves),
        )

    @property
    def tree(self) -> CategoryTree:
        return build_category_tree(self.moves.overlay(self.store.items), self.config.sync.max_category_depth)

    def subscribe(self, callback: StateCallback) -> Callable[[], None]:
        """Call ``callback(state)`` after every state change."""
        return self.bus.subscribe("state", callback)

    def on_notice(self, callback: NoticeCallback) -> Callable[[], None]:
        return self.bus.subscribe("notice", callback)

    async def _publish(self) -> None:
        await self.bus.publish("state", self.state)

    async def dispatch(self, intent: Any) -> Any:
        """Route an intent to its handler."""
        name = _HANDLERS.get(type(intent))
        if name is None:
            raise TypeError(f"Unknown intent: {type(intent).__name__}")
        args = {k: v for k, v in asdict(intent).items() if v is not None}
        return await getattr(self, name)(**args)

    async def _attempt(self, source: str, coro: Coroutine[Any, Any, Any]) -> Any:
        """Await ``coro`` marking ``source`` busy; failures become notices."""
        self._busy.add(source)
        try:
            return await coro
        except (MemoSyncError, OSError) as e:
            await self.bus.notify("error", str(e), source=source)
            return None
        finally:
            self._busy.discard(source)
            await self._publish()

    # -- lifecycle ----------------------------------------------------------

    async def start(self) -> None:
        """Initial load. Independent reads run concurrently."""
        await asyncio.gather(
            self.refresh_usage(),
            self.refresh(),
            self._attempt("schedules", self.derived.refresh_schedules()),
            self._attempt("todos", self.derived.refresh_todos()),
            self._attempt("transactions", self.derived.refresh_transactions()),
        )
        logger.info(f"Engine started: {len(self.store)}/{self.store.total} memos loaded")

    async def close(self) -> None:
        await self.autosave.close()
        await self.gateway.close()

    # -- memo collection ----------------------------------------------------

    async def refresh(self) -> bool:
        """Reset the working set; all loaded groups start expanded."""
        return bool(await self._attempt("reset", self._reset_store()))

    async def _reset_store(self) -> bool:
        applied = await self.store.reset()
        if applied:
            self.expansion.clear()
            if self.config.sync.expand_on_reset:
                self.expansion.expand_all(self.tree)
        return applied

    async def load_more(self) -> int:
        return await self._attempt("load_more", self.store.load_more()) or 0

    async def refresh_usage(self) -> UsageStats | None:
        async def run() -> UsageStats:
            self.usage = await self.gateway.get_usage()
            return self.usage

        return await self._attempt("usage", run())

    async def toggle_category(self, path: str) -> bool:
        expanded = self.expansion.toggle(path)
        await self._publish()
        return expanded

    # -- editing ------------------------------------------------------------

    async def select(self, memo_id: int) -> bool:
        session = await self._attempt("select", self.autosave.select(memo_id))
        return session is not None

    async def deselect(self) -> bool:
        return bool(await self._attempt("deselect", self.autosave.deselect()))

    async def edit(self, **changes: str) -> None:
        """Update fields of the selected memo; persistence is debounced."""
        self.autosave.edit(**changes)
        await self._publish()

    async def flush(self) -> bool:
        return bool(await self._attempt("flush", self.autosave.flush()))

    # -- drag reassignment --------------------------------------------------

    async def move_memo(self, memo_id: int, category: str) -> bool:
        """
        Move a memo to another category.

        The move shows immediately through the overlay. On success the store
        is reloaded; on failure the overlay entry is dropped, restoring the
        stored category.
        """
        return bool(await self._attempt("move", self._move_memo(memo_id, category)))

    async def _move_memo(self, memo_id: int, category: str) -> bool:
        memo = self.store.get(memo_id)
        if memo is None:
            raise MemoNotLoadedError(f"Memo {memo_id} is not loaded")
        move = self.moves.begin(memo, category)
        if move is None:
            return False
        await self._publish()

        try:
            # Queued behind any autosave of this memo; carries unsaved edits.
            await self.autosave.persist_fields(memo_id, category=category)
        except MemoSyncError as e:
            self.moves.reject(memo_id, str(e))
            raise

        self.moves.commit(memo_id)
        try:
            await self._reset_store()
        except MemoSyncError as e:
            await self.bus.notify("error", str(e), source="reset")
        return True

    # -- deletion -----------------------------------------------------------

    async def delete_memo(self, memo_id: int) -> bool:
        async def run() -> bool:
            await self.gateway.delete_memo(memo_id)
            self.autosave.discard(memo_id)
            return self.store.remove(memo_id)

        return bool(await self._attempt("delete", run()))

    async def delete_all_memos(self) -> int:
        async def run() -> int:
            count = await self.gateway.delete_all_memos()
            self.autosave.discard()
            self.store.remove_all()
            self.expansion.clear()
            await self.bus.notify("info", f"{count} memos deleted", source="delete_all")
            return count

        return await self._attempt("delete_all", run()) or 0

    # -- derived collections ------------------------------------------------

    async def reanalyze(self, memo_id: int, content: str | None = None) -> str | None:
        """Reanalyze a memo with its current body (the unsaved one if selected)."""
        async def run() -> str:
            body = content
            if body is None:
                session = self.autosave.session
                if session is not None and session.memo_id == memo_id:
                    body = session.shadow.body
                else:
                    memo = self.store.get(memo_id)
                    if memo is None:
                        raise MemoNotLoadedError(f"Memo {memo_id} is not loaded")
                    body = memo.formatted_content
            message = await self.reanalysis.reanalyze(memo_id, body)
            await self.bus.notify("info", message, source="reanalyze")
            return message

        return await self._attempt(f"reanalyze:{memo_id}", run())

    async def refresh_derived(self) -> None:
        await self._attempt("derived", self.derived.refresh_all())

    async def toggle_todo(self, todo_id: int) -> None:
        await self._attempt("todos", self.derived.toggle_todo(todo_id))

    async def delete_todo(self, todo_id: int) -> None:
        await self._attempt("todos", self.derived.delete_todo(todo_id))

    async def delete_schedule(self, schedule_id: int) -> None:
        await self._attempt("schedules", self.derived.delete_schedule(schedule_id))

    async def update_transaction(
        self,
        transaction_id: int,
        tx_type: str,
        amount: int,
        description: str,
        category: str | None = None,
        tx_date: str | None = None,
    ) -> None:
        await self._attempt(
            "transactions",
            self.derived.update_transaction(transaction_id, tx_type, amount, description, category, tx_date),
        )

    async def delete_transaction(self, transaction_id: int) -> None:
        await self._attempt("transactions", self.derived.delete_transaction(transaction_id))

    # -- input, search, backup ----------------------------------------------

    async def submit_memo(self, content: str) -> int | None:
        """Send raw text to the extraction pipeline, then reload everything."""
        if not content.strip():
            return None

        async def run() -> InputResult:
            result = await self.gateway.input_memo(content)
            await self.bus.notify("info", result.message, source="input")
            return result

        result = await self._attempt("input", run())
        if result is None:
            return None
        await asyncio.gather(self.refresh(), self.refresh_usage(), self.refresh_derived())
        return result.memo_id

    async def ask(self, question: str) -> str | None:
        """Ask a question about the memos."""
        if not question.strip():
            return None

        async def run() -> str:
            result = await self.gateway.search_memo(question)
            return result.answer

        answer = await self._attempt("search", run())
        await self.refresh_usage()
        return answer

    async def export_backup(self, path: str | Path) -> Path | None:
        async def run() -> Path:
            target = Path(path).expanduser()
            data = await self.gateway.export_db()
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(data, encoding="utf-8")
            logger.info(f"Exported backup to {target}")
            return target

        return await self._attempt("export", run())

    async def import_backup(self, path: str | Path) -> int:
        async def run() -> int:
            source = Path(path).expanduser()
            try:
                data = source.read_text(encoding="utf-8")
            except UnicodeDecodeError as e:
                raise BackupFileError(f"{source} is not a UTF-8 backup file: {e}") from e
            count = await self.gateway.import_db(data)
            await self.bus.notify("info", f"{count} memos imported", source="import")
            return count

        count = await self._attempt("import", run())
        if count is not None:
            await self.refresh()
        return count or 0
