"""Tests for the MemoEngine facade."""

import asyncio
import json
from pathlib import Path

import pytest

from fakes import FakeGateway, make_memo, settle
from memosync.bus import Notice
from memosync.config.schema import Config, SyncConfig
from memosync.engine import (
    Ask,
    DeleteMemo,
    Edit,
    EngineState,
    LoadMore,
    MemoEngine,
    Refresh,
    Reanalyze,
    Select,
    ToggleCategory,
    UpdateTransaction,
)
from memosync.gateway.types import Todo, Transaction
from memosync.memos.editor import SessionState


def _collect(engine: MemoEngine) -> tuple[list[EngineState], list[Notice]]:
    states: list[EngineState] = []
    notices: list[Notice] = []
    engine.subscribe(states.append)
    engine.on_notice(notices.append)
    return states, notices


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_loads_everything(self, gateway: FakeGateway, config: Config) -> None:
        gateway.todos = [Todo(id=1, memo_id=1, title="t")]
        engine = MemoEngine(gateway, config)

        await engine.start()

        state = engine.state
        assert state.loaded == 30
        assert state.total == 45
        assert state.has_more is True
        assert state.todos == (Todo(id=1, memo_id=1, title="t"),)
        assert state.usage.today_input_tokens == 10
        assert state.expanded == {"work", "work/proj", "life"}
        assert state.busy == frozenset()

    @pytest.mark.asyncio
    async def test_partial_start_failure_becomes_notice(self, gateway: FakeGateway, config: Config) -> None:
        gateway.fail["get_schedules"] = "schedules table missing"
        engine = MemoEngine(gateway, config)
        _, notices = _collect(engine)

        await engine.start()

        assert engine.state.loaded == 30
        assert [(n.level, n.message, n.source) for n in notices] == [
            ("error", "schedules table missing", "schedules"),
        ]

    @pytest.mark.asyncio
    async def test_failed_refresh_keeps_working_set(self, gateway: FakeGateway, config: Config) -> None:
        engine = MemoEngine(gateway, config)
        await engine.refresh()
        _, notices = _collect(engine)

        gateway.fail["get_memos_paginated"] = "offline"
        assert await engine.refresh() is False

        assert engine.state.loaded == 30
        assert notices[0].message == "offline"

    @pytest.mark.asyncio
    async def test_close_closes_gateway(self, gateway: FakeGateway, config: Config) -> None:
        engine = MemoEngine(gateway, config)
        await engine.close()
        assert gateway.closed


class TestDispatch:

    @pytest.mark.asyncio
    async def test_intents_route_to_handlers(self, gateway: FakeGateway, config: Config) -> None:
        engine = MemoEngine(gateway, config)
        states, _ = _collect(engine)

        await engine.dispatch(Refresh())
        assert await engine.dispatch(LoadMore()) == 15
        assert await engine.dispatch(ToggleCategory("life")) is False
        assert await engine.dispatch(Select(3)) is True
        await engine.dispatch(Edit(body="typed"))

        state = engine.state
        assert state.loaded == 45
        assert "life" not in state.expanded
        assert state.selected_id == 3
        assert state.session_state == SessionState.DIRTY
        assert state.dirty_fields == {"body"}
        assert states

        await settle(engine.autosave)
        assert engine.state.session_state == SessionState.CLEAN
        assert gateway.memos[2].formatted_content == "typed"

    @pytest.mark.asyncio
    async def test_unknown_intent(self, gateway: FakeGateway, config: Config) -> None:
        engine = MemoEngine(gateway, config)
        with pytest.raises(TypeError):
            await engine.dispatch(object())

    @pytest.mark.asyncio
    async def test_subscriber_can_unsubscribe(self, gateway: FakeGateway, config: Config) -> None:
        engine = MemoEngine(gateway, config)
        states: list[EngineState] = []
        unsubscribe = engine.subscribe(states.append)

        await engine.refresh()
        unsubscribe()
        await engine.refresh()

        assert len(states) == 1

    @pytest.mark.asyncio
    async def test_collapsed_groups_stay_collapsed_without_reset(self, gateway: FakeGateway, config: Config) -> None:
        engine = MemoEngine(gateway, config)
        await engine.refresh()
        await engine.toggle_category("work")

        await engine.load_more()

        assert "work" not in engine.state.expanded
        assert "life" in engine.state.expanded


class TestDeletion:

    @pytest.mark.asyncio
    async def test_delete_memo_removes_locally(self, gateway: FakeGateway, config: Config) -> None:
        engine = MemoEngine(gateway, config)
        await engine.refresh()
        await engine.select(5)
        pages = gateway.count("get_memos_paginated")

        assert await engine.dispatch(DeleteMemo(5)) is True

        assert engine.store.get(5) is None
        assert engine.state.total == 44
        assert engine.state.selected_id is None
        assert gateway.count("get_memos_paginated") == pages

    @pytest.mark.asyncio
    async def test_unsaved_edits_of_deleted_memo_are_dropped(self, gateway: FakeGateway, config: Config) -> None:
        engine = MemoEngine(gateway, config)
        await engine.refresh()
        await engine.select(5)
        await engine.edit(title="never saved")

        await engine.delete_memo(5)
        await asyncio.sleep(config.sync.debounce_s * 3)

        assert gateway.count("update_memo") == 0

    @pytest.mark.asyncio
    async def test_delete_all(self, gateway: FakeGateway, config: Config) -> None:
        engine = MemoEngine(gateway, config)
        await engine.refresh()
        _, notices = _collect(engine)

        assert await engine.delete_all_memos() == 45

        state = engine.state
        assert state.loaded == 0
        assert state.total == 0
        assert len(state.tree) == 0
        assert notices[-1].message == "45 memos deleted"

    @pytest.mark.asyncio
    async def test_delete_failure_is_a_notice(self, gateway: FakeGateway, config: Config) -> None:
        engine = MemoEngine(gateway, config)
        await engine.refresh()
        _, notices = _collect(engine)

        assert await engine.delete_memo(999) is False
        assert notices[0].message == "memo 999 not found"
        assert engine.state.loaded == 30


class TestReanalyze:

    @pytest.mark.asyncio
    async def test_uses_unsaved_body_of_selected_memo(self, gateway: FakeGateway, config: Config) -> None:
        engine = MemoEngine(gateway, config)
        await engine.refresh()
        await engine.select(1)
        await engine.edit(body="draft not yet saved")

        message = await engine.dispatch(Reanalyze(1))

        assert message == "reanalyzed"
        assert gateway.args("reanalyze_memo")[0]["new_content"] == "draft not yet saved"
        await engine.close()

    @pytest.mark.asyncio
    async def test_uses_stored_body_otherwise(self, gateway: FakeGateway, config: Config) -> None:
        engine = MemoEngine(gateway, config)
        await engine.refresh()

        await engine.reanalyze(4)

        assert gateway.args("reanalyze_memo")[0]["new_content"] == "body 4"

    @pytest.mark.asyncio
    async def test_busy_while_running(self, gateway: FakeGateway, config: Config) -> None:
        engine = MemoEngine(gateway, config)
        await engine.refresh()

        gate = gateway.hold("reanalyze_memo")
        running = asyncio.create_task(engine.reanalyze(4))
        await asyncio.sleep(0)
        assert "reanalyze:4" in engine.state.busy

        gate.set()
        await running
        assert engine.state.busy == frozenset()

    @pytest.mark.asyncio
    async def test_unloaded_memo(self, gateway: FakeGateway, config: Config) -> None:
        engine = MemoEngine(gateway, config)
        _, notices = _collect(engine)

        assert await engine.reanalyze(44) is None
        assert "not loaded" in notices[0].message


class TestDerivedIntents:

    @pytest.mark.asyncio
    async def test_invalid_transaction_type_is_raised(self, gateway: FakeGateway, config: Config) -> None:
        gateway.transactions = [Transaction(id=1, memo_id=1, amount=10)]
        engine = MemoEngine(gateway, config)

        with pytest.raises(ValueError):
            await engine.dispatch(UpdateTransaction(1, "gift", 10, "x"))

    @pytest.mark.asyncio
    async def test_update_transaction_refreshes(self, gateway: FakeGateway, config: Config) -> None:
        gateway.transactions = [Transaction(id=1, memo_id=1, amount=10)]
        engine = MemoEngine(gateway, config)

        await engine.dispatch(UpdateTransaction(1, "income", 25, "tip"))

        assert engine.state.transactions[0].amount == 25


class TestInputAndSearch:

    @pytest.mark.asyncio
    async def test_submit_memo_reloads(self, gateway: FakeGateway, config: Config) -> None:
        engine = MemoEngine(gateway, config)
        await engine.refresh()
        _, notices = _collect(engine)

        memo_id = await engine.submit_memo("lunch with Kim at noon")

        assert memo_id == 46
        assert engine.state.memos[0].id == 46
        assert engine.state.total == 46
        assert "inbox" in engine.state.expanded
        assert notices[0].message == "saved memo 46"
        assert gateway.count("get_todos") == 1

    @pytest.mark.asyncio
    async def test_blank_input_is_ignored(self, gateway: FakeGateway, config: Config) -> None:
        engine = MemoEngine(gateway, config)
        assert await engine.submit_memo("   ") is None
        assert await engine.ask("") is None
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_failed_input_does_not_reload(self, gateway: FakeGateway, config: Config) -> None:
        engine = MemoEngine(gateway, config)
        gateway.fail["input_memo"] = "AI unavailable"

        assert await engine.submit_memo("hello") is None
        assert gateway.count("get_memo_count") == 0

    @pytest.mark.asyncio
    async def test_ask(self, gateway: FakeGateway, config: Config) -> None:
        engine = MemoEngine(gateway, config)

        assert await engine.dispatch(Ask("what is due?")) == "answer to what is due?"
        assert gateway.count("get_usage") == 1


class TestBackup:

    @pytest.mark.asyncio
    async def test_export_then_import(self, gateway: FakeGateway, config: Config, tmp_path: Path) -> None:
        engine = MemoEngine(gateway, config)
        target = tmp_path / "backup" / "memos.json"

        assert await engine.export_backup(target) == target
        assert len(json.loads(target.read_text(encoding="utf-8"))) == 45

        assert await engine.import_backup(target) == 45
        assert engine.state.total == 90

    @pytest.mark.asyncio
    async def test_import_bad_file(self, config: Config, tmp_path: Path) -> None:
        gateway = FakeGateway([make_memo(1)])
        engine = MemoEngine(gateway, config)
        _, notices = _collect(engine)
        broken = tmp_path / "broken.json"
        broken.write_text("{not json", encoding="utf-8")

        assert await engine.import_backup(broken) == 0
        assert notices[0].message.startswith("JSON parse failed")

    @pytest.mark.asyncio
    async def test_import_non_utf8_file(self, gateway: FakeGateway, config: Config, tmp_path: Path) -> None:
        engine = MemoEngine(gateway, config)
        _, notices = _collect(engine)
        latin = tmp_path / "latin1.json"
        latin.write_bytes('[{"title": "café"}]'.encode("latin-1"))

        assert await engine.import_backup(latin) == 0
        assert "not a UTF-8 backup file" in notices[0].message
        assert notices[0].source == "import"
        assert gateway.count("import_db") == 0

    @pytest.mark.asyncio
    async def test_import_missing_file(self, gateway: FakeGateway, config: Config, tmp_path: Path) -> None:
        engine = MemoEngine(gateway, config)
        _, notices = _collect(engine)

        assert await engine.import_backup(tmp_path / "missing.json") == 0
        assert notices[0].source == "import"
        assert gateway.count("import_db") == 0


def test_expand_on_reset_can_be_disabled(gateway: FakeGateway) -> None:
    engine = MemoEngine(gateway, Config(sync=SyncConfig(expand_on_reset=False)))
    asyncio.run(engine.refresh())
    assert engine.state.expanded == frozenset()
