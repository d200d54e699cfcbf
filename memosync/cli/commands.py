"""CLI commands for memosync."""

import asyncio
from pathlib import Path
from typing import Awaitable, Callable, TypeVar

import typer
from rich.console import Console
from rich.table import Table
from rich.tree import Tree

from memosync import __logo__, __version__
from memosync.bus import Notice
from memosync.config.loader import load_config
from memosync.engine import MemoEngine
from memosync.gateway.http import HttpGateway
from memosync.logging_config import setup_logging
from memosync.memos.categories import CategoryNode

app = typer.Typer(
    name="memosync",
    help=f"{__logo__} memosync - memo sync engine inspector",
    no_args_is_help=True,
)

console = Console()

T = TypeVar("T")


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} memosync v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """memosync - memo sync engine inspector."""
    pass


# ============================================================================
# Shared helpers
# ============================================================================


def _print_notice(notice: Notice) -> None:
    style = "red" if notice.level == "error" else "green"
    console.print(f"[{style}]{notice.message}[/{style}]")


def _run(action: Callable[[MemoEngine], Awaitable[T]], config_path: Path | None = None) -> T:
    """Build an engine against the configured backend, run ``action``, close."""
    config = load_config(config_path)
    setup_logging(config.logging)

    async def go() -> T:
        gateway = HttpGateway(config.gateway.base_url, timeout=config.gateway.timeout)
        engine = MemoEngine(gateway, config)
        engine.on_notice(_print_notice)
        try:
            return await action(engine)
        finally:
            await engine.close()

    return asyncio.run(go())


def _add_branch(parent: Tree, node: CategoryNode, show_memos: bool) -> None:
    for child in node.children.values():
        branch = parent.add(f"[bold]{child.name}[/bold] [dim]({child.count})[/dim]")
        if show_memos:
            for memo in child.memos:
                branch.add(f"[cyan]#{memo.id}[/cyan] {memo.title}")
        _add_branch(branch, child, show_memos)


# ============================================================================
# Commands
# ============================================================================


@app.command()
def tree(
    all_pages: bool = typer.Option(False, "--all", help="Load every page before building"),
    memos: bool = typer.Option(False, "--memos", "-m", help="List memos under each category"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Show the category tree of the loaded memos."""
    async def action(engine: MemoEngine):
        await engine.refresh()
        while all_pages and engine.store.has_more:
            if not await engine.load_more():
                break
        return engine.state

    state = _run(action, config)
    root = Tree(f"{__logo__} [bold]{state.loaded}[/bold] of {state.total} memos")
    _add_branch(root, state.tree.root, memos)
    console.print(root)


@app.command("memos")
def list_memos(
    pages: int = typer.Option(1, "--pages", "-p", min=1, help="Pages to load"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """List loaded memos."""
    async def action(engine: MemoEngine):
        await engine.refresh()
        for _ in range(pages - 1):
            if not await engine.load_more():
                break
        return engine.state

    state = _run(action, config)
    table = Table(title=f"Memos ({state.loaded}/{state.total})")
    table.add_column("ID", style="cyan", justify="right")
    table.add_column("Title")
    table.add_column("Category", style="magenta")
    table.add_column("Tags", style="dim")
    table.add_column("Updated", style="dim")
    for memo in state.memos:
        table.add_row(str(memo.id), memo.title, memo.category_path, ", ".join(memo.tag_list), memo.updated_at)
    console.print(table)
    if state.has_more:
        console.print(f"[dim]{state.total - state.loaded} more not loaded (use --pages)[/dim]")


@app.command()
def derived(
    config: Path | None = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Show schedules, todos and transactions."""
    async def action(engine: MemoEngine):
        await engine.start()
        while engine.store.has_more:
            if not await engine.load_more():
                break
        return engine.state, engine.derived.orphans(engine.store.ids())

    state, orphans = _run(action, config)
    orphan_keys = {(type(r).__name__, r.id) for r in orphans}

    def memo_ref(record) -> str:
        if record.memo_id is None:
            return "-"
        if (type(record).__name__, record.id) in orphan_keys:
            return f"[red]#{record.memo_id} (missing)[/red]"
        return f"#{record.memo_id}"

    schedules = Table(title="Schedules")
    for col in ("ID", "Title", "Start", "End", "Location", "Memo"):
        schedules.add_column(col)
    for s in state.schedules:
        schedules.add_row(str(s.id), s.title, s.start_time or "", s.end_time or "", s.location or "", memo_ref(s))
    console.print(schedules)

    todos = Table(title="Todos")
    for col in ("ID", "Done", "Title", "Priority", "Due", "Memo"):
        todos.add_column(col)
    for t in state.todos:
        todos.add_row(str(t.id), "✓" if t.completed else "", t.title, t.priority or "", t.due_date or "", memo_ref(t))
    console.print(todos)

    ledger = Table(title="Transactions")
    for col in ("ID", "Type", "Amount", "Description", "Date", "Memo"):
        ledger.add_column(col)
    for tx in state.transactions:
        style = "green" if tx.tx_type == "income" else "red"
        ledger.add_row(
            str(tx.id), tx.tx_type, f"[{style}]{tx.amount:,}[/{style}]", tx.description, tx.tx_date or "", memo_ref(tx)
        )
    console.print(ledger)


@app.command()
def reanalyze(
    memo_id: int = typer.Argument(..., help="Memo ID"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Re-run AI extraction for a memo and refresh derived records."""
    async def action(engine: MemoEngine):
        await engine.refresh()
        while engine.store.get(memo_id) is None and engine.store.has_more:
            if not await engine.load_more():
                break
        return await engine.reanalyze(memo_id)

    if _run(action, config) is None:
        raise typer.Exit(1)


@app.command("export")
def export_backup(
    path: Path = typer.Argument(..., help="Destination JSON file"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Export all memos to a JSON file."""
    target = _run(lambda engine: engine.export_backup(path), config)
    if target is None:
        raise typer.Exit(1)
    console.print(f"[green]✓[/green] Exported to {target}")


@app.command("import")
def import_backup(
    path: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON file from export"),
    config: Path | None = typer.Option(None, "--config", "-c", help="Config file path"),
):
    """Import memos from a JSON file."""
    async def action(engine: MemoEngine):
        count = await engine.import_backup(path)
        if any(n.level == "error" and n.source == "import" for n in engine.bus.notices):
            return None
        return count

    if _run(action, config) is None:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
