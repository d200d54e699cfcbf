"""Memo working set, category index, editing and moves."""

from memosync.memos.categories import (
    CategoryNode,
    CategoryTree,
    ExpansionState,
    all_categories,
    build_category_tree,
)
from memosync.memos.editor import AutosaveCoordinator, DebounceTimer, EditSession, SessionState
from memosync.memos.moves import MoveStatus, MoveTracker, PendingMove
from memosync.memos.store import PaginatedMemoStore

__all__ = [
    "AutosaveCoordinator",
    "CategoryNode",
    "CategoryTree",
    "DebounceTimer",
    "EditSession",
    "ExpansionState",
    "MoveStatus",
    "MoveTracker",
    "PaginatedMemoStore",
    "PendingMove",
    "SessionState",
    "all_categories",
    "build_category_tree",
]
