"""Backend command gateway."""

from memosync.gateway.base import MemoGateway
from memosync.gateway.http import HttpGateway
from memosync.gateway.types import (
    DEFAULT_CATEGORY,
    InputResult,
    Memo,
    ReanalyzeResult,
    Schedule,
    SearchResult,
    Todo,
    Transaction,
    UsageStats,
)

__all__ = [
    "DEFAULT_CATEGORY",
    "HttpGateway",
    "InputResult",
    "Memo",
    "MemoGateway",
    "ReanalyzeResult",
    "Schedule",
    "SearchResult",
    "Todo",
    "Transaction",
    "UsageStats",
]
