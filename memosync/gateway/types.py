"""Gateway wire models (Pydantic, unknown backend fields ignored)."""

from pydantic import BaseModel, ConfigDict

DEFAULT_CATEGORY = "etc"


class WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class Memo(WireModel):
    """A memo record as the backend returns it."""

    id: int
    title: str = ""
    content: str = ""  # raw user input
    formatted_content: str = ""  # the body the editor mutates
    summary: str = ""
    category: str = ""  # "/"-delimited path, any depth
    tags: str = ""  # "a, b, c"
    created_at: str = ""
    updated_at: str = ""

    @property
    def category_path(self) -> str:
        return self.category or DEFAULT_CATEGORY

    @property
    def tag_list(self) -> list[str]:
        return [t.strip() for t in self.tags.split(",") if t.strip()]


class Schedule(WireModel):
    """A calendar event extracted from a memo."""

    id: int
    memo_id: int | None = None
    title: str = ""
    start_time: str | None = None
    end_time: str | None = None
    location: str | None = None
    description: str | None = None
    google_event_id: str | None = None
    created_at: str = ""


class Todo(WireModel):
    """A task extracted from a memo."""

    id: int
    memo_id: int | None = None
    title: str = ""
    completed: bool = False
    priority: str | None = None  # high, medium, low
    due_date: str | None = None
    created_at: str = ""


class Transaction(WireModel):
    """A ledger entry extracted from a memo."""

    id: int
    memo_id: int | None = None
    tx_type: str = "expense"  # "income" or "expense"
    amount: int = 0
    description: str = ""
    category: str | None = None
    tx_date: str | None = None
    created_at: str = ""


class UsageStats(WireModel):
    """Today's AI usage totals."""

    today_input_tokens: int = 0
    today_output_tokens: int = 0
    today_cost_usd: float = 0.0


class ReanalyzeResult(WireModel):
    success: bool
    message: str = ""


class InputResult(WireModel):
    """Outcome of submitting new raw text to the extraction pipeline."""

    success: bool
    message: str = ""
    memo_id: int | None = None
    merged: bool = False
    title: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0


class SearchResult(WireModel):
    answer: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    cost_usd: float = 0.0


DerivedRecord = Schedule | Todo | Transaction
