"""Configuration schema using Pydantic."""

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class GatewayConfig(BaseModel):
    """Backend command gateway configuration."""
    base_url: str = "http://127.0.0.1:1421"
    timeout: float | None = Field(default=None, gt=0, description="Per-request timeout in seconds, None waits forever")


class SyncConfig(BaseModel):
    """Pagination, indexing and autosave configuration."""
    page_size: int = Field(default=30, ge=1, le=500, description="Memos fetched per page")
    max_category_depth: int = Field(default=2, ge=1, le=8, description="Category segments shown in the tree")
    debounce_ms: int = Field(default=800, ge=50, le=10000, description="Quiet window before an autosave")
    save_timeout_s: float | None = Field(default=15.0, gt=0, description="Autosave is reported failed after this")
    expand_on_reset: bool = Field(default=True, description="Expand every loaded group after a reload")

    @property
    def debounce_s(self) -> float:
        return self.debounce_ms / 1000


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"


class Config(BaseSettings):
    """Root configuration for memosync."""
    model_config = SettingsConfigDict(env_prefix="MEMOSYNC_", env_nested_delimiter="__")

    gateway: GatewayConfig = Field(default_factory=GatewayConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
