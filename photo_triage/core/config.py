"""Cleanup engine configuration."""

from pathlib import Path
from typing import Literal, Optional

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


class CleanupSettings(BaseSettings):
    """Settings loaded from ``PHOTO_TRIAGE_*`` environment variables."""

    # Batching
    batch_image_cap: int = Field(default=30, ge=1)
    prefetch_threshold: int = Field(default=3, ge=0)
    include_singletons: bool = True  # Photos outside any cluster get reviewed too

    # Background work
    worker_threads: int = Field(default=2, ge=1)
    random_seed: Optional[int] = None  # Round-robin pick; None = nondeterministic

    # Persistence
    store_backend: Literal["json", "sqlite", "memory"] = "json"
    state_dir: Path = Path("~/.photo-triage")
    database_url: Optional[str] = None
    sql_echo: bool = False  # Set to True to log all SQL queries

    @property
    def resolved_state_dir(self) -> Path:
        return self.state_dir.expanduser()

    @property
    def state_file(self) -> Path:
        """JSON document used by the json backend."""
        return self.resolved_state_dir / "cleanup_state.json"

    @property
    def sqlalchemy_url(self) -> str:
        """Database URL for the sqlite backend."""
        if self.database_url:
            return self.database_url
        return f"sqlite:///{self.resolved_state_dir / 'cleanup_state.db'}"

    model_config = ConfigDict(
        env_prefix="PHOTO_TRIAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",  # Ignore extra fields from .env
    )
