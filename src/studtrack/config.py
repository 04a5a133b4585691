from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    data_dir: Path = Field(default_factory=lambda: Path.home() / ".studtrack")
    reports_dir: Path | None = None
    report_filename: str = "StudTrack_Report.txt"
    default_input: Path | None = None

    on_invalid_meeting: Literal["abort", "skip"] = "abort"
    spam_threshold_messages: int = Field(default=2, ge=1)
    spam_window_minutes: int = Field(default=1, ge=0)
    log_level: str = "WARNING"

    model_config = SettingsConfigDict(env_prefix="STUDTRACK_", extra="ignore")

    @model_validator(mode="after")
    def _derive_paths(self) -> "Settings":
        if "reports_dir" not in self.model_fields_set or self.reports_dir is None:
            self.reports_dir = self.data_dir / "reports"
        return self

    @property
    def report_path(self) -> Path:
        return self.reports_dir / self.report_filename

    def ensure_dirs(self) -> None:
        for path in (self.data_dir, self.reports_dir):
            path.mkdir(parents=True, exist_ok=True)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
