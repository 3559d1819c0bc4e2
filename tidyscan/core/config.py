from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, PositiveInt, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="TIDYSCAN_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "TidyScan"
    environment: str = "production"
    log_level: str = "INFO"

    state_root: Path = Field(default=Path("/state"))
    database_url: str | None = None

    duplicate_time_window_seconds: PositiveInt = 60
    similar_time_window_seconds: PositiveInt = 5
    big_file_threshold_bytes: PositiveInt = 10 * 1024 * 1024

    min_phone_digits: PositiveInt = 6
    similar_name_max_distance: PositiveInt = 3
    similar_name_max_ratio: float = 0.3

    scan_worker_threads: PositiveInt = 2

    @field_validator("state_root", mode="before")
    @classmethod
    def _normalize_path(cls, value: str | Path) -> Path:
        raw = str(value)
        if "~" in raw:
            raise ValueError("Home expansion syntax is not allowed in paths")
        if "$" in raw:
            raise ValueError("Environment variable syntax is not allowed in paths")
        path = Path(raw)
        if not path.is_absolute():
            raise ValueError("Path settings must be absolute")
        return path

    @model_validator(mode="after")
    def _validate_runtime_constraints(self) -> "Settings":
        self.state_root = self.state_root.resolve(strict=False)
        self.state_root.mkdir(parents=True, exist_ok=True)

        normalized_level = self.log_level.upper().strip()
        if not isinstance(logging.getLevelName(normalized_level), int):
            raise ValueError(f"log_level is not a known logging level: {self.log_level}")
        self.log_level = normalized_level

        if self.similar_time_window_seconds > self.duplicate_time_window_seconds:
            raise ValueError("similar_time_window_seconds must be <= duplicate_time_window_seconds")

        if not 0.0 < self.similar_name_max_ratio <= 1.0:
            raise ValueError("similar_name_max_ratio must be in (0.0, 1.0]")

        return self

    @property
    def effective_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        db_path = self.state_root / "tidyscan.sqlite3"
        return f"sqlite:///{db_path.as_posix()}"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
