"""Configuration helpers for the FastAPI service."""

from __future__ import annotations

import os
from functools import lru_cache
from typing import Any

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_MAX_UPLOAD_SIZE = 10 * 1024 * 1024


class Settings(BaseSettings):
    """Application settings loaded from the environment."""

    app_name: str = "ClickHouse Bridge API"
    version: str = "0.1.0"
    git_commit: str | None = None

    port: int = Field(default=8080, alias="PORT")
    upload_dir: str = Field(default="uploads", alias="UPLOAD_DIR")
    max_upload_size: int = Field(default=DEFAULT_MAX_UPLOAD_SIZE, alias="MAX_UPLOAD_SIZE")
    # Reject file paths that resolve outside upload_dir
    restrict_to_upload_dir: bool = True

    # Defaults used when a request carries no connection config (file import)
    clickhouse_host: str = Field(default="localhost", alias="CLICKHOUSE_HOST")
    clickhouse_port: int = Field(default=9000, alias="CLICKHOUSE_PORT")
    clickhouse_database: str = Field(default="default", alias="CLICKHOUSE_DATABASE")
    clickhouse_user: str = Field(default="default", alias="CLICKHOUSE_USER")
    clickhouse_password: str = Field(default="password", alias="CLICKHOUSE_PASSWORD")
    # Server-side ceiling, seconds
    max_execution_time: int = 60

    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    model_config = SettingsConfigDict(
        env_prefix="BRIDGE_",
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("max_upload_size", mode="before")
    @classmethod
    def _lenient_upload_size(cls, value: Any) -> Any:
        """Fall back to the default ceiling when the override is not an integer."""

        if isinstance(value, str):
            try:
                return int(value.strip())
            except ValueError:
                return DEFAULT_MAX_UPLOAD_SIZE
        return value

    def model_post_init(self, __context: Any) -> None:
        """Apply prefixed overrides for fields that also accept a bare env name."""

        # BRIDGE_PORT wins over PORT when both are present
        prefixed_port = os.getenv("BRIDGE_PORT")
        if prefixed_port and prefixed_port.strip().isdigit():
            object.__setattr__(self, "port", int(prefixed_port))

        prefixed_dir = os.getenv("BRIDGE_UPLOAD_DIR")
        if prefixed_dir:
            object.__setattr__(self, "upload_dir", prefixed_dir)


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of :class:`Settings`."""

    return Settings()


__all__ = ["Settings", "get_settings", "DEFAULT_MAX_UPLOAD_SIZE"]
