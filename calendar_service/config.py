"""Configuration management for the calendar service.

Settings come from environment variables and ``.env``. When ``CONFIG_PATH``
names a YAML file, its keys (field names) fill in anything the environment
leaves unset.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal, Optional

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from calendar_service.domain.errors import ConfigurationError
from calendar_service.repos.migrations import DEFAULT_MIGRATIONS_DIR

load_dotenv()

StorageBackend = Literal["postgres", "mongodb", "sqlite", "memory"]


class Settings(BaseSettings):
    """Application configuration."""

    # Logging
    env: str = Field(default="local", validation_alias="CALENDAR_ENV")
    log_level: Optional[str] = Field(default=None, validation_alias="LOG_LEVEL")
    log_file: Optional[Path] = Field(default=None, validation_alias="LOG_FILE")

    # Storage
    storage_backend: StorageBackend = Field(default="sqlite", validation_alias="STORAGE_BACKEND")
    postgres_dsn: Optional[str] = Field(default=None, validation_alias="POSTGRES_DSN")
    sqlite_path: str = Field(default="calendar.db", validation_alias="SQLITE_PATH")
    mongo_dsn: Optional[str] = Field(default=None, validation_alias="MONGO_DSN")
    mongo_database: str = Field(default="calendar", validation_alias="MONGO_DATABASE")
    mongo_username: Optional[str] = Field(default=None, validation_alias="MONGO_USERNAME")
    mongo_password: Optional[str] = Field(default=None, validation_alias="MONGO_PASSWORD")

    # Migrations (SQL backends only)
    migrations_dir: Path = Field(default=DEFAULT_MIGRATIONS_DIR, validation_alias="MIGRATIONS_DIR")
    apply_migrations: bool = Field(default=True, validation_alias="APPLY_MIGRATIONS")

    # HTTP server
    http_host: str = Field(default="localhost", validation_alias="HTTP_HOST")
    http_port: int = Field(default=8080, validation_alias="HTTP_PORT")

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        populate_by_name=True,
        env_parse_none_str="",  # Treat empty string as None
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        sources = [init_settings, env_settings, dotenv_settings]
        config_path = os.getenv("CONFIG_PATH")
        if config_path:
            if not Path(config_path).is_file():
                raise ConfigurationError(f"config file does not exist: {config_path}")
            sources.append(YamlConfigSettingsSource(settings_cls, yaml_file=config_path))
        sources.append(file_secret_settings)
        return tuple(sources)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings, loaded on first use."""
    return Settings()
