"""
Configuration settings for the promotions storage service.

Uses Pydantic Settings to load environment variables for the database
connection, the watched input directory, the storage mode and pipeline tuning.
An unsupported STORAGE_MODE fails validation, which aborts startup.
"""
from __future__ import annotations

from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StorageMode(str, Enum):
    """Consistency policy applied to every ingested file."""

    SIMPLE = "SIMPLE"
    IMMUTABLE = "IMMUTABLE"


class Settings(BaseSettings):
    # Database
    db_host: str = Field("localhost", alias="DB_HOST")
    db_port: int = Field(5432, alias="DB_PORT")
    db_user: str = Field("postgres", alias="DB_USER")
    db_password: str = Field("admin", alias="DB_PASSWORD")
    db_name: str = Field("storage", alias="DB_NAME")
    db_pool_max_size: int = Field(4, alias="DB_POOL_MAX_SIZE", ge=1)

    # Application
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    # Ingestion
    input_dir: Path = Field(Path("input"), alias="INPUT_DIR")
    mode: StorageMode = Field(StorageMode.SIMPLE, alias="STORAGE_MODE")
    debounce_ms: int = Field(100, alias="DEBOUNCE_MS", gt=0)
    queue_capacity: int = Field(1_000, alias="QUEUE_CAPACITY", gt=0)
    insert_batch_size: int = Field(500, alias="INSERT_BATCH_SIZE", gt=0)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def resolved_input_dir(self) -> Path:
        """Absolute path of the watched directory."""
        return self.input_dir.expanduser().resolve()


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Retrieve a cached instance of Settings to avoid repeated env parsing.
    """
    return Settings()


__all__ = ["Settings", "StorageMode", "get_settings"]
