# count_hub/settings.py
"""
Count Hub Settings.
"""
from __future__ import annotations
from pathlib import Path
from typing import List, Literal
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices

_DEFAULT_DATA_ROOT = Path(__file__).resolve().parents[2] / "count-data"


class Settings(BaseSettings):
    # =========================================================================
    # File Storage (logs, sqlite database)
    # =========================================================================
    COUNT_DATA_ROOT: Path = Field(
        default=_DEFAULT_DATA_ROOT,
        validation_alias=AliasChoices("COUNT_DATA_ROOT", "count_data_root", "data_root"),
    )

    # =========================================================================
    # Storage backend
    # =========================================================================
    STORAGE_BACKEND: Literal["memory", "sql"] = Field(
        default="sql",
        validation_alias="STORAGE_BACKEND",
        description="'sql' keeps scans in the database, 'memory' keeps them in-process",
    )
    DB_URL: str = Field(
        default=f"sqlite+aiosqlite:///{(_DEFAULT_DATA_ROOT / 'count_hub.db').as_posix()}",
        validation_alias=AliasChoices("DB_URL", "COUNT_DB_URL"),
    )

    # Connection pool settings (ignored for sqlite)
    DB_POOL_SIZE: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    DB_MAX_OVERFLOW: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")
    DB_ECHO: bool = Field(default=False, validation_alias="DB_ECHO")

    # =========================================================================
    # Logging
    # =========================================================================
    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    LOG_TO_FILE: bool = Field(default=True, validation_alias="LOG_TO_FILE")

    # =========================================================================
    # HTTP / export
    # =========================================================================
    CORS_ORIGINS: List[str] = Field(
        default_factory=lambda: [
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ],
        validation_alias="CORS_ORIGINS",
    )
    EXPORT_DELIMITER: str = Field(default=";", validation_alias="EXPORT_DELIMITER")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

settings = Settings()
