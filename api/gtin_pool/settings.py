# gtin_pool/settings.py
"""
GTIN Pool Settings - PostgreSQL by default, any SQLAlchemy async URL via DATABASE_URL.
"""
from __future__ import annotations
from pathlib import Path
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, AliasChoices

class Settings(BaseSettings):
    # =========================================================================
    # File Storage (logs)
    # =========================================================================
    GTIN_DATA_ROOT: Path = Field(
        default=(Path(__file__).resolve().parents[2] / "gtin-data"),
        validation_alias=AliasChoices("GTIN_DATA_ROOT", "gtin_data_root"),
    )

    LOG_LEVEL: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    LOG_MAX_BYTES: int = Field(default=5_000_000, validation_alias="LOG_MAX_BYTES")

    # =========================================================================
    # PostgreSQL Database
    # =========================================================================
    DB_HOST: str = Field(default="localhost", validation_alias="DB_HOST")
    DB_PORT: int = Field(default=5432, validation_alias="DB_PORT")
    DB_NAME: str = Field(default="gtin_pool", validation_alias="DB_NAME")
    DB_USER: str = Field(default="postgres", validation_alias="DB_USER")
    DB_PASSWORD: str = Field(default="postgres", validation_alias="DB_PASSWORD")

    # Connection pool settings
    DB_POOL_SIZE: int = Field(default=5, validation_alias="DB_POOL_SIZE")
    DB_MAX_OVERFLOW: int = Field(default=10, validation_alias="DB_MAX_OVERFLOW")
    DB_ECHO: bool = Field(default=False, validation_alias="DB_ECHO")

    # Full URL override, e.g. sqlite+aiosqlite:///./gtin_pool.db
    DATABASE_URL: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("DATABASE_URL", "GTIN_DATABASE_URL"),
    )
    DB_CREATE_ALL: bool = Field(
        default=False,
        description="Create missing tables on startup (local/dev only)",
    )

    # =========================================================================
    # Pool behaviour
    # =========================================================================
    DEFAULT_OWNER_SCOPE: str = Field(default="default", validation_alias="DEFAULT_OWNER_SCOPE")
    IMPORT_MAX_BYTES: int = Field(default=5_000_000, validation_alias="IMPORT_MAX_BYTES")
    # stats flag low_stock while 0 < available < threshold
    POOL_LOW_STOCK_THRESHOLD: int = Field(default=5, validation_alias="POOL_LOW_STOCK_THRESHOLD")

    # browser front-ends allowed to call the API (JSON list in the environment)
    CORS_ORIGINS: List[str] = Field(
        default=["http://localhost:5173", "http://127.0.0.1:5173"],
        validation_alias="CORS_ORIGINS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

settings = Settings()
