# config/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for importer configuration.

This module defines the structured settings for the GTFS importer,
including defaults, type annotations, and descriptions.
It utilizes Pydantic for data validation and settings management.
"""

from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Default Static Values (can be overridden by config file/env/cli) ---
DOWNLOAD_DIR_DEFAULT: str = "./gtfs-downloads"
REQUEST_TIMEOUT_DEFAULT: int = 120
LOG_PREFIX_DEFAULT: str = "[GTFS-IMPORT]"

PGHOST_DEFAULT: str = "127.0.0.1"
PGPORT_DEFAULT: int = 5432
PGDATABASE_DEFAULT: str = "gis"
PGUSER_DEFAULT: str = "osmuser"
PGPASSWORD_DEFAULT: str = "yourStrongPasswordHere"

SYMBOLS_DEFAULT: Dict[str, str] = {
    "success": "✅", "error": "❌", "warning": "⚠️", "info": "ℹ️",
    "step": "➡️", "gear": "⚙️", "package": "📦", "rocket": "🚀",
    "sparkles": "✨", "critical": "🔥", "debug": "🐛",
}


class PostgresSettings(BaseSettings):
    """PostgreSQL connection settings."""
    model_config = SettingsConfigDict(
        env_prefix='PG_',
        extra='ignore'
    )

    host: str = Field(default=PGHOST_DEFAULT, description="PostgreSQL host.")
    port: int = Field(default=PGPORT_DEFAULT, description="PostgreSQL port.")
    database: str = Field(default=PGDATABASE_DEFAULT, description="PostgreSQL database name.")
    user: str = Field(default=PGUSER_DEFAULT, description="PostgreSQL username.")
    password: str = Field(default=PGPASSWORD_DEFAULT, description="PostgreSQL password.", exclude=True)

    def as_db_params(self) -> Dict[str, str]:
        """Connection parameters in the shape expected by common.db_utils."""
        return {
            "dbname": self.database,
            "user": self.user,
            "password": self.password,
            "host": self.host,
            "port": str(self.port),
        }


class AgencyConfig(BaseModel):
    """
    One agency entry of the import configuration.

    `agency_key` and one of `url`/`path` are required for an import to run,
    but they are checked by the import driver rather than here so that a
    misconfigured agency fails with a ConfigurationError at import time.
    """
    model_config = {"extra": "ignore"}

    agency_key: Optional[str] = Field(default=None, description="Identifier partitioning this agency's data.")
    url: Optional[str] = Field(default=None, description="URL of the GTFS zip archive.")
    path: Optional[str] = Field(default=None, description="Local GTFS zip archive or unzipped directory.")
    exclude: List[str] = Field(default_factory=list, description="GTFS file names to skip (e.g. 'shapes').")
    skip_delete: Optional[bool] = Field(default=None,
                                        description="Per-agency override of the global skip_delete flag.")
    proj: Optional[str] = Field(default=None,
                                description="Planar CRS of stop coordinates (EPSG code or proj string).")

    @field_validator("exclude", mode="before")
    @classmethod
    def _normalise_exclude(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            value = [value]
        return [str(name).strip().removesuffix(".txt") for name in value]


class ImportSettings(BaseSettings):
    """Main importer settings."""
    model_config = SettingsConfigDict(env_prefix='GTFS_', extra='ignore')

    agencies: List[AgencyConfig] = Field(default_factory=list, description="Agencies to import, in order.")
    skip_delete: bool = Field(default=False,
                              description="Keep existing records for an agency instead of replacing them.")
    continue_on_error: bool = Field(default=False,
                                    description="Carry on with the next agency when one agency import fails.")
    download_dir: Path = Field(default=Path(DOWNLOAD_DIR_DEFAULT),
                               description="Scratch directory for downloaded and extracted feeds.")
    request_timeout: int = Field(default=REQUEST_TIMEOUT_DEFAULT, description="Feed download timeout in seconds.")
    log_prefix: str = Field(default=LOG_PREFIX_DEFAULT, description="Prefix for log messages.")

    pg: PostgresSettings = Field(default_factory=PostgresSettings)

    symbols: Dict[str, str] = Field(default_factory=lambda: dict(SYMBOLS_DEFAULT))
