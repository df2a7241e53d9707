"""
TreeArchiver configuration management.

Provides centralized configuration with validation using Pydantic.
"""

from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator

DEFAULT_HOME = Path.home() / ".treearchiver"


class LoggingConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    file_enabled: bool = True
    console_enabled: bool = True
    json_format: bool = False
    log_directory: Path = Field(default_factory=lambda: DEFAULT_HOME / "logs")

    @field_validator("log_directory", mode="before")
    @classmethod
    def expand_path(cls, v: str | Path) -> Path:
        return Path(v).expanduser().resolve()


class TransferConfig(BaseModel):
    """Configuration for the transfer pipeline."""

    poll_interval_seconds: float = Field(default=1.0, gt=0, le=60)
    shutdown_wait_seconds: float = Field(default=5.0, gt=0)
    loader_workers: int | None = Field(default=None, ge=1)
    max_attempts: int | None = Field(default=10, ge=1)
    queue_capacity_factor: int = Field(default=2, ge=1)
    compression: Literal["none", "gzip", "xz"] = "gzip"
    compression_level: int = Field(default=6, ge=1, le=9)
    staging_directory: Path | None = None

    @field_validator("staging_directory", mode="before")
    @classmethod
    def expand_staging_path(cls, v: str | Path | None) -> Path | None:
        if v is None:
            return None
        return Path(v).expanduser().resolve()

    def resolved_loader_workers(self) -> int:
        """Number of producer threads, defaulting to the CPU count."""
        return self.loader_workers or os.cpu_count() or 1


class StoreConfig(BaseModel):
    """Configuration for the remote object store."""

    max_connections: int = Field(default=8, ge=1, le=1024)
    remote_root: str = "/"

    @field_validator("remote_root")
    @classmethod
    def normalize_remote_root(cls, v: str) -> str:
        v = "/" + v.strip().strip("/")
        return v


class ArchiverConfig(BaseModel):
    """Main TreeArchiver configuration."""

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    transfer: TransferConfig = Field(default_factory=TransferConfig)
    store: StoreConfig = Field(default_factory=StoreConfig)

    @classmethod
    def load(cls, config_path: Path | None = None) -> ArchiverConfig:
        """Load configuration from file or create default."""
        if config_path is None:
            config_path = DEFAULT_HOME / "config.json"

        if config_path.exists():
            with open(config_path) as f:
                data = json.load(f)
            return cls.model_validate(data)

        return cls()

    def save(self, config_path: Path | None = None) -> None:
        """Save configuration to file."""
        if config_path is None:
            config_path = DEFAULT_HOME / "config.json"

        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w") as f:
            json.dump(self.model_dump(mode="json"), f, indent=2, default=str)

    def ensure_directories(self) -> None:
        """Create all required directories."""
        if self.logging.file_enabled:
            self.logging.log_directory.mkdir(parents=True, exist_ok=True)
        if self.transfer.staging_directory:
            self.transfer.staging_directory.mkdir(parents=True, exist_ok=True)


def get_default_config() -> ArchiverConfig:
    """Get the default configuration."""
    return ArchiverConfig()


def load_config(config_path: Path | None = None) -> ArchiverConfig:
    """Load or create configuration."""
    config = ArchiverConfig.load(config_path)
    config.ensure_directories()
    return config
