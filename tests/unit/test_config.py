"""
Tests for treearchiver.core.config module.
"""

import tempfile
from pathlib import Path

import pytest
from pydantic import ValidationError

from treearchiver.core.config import (
    ArchiverConfig,
    LoggingConfig,
    StoreConfig,
    TransferConfig,
    load_config,
)


class TestLoggingConfig:
    """Tests for LoggingConfig."""

    def test_default_values(self) -> None:
        config = LoggingConfig()
        assert config.level == "INFO"
        assert config.file_enabled is True
        assert config.console_enabled is True
        assert config.json_format is False

    def test_custom_values(self) -> None:
        config = LoggingConfig(level="DEBUG", json_format=True)
        assert config.level == "DEBUG"
        assert config.json_format is True

    def test_path_expansion(self) -> None:
        config = LoggingConfig(log_directory="~/logs")
        assert "~" not in str(config.log_directory)

    def test_invalid_level(self) -> None:
        with pytest.raises(ValidationError):
            LoggingConfig(level="CHATTY")


class TestTransferConfig:
    """Tests for TransferConfig."""

    def test_default_values(self) -> None:
        config = TransferConfig()
        assert config.poll_interval_seconds == 1.0
        assert config.max_attempts == 10
        assert config.queue_capacity_factor == 2
        assert config.compression == "gzip"
        assert config.staging_directory is None

    def test_unbounded_retries(self) -> None:
        config = TransferConfig(max_attempts=None)
        assert config.max_attempts is None

    def test_poll_interval_bounds(self) -> None:
        with pytest.raises(ValidationError):
            TransferConfig(poll_interval_seconds=0)

        with pytest.raises(ValidationError):
            TransferConfig(poll_interval_seconds=120)

    def test_compression_choices(self) -> None:
        assert TransferConfig(compression="xz").compression == "xz"

        with pytest.raises(ValidationError):
            TransferConfig(compression="zstd")

    def test_loader_workers_default_to_cpu_count(self) -> None:
        assert TransferConfig().resolved_loader_workers() >= 1
        assert TransferConfig(loader_workers=3).resolved_loader_workers() == 3

    def test_staging_path_expansion(self) -> None:
        config = TransferConfig(staging_directory="~/staging")
        assert "~" not in str(config.staging_directory)


class TestStoreConfig:
    """Tests for StoreConfig."""

    def test_default_values(self) -> None:
        config = StoreConfig()
        assert config.max_connections == 8
        assert config.remote_root == "/"

    def test_remote_root_normalized(self) -> None:
        assert StoreConfig(remote_root="backups/photos/").remote_root == "/backups/photos"
        assert StoreConfig(remote_root="").remote_root == "/"

    def test_connections_bounds(self) -> None:
        with pytest.raises(ValidationError):
            StoreConfig(max_connections=0)


class TestArchiverConfig:
    """Tests for ArchiverConfig."""

    def test_default_config(self) -> None:
        config = ArchiverConfig()
        assert isinstance(config.logging, LoggingConfig)
        assert isinstance(config.transfer, TransferConfig)
        assert isinstance(config.store, StoreConfig)

    def test_save_and_load(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.json"

            saved = ArchiverConfig(
                transfer=TransferConfig(max_attempts=3, compression="none"),
                store=StoreConfig(remote_root="/archive", max_connections=16),
            )
            saved.save(config_path)

            loaded = ArchiverConfig.load(config_path)

            assert loaded.transfer.max_attempts == 3
            assert loaded.transfer.compression == "none"
            assert loaded.store.remote_root == "/archive"
            assert loaded.store.max_connections == 16

    def test_load_nonexistent(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "nonexistent.json"
            config = ArchiverConfig.load(config_path)
            assert config.transfer.max_attempts == 10

    def test_ensure_directories(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config = ArchiverConfig(
                logging=LoggingConfig(log_directory=Path(tmpdir) / "logs"),
                transfer=TransferConfig(staging_directory=Path(tmpdir) / "staging"),
            )
            config.ensure_directories()

            assert config.logging.log_directory.exists()
            assert config.transfer.staging_directory.exists()

    def test_ensure_directories_skips_disabled_log_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config = ArchiverConfig(
                logging=LoggingConfig(file_enabled=False, log_directory=Path(tmpdir) / "logs"),
            )
            config.ensure_directories()

            assert not config.logging.log_directory.exists()

    def test_load_config_creates_directories(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / "config.json"
            ArchiverConfig(
                logging=LoggingConfig(log_directory=Path(tmpdir) / "logs"),
            ).save(config_path)

            config = load_config(config_path)

            assert config.logging.log_directory.exists()
