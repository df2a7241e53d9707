"""
Pytest configuration and fixtures for TreeArchiver tests.
"""

import sys
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sample_tree(temp_dir: Path) -> Path:
    """A local tree holding a.txt (10 bytes) and dir/b.txt (5 bytes)."""
    root = temp_dir / "local"
    (root / "dir").mkdir(parents=True)
    (root / "a.txt").write_bytes(b"0123456789")
    (root / "dir" / "b.txt").write_bytes(b"hello")
    return root


@pytest.fixture
def store_client(temp_dir: Path) -> "FilesystemStoreClient":
    """A filesystem-backed store with a small connection budget."""
    from treearchiver.client.filesystem import FilesystemStoreClient

    client = FilesystemStoreClient(temp_dir / "store", max_connections=4)
    yield client
    client.close()


@pytest.fixture
def transfer_config(temp_dir: Path) -> "TransferConfig":
    """Transfer settings with short waits so tests finish quickly."""
    from treearchiver.core.config import TransferConfig

    return TransferConfig(
        poll_interval_seconds=0.05,
        shutdown_wait_seconds=0.1,
        loader_workers=2,
        max_attempts=5,
        staging_directory=temp_dir / "staging",
    )


@pytest.fixture
def sample_config(temp_dir: Path) -> "ArchiverConfig":
    """Create a sample configuration for testing."""
    from treearchiver.core.config import ArchiverConfig, LoggingConfig, TransferConfig

    config = ArchiverConfig(
        logging=LoggingConfig(file_enabled=False, log_directory=temp_dir / "logs"),
        transfer=TransferConfig(poll_interval_seconds=0.05, shutdown_wait_seconds=0.1),
    )
    config.ensure_directories()
    return config


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow running tests")
