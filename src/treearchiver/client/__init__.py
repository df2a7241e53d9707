"""
TreeArchiver Remote Store Clients.

The transfer engine only depends on ``TransferClient``; concrete stores
plug in behind it.
"""

from __future__ import annotations

from pathlib import Path

from treearchiver.client.base import TransferClient
from treearchiver.client.filesystem import FilesystemStoreClient
from treearchiver.core.config import StoreConfig


def create_client(store_root: Path, config: StoreConfig | None = None) -> TransferClient:
    """Build the client for a store rooted at ``store_root``."""
    config = config or StoreConfig()
    return FilesystemStoreClient(
        store_root,
        remote_root=config.remote_root,
        max_connections=config.max_connections,
    )


__all__ = ["FilesystemStoreClient", "TransferClient", "create_client"]
