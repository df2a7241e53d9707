"""
TreeArchiver - Bulk synchronization of a local tree with a remote object store.

Uploads a directory tree to an object store, downloads it back, and verifies
both directions with content checksums.
"""

__version__ = "1.0.0"
__author__ = "TreeArchiver Team"

from treearchiver.core.config import ArchiverConfig
from treearchiver.transfer.manager import TransferManager

__all__ = ["ArchiverConfig", "TransferManager", "__version__"]
