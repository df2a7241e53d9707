"""
TreeArchiver local filesystem collaborators.

Traversal, checksums and staging of files before upload.
"""

from treearchiver.localfs.file_ops import (
    LocalEntry,
    checksum,
    compute_totals,
    iter_tree,
    link_payload,
)
from treearchiver.localfs.staging import FileStager, open_staged

__all__ = [
    "FileStager",
    "LocalEntry",
    "checksum",
    "compute_totals",
    "iter_tree",
    "link_payload",
    "open_staged",
]
