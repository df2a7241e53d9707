"""
Local filesystem traversal and checksum helpers.
"""

from __future__ import annotations

import hashlib
import os
import stat
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator

from treearchiver.core.exceptions import TraversalError
from treearchiver.core.logging import get_logger
from treearchiver.core.models import TransferTotals, UnitKind

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024

ErrorHandler = Callable[[TraversalError], None]


@dataclass(frozen=True)
class LocalEntry:
    path: Path
    kind: UnitKind
    size: int = 0


def log_traversal_error(error: TraversalError) -> None:
    logger.warning("Skipping local entry", path=error.path, error=str(error))


def _classify(path: Path) -> LocalEntry | None:
    """Classify ``path`` without following links.

    Returns None for special files (FIFOs, sockets, device nodes), which
    have no stored representation.
    """
    st = os.lstat(path)
    if stat.S_ISLNK(st.st_mode):
        return LocalEntry(path=path, kind=UnitKind.SYMBOLIC_LINK)
    if stat.S_ISDIR(st.st_mode):
        return LocalEntry(path=path, kind=UnitKind.DIRECTORY)
    if stat.S_ISREG(st.st_mode):
        return LocalEntry(path=path, kind=UnitKind.FILE, size=st.st_size)
    return None


def iter_tree(root: Path, on_error: ErrorHandler | None = None) -> Iterator[LocalEntry]:
    """Lazily walk ``root`` without following links.

    The root itself is not yielded. Names are sorted within each directory so
    repeated walks of an unchanged tree yield the same sequence. A directory
    that cannot be listed is yielded itself but its contents are skipped and
    reported to ``on_error``. Special files are not yielded and are reported
    to ``on_error`` as well.
    """
    handler = on_error or log_traversal_error
    root = Path(root).absolute()

    def walk_error(exc: OSError) -> None:
        handler(TraversalError(f"Unable to list directory: {exc.strerror}", exc.filename or root))

    for dirpath, dirnames, filenames in os.walk(root, onerror=walk_error, followlinks=False):
        current = Path(dirpath)
        dirnames.sort()
        for name in sorted(dirnames + filenames):
            path = current / name
            try:
                entry = _classify(path)
            except OSError as exc:
                handler(TraversalError(f"Unable to stat entry: {exc.strerror}", path))
                continue
            if entry is None:
                handler(TraversalError("Not a regular file, directory or link", path))
                continue
            yield entry


def compute_totals(root: Path, on_error: ErrorHandler | None = None) -> TransferTotals:
    """Count every entry under ``root`` and the bytes held by its files."""
    objects = 0
    size = 0
    for entry in iter_tree(root, on_error):
        objects += 1
        size += entry.size
    return TransferTotals(object_count=objects, byte_count=size)


def hash_stream(handle: BinaryIO, chunk_size: int = CHUNK_SIZE) -> str:
    digest = hashlib.md5()
    while chunk := handle.read(chunk_size):
        digest.update(chunk)
    return digest.hexdigest()


def checksum(path: Path) -> str:
    """MD5 hex digest of a local file's content."""
    with Path(path).open("rb") as handle:
        return hash_stream(handle)


def link_payload(path: Path) -> bytes:
    """Bytes stored remotely for a symbolic link: its target."""
    return os.fsencode(os.readlink(path))


def checksum_bytes(data: bytes) -> str:
    return hashlib.md5(data).hexdigest()
