"""
TreeArchiver Remote Store Client Base.

Defines the abstract interface the transfer engine uses to talk to a remote
object store. Remote paths are POSIX style and live under ``remote_root``.
"""

from __future__ import annotations

import posixpath
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any, BinaryIO, Iterator

if TYPE_CHECKING:
    from treearchiver.core.models import RemoteEntry, TransferUnit, VerificationResult


class TransferClient(ABC):
    """Abstract base class for remote object store clients."""

    def __init__(self, remote_root: str = "/") -> None:
        self._remote_root = "/" + remote_root.strip().strip("/")

    @property
    def remote_root(self) -> str:
        """Remote directory that mirrors the local root."""
        return self._remote_root

    @abstractmethod
    def maximum_concurrent_connections(self) -> int:
        """Number of connections the client can serve at once."""

    # ==================== Path Translation ====================

    def convert_local_path_to_remote_path(self, local_path: Path, local_root: Path) -> str:
        """Map a path under ``local_root`` to its remote path."""
        relative = Path(local_path).absolute().relative_to(Path(local_root).absolute())
        if relative == Path("."):
            return self._remote_root
        return posixpath.join(self._remote_root, relative.as_posix())

    def convert_remote_path_to_local_path(self, remote_path: str, local_root: Path) -> Path:
        """Map a remote path under ``remote_root`` to a path under ``local_root``."""
        relative = PurePosixPath(remote_path).relative_to(self._remote_root)
        return Path(local_root).joinpath(*relative.parts)

    # ==================== Writes ====================

    @abstractmethod
    def ensure_remote_directory(self, remote_path: str, unit: TransferUnit | None = None) -> None:
        """Create the remote directory and its parents if absent."""

    @abstractmethod
    def put(self, remote_path: str, unit: TransferUnit) -> None:
        """
        Write a file or link unit, overwriting any existing object.
        Raises TransferError on any I/O problem.
        """

    # ==================== Reads ====================

    @abstractmethod
    def list_remote_entries(self) -> Iterator[RemoteEntry]:
        """Lazily list every object and directory below ``remote_root``."""

    @abstractmethod
    def download(self, remote_path: str, sink: BinaryIO) -> VerificationResult:
        """
        Stream an object into ``sink`` while verifying its checksum.
        Returns the verification outcome of the streamed content.
        """

    @abstractmethod
    def verify_file(self, remote_path: str, size: int, checksum: str) -> VerificationResult:
        """Compare a remote object against a local size and checksum."""

    @abstractmethod
    def verify_directory(self, remote_path: str) -> VerificationResult:
        """Check that a remote directory exists."""

    def close(self) -> None:
        """Release underlying connections."""

    def __enter__(self) -> TransferClient:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
