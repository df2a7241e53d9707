"""
Filesystem-backed object store.

Treats a local directory as the remote store. Objects are kept decompressed
at ``<store root>/<remote path>``; their checksums live in a hidden metadata
tree so downloads and verification can detect corruption.
"""

from __future__ import annotations

import hashlib
import json
import os
import tempfile
from pathlib import Path, PurePosixPath
from typing import Any, BinaryIO, Iterator

from treearchiver.client.base import TransferClient
from treearchiver.core.exceptions import TransferError
from treearchiver.core.logging import get_logger
from treearchiver.core.models import RemoteEntry, TransferUnit, VerificationResult
from treearchiver.localfs.file_ops import checksum as checksum_of
from treearchiver.localfs.staging import open_staged

logger = get_logger(__name__)

METADATA_DIRECTORY = ".treearchiver-meta"
SCRATCH_DIRECTORY = ".scratch"
CHUNK_SIZE = 1024 * 1024


class FilesystemStoreClient(TransferClient):
    """Object store client whose remote side is a local directory."""

    def __init__(
        self,
        store_root: Path,
        remote_root: str = "/",
        max_connections: int = 8,
    ) -> None:
        super().__init__(remote_root)
        if max_connections < 1:
            raise ValueError("max_connections must be at least 1")
        self.store_root = Path(store_root).absolute()
        self.max_connections = max_connections
        self.closed = False
        self.store_root.mkdir(parents=True, exist_ok=True)

    def maximum_concurrent_connections(self) -> int:
        return self.max_connections

    # ==================== Layout ====================

    def _relative(self, remote_path: str) -> PurePosixPath:
        path = PurePosixPath(remote_path)
        if not path.is_absolute():
            raise TransferError("Remote path must be absolute", path=remote_path)
        relative = path.relative_to("/")
        if ".." in relative.parts:
            raise TransferError("Remote path escapes the store", path=remote_path)
        return relative

    def object_path(self, remote_path: str) -> Path:
        return self.store_root.joinpath(*self._relative(remote_path).parts)

    def metadata_path(self, remote_path: str) -> Path:
        relative = self._relative(remote_path)
        return self.store_root.joinpath(METADATA_DIRECTORY, *relative.parts).with_name(
            relative.name + ".json"
        )

    def read_metadata(self, remote_path: str) -> dict[str, Any] | None:
        try:
            with open(self.metadata_path(remote_path)) as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.warning("Unreadable object metadata", path=remote_path, error=str(exc))
            return None

    def _write_atomically(self, target: Path, chunks: Iterator[bytes]) -> tuple[int, str]:
        target.parent.mkdir(parents=True, exist_ok=True)
        scratch = self.store_root / METADATA_DIRECTORY / SCRATCH_DIRECTORY
        scratch.mkdir(parents=True, exist_ok=True)
        fd, name = tempfile.mkstemp(prefix=f"{target.name[:40]}-", suffix=".tmp", dir=scratch)
        digest = hashlib.md5()
        size = 0
        try:
            with os.fdopen(fd, "wb") as handle:
                for chunk in chunks:
                    handle.write(chunk)
                    digest.update(chunk)
                    size += len(chunk)
            os.replace(name, target)
        except BaseException:
            Path(name).unlink(missing_ok=True)
            raise
        return size, digest.hexdigest()

    # ==================== Writes ====================

    def ensure_remote_directory(self, remote_path: str, unit: TransferUnit | None = None) -> None:
        path = self.object_path(remote_path)
        try:
            path.mkdir(parents=True, exist_ok=True)
        except FileExistsError as exc:
            raise TransferError("Remote path exists and is not a directory", path=remote_path) from exc
        except OSError as exc:
            raise TransferError(f"Unable to create directory: {exc}", path=remote_path) from exc

    def put(self, remote_path: str, unit: TransferUnit) -> None:
        target = self.object_path(remote_path)
        if target.is_dir() and not target.is_symlink():
            raise TransferError("Remote path exists and is a directory", path=remote_path)

        try:
            if unit.is_link:
                payload = os.fsencode(unit.link_target or "")
                size, md5 = self._write_atomically(target, iter([payload]))
                kind = "link"
            elif unit.is_file:
                with open_staged(unit) as source:
                    size, md5 = self._write_atomically(
                        target, iter(lambda: source.read(CHUNK_SIZE), b"")
                    )
                kind = "file"
            else:
                raise TransferError("Directories cannot be written as objects", path=remote_path)

            mtime = self._source_mtime(unit)
            if mtime is not None:
                os.utime(target, (mtime, mtime))

            metadata = {"kind": kind, "size": size, "md5": md5, "mtime": mtime}
            meta_path = self.metadata_path(remote_path)
            self._write_atomically(meta_path, iter([json.dumps(metadata).encode("utf-8")]))
        except OSError as exc:
            raise TransferError(f"Unable to write object: {exc}", path=remote_path) from exc

        logger.debug("Object written", path=remote_path, size=size, kind=kind)

    @staticmethod
    def _source_mtime(unit: TransferUnit) -> float | None:
        try:
            return os.lstat(unit.source_path).st_mtime
        except OSError:
            return None

    # ==================== Reads ====================

    def list_remote_entries(self) -> Iterator[RemoteEntry]:
        top = self.object_path(self.remote_root)
        if not top.is_dir():
            return

        for dirpath, dirnames, filenames in os.walk(top):
            current = Path(dirpath)
            if current == self.store_root and METADATA_DIRECTORY in dirnames:
                dirnames.remove(METADATA_DIRECTORY)
            for name in dirnames:
                path = current / name
                try:
                    st = path.stat()
                except OSError:
                    continue
                yield RemoteEntry(
                    remote_path=self._remote_path_of(path),
                    is_directory=True,
                    last_modified=st.st_mtime,
                )
            for name in filenames:
                path = current / name
                try:
                    st = path.stat()
                except OSError:
                    continue
                yield RemoteEntry(
                    remote_path=self._remote_path_of(path),
                    is_directory=False,
                    last_modified=st.st_mtime,
                    size=st.st_size,
                )

    def _remote_path_of(self, path: Path) -> str:
        return "/" + path.relative_to(self.store_root).as_posix()

    def download(self, remote_path: str, sink: BinaryIO) -> VerificationResult:
        path = self.object_path(remote_path)
        if not path.exists():
            return VerificationResult.MISSING_REMOTE
        if path.is_dir():
            return VerificationResult.WRONG_TYPE

        digest = hashlib.md5()
        size = 0
        try:
            with open(path, "rb") as handle:
                while chunk := handle.read(CHUNK_SIZE):
                    sink.write(chunk)
                    digest.update(chunk)
                    size += len(chunk)
        except OSError as exc:
            raise TransferError(f"Unable to read object: {exc}", path=remote_path) from exc

        metadata = self.read_metadata(remote_path)
        if metadata is None:
            logger.debug("No stored checksum, accepting content", path=remote_path)
            return VerificationResult.MATCH
        if metadata.get("size") != size:
            return VerificationResult.SIZE_MISMATCH
        if metadata.get("md5") != digest.hexdigest():
            return VerificationResult.MISMATCH
        return VerificationResult.MATCH

    def verify_file(self, remote_path: str, size: int, checksum: str) -> VerificationResult:
        path = self.object_path(remote_path)
        if not path.exists():
            return VerificationResult.MISSING_REMOTE
        if path.is_dir():
            return VerificationResult.WRONG_TYPE

        metadata = self.read_metadata(remote_path) or {}
        remote_size = metadata.get("size")
        if remote_size is None:
            remote_size = path.stat().st_size
        if remote_size != size:
            return VerificationResult.SIZE_MISMATCH

        remote_md5 = metadata.get("md5")
        if remote_md5 is None:
            remote_md5 = checksum_of(path)
        if remote_md5 != checksum:
            return VerificationResult.MISMATCH
        return VerificationResult.MATCH

    def verify_directory(self, remote_path: str) -> VerificationResult:
        path = self.object_path(remote_path)
        if path.is_dir():
            return VerificationResult.MATCH
        if path.exists():
            return VerificationResult.WRONG_TYPE
        return VerificationResult.MISSING_REMOTE

    def close(self) -> None:
        self.closed = True
