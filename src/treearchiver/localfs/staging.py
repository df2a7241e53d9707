"""
Staging of local files into upload-ready artifacts.

Each file is copied, optionally compressed, into a private staging
directory before it is queued. The artifact belongs to the transfer unit
until the remote write succeeds.
"""

from __future__ import annotations

import gzip
import lzma
import os
import shutil
import tempfile
from pathlib import Path
from typing import BinaryIO

from treearchiver.core.logging import get_logger
from treearchiver.core.models import TransferUnit

logger = get_logger(__name__)

SUFFIXES = {"none": ".raw", "gzip": ".gz", "xz": ".xz"}


def _open_writer(handle: BinaryIO, compression: str, level: int) -> BinaryIO:
    if compression == "gzip":
        return gzip.GzipFile(fileobj=handle, mode="wb", compresslevel=level)  # type: ignore[return-value]
    if compression == "xz":
        return lzma.LZMAFile(handle, mode="wb", preset=level)  # type: ignore[return-value]
    if compression == "none":
        return handle
    raise ValueError(f"Unsupported compression: {compression}")


def open_staged(unit: TransferUnit) -> BinaryIO:
    """Open a unit's staging artifact for reading, decompressed."""
    if unit.staging_path is None:
        raise ValueError(f"Unit has no staging artifact: {unit.source_path}")
    if unit.compression == "gzip":
        return gzip.open(unit.staging_path, "rb")  # type: ignore[return-value]
    if unit.compression == "xz":
        return lzma.open(unit.staging_path, "rb")  # type: ignore[return-value]
    if unit.compression == "none":
        return open(unit.staging_path, "rb")
    raise ValueError(f"Unsupported compression: {unit.compression}")


class FileStager:
    """Creates staging artifacts for files about to be uploaded."""

    def __init__(
        self,
        staging_directory: Path | None = None,
        compression: str = "gzip",
        level: int = 6,
    ) -> None:
        if compression not in SUFFIXES:
            raise ValueError(f"Unsupported compression: {compression}")
        self.compression = compression
        self.level = level
        self._owns_directory = staging_directory is None
        if staging_directory is None:
            staging_directory = Path(tempfile.mkdtemp(prefix="treearchiver-staging-"))
        else:
            staging_directory.mkdir(parents=True, exist_ok=True)
        self.staging_directory = staging_directory

    def stage(self, path: Path) -> tuple[Path, int]:
        """Write the staging artifact for ``path``.

        Returns the artifact path and the uncompressed size in bytes.
        """
        fd, name = tempfile.mkstemp(
            prefix=f"{path.name[:40]}-",
            suffix=SUFFIXES[self.compression],
            dir=self.staging_directory,
        )
        staging_path = Path(name)
        size = 0
        try:
            with os.fdopen(fd, "wb") as raw, open(path, "rb") as source:
                writer = _open_writer(raw, self.compression, self.level)
                try:
                    while chunk := source.read(1024 * 1024):
                        writer.write(chunk)
                        size += len(chunk)
                finally:
                    if writer is not raw:
                        writer.close()
        except BaseException:
            staging_path.unlink(missing_ok=True)
            raise
        return staging_path, size

    def stage_unit(self, path: Path) -> TransferUnit:
        staging_path, size = self.stage(path)
        return TransferUnit.file(
            source_path=path,
            staging_path=staging_path,
            uncompressed_size=size,
            compression=self.compression,
        )

    def cleanup(self) -> None:
        """Remove the staging directory if this stager created it."""
        if self._owns_directory:
            shutil.rmtree(self.staging_directory, ignore_errors=True)
            logger.debug("Removed staging directory", path=str(self.staging_directory))
