"""
TreeArchiver data models.

Defines the transfer units queued for upload, the entries discovered in the
remote store, and the summaries and verification reports produced by a run.
"""

from __future__ import annotations

import os
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from pathlib import Path
from typing import TYPE_CHECKING, Any

from treearchiver.core.logging import get_logger

if TYPE_CHECKING:
    from treearchiver.client.base import TransferClient

logger = get_logger(__name__)


class UnitKind(Enum):
    """Variant tag of a transfer unit."""

    FILE = auto()
    DIRECTORY = auto()
    SYMBOLIC_LINK = auto()


@dataclass
class TransferUnit:
    """One pending upload: a file, a directory or a symbolic link.

    The staging artifact is owned by the unit until the remote write is
    confirmed; whichever worker holds the unit is the only one touching it.
    """

    kind: UnitKind
    source_path: Path
    staging_path: Path | None = None
    uncompressed_size: int = 0
    compression: str = "none"
    link_target: str | None = None
    attempt_count: int = 0

    def __post_init__(self) -> None:
        if self.uncompressed_size < 0:
            raise ValueError(f"Negative size for {self.source_path}")
        if self.kind is UnitKind.FILE and self.staging_path is None:
            raise ValueError(f"File unit without staging artifact: {self.source_path}")
        if self.kind is UnitKind.SYMBOLIC_LINK and self.link_target is None:
            raise ValueError(f"Link unit without target: {self.source_path}")

    @classmethod
    def file(
        cls,
        source_path: Path,
        staging_path: Path,
        uncompressed_size: int,
        compression: str = "none",
    ) -> TransferUnit:
        return cls(
            kind=UnitKind.FILE,
            source_path=source_path,
            staging_path=staging_path,
            uncompressed_size=uncompressed_size,
            compression=compression,
        )

    @classmethod
    def directory(cls, source_path: Path) -> TransferUnit:
        return cls(kind=UnitKind.DIRECTORY, source_path=source_path)

    @classmethod
    def symbolic_link(cls, source_path: Path, link_target: str) -> TransferUnit:
        return cls(
            kind=UnitKind.SYMBOLIC_LINK,
            source_path=source_path,
            link_target=link_target,
        )

    @property
    def is_file(self) -> bool:
        return self.kind is UnitKind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind is UnitKind.DIRECTORY

    @property
    def is_link(self) -> bool:
        return self.kind is UnitKind.SYMBOLIC_LINK

    def record_attempt(self) -> int:
        """Count one dispatch attempt and return the new total."""
        self.attempt_count += 1
        return self.attempt_count

    def discard_staging(self) -> bool:
        """Delete the staging artifact if present. Returns True if a file was removed."""
        if self.staging_path is None:
            return False
        try:
            os.unlink(self.staging_path)
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning("Unable to delete staging artifact", path=str(self.staging_path), error=str(e))
            return False
        return True


FileUpload = TransferUnit.file
DirectoryUpload = TransferUnit.directory
SymbolicLinkUpload = TransferUnit.symbolic_link


def dispatch_unit(client: TransferClient, unit: TransferUnit, remote_path: str) -> int:
    """Send one unit to the remote store.

    Returns the number of uncompressed bytes transferred. Raises
    ``TransferError`` when the remote write fails; the staging artifact is
    only removed after a successful write.
    """
    if unit.kind is UnitKind.DIRECTORY:
        client.ensure_remote_directory(remote_path, unit)
        return 0
    elif unit.kind is UnitKind.SYMBOLIC_LINK:
        client.put(remote_path, unit)
        return 0
    elif unit.kind is UnitKind.FILE:
        client.put(remote_path, unit)
        unit.discard_staging()
        return unit.uncompressed_size
    else:
        raise ValueError(f"Unknown transfer unit kind: {unit.kind}")


@dataclass(frozen=True)
class RemoteEntry:
    """An object or directory discovered in the remote store."""

    remote_path: str
    is_directory: bool
    last_modified: float
    size: int = 0


@dataclass(frozen=True)
class TransferTotals:
    """Object and byte counts computed before any upload starts."""

    object_count: int = 0
    byte_count: int = 0


class VerificationResult(Enum):
    """Outcome of comparing one entry between local disk and the store."""

    MATCH = "OK"
    MISMATCH = "CHECKSUM MISMATCH"
    SIZE_MISMATCH = "SIZE MISMATCH"
    MISSING_LOCAL = "MISSING LOCAL"
    MISSING_REMOTE = "MISSING REMOTE"
    WRONG_TYPE = "WRONG TYPE"
    ERROR = "ERROR"

    @property
    def is_ok(self) -> bool:
        return self is VerificationResult.MATCH

    def __str__(self) -> str:
        return self.value


MAX_LABEL_WIDTH = max(len(result.value) for result in VerificationResult)


@dataclass(frozen=True)
class VerificationEntry:
    result: VerificationResult
    remote_path: str
    local_path: Path | None = None


@dataclass
class VerificationReport:
    """Per-entry results of one verification pass."""

    direction: str
    entries: list[VerificationEntry] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    ended_at: datetime | None = None

    @property
    def success(self) -> bool:
        return all(entry.result.is_ok for entry in self.entries)

    @property
    def total(self) -> int:
        return len(self.entries)

    def counts(self) -> dict[VerificationResult, int]:
        return dict(Counter(entry.result for entry in self.entries))

    def failures(self) -> list[VerificationEntry]:
        return [entry for entry in self.entries if not entry.result.is_ok]

    def to_dict(self) -> dict[str, Any]:
        return {
            "direction": self.direction,
            "success": self.success,
            "total": self.total,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "counts": {result.name: count for result, count in self.counts().items()},
            "failures": [
                {
                    "result": entry.result.name,
                    "remote_path": entry.remote_path,
                    "local_path": str(entry.local_path) if entry.local_path else None,
                }
                for entry in self.failures()
            ],
        }


@dataclass
class UploadSummary:
    """Result of an upload run."""

    totals: TransferTotals
    completed: int = 0
    bytes_transferred: int = 0
    retries: int = 0
    warnings: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    ended_at: datetime | None = None

    @property
    def duration_seconds(self) -> float | None:
        if self.ended_at:
            return (self.ended_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "objects_expected": self.totals.object_count,
            "bytes_expected": self.totals.byte_count,
            "objects_completed": self.completed,
            "bytes_transferred": self.bytes_transferred,
            "retries": self.retries,
            "warnings": self.warnings,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_seconds": self.duration_seconds,
        }


@dataclass
class DownloadSummary:
    """Result of a download run."""

    observed: int = 0
    processed: int = 0
    directories: int = 0
    files: int = 0
    failed: list[str] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.now)
    ended_at: datetime | None = None

    @property
    def success(self) -> bool:
        return not self.failed and self.processed == self.observed

    @property
    def duration_seconds(self) -> float | None:
        if self.ended_at:
            return (self.ended_at - self.started_at).total_seconds()
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "observed": self.observed,
            "processed": self.processed,
            "directories": self.directories,
            "files": self.files,
            "failed": self.failed,
            "success": self.success,
            "started_at": self.started_at.isoformat(),
            "ended_at": self.ended_at.isoformat() if self.ended_at else None,
            "duration_seconds": self.duration_seconds,
        }
