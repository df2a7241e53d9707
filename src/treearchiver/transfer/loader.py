"""
Queue loader: the producer side of an upload.

Walks the local tree, turns every entry into a transfer unit (staging files
on the way) and pushes the units onto the bounded queue from a dedicated
producer pool.
"""

from __future__ import annotations

import os
import threading
from pathlib import Path

from treearchiver.core.context import TransferContext
from treearchiver.core.exceptions import TransferInterrupted, TraversalError
from treearchiver.core.logging import get_logger
from treearchiver.core.models import TransferTotals, TransferUnit, UnitKind
from treearchiver.localfs.file_ops import LocalEntry, compute_totals, iter_tree
from treearchiver.localfs.staging import FileStager
from treearchiver.transfer.bounded_queue import BoundedTransferQueue
from treearchiver.transfer.pool import BoundedExecutor
from treearchiver.transfer.tracking import AtomicCounter, CompletionTracker

logger = get_logger(__name__)


class QueueLoader:
    """Produces transfer units for every entry below a local root."""

    def __init__(
        self,
        queue: BoundedTransferQueue,
        stager: FileStager,
        workers: int,
        context: TransferContext | None = None,
    ) -> None:
        self.queue = queue
        self.stager = stager
        self.workers = max(workers, 1)
        self.context = context or TransferContext()
        self.skipped: list[str] = []
        self.enqueued = AtomicCounter()
        self.failed = AtomicCounter()
        self.overflow = 0
        self._limit: int | None = None
        self._tracker: CompletionTracker | None = None
        self._feeder: threading.Thread | None = None
        self._lock = threading.Lock()

    def _record_skip(self, error: TraversalError) -> None:
        logger.warning("Skipping local entry", path=error.path, error=str(error))
        with self._lock:
            self.skipped.append(error.path)
        self.context.add_warning(f"Skipped {error.path}: {error.args[0]}")

    def compute_totals(self, root: Path) -> TransferTotals:
        """Count objects and bytes below ``root``.

        Unreadable subtrees and special files are left out and recorded as
        run warnings.
        """
        totals = compute_totals(root, on_error=self._record_skip)
        logger.info(
            "Computed transfer totals",
            root=str(root),
            objects=totals.object_count,
            bytes=totals.byte_count,
            skipped_subtrees=len(self.skipped),
        )
        return totals

    def start(self, root: Path, tracker: CompletionTracker, limit: int | None = None) -> None:
        """Begin producing units in the background.

        At most ``limit`` units are produced; entries beyond it (the tree grew
        since it was counted) are only counted in ``overflow``.
        """
        if self._feeder is not None:
            raise RuntimeError("Loader already started")
        self._tracker = tracker
        self._limit = limit
        self._feeder = threading.Thread(
            target=self._feed,
            args=(Path(root),),
            name="loader-feeder",
            daemon=True,
        )
        self._feeder.start()

    def join(self, timeout: float | None = None) -> bool:
        """Wait for traversal and staging to drain. Returns True once drained."""
        if self._feeder is None:
            return True
        self._feeder.join(timeout)
        return not self._feeder.is_alive()

    @property
    def produced(self) -> int:
        return self.enqueued.value + self.failed.value

    def _feed(self, root: Path) -> None:
        pool = BoundedExecutor(self.workers, "loader", context=self.context)
        seen = 0
        try:
            for entry in iter_tree(root, on_error=lambda error: logger.debug(
                "Entry skipped during load", path=error.path
            )):
                if self.context.is_cancelled:
                    break
                if self._limit is not None and seen >= self._limit:
                    self.overflow += 1
                    continue
                seen += 1
                pool.submit(self._load, entry)
        except TransferInterrupted:
            logger.debug("Loader interrupted")
        except Exception as e:
            logger.error("Traversal aborted", root=str(root), error=str(e), exc_info=True)
        finally:
            pool.shutdown(wait=True)
            logger.debug(
                "Loader drained",
                enqueued=self.enqueued.value,
                failed=self.failed.value,
                overflow=self.overflow,
            )

    def build_unit(self, entry: LocalEntry) -> TransferUnit:
        if entry.kind is UnitKind.DIRECTORY:
            return TransferUnit.directory(entry.path)
        elif entry.kind is UnitKind.SYMBOLIC_LINK:
            return TransferUnit.symbolic_link(entry.path, os.readlink(entry.path))
        elif entry.kind is UnitKind.FILE:
            return self.stager.stage_unit(entry.path)
        else:
            raise ValueError(f"Unknown entry kind: {entry.kind}")

    def _load(self, entry: LocalEntry) -> None:
        if self.context.is_cancelled:
            return

        try:
            unit = self.build_unit(entry)
        except OSError as e:
            logger.error("Unable to stage entry", path=str(entry.path), error=str(e))
            self.failed.increment()
            if self._tracker is not None:
                self._tracker.mark_abandoned(str(entry.path))
            return

        try:
            self.queue.put(unit, self.context)
        except TransferInterrupted:
            unit.discard_staging()
            return
        self.enqueued.increment()
