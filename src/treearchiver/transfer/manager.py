"""
TreeArchiver Transfer Manager.

Manages the ingestion of the staged upload queue, the allocation of upload
threads, and the download and verification runs against one remote store.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any

import humanize

from treearchiver.client.base import TransferClient
from treearchiver.core.config import TransferConfig
from treearchiver.core.context import TransferContext
from treearchiver.core.exceptions import CompletionMismatchError, TransferInterrupted
from treearchiver.core.logging import OperationLogger, get_logger
from treearchiver.core.models import (
    DownloadSummary,
    TransferTotals,
    UploadSummary,
    VerificationReport,
)
from treearchiver.localfs.staging import FileStager
from treearchiver.transfer.bounded_queue import BoundedTransferQueue
from treearchiver.transfer.download import DownloadOrchestrator
from treearchiver.transfer.loader import QueueLoader
from treearchiver.transfer.pool import BoundedExecutor, worker_count
from treearchiver.transfer.progress import ProgressAccumulator, ProgressDisplay
from treearchiver.transfer.tracking import CompletionTracker
from treearchiver.transfer.uploader import UploadWorker
from treearchiver.transfer.verify import ResultCallback, VerificationEngine

logger = get_logger(__name__)

DisplayFactory = Callable[[TransferTotals], ProgressDisplay]


class TransferManager:
    """Moves a local tree to and from a remote store through ``client``."""

    def __init__(
        self,
        client: TransferClient,
        local_root: Path,
        config: TransferConfig | None = None,
        context: TransferContext | None = None,
    ) -> None:
        self.client = client
        self.local_root = Path(local_root).absolute()
        self.config = config or TransferConfig()
        self.context = context or TransferContext()

    def upload_all(self, display_factory: DisplayFactory | None = None) -> UploadSummary:
        """
        Upload every entry below the local root to the remote root.

        Raises CompletionMismatchError when the drained pipeline completed a
        different number of objects than it counted, and TransferInterrupted
        when the run was cancelled.
        """
        concurrent_uploaders = worker_count(self.client)
        queue = BoundedTransferQueue(concurrent_uploaders * self.config.queue_capacity_factor)
        stager = FileStager(
            staging_directory=self.config.staging_directory,
            compression=self.config.compression,
            level=self.config.compression_level,
        )
        loader = QueueLoader(
            queue,
            stager,
            workers=self.config.resolved_loader_workers(),
            context=self.context,
        )

        try:
            with self._interruptible():
                return self._upload(queue, loader, concurrent_uploaders, display_factory)
        finally:
            if self.context.is_cancelled:
                loader.join(self.config.shutdown_wait_seconds)
            for unit in queue.drain():
                unit.discard_staging()
            stager.cleanup()

    def _upload(
        self,
        queue: BoundedTransferQueue,
        loader: QueueLoader,
        concurrent_uploaders: int,
        display_factory: DisplayFactory | None,
    ) -> UploadSummary:
        totals = loader.compute_totals(self.local_root)
        summary = UploadSummary(totals=totals)

        if totals.object_count < 1:
            logger.info("Nothing to upload", root=str(self.local_root))
            summary.ended_at = datetime.now()
            return summary

        logger.info(
            "Bulk upload",
            local_root=str(self.local_root),
            remote_root=self.client.remote_root,
            objects=totals.object_count,
            size=humanize.naturalsize(totals.byte_count, binary=True),
            uploaders=concurrent_uploaders,
        )

        tracker = CompletionTracker(target=totals.object_count)
        progress = ProgressAccumulator()
        worker = UploadWorker(
            queue,
            self.client,
            self.local_root,
            tracker,
            progress,
            self.context,
            poll_interval=self.config.poll_interval_seconds,
            max_attempts=self.config.max_attempts,
        )

        with OperationLogger("upload", logger, objects=totals.object_count):
            loader.start(self.local_root, tracker, limit=totals.object_count)

            uploaders = BoundedExecutor(concurrent_uploaders, "uploader", backlog=0)
            try:
                for _ in range(concurrent_uploaders):
                    uploaders.submit(worker.run)

                if display_factory is not None:
                    progress.attach(display_factory(totals))

                logger.debug("Waiting for object loader to drain")
                while not loader.join(self.config.shutdown_wait_seconds):
                    pass

                if not self.context.is_cancelled:
                    tracker.mark_missing(totals.object_count - loader.produced)

                logger.debug("Waiting for upload workers to drain")
            except BaseException:
                self.context.cancel()
                raise
            finally:
                uploaders.shutdown(wait=True)

            progress.flush()

        summary.completed = tracker.completed
        summary.bytes_transferred = progress.transferred
        summary.retries = worker.retries.value
        summary.warnings = self.context.get_warnings()
        summary.ended_at = datetime.now()

        if self.context.is_cancelled:
            raise TransferInterrupted("Upload was interrupted")

        if summary.completed != totals.object_count or loader.overflow:
            raise CompletionMismatchError(
                expected=totals.object_count,
                actual=summary.completed,
                abandoned=tracker.abandoned,
            )

        logger.info(
            "All uploads have completed",
            completed=summary.completed,
            expected=totals.object_count,
            retries=summary.retries,
        )
        return summary

    def download_all(self) -> DownloadSummary:
        """Download every remote entry into the local root."""
        self.local_root.mkdir(parents=True, exist_ok=True)
        orchestrator = DownloadOrchestrator(
            self.client,
            self.local_root,
            context=self.context,
            poll_interval=self.config.poll_interval_seconds,
        )
        with self._interruptible(), OperationLogger(
            "download", logger, remote_root=self.client.remote_root
        ):
            return orchestrator.run()

    def verify_local(self, on_result: ResultCallback | None = None) -> VerificationReport:
        """Verify that every local entry is identical in the store."""
        with self._interruptible():
            return self._verifier().verify_local(on_result)

    def verify_remote(self, on_result: ResultCallback | None = None) -> VerificationReport:
        """Verify that every remote file can be fetched with a valid checksum."""
        with self._interruptible():
            return self._verifier().verify_remote(on_result)

    @contextmanager
    def _interruptible(self) -> Iterator[None]:
        """Turn Ctrl-C into a cancelled context and a TransferInterrupted."""
        try:
            yield
        except KeyboardInterrupt:
            self.context.cancel()
            raise TransferInterrupted() from None

    def _verifier(self) -> VerificationEngine:
        return VerificationEngine(
            self.client,
            self.local_root,
            context=self.context,
            poll_interval=self.config.poll_interval_seconds,
        )

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> TransferManager:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
