"""
Download orchestrator.

Replicates the remote tree below the local root. The remote listing is
lazy and consumed once, so the number of entries is only known after it is
exhausted; completion is tracked against the count observed so far.
"""

from __future__ import annotations

import os
import tempfile
import threading
from datetime import datetime
from pathlib import Path

from treearchiver.client.base import TransferClient
from treearchiver.core.context import TransferContext
from treearchiver.core.exceptions import TransferError, TransferInterrupted
from treearchiver.core.logging import get_logger
from treearchiver.core.models import DownloadSummary, RemoteEntry
from treearchiver.transfer.pool import BoundedExecutor, worker_count
from treearchiver.transfer.tracking import CompletionTracker

logger = get_logger(__name__)


def _same_mtime(a: float, b: float) -> bool:
    return round(a * 1000) == round(b * 1000)


class DownloadOrchestrator:
    """Downloads every remote entry into the local root."""

    def __init__(
        self,
        client: TransferClient,
        local_root: Path,
        context: TransferContext | None = None,
        poll_interval: float = 1.0,
    ) -> None:
        self.client = client
        self.local_root = Path(local_root).absolute()
        self.context = context or TransferContext()
        self.poll_interval = poll_interval
        self._lock = threading.Lock()

    def run(self) -> DownloadSummary:
        summary = DownloadSummary()
        tracker = CompletionTracker()
        pool = BoundedExecutor(worker_count(self.client), "download", context=self.context)
        finished = False

        try:
            for entry in self.client.list_remote_entries():
                self.context.check_cancelled()
                tracker.observe()
                local_path = self.client.convert_remote_path_to_local_path(
                    entry.remote_path, self.local_root
                )

                if entry.is_directory:
                    summary.directories += 1
                    self._reconcile_directory(local_path, entry, summary)
                    tracker.mark_completed()
                else:
                    summary.files += 1
                    if not local_path.exists():
                        local_path.parent.mkdir(parents=True, exist_ok=True)
                    pool.submit(self._download, entry, local_path, tracker, summary)

            tracker.seal()
            finished = tracker.wait(self.context, self.poll_interval)
        finally:
            pool.shutdown(wait=True, cancel_futures=not finished)
            summary.observed = tracker.observed
            summary.processed = tracker.completed
            summary.ended_at = datetime.now()

        if not finished:
            raise TransferInterrupted("Download was interrupted")

        logger.info(
            "Download finished",
            processed=summary.processed,
            observed=summary.observed,
            failed=len(summary.failed),
        )
        return summary

    def _record_failure(self, summary: DownloadSummary, remote_path: str) -> None:
        with self._lock:
            summary.failed.append(remote_path)

    def _reconcile_directory(
        self, local_path: Path, entry: RemoteEntry, summary: DownloadSummary
    ) -> None:
        try:
            if local_path.is_dir():
                if not _same_mtime(local_path.stat().st_mtime, entry.last_modified):
                    os.utime(local_path, (entry.last_modified, entry.last_modified))
            else:
                local_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(
                "Unable to reconcile directory",
                path=str(local_path),
                error=str(e),
            )
            self._record_failure(summary, entry.remote_path)

    def _download(
        self,
        entry: RemoteEntry,
        local_path: Path,
        tracker: CompletionTracker,
        summary: DownloadSummary,
    ) -> None:
        part_path: Path | None = None
        try:
            fd, name = tempfile.mkstemp(
                dir=local_path.parent, prefix=f".{local_path.name}-", suffix=".part"
            )
            part_path = Path(name)
            with os.fdopen(fd, "wb") as sink:
                result = self.client.download(entry.remote_path, sink)

            if result.is_ok:
                os.replace(part_path, local_path)
                os.utime(local_path, (entry.last_modified, entry.last_modified))
                logger.debug("Download has completed", path=entry.remote_path)
            else:
                logger.warning(
                    "Downloaded object failed verification",
                    path=entry.remote_path,
                    result=result.name,
                )
                self._record_failure(summary, entry.remote_path)
        except (TransferError, OSError) as e:
            logger.error("Error downloading object", path=entry.remote_path, error=str(e))
            self._record_failure(summary, entry.remote_path)
        finally:
            if part_path is not None:
                part_path.unlink(missing_ok=True)
            tracker.mark_completed()
