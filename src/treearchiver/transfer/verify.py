"""
Verification engine.

Two independent, read-only passes: local to remote walks the local tree in
order on a single thread; remote to local fetches every remote file through
a bounded pool into a discarding sink so the client verifies its checksum.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from treearchiver.client.base import TransferClient
from treearchiver.core.context import TransferContext
from treearchiver.core.exceptions import TransferError, TransferInterrupted
from treearchiver.core.logging import get_logger
from treearchiver.core.models import (
    RemoteEntry,
    UnitKind,
    VerificationEntry,
    VerificationReport,
    VerificationResult,
)
from treearchiver.localfs.file_ops import (
    LocalEntry,
    checksum,
    checksum_bytes,
    iter_tree,
    link_payload,
)
from treearchiver.transfer.pool import BoundedExecutor, worker_count
from treearchiver.transfer.tracking import CompletionTracker

logger = get_logger(__name__)

ResultCallback = Callable[[VerificationEntry], None]


class NullSink:
    """Writable that discards everything."""

    def write(self, data: bytes) -> int:
        return len(data)

    def flush(self) -> None:
        pass


class VerificationEngine:
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

    # ==================== Local -> Remote ====================

    def verify_local(self, on_result: ResultCallback | None = None) -> VerificationReport:
        """Check every local entry against the store, in walk order."""
        report = VerificationReport(direction="local")

        for entry in iter_tree(self.local_root):
            self.context.check_cancelled()
            remote_path = self.client.convert_local_path_to_remote_path(entry.path, self.local_root)
            result = self._verify_local_entry(entry, remote_path)
            verification = VerificationEntry(result=result, remote_path=remote_path, local_path=entry.path)
            report.entries.append(verification)
            if on_result is not None:
                on_result(verification)

        report.ended_at = datetime.now()
        logger.info(
            "Local verification finished",
            total=report.total,
            failures=len(report.failures()),
        )
        return report

    def _verify_local_entry(self, entry: LocalEntry, remote_path: str) -> VerificationResult:
        try:
            if entry.kind is UnitKind.DIRECTORY:
                return self.client.verify_directory(remote_path)
            elif entry.kind is UnitKind.SYMBOLIC_LINK:
                payload = link_payload(entry.path)
                return self.client.verify_file(remote_path, len(payload), checksum_bytes(payload))
            else:
                return self.client.verify_file(remote_path, entry.size, checksum(entry.path))
        except FileNotFoundError:
            return VerificationResult.MISSING_LOCAL
        except (TransferError, OSError) as e:
            logger.error("Unable to verify entry", path=str(entry.path), error=str(e))
            return VerificationResult.ERROR

    # ==================== Remote -> Local ====================

    def verify_remote(self, on_result: ResultCallback | None = None) -> VerificationReport:
        """Fetch and checksum every remote file. Directories are skipped."""
        report = VerificationReport(direction="remote")
        tracker = CompletionTracker()
        lock = threading.Lock()
        pool = BoundedExecutor(worker_count(self.client), "verify", context=self.context)
        finished = False

        def verify(entry: RemoteEntry) -> None:
            try:
                result = self.client.download(entry.remote_path, NullSink())  # type: ignore[arg-type]
            except Exception as e:
                logger.error("Unable to verify remote object", path=entry.remote_path, error=str(e))
                result = VerificationResult.ERROR

            verification = VerificationEntry(result=result, remote_path=entry.remote_path)
            try:
                with lock:
                    report.entries.append(verification)
                    if on_result is not None:
                        on_result(verification)
            finally:
                tracker.mark_completed()

        try:
            for entry in self.client.list_remote_entries():
                if entry.is_directory:
                    continue
                self.context.check_cancelled()
                tracker.observe()
                pool.submit(verify, entry)

            tracker.seal()
            finished = tracker.wait(self.context, self.poll_interval)
        finally:
            pool.shutdown(wait=True, cancel_futures=not finished)

        if not finished:
            raise TransferInterrupted("Remote verification was interrupted")

        report.ended_at = datetime.now()
        logger.info(
            "Remote verification finished",
            verified=tracker.completed,
            total=tracker.observed,
            failures=len(report.failures()),
        )
        return report
