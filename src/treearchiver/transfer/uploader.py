"""
Upload workers: the consumer side of an upload.

One ``UploadWorker`` instance is shared by every thread of the upload pool;
each thread runs ``run()`` until the completion tracker reports that every
expected object has been handled.
"""

from __future__ import annotations

from pathlib import Path

import humanize

from treearchiver.client.base import TransferClient
from treearchiver.core.context import TransferContext
from treearchiver.core.exceptions import TransferError
from treearchiver.core.logging import get_logger
from treearchiver.core.models import TransferUnit, dispatch_unit
from treearchiver.transfer.bounded_queue import BoundedTransferQueue
from treearchiver.transfer.progress import ProgressAccumulator
from treearchiver.transfer.tracking import AtomicCounter, CompletionTracker

logger = get_logger(__name__)


class UploadWorker:
    """Pulls units off the queue and writes them to the remote store."""

    def __init__(
        self,
        queue: BoundedTransferQueue,
        client: TransferClient,
        local_root: Path,
        tracker: CompletionTracker,
        progress: ProgressAccumulator,
        context: TransferContext,
        poll_interval: float = 1.0,
        max_attempts: int | None = None,
    ) -> None:
        self.queue = queue
        self.client = client
        self.local_root = local_root
        self.tracker = tracker
        self.progress = progress
        self.context = context
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.retries = AtomicCounter()

    def run(self) -> None:
        # A unit that could not be put back on a full queue stays with this
        # thread and is retried on the next iteration.
        pending: TransferUnit | None = None
        while not self.tracker.is_finished and not self.context.is_cancelled:
            if pending is not None:
                unit, pending = pending, None
            else:
                unit = self.queue.poll(self.poll_interval)
                if unit is None:
                    continue

            if not self.upload(unit):
                pending = self._requeue(unit)

        if pending is not None:
            pending.discard_staging()

    def upload(self, unit: TransferUnit) -> bool:
        """Dispatch one unit. Returns True when the remote write succeeded."""
        attempt = unit.record_attempt()
        try:
            remote_path = self.client.convert_local_path_to_remote_path(
                unit.source_path, self.local_root
            )
            nbytes = dispatch_unit(self.client, unit, remote_path)
        except TransferError as e:
            logger.error(
                "Error uploading object. Adding it back to the queue",
                path=str(unit.source_path),
                attempt=attempt,
                error=str(e),
            )
            return False
        except Exception as e:
            logger.error(
                "Unexpected error uploading object. Adding it back to the queue",
                path=str(unit.source_path),
                attempt=attempt,
                error=str(e),
                exc_info=True,
            )
            return False

        self.tracker.mark_completed()
        if unit.is_file:
            self.progress.record(nbytes)
            logger.debug(
                "Upload has completed",
                path=str(unit.source_path),
                size=humanize.naturalsize(nbytes, binary=True),
            )
        return True

    def _requeue(self, unit: TransferUnit) -> TransferUnit | None:
        self.retries.increment()

        if self.max_attempts is not None and unit.attempt_count >= self.max_attempts:
            logger.error(
                "Giving up on object after repeated failures",
                path=str(unit.source_path),
                attempts=unit.attempt_count,
            )
            unit.discard_staging()
            self.tracker.mark_abandoned(str(unit.source_path))
            return None

        if self.queue.offer(unit, timeout=self.poll_interval):
            return None
        return unit
