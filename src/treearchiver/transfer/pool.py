"""
Worker pools used by the transfer engine.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any

from treearchiver.client.base import TransferClient
from treearchiver.core.context import TransferContext
from treearchiver.core.logging import get_logger

logger = get_logger(__name__)

# Connections kept free for listing and control requests.
RESERVED_CONNECTIONS = 2

SUBMIT_SLICE_SECONDS = 0.25


def worker_count(client: TransferClient) -> int:
    """Size of every pool that talks to the remote store."""
    return max(client.maximum_concurrent_connections() - RESERVED_CONNECTIONS, 1)


class BoundedExecutor:
    """Thread pool whose backlog of unstarted tasks is capped.

    ``submit`` blocks once ``max_workers + backlog`` tasks are pending, so a
    producer walking a huge tree or a lazy listing never buffers more than
    that many tasks in memory.
    """

    def __init__(
        self,
        max_workers: int,
        name: str,
        backlog: int | None = None,
        context: TransferContext | None = None,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.name = name
        self.max_workers = max_workers
        self._context = context
        self._slots = threading.BoundedSemaphore(max_workers + (backlog if backlog is not None else max_workers))
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix=f"{name}-thread")

    def submit(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Future[Any]:
        """Schedule ``fn``, blocking while the backlog is full.

        Raises TransferInterrupted if the run is cancelled while waiting.
        """
        while not self._slots.acquire(timeout=SUBMIT_SLICE_SECONDS):
            if self._context is not None:
                self._context.check_cancelled()

        try:
            future = self._executor.submit(self._run, fn, *args, **kwargs)
        except BaseException:
            self._slots.release()
            raise
        future.add_done_callback(lambda _: self._slots.release())
        return future

    def _run(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return fn(*args, **kwargs)
        except Exception as e:
            logger.error(
                "Uncaught exception in worker pool",
                pool=self.name,
                error=str(e),
                exc_info=True,
            )
            raise

    def shutdown(self, wait: bool = True, cancel_futures: bool = False) -> None:
        logger.debug("Shutting down worker pool", pool=self.name)
        self._executor.shutdown(wait=wait, cancel_futures=cancel_futures)

    def __enter__(self) -> BoundedExecutor:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown(wait=True)
