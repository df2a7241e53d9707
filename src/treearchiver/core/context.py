"""
TreeArchiver run context.

Carries the interrupt signal shared by every thread of a transfer run, along
with warnings gathered while the run progresses.
"""

from __future__ import annotations

import threading

from treearchiver.core.exceptions import TransferInterrupted
from treearchiver.core.logging import get_logger

logger = get_logger(__name__)


class TransferContext:
    """Context passed to every stage of a run for cancellation and warnings."""

    def __init__(self) -> None:
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._warnings: list[str] = []

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self) -> None:
        """Request that the run stop as soon as possible."""
        if not self._cancelled.is_set():
            logger.info("Transfer cancellation requested")
        self._cancelled.set()

    def check_cancelled(self) -> None:
        """Check if cancelled and raise if so."""
        if self._cancelled.is_set():
            raise TransferInterrupted()

    def add_warning(self, warning: str) -> None:
        """Add a warning to the run summary."""
        with self._lock:
            self._warnings.append(warning)

    def get_warnings(self) -> list[str]:
        """Get all warnings."""
        with self._lock:
            return self._warnings.copy()
