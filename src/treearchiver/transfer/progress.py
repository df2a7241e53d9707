"""
Byte progress shared by the upload workers.

The display is created by the caller once the transfer totals are known,
which may be after workers have already finished some uploads. Bytes
recorded before the display exists are accumulated and applied to it in a
single catch-up step.
"""

from __future__ import annotations

import threading
from typing import Protocol

from treearchiver.transfer.tracking import AtomicCounter


class ProgressDisplay(Protocol):
    def advance(self, nbytes: int) -> None: ...


class ProgressAccumulator:
    """Counts transferred bytes and forwards them to a late-attached display."""

    def __init__(self) -> None:
        self._transferred = AtomicCounter()
        self._display: ProgressDisplay | None = None
        self._caught_up = False
        self._lock = threading.Lock()

    @property
    def transferred(self) -> int:
        return self._transferred.value

    @property
    def is_attached(self) -> bool:
        return self._caught_up

    def attach(self, display: ProgressDisplay) -> None:
        """Make ``display`` available. Accumulated bytes reach it on the next record or flush."""
        with self._lock:
            if self._display is not None:
                raise RuntimeError("A progress display is already attached")
            self._display = display

    def record(self, nbytes: int) -> None:
        if self._caught_up:
            self._transferred.add(nbytes)
            self._display.advance(nbytes)  # type: ignore[union-attr]
            return

        with self._lock:
            self._transferred.add(nbytes)
            if self._caught_up:
                self._display.advance(nbytes)  # type: ignore[union-attr]
            else:
                self._catch_up_locked()

    def flush(self) -> None:
        """Apply any pending catch-up, e.g. when no record followed the attach."""
        if self._caught_up:
            return
        with self._lock:
            self._catch_up_locked()

    def _catch_up_locked(self) -> None:
        if self._display is None or self._caught_up:
            return
        pending = self._transferred.value
        if pending:
            self._display.advance(pending)
        self._caught_up = True
