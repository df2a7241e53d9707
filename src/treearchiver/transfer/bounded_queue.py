"""
Bounded transfer queue.

Connects the loader's producer threads to the upload workers. Producers
block when the queue is full, which caps how many staged artifacts sit on
local disk ahead of upload capacity.
"""

from __future__ import annotations

import queue
import threading

from treearchiver.core.context import TransferContext
from treearchiver.core.models import TransferUnit

PUT_SLICE_SECONDS = 0.25


class BoundedTransferQueue:
    """Blocking, capacity-limited channel of transfer units."""

    def __init__(self, capacity: int) -> None:
        if capacity < 1:
            raise ValueError("Queue capacity must be at least 1")
        self.capacity = capacity
        self._queue: queue.Queue[TransferUnit] = queue.Queue(maxsize=capacity)
        self._lock = threading.Lock()
        self._high_water_mark = 0

    @property
    def high_water_mark(self) -> int:
        """Largest number of units observed in the queue at once."""
        with self._lock:
            return self._high_water_mark

    def qsize(self) -> int:
        return self._queue.qsize()

    def _record_size(self) -> None:
        size = self._queue.qsize()
        with self._lock:
            if size > self._high_water_mark:
                self._high_water_mark = size

    def put(self, unit: TransferUnit, context: TransferContext | None = None) -> None:
        """Enqueue ``unit``, blocking while the queue is full.

        Raises TransferInterrupted if the run is cancelled while waiting.
        """
        while True:
            if context is not None:
                context.check_cancelled()
            try:
                self._queue.put(unit, timeout=PUT_SLICE_SECONDS)
            except queue.Full:
                continue
            self._record_size()
            return

    def offer(self, unit: TransferUnit, timeout: float) -> bool:
        """Enqueue ``unit`` if space frees up within ``timeout`` seconds."""
        try:
            self._queue.put(unit, timeout=timeout)
        except queue.Full:
            return False
        self._record_size()
        return True

    def poll(self, timeout: float) -> TransferUnit | None:
        """Take a unit, or return None once ``timeout`` elapses."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[TransferUnit]:
        """Remove and return every queued unit."""
        units: list[TransferUnit] = []
        while True:
            try:
                units.append(self._queue.get_nowait())
            except queue.Empty:
                return units
