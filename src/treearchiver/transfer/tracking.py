"""
Completion tracking shared by the worker pools of a run.

These counters are the only cross-worker mutable state in the engine apart
from the progress accumulator.
"""

from __future__ import annotations

import threading

from treearchiver.core.context import TransferContext


class AtomicCounter:
    """Integer counter safe to update from many threads."""

    def __init__(self, initial: int = 0) -> None:
        self._value = initial
        self._lock = threading.Lock()

    def add(self, amount: int) -> int:
        with self._lock:
            self._value += amount
            return self._value

    def increment(self) -> int:
        return self.add(1)

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class CompletionTracker:
    """Counts finished work against a target that may not be known yet.

    Uploads know their target up front. Downloads and remote verification
    discover it from a lazy listing, so they ``observe()`` entries as they
    arrive and ``seal()`` the tracker once the listing is exhausted. Until
    sealed, the tracker never reports itself finished.
    """

    def __init__(self, target: int | None = None) -> None:
        self._condition = threading.Condition()
        self._observed = 0
        self._completed = 0
        self._abandoned: list[str] = []
        self._missing = 0
        self._target = target

    @property
    def target(self) -> int | None:
        with self._condition:
            return self._target

    @property
    def observed(self) -> int:
        with self._condition:
            return self._observed

    @property
    def completed(self) -> int:
        with self._condition:
            return self._completed

    @property
    def abandoned(self) -> list[str]:
        with self._condition:
            return list(self._abandoned)

    @property
    def is_sealed(self) -> bool:
        with self._condition:
            return self._target is not None

    @property
    def is_finished(self) -> bool:
        with self._condition:
            return self._finished_locked()

    def _finished_locked(self) -> bool:
        if self._target is None:
            return False
        return self._completed + len(self._abandoned) + self._missing >= self._target

    def observe(self) -> int:
        """Count one more entry seen while the target is still unknown."""
        with self._condition:
            self._observed += 1
            return self._observed

    def seal(self, target: int | None = None) -> None:
        """Fix the target, defaulting to the number of observed entries."""
        with self._condition:
            self._target = self._observed if target is None else target
            self._condition.notify_all()

    def mark_completed(self) -> int:
        with self._condition:
            self._completed += 1
            if self._finished_locked():
                self._condition.notify_all()
            return self._completed

    def mark_abandoned(self, path: str) -> None:
        """Give up on one unit so waiters stop expecting it."""
        with self._condition:
            self._abandoned.append(path)
            if self._finished_locked():
                self._condition.notify_all()

    def mark_missing(self, count: int) -> None:
        """Stop expecting ``count`` units that will never be produced."""
        if count <= 0:
            return
        with self._condition:
            self._missing += count
            self._condition.notify_all()

    @property
    def missing(self) -> int:
        with self._condition:
            return self._missing

    def wait(self, context: TransferContext | None = None, interval: float = 1.0) -> bool:
        """Block until finished or the run is cancelled.

        The condition is re-checked every ``interval`` seconds so a
        cancellation is noticed even without a notifying completion.
        Returns True when finished.
        """
        with self._condition:
            while not self._finished_locked():
                if context is not None and context.is_cancelled:
                    return False
                self._condition.wait(interval)
            return True
