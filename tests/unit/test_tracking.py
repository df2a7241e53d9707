"""
Tests for treearchiver.transfer.tracking and treearchiver.transfer.progress modules.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from treearchiver.core.context import TransferContext
from treearchiver.transfer.progress import ProgressAccumulator
from treearchiver.transfer.tracking import AtomicCounter, CompletionTracker


class RecordingDisplay:
    """Progress display that remembers every advance."""

    def __init__(self) -> None:
        self.advances: list[int] = []
        self._lock = threading.Lock()

    def advance(self, nbytes: int) -> None:
        with self._lock:
            self.advances.append(nbytes)

    @property
    def total(self) -> int:
        return sum(self.advances)


class TestAtomicCounter:
    """Tests for AtomicCounter."""

    def test_increment_and_add(self) -> None:
        counter = AtomicCounter()
        assert counter.increment() == 1
        assert counter.add(4) == 5
        assert counter.value == 5

    def test_concurrent_increments(self) -> None:
        counter = AtomicCounter()
        with ThreadPoolExecutor(max_workers=8) as pool:
            for _ in range(1000):
                pool.submit(counter.increment)
        assert counter.value == 1000


class TestCompletionTracker:
    """Tests for CompletionTracker."""

    def test_known_target(self) -> None:
        tracker = CompletionTracker(target=2)
        assert tracker.is_sealed
        assert not tracker.is_finished

        tracker.mark_completed()
        tracker.mark_completed()
        assert tracker.is_finished
        assert tracker.completed == 2

    def test_unsealed_never_finished(self) -> None:
        tracker = CompletionTracker()
        tracker.observe()
        tracker.mark_completed()

        # Listing may still produce entries
        assert not tracker.is_finished

        tracker.seal()
        assert tracker.target == 1
        assert tracker.is_finished

    def test_empty_listing_finishes_on_seal(self) -> None:
        tracker = CompletionTracker()
        tracker.seal()
        assert tracker.is_finished
        assert tracker.wait(interval=0.01)

    def test_abandoned_counts_toward_finish(self) -> None:
        tracker = CompletionTracker(target=2)
        tracker.mark_completed()
        tracker.mark_abandoned("/local/a.txt")

        assert tracker.is_finished
        assert tracker.completed == 1
        assert tracker.abandoned == ["/local/a.txt"]

    def test_missing_counts_toward_finish(self) -> None:
        tracker = CompletionTracker(target=3)
        tracker.mark_completed()
        tracker.mark_missing(0)
        assert not tracker.is_finished

        tracker.mark_missing(2)
        assert tracker.missing == 2
        assert tracker.is_finished

    def test_wait_wakes_on_completion(self) -> None:
        tracker = CompletionTracker(target=1)
        timer = threading.Timer(0.05, tracker.mark_completed)
        timer.start()

        assert tracker.wait(interval=5) is True
        timer.join()

    def test_wait_returns_on_cancel(self) -> None:
        tracker = CompletionTracker(target=1)
        context = TransferContext()
        timer = threading.Timer(0.05, context.cancel)
        timer.start()

        start = time.monotonic()
        assert tracker.wait(context, interval=0.02) is False
        assert time.monotonic() - start < 2
        timer.join()


class TestProgressAccumulator:
    """Tests for ProgressAccumulator."""

    def test_records_before_attach_are_caught_up(self) -> None:
        progress = ProgressAccumulator()
        progress.record(10)
        progress.record(5)
        display = RecordingDisplay()

        progress.attach(display)
        assert display.advances == []

        progress.record(3)

        assert display.advances == [18]
        assert progress.transferred == 18
        assert progress.is_attached

    def test_records_after_catch_up_go_straight_through(self) -> None:
        progress = ProgressAccumulator()
        display = RecordingDisplay()
        progress.attach(display)

        progress.record(4)
        progress.record(6)

        assert display.advances == [4, 6]

    def test_flush_applies_pending_bytes(self) -> None:
        progress = ProgressAccumulator()
        progress.record(7)
        display = RecordingDisplay()
        progress.attach(display)

        progress.flush()
        progress.flush()

        assert display.advances == [7]

    def test_flush_without_display(self) -> None:
        progress = ProgressAccumulator()
        progress.record(7)
        progress.flush()
        assert progress.transferred == 7
        assert not progress.is_attached

    def test_attach_twice_rejected(self) -> None:
        progress = ProgressAccumulator()
        progress.attach(RecordingDisplay())
        with pytest.raises(RuntimeError):
            progress.attach(RecordingDisplay())

    def test_concurrent_records_counted_once(self) -> None:
        progress = ProgressAccumulator()
        display = RecordingDisplay()

        with ThreadPoolExecutor(max_workers=8) as pool:
            for i in range(500):
                pool.submit(progress.record, 2)
                if i == 250:
                    pool.submit(progress.attach, display)
        progress.flush()

        assert progress.transferred == 1000
        assert display.total == 1000
