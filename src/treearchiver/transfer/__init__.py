"""
TreeArchiver transfer engine.

Producer/consumer upload pipeline, download orchestration and verification.
"""

from treearchiver.transfer.bounded_queue import BoundedTransferQueue
from treearchiver.transfer.manager import TransferManager
from treearchiver.transfer.progress import ProgressAccumulator
from treearchiver.transfer.tracking import CompletionTracker

__all__ = [
    "BoundedTransferQueue",
    "CompletionTracker",
    "ProgressAccumulator",
    "TransferManager",
]
