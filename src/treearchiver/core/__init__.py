"""
TreeArchiver Core - Shared service layer.

Contains configuration, logging, the run context, exceptions and the
data model used by the transfer engine.
"""

from treearchiver.core.config import ArchiverConfig
from treearchiver.core.context import TransferContext
from treearchiver.core.exceptions import (
    ArchiverError,
    CompletionMismatchError,
    TransferError,
    TransferInterrupted,
    TraversalError,
)
from treearchiver.core.logging import get_logger, setup_logging

__all__ = [
    "ArchiverConfig",
    "ArchiverError",
    "CompletionMismatchError",
    "TransferContext",
    "TransferError",
    "TransferInterrupted",
    "TraversalError",
    "get_logger",
    "setup_logging",
]
