"""
TreeArchiver exception hierarchy.

Per-unit transfer and traversal errors are recoverable and stay inside the
pipeline; completion mismatches and interruptions surface to the caller.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any


class ArchiverError(Exception):
    """Base class for all TreeArchiver errors."""

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.context: dict[str, Any] = dict(context)

    def __str__(self) -> str:
        message = super().__str__()
        if not self.context:
            return message
        details = ", ".join(f"{key}={value}" for key, value in self.context.items())
        return f"{message} ({details})"


class TransferError(ArchiverError):
    """A single object failed to transfer. Recoverable by retry."""

    def __init__(self, message: str, path: str | Path | None = None, **context: Any) -> None:
        if path is not None:
            context["path"] = str(path)
        super().__init__(message, **context)
        self.path = str(path) if path is not None else None


class TraversalError(ArchiverError):
    """A local subtree could not be listed."""

    def __init__(self, message: str, path: str | Path, **context: Any) -> None:
        super().__init__(message, path=str(path), **context)
        self.path = str(path)


class CompletionMismatchError(ArchiverError):
    """Raised when a drained pipeline completed a different number of objects than expected."""

    def __init__(
        self,
        expected: int,
        actual: int,
        abandoned: list[str] | None = None,
        message: str = "Actual number of objects uploaded differs from expected number",
    ) -> None:
        super().__init__(message, expected=expected, actual=actual)
        self.expected = expected
        self.actual = actual
        self.abandoned = list(abandoned or [])


class TransferInterrupted(ArchiverError):
    """Raised when a run is interrupted before it finished."""

    def __init__(self, message: str = "Transfer was interrupted") -> None:
        super().__init__(message)
