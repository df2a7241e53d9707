"""
TreeArchiver structured logging.

Provides structured output for transfer runs so that retries, skipped
subtrees and completion counts can be audited after the fact.
"""

from __future__ import annotations

import logging
import sys
import threading
import time
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from treearchiver.core.exceptions import TransferInterrupted

if TYPE_CHECKING:
    from treearchiver.core.config import LoggingConfig


LOG_FILE_PREFIX = "treearchiver"

_configured = False


def add_timestamp(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add ISO format timestamp to log events."""
    event_dict["timestamp"] = datetime.now().isoformat()
    return event_dict


def add_log_level(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add log level to event dict."""
    event_dict["level"] = method_name.upper()
    return event_dict


def add_thread_name(
    logger: WrappedLogger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Record which pool thread emitted the event."""
    event_dict.setdefault("thread", threading.current_thread().name)
    return event_dict


def log_file_path(directory: Path, day: datetime | None = None) -> Path:
    """Path of the daily log file inside ``directory``."""
    day = day or datetime.now()
    return directory / f"{LOG_FILE_PREFIX}_{day:%Y%m%d}.log"


def build_handlers(config: LoggingConfig) -> list[logging.Handler]:
    """Console handler at the configured level, file handler at DEBUG."""
    handlers: list[logging.Handler] = []

    if config.console_enabled:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(config.level)
        handlers.append(console_handler)

    if config.file_enabled:
        config.log_directory.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file_path(config.log_directory), encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    return handlers or [logging.NullHandler()]


def build_processors(json_format: bool) -> list[Processor]:
    processors: list[Processor] = [
        structlog.stdlib.add_logger_name,
        add_timestamp,
        add_log_level,
        add_thread_name,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if json_format:
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))
    return processors


def setup_logging(config: LoggingConfig, force: bool = False) -> None:
    """Configure structured logging once per process.

    Later calls are ignored unless ``force`` is set.
    """
    global _configured

    if _configured and not force:
        return

    logging.basicConfig(
        level=logging.DEBUG,
        handlers=build_handlers(config),
        format="%(message)s",
        force=True,
    )

    structlog.configure(
        processors=build_processors(config.json_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    _configured = True


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name or "treearchiver")


class OperationLogger:
    """Logs the start and outcome of a run phase with its duration.

    Interruptions are logged as warnings; any other exception as an error.
    """

    def __init__(
        self,
        operation: str,
        logger: structlog.stdlib.BoundLogger | None = None,
        **context: Any,
    ):
        self.operation = operation
        self.logger = logger or get_logger()
        self.context = context
        self._started: float | None = None

    @property
    def elapsed(self) -> float:
        if self._started is None:
            return 0.0
        return time.monotonic() - self._started

    def __enter__(self) -> OperationLogger:
        self._started = time.monotonic()
        self.logger.info(f"Starting {self.operation}", operation=self.operation, **self.context)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        duration = round(self.elapsed, 3)

        if exc_type is None:
            self.logger.info(
                f"Completed {self.operation}",
                operation=self.operation,
                duration_seconds=duration,
                **self.context,
            )
            return

        if issubclass(exc_type, (TransferInterrupted, KeyboardInterrupt)):
            self.logger.warning(
                f"Interrupted {self.operation}",
                operation=self.operation,
                duration_seconds=duration,
                **self.context,
            )
        else:
            self.logger.error(
                f"Failed {self.operation}",
                operation=self.operation,
                duration_seconds=duration,
                error_type=exc_type.__name__,
                error=str(exc_val),
                **self.context,
            )

    def update(self, **additional_context: Any) -> None:
        """Update the operation context."""
        self.context.update(additional_context)
