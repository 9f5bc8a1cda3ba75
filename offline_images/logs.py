"""Logging capability scoped to a single processing operation."""

from __future__ import annotations

import logging
from typing import Any, MutableMapping, Optional, Tuple

from .config import LogLevel, Settings

PACKAGE_LOGGER = "offline_images"


class OperationLogger(logging.LoggerAdapter):
    """Logger adapter that applies a per-operation verbosity on top of the logger's own."""

    def __init__(
        self,
        logger: logging.Logger,
        verbosity: LogLevel = LogLevel.ERROR,
        context: Optional[str] = None,
    ) -> None:
        super().__init__(logger, {})
        self.verbosity = verbosity
        self.context = context

    def isEnabledFor(self, level: int) -> bool:  # noqa: N802 - logging API name
        if level < self.verbosity.logging_level:
            return False
        return self.logger.isEnabledFor(level)

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        if self.context:
            return f"[{self.context}] {msg}", kwargs
        return msg, kwargs


def operation_logger(
    settings: Settings, context: Optional[str] = None
) -> OperationLogger:
    """Build the logger handed to every component taking part in one operation."""
    return OperationLogger(logging.getLogger(PACKAGE_LOGGER), settings.log_level, context)
