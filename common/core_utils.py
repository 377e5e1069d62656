#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Core utility functions for the project.

This module provides helper functions for:
- Logging setup, including in-place progress lines.
- Agency-keyed log adapters used by the import pipeline.
- A single `log_import` helper used by all pipeline steps.
"""

import logging
import sys
from pathlib import Path
from typing import Any, List, MutableMapping, Optional, Tuple, Union

from config.config_models import SYMBOLS_DEFAULT, ImportSettings

module_logger = logging.getLogger(__name__)

DETAILED_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(module)s.%(funcName)s:%(lineno)d - %(message)s"
SIMPLE_LOG_FORMAT_WITH_PREFIX_PLACEHOLDER = "{log_prefix}%(asctime)s - %(levelname)s - %(symbol)s %(name)s - %(message)s"
SIMPLE_LOG_FORMAT_NO_PREFIX = (
    "%(asctime)s - %(levelname)s - %(symbol)s %(name)s - %(message)s"
)


class SymbolFormatter(logging.Formatter):
    """
    A custom formatter that adds symbols to log messages based on the log level.
    """

    def __init__(
        self, fmt=None, datefmt=None, style="%", validate=True, symbols=None
    ):
        super().__init__(fmt, datefmt, style, validate)
        self.symbols = symbols or SYMBOLS_DEFAULT

    def format(self, record):
        if record.levelno == logging.DEBUG:
            record.symbol = self.symbols.get("debug", "🐛")
        elif record.levelno == logging.INFO:
            record.symbol = self.symbols.get("info", "ℹ️")
        elif record.levelno == logging.WARNING:
            record.symbol = self.symbols.get("warning", "⚠️")
        elif record.levelno == logging.ERROR:
            record.symbol = self.symbols.get("error", "❌")
        elif record.levelno == logging.CRITICAL:
            record.symbol = self.symbols.get("critical", "🔥")
        else:
            record.symbol = ""

        return super().format(record)


class ProgressStreamHandler(logging.StreamHandler):
    """
    Stream handler that lets progress records overwrite each other.

    A record logged with ``extra={"overwrite": True}`` is terminated with a
    carriage return, so the next record is written over it on a terminal.
    """

    def emit(self, record: logging.LogRecord) -> None:
        self.terminator = "\r" if getattr(record, "overwrite", False) else "\n"
        super().emit(record)


class AgencyLogAdapter(logging.LoggerAdapter):
    """
    Prefixes messages with the agency key and tags records with it.

    Unlike the stock LoggerAdapter, extras passed on the call are merged
    with the adapter's own extras instead of being replaced by them.
    """

    def __init__(self, logger: logging.Logger, agency_key: str):
        super().__init__(logger, {"agency_key": agency_key})
        self.agency_key = agency_key

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return f"{self.agency_key}: {msg}", kwargs


def setup_logging(
    log_level: int = logging.INFO,
    log_file: Optional[str] = None,
    log_to_console: bool = True,
    log_format_str: Optional[str] = None,
    log_prefix: Optional[str] = None,
) -> None:
    """
    Configures logging for the importer.

    Log records can be sent to a file, the console, or both. Console output
    goes through a ProgressStreamHandler so that repeated progress lines
    overwrite one another.

    Args:
        log_level: The logging level to configure. Defaults to logging.INFO.
        log_file: Optional file path; records are appended to it when given.
        log_to_console: Whether to log to stdout. Defaults to True.
        log_format_str: A custom log format string. May contain a
            ``{log_prefix}`` placeholder.
        log_prefix: An optional string to prefix log messages with.
    """
    handlers: List[logging.Handler] = []
    if log_file:
        try:
            log_file_path = Path(log_file)
            log_file_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_file_path, mode="a")
            handlers.append(file_handler)
        except OSError as e:
            print(
                f"Warning: Could not create file handler for log file {log_file}: {e}",
                file=sys.stderr,
            )

    if log_to_console:
        handlers.append(ProgressStreamHandler(sys.stdout))

    if not handlers:  # pragma: no cover
        handlers.append(ProgressStreamHandler(sys.stdout))
        if log_level > logging.INFO:
            log_level = logging.INFO

    actual_prefix = (
        (log_prefix.strip() + " ")
        if log_prefix and log_prefix.strip()
        else ""
    )

    if log_format_str:
        if "{log_prefix}" in log_format_str:
            final_format_str = log_format_str.format(log_prefix=actual_prefix)
        else:
            final_format_str = actual_prefix + log_format_str
    elif actual_prefix:
        final_format_str = SIMPLE_LOG_FORMAT_WITH_PREFIX_PLACEHOLDER.format(
            log_prefix=actual_prefix
        )
    else:
        final_format_str = SIMPLE_LOG_FORMAT_NO_PREFIX

    formatter = SymbolFormatter(
        fmt=final_format_str,
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    for handler in handlers:
        handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    for handler in handlers:
        root_logger.addHandler(handler)

    module_logger.debug(
        f"Logging configured. Level: {logging.getLevelName(log_level)}. Format: '{final_format_str}'"
    )


def log_import(
    message: str,
    level: str = "info",
    current_logger: Optional[Union[logging.Logger, logging.LoggerAdapter]] = None,
    settings: Optional[ImportSettings] = None,
    overwrite: bool = False,
    exc_info: bool = False,
) -> None:
    """
    Logs an import pipeline message at the given level.

    Args:
        message: The log message to be recorded.
        level: "debug", "info", "success", "warning", "error" or "critical".
            "success" is logged at INFO level with the success symbol.
        current_logger: Logger or adapter to use. Defaults to the module logger.
        settings: Optional settings supplying the log symbols.
        overwrite: Hint that the next progress line may overwrite this one.
        exc_info: Include exception details in the record.
    """
    effective_logger = current_logger if current_logger else module_logger
    extra = {"overwrite": overwrite}

    if level == "success":
        symbols = settings.symbols if settings else SYMBOLS_DEFAULT
        message = f"{symbols.get('success', '✅')} {message}"
        effective_logger.info(message, exc_info=exc_info, extra=extra)
    elif level == "warning":
        effective_logger.warning(message, exc_info=exc_info, extra=extra)
    elif level == "error":
        effective_logger.error(message, exc_info=exc_info, extra=extra)
    elif level == "critical":
        effective_logger.critical(message, exc_info=exc_info, extra=extra)
    elif level == "debug":
        effective_logger.debug(message, exc_info=exc_info, extra=extra)
    else:
        effective_logger.info(message, exc_info=exc_info, extra=extra)
