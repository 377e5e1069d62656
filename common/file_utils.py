# common/file_utils.py
# -*- coding: utf-8 -*-
"""
File system utility functions for the importer's scratch directories.
"""

import logging
import shutil
from pathlib import Path
from typing import Optional, Union

from config.config_models import SYMBOLS_DEFAULT, ImportSettings

from .core_utils import log_import

module_logger = logging.getLogger(__name__)


def cleanup_directory(
    directory_path: Path,
    settings: Optional[ImportSettings] = None,
    ensure_dir_exists_after: bool = False,
    current_logger: Optional[Union[logging.Logger, logging.LoggerAdapter]] = None,
) -> None:
    """
    Removes the specified directory and its contents, and optionally
    recreates it empty afterwards.

    Failures are logged rather than raised: cleanup runs in `finally`
    blocks and must not mask the error that is already propagating.

    Parameters:
        directory_path (Path): The directory to remove.
        settings (Optional[ImportSettings]): Settings supplying log symbols.
        ensure_dir_exists_after (bool): Recreate the directory after cleanup.
        current_logger: The logger to use. Defaults to the module logger.
    """
    logger_to_use = current_logger if current_logger else module_logger
    symbols = settings.symbols if settings else SYMBOLS_DEFAULT

    log_import(
        f"Attempting to clean directory: {directory_path}",
        "debug",
        logger_to_use,
        settings,
    )
    if directory_path.exists():
        if directory_path.is_dir():
            try:
                shutil.rmtree(directory_path)
                log_import(
                    f"Removed directory and its contents: {directory_path}",
                    "debug",
                    logger_to_use,
                    settings,
                )
            except OSError as e:
                log_import(
                    f"{symbols.get('error', '❌')} Error removing directory {directory_path}: {e}",
                    "error",
                    logger_to_use,
                    settings,
                    exc_info=True,
                )
        else:
            log_import(
                f"{symbols.get('warning', '!')} Path {directory_path} exists but is not a directory.",
                "warning",
                logger_to_use,
                settings,
            )

    if ensure_dir_exists_after:
        try:
            directory_path.mkdir(parents=True, exist_ok=True)
            log_import(
                f"Ensured directory exists: {directory_path}",
                "debug",
                logger_to_use,
                settings,
            )
        except OSError as e:
            log_import(
                f"{symbols.get('error', '❌')} Error creating directory {directory_path} after cleanup: {e}",
                "error",
                logger_to_use,
                settings,
                exc_info=True,
            )
