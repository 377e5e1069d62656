# config/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for the GTFS importer.

Handles loading settings from Pydantic model defaults, YAML (or JSON)
files, environment variables, and command-line arguments, applying a
specific order of precedence:
1. Pydantic Model Defaults
2. Environment Variables (via Pydantic's BaseSettings)
3. YAML Configuration File
4. Command-Line Arguments
"""

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from pydantic import ValidationError

from processors.gtfs.errors import ConfigurationError

from .config_models import ImportSettings

module_logger = logging.getLogger(__name__)


def _deep_update(
    source: Dict[str, Any], overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Recursively updates `source` with values from `overrides`.

    Nested dictionaries are merged key by key; any other value in
    `overrides` replaces the one in `source`. None values never replace an
    existing value.
    """
    for key, value in overrides.items():
        if (
            isinstance(value, dict)
            and key in source
            and isinstance(source[key], dict)
        ):
            source[key] = _deep_update(source[key], value)
        elif value is not None:
            source[key] = value
        elif key not in source:
            source[key] = value
    return source


def _read_config_file(
    config_path: Path, logger_to_use: logging.Logger
) -> Dict[str, Any]:
    if not config_path.is_file():
        logger_to_use.info(
            f"Configuration file '{config_path}' not found. Using defaults, environment variables, and CLI args."
        )
        return {}
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            # JSON is a subset of YAML, so config.json files load here too.
            file_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigurationError(
            f"Could not parse config file '{config_path}': {e}"
        ) from e
    except OSError as e:
        raise ConfigurationError(
            f"Could not read config file '{config_path}': {e}"
        ) from e

    if file_data is None:
        return {}
    if not isinstance(file_data, dict):
        raise ConfigurationError(
            f"Config file '{config_path}' does not contain a mapping at the top level."
        )
    logger_to_use.info(f"Loaded configuration from {config_path}")
    return _camel_case_aliases(file_data)


def _camel_case_aliases(file_data: Dict[str, Any]) -> Dict[str, Any]:
    """Accept the camelCase spellings of top-level keys found in JSON config files."""
    aliases = {"skipDelete": "skip_delete", "downloadDir": "download_dir"}
    for old_key, new_key in aliases.items():
        if old_key in file_data and new_key not in file_data:
            file_data[new_key] = file_data.pop(old_key)
    return file_data


def load_import_settings(
    cli_args: Optional[argparse.Namespace] = None,
    config_file_path: Union[str, Path, None] = "config.yaml",
    current_logger: Optional[logging.Logger] = None,
) -> ImportSettings:
    """
    Loads importer settings with the following precedence:
    1. Pydantic Model Defaults.
    2. Environment Variables (loaded by BaseSettings).
    3. Values from the YAML/JSON configuration file.
    4. Command-Line Arguments (highest precedence).

    Args:
        cli_args: Parsed command-line arguments (from argparse).
        config_file_path: Path to the configuration file. None skips the file.
        current_logger: Optional logger to use instead of the module logger.

    Returns:
        An instance of ImportSettings with the fully resolved configuration.

    Raises:
        ConfigurationError: If the config file cannot be parsed or the merged
            values fail validation.
    """
    logger_to_use = current_logger if current_logger else module_logger

    settings_after_env_and_defaults = ImportSettings()
    current_values_dict = settings_after_env_and_defaults.model_dump(
        exclude_defaults=False
    )
    # password is excluded from dumps; keep the one BaseSettings resolved.
    current_values_dict["pg"]["password"] = settings_after_env_and_defaults.pg.password

    if config_file_path is not None:
        file_data = _read_config_file(Path(config_file_path), logger_to_use)
        current_values_dict = _deep_update(current_values_dict, file_data)

    if cli_args is not None:
        cli_overrides: Dict[str, Any] = {}
        if getattr(cli_args, "skip_delete", False):
            cli_overrides["skip_delete"] = True
        if getattr(cli_args, "continue_on_error", False):
            cli_overrides["continue_on_error"] = True
        if getattr(cli_args, "download_dir", None):
            cli_overrides["download_dir"] = cli_args.download_dir
        if cli_overrides:
            logger_to_use.debug(f"Applying CLI overrides: {sorted(cli_overrides)}")
            current_values_dict = _deep_update(current_values_dict, cli_overrides)

    try:
        return ImportSettings(**current_values_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid importer configuration: {e}") from e
