# settings/config_loader.py
# -*- coding: utf-8 -*-
"""
Configuration loader for the merge tool.

Handles loading settings from Pydantic model defaults, environment
variables, a YAML file, and command-line arguments, applying this order of
precedence:
1. Pydantic Model Defaults
2. Environment Variables (loaded by Pydantic's BaseSettings)
3. YAML Configuration File
4. Command-Line Arguments
"""

import argparse
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import ValidationError

from .config_models import MergeSettings

module_logger = logging.getLogger(__name__)

# argparse destination -> dotted settings key
CLI_TO_SETTINGS: Dict[str, str] = {
    "output_dir": "output_dir",
    "archive_prefix": "archive_prefix",
    "renamed_id_separator": "renamed_id_separator",
    "update_feed_info": "update_feed_info",
    "detect_discrepancies": "detect_discrepancies",
    "temp_dir": "temp_dir",
    "log_level": "log_level",
    "log_file": "log_file",
    "publisher_name": "feed_info.publisher_name",
    "publisher_url": "feed_info.publisher_url",
    "contact_email": "feed_info.contact_email",
    "contact_url": "feed_info.contact_url",
}


def _deep_update(
    source: Dict[str, Any], overrides: Dict[str, Any]
) -> Dict[str, Any]:
    """
    Recursively update `source` with the non-None values of `overrides`.

    Nested dictionaries are merged key by key; any other value replaces the
    one in `source`.

    Returns:
        Dict[str, Any]: The updated `source` dictionary.
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
    return source


def _nest(dotted: Dict[str, Any]) -> Dict[str, Any]:
    """Turn {"a.b": 1} into {"a": {"b": 1}}."""
    nested: Dict[str, Any] = {}
    for dotted_key, value in dotted.items():
        target = nested
        *parents, leaf = dotted_key.split(".")
        for parent in parents:
            target = target.setdefault(parent, {})
        target[leaf] = value
    return nested


def read_yaml_config(
    config_file_path: Path, current_logger: Optional[logging.Logger] = None
) -> Dict[str, Any]:
    """
    Read a YAML mapping from `config_file_path`.

    A missing, unreadable or non-mapping file yields an empty dict and a
    log message; it never aborts the run.
    """
    logger_to_use = current_logger if current_logger else module_logger

    if not config_file_path.is_file():
        logger_to_use.info(
            f"Configuration file '{config_file_path}' not found. Using defaults, environment variables, and CLI args."
        )
        return {}

    try:
        with open(config_file_path, "r", encoding="utf-8") as f:
            yaml_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger_to_use.warning(
            f"Could not parse YAML config file '{config_file_path}': {e}. Using defaults and environment variables."
        )
        return {}
    except IOError as e:
        logger_to_use.warning(
            f"Could not read config file '{config_file_path}': {e}. Using defaults and environment variables."
        )
        return {}

    if yaml_data is None:
        return {}
    if not isinstance(yaml_data, dict):
        logger_to_use.warning(
            f"Config file '{config_file_path}' does not contain a valid YAML dictionary. Ignoring."
        )
        return {}

    logger_to_use.info(f"Loaded configuration from {config_file_path}")
    return yaml_data


def load_merge_settings(
    cli_args: Optional[argparse.Namespace] = None,
    config_file_path: Optional[str] = "gtfs_merge.yaml",
    current_logger: Optional[logging.Logger] = None,
) -> MergeSettings:
    """
    Load the merge settings with the precedence described in the module
    docstring.

    Args:
        cli_args: Parsed command-line arguments (from argparse). Only the
            destinations listed in `CLI_TO_SETTINGS` are used; None values
            are ignored.
        config_file_path: Path to the YAML configuration file.
        current_logger: Optional logger to use instead of the module logger.

    Returns:
        A validated MergeSettings instance.

    Raises:
        SystemExit: If the resulting configuration fails validation.
    """
    logger_to_use = current_logger if current_logger else module_logger

    # Defaults < .env < environment variables
    current_values_dict = MergeSettings().model_dump(exclude_defaults=False)

    if config_file_path:
        yaml_data = read_yaml_config(Path(config_file_path), logger_to_use)
        current_values_dict = _deep_update(current_values_dict, yaml_data)

    if cli_args:
        cli_values = {
            settings_key: getattr(cli_args, cli_key)
            for cli_key, settings_key in CLI_TO_SETTINGS.items()
            if getattr(cli_args, cli_key, None) is not None
        }
        current_values_dict = _deep_update(current_values_dict, _nest(cli_values))

    try:
        final_settings = MergeSettings(**current_values_dict)
    except ValidationError as e:
        logger_to_use.error(f"Configuration validation failed: {e}")
        raise SystemExit(f"Configuration error: {e}") from e

    logger_to_use.debug("Successfully loaded and validated merge settings")
    return final_settings
