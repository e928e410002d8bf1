# settings/config_models.py
# -*- coding: utf-8 -*-
"""
Pydantic models for the merge tool's configuration.

This module defines the structured settings for merging GTFS feeds,
including defaults, type annotations, and descriptions.
It utilizes Pydantic for data validation and settings management.
"""

from pathlib import Path
from typing import Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from processors.gtfs_merge.pipeline_definitions import (
    AUDIT_LOG_FILENAME,
    DEFAULT_RENAMED_ID_SEPARATOR,
    DISCREPANCY_REPORT_FILENAME,
)

# --- Default Static Values (can be overridden by config file/env/cli) ---
OUTPUT_DIR_DEFAULT: Path = Path("merged_output")
ARCHIVE_PREFIX_DEFAULT: str = "GTFS_Merged"
LOG_PREFIX_DEFAULT: str = "[GTFS-MERGE]"
FEED_LANG_DEFAULT: str = "en"

SYMBOLS_DEFAULT: Dict[str, str] = {
    "success": "✅", "error": "❌", "warning": "⚠️", "info": "ℹ️",
    "step": "➡️", "gear": "⚙️", "package": "📦", "rocket": "🚀",
    "sparkles": "✨", "critical": "🔥", "debug": "🐛",
}


class FeedInfoSettings(BaseSettings):
    """Values used when feed_info.txt has to be created for a merged feed."""
    model_config = SettingsConfigDict(
        env_prefix='GTFS_FEED_INFO_',
        extra='ignore'
    )

    publisher_name: Optional[str] = Field(
        default=None,
        description="feed_publisher_name. Defaults to the first agency's agency_name."
    )
    publisher_url: Optional[str] = Field(
        default=None,
        description="feed_publisher_url. Defaults to the first agency's agency_url."
    )
    lang: str = Field(default=FEED_LANG_DEFAULT, description="feed_lang of a created feed_info.txt.")
    contact_email: Optional[str] = Field(default=None, description="feed_contact_email.")
    contact_url: Optional[str] = Field(default=None, description="feed_contact_url.")


class MergeSettings(BaseSettings):
    """Main settings for a merge run."""
    model_config = SettingsConfigDict(env_prefix='GTFS_MERGE_', extra='ignore')

    output_dir: Path = Field(
        default=OUTPUT_DIR_DEFAULT,
        description="Existing directory in which the merged feed folder is created."
    )
    archive_prefix: str = Field(
        default=ARCHIVE_PREFIX_DEFAULT,
        description="Prefix of the merged archive name; a timestamp is appended."
    )
    renamed_id_separator: str = Field(
        default=DEFAULT_RENAMED_ID_SEPARATOR,
        description="Inserted between a colliding id and the feed index, e.g. S1_Merged_2."
    )
    audit_log_name: str = Field(default=AUDIT_LOG_FILENAME, description="Name of the merge audit report.")
    update_feed_info: bool = Field(
        default=True,
        description="Create or update feed_info.txt from the merged calendar.txt."
    )
    detect_discrepancies: bool = Field(
        default=False,
        description="Write a report of trips whose stop distance exceeds their shape distance."
    )
    discrepancy_report_name: str = Field(
        default=DISCREPANCY_REPORT_FILENAME,
        description="Name of the discrepancy report kept next to the archive."
    )
    temp_dir: Optional[Path] = Field(
        default=None,
        description="Parent directory for per-feed extraction directories (system temp if unset)."
    )
    log_level: str = Field(default="INFO", description="Logging level name.")
    log_file: Optional[Path] = Field(default=None, description="Optional log file path.")
    log_prefix: str = Field(default=LOG_PREFIX_DEFAULT, description="Prefix for console log lines.")

    feed_info: FeedInfoSettings = Field(default_factory=FeedInfoSettings)

    symbols: Dict[str, str] = Field(default_factory=lambda: dict(SYMBOLS_DEFAULT))

    @field_validator("renamed_id_separator")
    @classmethod
    def _separator_not_empty(cls, value: str) -> str:
        if not value:
            raise ValueError("renamed_id_separator must not be empty")
        return value

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level '{value}'")
        return level
