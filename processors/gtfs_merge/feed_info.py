#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Creates or updates feed_info.txt for a merged feed from the service date
range found in its calendar.txt.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple, Union

import pandas as pd

from settings.config_models import FeedInfoSettings

from .pipeline_definitions import FEED_INFO_COLUMNS

module_logger = logging.getLogger(__name__)

PathLike = Union[str, Path]
DATE_FORMAT = "%Y%m%d"


def _read_str_frame(path: Path) -> pd.DataFrame:
    """Read a GTFS table with every value kept as a string."""
    try:
        return pd.read_csv(
            path, dtype=str, keep_default_na=False, na_values=[], encoding="utf-8-sig"
        )
    except pd.errors.EmptyDataError:
        return pd.DataFrame()


def calendar_date_range(calendar_path: PathLike) -> Optional[Tuple[datetime, datetime]]:
    """
    Return the earliest start_date and latest end_date in calendar.txt.

    Rows whose dates do not parse as YYYYMMDD are ignored.

    Returns:
        (start, end), or None if the file, its date columns, or any valid
        row is missing.
    """
    path = Path(calendar_path)
    if not path.is_file():
        module_logger.warning(f"Calendar file not found: {path}")
        return None

    calendar_df = _read_str_frame(path)
    if not {"start_date", "end_date"}.issubset(calendar_df.columns):
        module_logger.warning(f"{path.name} has no start_date/end_date columns.")
        return None

    starts = pd.to_datetime(calendar_df["start_date"].str.strip(), format=DATE_FORMAT, errors="coerce")
    ends = pd.to_datetime(calendar_df["end_date"].str.strip(), format=DATE_FORMAT, errors="coerce")
    valid = starts.notna() & ends.notna()
    if not valid.any():
        return None
    return starts[valid].min().to_pydatetime(), ends[valid].max().to_pydatetime()


def build_feed_version(start: datetime, end: datetime, generated_at: datetime) -> str:
    return f"S{start:%Y%m%d}_E{end:%Y%m%d}_TS{generated_at:%Y%m%d%H%M%S}"


def _first_agency(agency_path: Optional[PathLike]) -> Tuple[str, str]:
    if agency_path is None or not Path(agency_path).is_file():
        return "", ""
    agency_df = _read_str_frame(Path(agency_path))
    if agency_df.empty:
        return "", ""
    first = agency_df.iloc[0]
    return str(first.get("agency_name", "")), str(first.get("agency_url", ""))


def update_or_create_feed_info(
    calendar_path: PathLike,
    feed_info_path: PathLike,
    agency_path: Optional[PathLike] = None,
    settings: Optional[FeedInfoSettings] = None,
    generated_at: Optional[datetime] = None,
) -> bool:
    """
    Write the merged feed's date range and version into feed_info.txt.

    A missing feed_info.txt, or one with only a header, is replaced by a new
    file with the standard feed_info columns. Publisher name and URL come
    from `settings` or, when unset, from the first agency row. An existing
    feed_info.txt only has its feed_start_date, feed_end_date and
    feed_version columns updated, where present.

    Returns:
        True if feed_info.txt was written, False if the calendar provided
        no valid date range.
    """
    date_range = calendar_date_range(calendar_path)
    if date_range is None:
        module_logger.warning("No valid start/end date in calendar.txt. feed_info.txt not updated.")
        return False

    start, end = date_range
    feed_version = build_feed_version(start, end, generated_at or datetime.now())
    dated_values = {
        "feed_start_date": f"{start:%Y%m%d}",
        "feed_end_date": f"{end:%Y%m%d}",
        "feed_version": feed_version,
    }

    info_path = Path(feed_info_path)
    feed_info_df = _read_str_frame(info_path) if info_path.is_file() else pd.DataFrame()

    if feed_info_df.empty:
        cfg = settings or FeedInfoSettings()
        agency_name, agency_url = _first_agency(agency_path)
        row = {
            "feed_publisher_name": cfg.publisher_name or agency_name,
            "feed_publisher_url": cfg.publisher_url or agency_url,
            "feed_lang": cfg.lang,
            "feed_contact_email": cfg.contact_email or "",
            "feed_contact_url": cfg.contact_url or "",
            **dated_values,
        }
        feed_info_df = pd.DataFrame([row], columns=FEED_INFO_COLUMNS)
        module_logger.info(f"Creating {info_path.name} (version {feed_version}).")
    else:
        for column, value in dated_values.items():
            if column in feed_info_df.columns:
                feed_info_df[column] = value
        module_logger.info(
            f"Updated {info_path.name}: {start:%Y%m%d} to {end:%Y%m%d}, version {feed_version}."
        )

    feed_info_df.to_csv(info_path, index=False, lineterminator="\n", encoding="utf-8")
    return True
