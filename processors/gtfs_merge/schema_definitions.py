#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Pydantic models for the records produced and tracked by the GTFS merge
engine.

The audit models (`FeedMetadata`, `TableFileMetadata`) describe each loaded
archive and are immutable once built. The identity models (`StopIdentity`,
`ServiceIdentity`) are the attributes a `MergeSession` remembers for each
natural key. `TableMergeStats` summarises one table pass and `Discrepancy`
is one row of the distance discrepancy report.
"""

from datetime import datetime
from typing import FrozenSet, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict


class MergeBaseModel(BaseModel):
    """
    Base model for merge records.

    - `extra = "forbid"`: unknown fields are a programming error.
    - `validate_assignment = True`: counters stay integers when bumped.
    """
    model_config = ConfigDict(extra="forbid", validate_assignment=True)


class TableFileMetadata(MergeBaseModel):
    """Filesystem metadata of one table file extracted from an archive."""
    model_config = ConfigDict(frozen=True)

    file_name: str
    size: int
    created: datetime
    modified: datetime


class FeedMetadata(MergeBaseModel):
    """
    Filesystem metadata of one loaded archive.

    Attributes:
        feed_index: 1-based position of the feed in the merge session.
        zip_file_path: Path of the source archive as given by the caller.
        zip_file_size: Archive size in bytes.
        zip_created: Archive creation (metadata change) time.
        zip_modified: Archive modification time.
        inner_files: One record per `.txt` table found in the archive.
    """
    model_config = ConfigDict(frozen=True)

    feed_index: int
    zip_file_path: str
    zip_file_size: int
    zip_created: datetime
    zip_modified: datetime
    inner_files: Tuple[TableFileMetadata, ...] = ()


class StopIdentity(MergeBaseModel):
    """Recorded coordinates of a stop_id, compared as exact strings."""
    model_config = ConfigDict(frozen=True)

    lat: str
    lon: str
    introduced_in: int


class ServiceIdentity(MergeBaseModel):
    """
    What is known about a service_id.

    Attributes:
        introduced_in: Feed index that first introduced the id.
        calendar_fingerprint: Non-id fields of its calendar.txt row, if any.
        date_fingerprint: (column, value) pairs of its calendar_dates.txt rows
            in the introducing feed; empty when it has none.
    """
    introduced_in: int
    calendar_fingerprint: Optional[Tuple[str, ...]] = None
    date_fingerprint: Optional[FrozenSet[Tuple[Tuple[str, str], ...]]] = None


class TableMergeStats(MergeBaseModel):
    """Counters for one table pass of one feed."""
    table_name: str
    rows_read: int = 0
    appended: int = 0
    renamed: int = 0
    rewritten: int = 0
    dropped: int = 0


class Discrepancy(MergeBaseModel):
    """A trip whose last stop reports more distance than its shape."""
    trip_id: str
    shape_id: str
    max_trip_distance_traveled: float
    max_shape_distance_traveled: float
    geo_distance_to_shape: float
    stop_lat: float
    stop_lon: float
    shape_lat: float
    shape_lon: float


DISCREPANCY_REPORT_COLUMNS: List[str] = list(Discrepancy.model_fields.keys())
