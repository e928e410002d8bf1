# processors/gtfs_merge/pipeline_definitions.py
# -*- coding: utf-8 -*-
"""
Static definitions for the GTFS merge pipeline, including the table
processing order, the canonical output set and the reference columns that
follow identifier renames.
"""
from typing import Dict, List, Tuple

# Entities must be known before the tables that reference them are rewritten.
MERGE_LOAD_ORDER: List[str] = [
    "stops.txt", "calendar.txt", "calendar_dates.txt", "shapes.txt",
    "trips.txt", "stop_times.txt", "routes.txt",
]

# Only the first feed's header and first data row are kept.
SINGLETON_TABLES: Tuple[str, ...] = ("agency.txt", "feed_info.txt")

CANONICAL_GTFS_FILES: Tuple[str, ...] = (
    "agency.txt", "calendar.txt", "calendar_dates.txt", "feed_info.txt",
    "routes.txt", "shapes.txt", "stop_times.txt", "stops.txt", "trips.txt",
)

DEFAULT_RENAMED_ID_SEPARATOR = "_Merged_"
AUDIT_LOG_FILENAME = "merge_log.txt"
DISCREPANCY_REPORT_FILENAME = "discrepancies.txt"

# Rename map kinds held by a MergeSession.
STOPS = "stops"
SERVICES = "services"
SHAPES = "shapes"
TRIPS = "trips"

# Columns of tables handled by the generic fallback that hold references to
# renamed entities: table -> [(column, rename map kind)].
SECONDARY_REFERENCE_COLUMNS: Dict[str, List[Tuple[str, str]]] = {
    "frequencies.txt": [("trip_id", TRIPS)],
    "transfers.txt": [
        ("from_stop_id", STOPS), ("to_stop_id", STOPS),
        ("from_trip_id", TRIPS), ("to_trip_id", TRIPS),
    ],
    "pathways.txt": [("from_stop_id", STOPS), ("to_stop_id", STOPS)],
}

FEED_INFO_COLUMNS: List[str] = [
    "feed_publisher_name", "feed_publisher_url", "feed_lang",
    "feed_start_date", "feed_end_date", "feed_version",
    "feed_contact_email", "feed_contact_url",
]
