# processors/gtfs_merge/rewrite.py
# -*- coding: utf-8 -*-
"""
Reference rewriting for tables that point at renamed entities.

The rename maps consulted here were filled earlier in the same feed's load
(stops, calendar, calendar_dates and shapes are processed before trips, and
trips before stop_times), so a reference is translated exactly when its
target was renamed in this feed.
"""

import logging
from typing import Dict, List, Tuple

from . import pipeline_definitions as defs
from .identity import column_values, prepare_rows
from .schema_definitions import TableMergeStats
from .session import MergeSession

module_logger = logging.getLogger(__name__)

Row = List[str]


def _translate(row: Row, index: int, renames: Dict[str, str]) -> bool:
    """Rewrite `row[index]` through `renames`; return True if it changed."""
    if index < 0 or index >= len(row):
        return False
    new_value = renames.get(row[index])
    if new_value is None:
        return False
    row[index] = new_value
    return True


def rewrite_trips(
    session: MergeSession,
    table_name: str,
    header: Row,
    rows: List[Row],
    feed_index: int,
    is_first_contributor: bool,
) -> TableMergeStats:
    """
    Rename trip_ids introduced by an earlier feed and translate each trip's
    service_id and shape_id through this feed's rename maps.
    """
    stats = TableMergeStats(table_name=table_name, rows_read=len(rows))
    rows = prepare_rows(session, table_name, header, rows, is_first_contributor)
    columns = session.store.column_map(table_name)
    trip_idx = columns.get("trip_id", -1)
    svc_idx = columns.get("service_id", -1)
    shape_idx = columns.get("shape_id", -1)
    renames = session.renames
    feed_ids = column_values(rows, trip_idx)

    for row in rows:
        if 0 <= trip_idx < len(row) and row[trip_idx]:
            trip_id = row[trip_idx]
            if trip_id in renames.trips:
                row[trip_idx] = renames.trips[trip_id]
                stats.rewritten += 1
            else:
                introduced_in = session.known_trips.get(trip_id)
                if introduced_in is None:
                    session.known_trips[trip_id] = feed_index
                elif introduced_in < feed_index:
                    new_id = session.renamed_id(trip_id, feed_index, session.known_trips, feed_ids)
                    row[trip_idx] = new_id
                    session.known_trips[new_id] = feed_index
                    renames.trips[trip_id] = new_id
                    stats.renamed += 1
                    module_logger.debug(f"[trips] rename {trip_id} => {new_id}")

        changed = _translate(row, svc_idx, renames.services)
        changed = _translate(row, shape_idx, renames.shapes) or changed
        if changed:
            stats.rewritten += 1

        session.store.append_row(table_name, row)
        stats.appended += 1

    return stats


def rewrite_stop_times(
    session: MergeSession,
    table_name: str,
    header: Row,
    rows: List[Row],
    feed_index: int,
    is_first_contributor: bool,
) -> TableMergeStats:
    """Translate trip_id and stop_id of every stop_times row."""
    stats = TableMergeStats(table_name=table_name, rows_read=len(rows))
    rows = prepare_rows(session, table_name, header, rows, is_first_contributor)
    columns = session.store.column_map(table_name)
    trip_idx = columns.get("trip_id", -1)
    stop_idx = columns.get("stop_id", -1)
    trip_renames = session.renames.trips
    stop_renames = session.renames.stops

    for row in rows:
        changed = _translate(row, trip_idx, trip_renames)
        changed = _translate(row, stop_idx, stop_renames) or changed
        if changed:
            stats.rewritten += 1
        session.store.append_row(table_name, row)
        stats.appended += 1

    return stats


def rewrite_parent_stations(
    session: MergeSession, table_name: str, feed_rows: List[Row]
) -> int:
    """
    Translate parent_station of the stops appended for the current feed.

    Runs after the whole stops file is resolved, because a station may be
    listed after the stops that reference it.
    """
    if not session.renames.stops:
        return 0
    parent_idx = session.store.column_index(table_name, "parent_station")
    if parent_idx < 0:
        return 0
    rewritten = 0
    for row in feed_rows:
        if _translate(row, parent_idx, session.renames.stops):
            rewritten += 1
    if rewritten:
        module_logger.info(f"[stops] {rewritten} parent_station reference(s) updated")
    return rewritten


def rewrite_secondary_references(
    session: MergeSession, table_name: str, feed_rows: List[Row]
) -> int:
    """
    Translate the reference columns of generic tables (frequencies,
    transfers, pathways) appended for the current feed.
    """
    references: List[Tuple[str, str]] = defs.SECONDARY_REFERENCE_COLUMNS.get(table_name, [])
    if not references or session.renames.total() == 0:
        return 0

    columns = session.store.column_map(table_name)
    lookups = [
        (columns[column], session.renames.for_kind(kind))
        for column, kind in references
        if column in columns
    ]
    rewritten = 0
    for row in feed_rows:
        changed = False
        for index, renames in lookups:
            changed = _translate(row, index, renames) or changed
        if changed:
            rewritten += 1
    if rewritten:
        module_logger.info(f"[{table_name}] {rewritten} row(s) updated with renamed references")
    return rewritten
