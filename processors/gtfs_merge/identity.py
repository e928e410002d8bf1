#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Identity resolution for the GTFS merge engine.

Each resolver receives one feed's rows for one table, decides for every
natural key whether it is new, a true duplicate of an earlier feed, or a
colliding-but-different record, and appends the (possibly renamed) rows to
the session's Tabular Store. Renames are recorded in the session's per-feed
rename maps so the Reference Rewriter can follow them.

Policy shared by stops, services and shapes:
- A feed never collides with itself; repeated ids within one feed pass
  through unchanged (the first feed is therefore authoritative).
- A collision with an earlier feed is renamed `<id><separator><feed>` when
  the recorded attributes differ, and deduplicated when they are identical.
- Empty ids and missing id columns pass through unmodified.
"""

import logging
from collections import OrderedDict
from typing import Dict, FrozenSet, List, Optional, Set, Tuple

from .schema_definitions import ServiceIdentity, StopIdentity, TableMergeStats
from .session import MergeSession
from .table_io import align_rows

module_logger = logging.getLogger(__name__)

Row = List[str]
DateFingerprint = FrozenSet[Tuple[Tuple[str, str], ...]]

_DROP = None


def _field(row: Row, index: int) -> Optional[str]:
    """Return the field at `index`, or None when the column is unusable."""
    if index < 0 or index >= len(row):
        return None
    return row[index]


def _fingerprint(row: Row, id_index: int) -> Tuple[str, ...]:
    return tuple(value for position, value in enumerate(row) if position != id_index)


def column_values(rows: List[Row], index: int) -> Set[str]:
    """Return the non-empty values of column `index` across `rows`."""
    return {row[index] for row in rows if 0 <= index < len(row) and row[index]}


def service_date_fingerprints(header: Row, rows: List[Row]) -> Dict[str, DateFingerprint]:
    """
    Group calendar_dates.txt rows by service_id.

    Each row is reduced to its non-empty (column, value) pairs other than
    service_id, so two feeds listing the same exceptions compare equal
    regardless of column order or optional empty columns.
    """
    svc_idx = header.index("service_id") if "service_id" in header else -1
    grouped: Dict[str, Set[Tuple[Tuple[str, str], ...]]] = OrderedDict()
    for row in rows:
        service_id = _field(row, svc_idx)
        if not service_id:
            continue
        pairs = tuple(sorted(
            (column, value)
            for column, value in zip(header, row)
            if column != "service_id" and value != ""
        ))
        grouped.setdefault(service_id, set()).add(pairs)
    return OrderedDict((service_id, frozenset(dates)) for service_id, dates in grouped.items())


def prepare_rows(
    session: MergeSession,
    table_name: str,
    header: Row,
    rows: List[Row],
    is_first_contributor: bool,
) -> List[Row]:
    """
    Register the header of a table and return rows aligned to it.

    The first contributing feed writes its header as row zero. Later feeds
    drop their own header and have their rows realigned by column name to
    the accumulated header.
    """
    if not header:
        return []
    if is_first_contributor:
        session.store.append_row(table_name, list(header))
        session.mark_contributed(table_name)
        return rows
    return align_rows(header, session.store.header(table_name), rows, table_name)


def append_generic(
    session: MergeSession,
    table_name: str,
    header: Row,
    rows: List[Row],
    feed_index: int,
    is_first_contributor: bool,
) -> TableMergeStats:
    """Fallback for tables without identity semantics: append every row."""
    stats = TableMergeStats(table_name=table_name, rows_read=len(rows))
    for row in prepare_rows(session, table_name, header, rows, is_first_contributor):
        session.store.append_row(table_name, row)
        stats.appended += 1
    return stats


def keep_first_feed(
    session: MergeSession,
    table_name: str,
    header: Row,
    rows: List[Row],
    feed_index: int,
    is_first_contributor: bool,
) -> TableMergeStats:
    """
    Singleton tables (agency.txt, feed_info.txt): keep only the first
    contributing feed's header and first data row.
    """
    stats = TableMergeStats(table_name=table_name, rows_read=len(rows))
    if not is_first_contributor:
        stats.dropped = len(rows)
        module_logger.info(
            f"{table_name}: feed {feed_index} ignored, the first feed's copy is kept."
        )
        return stats

    kept = prepare_rows(session, table_name, header, rows[:1], is_first_contributor)
    for row in kept:
        session.store.append_row(table_name, row)
        stats.appended += 1
    stats.dropped = len(rows) - stats.appended
    if stats.dropped:
        module_logger.info(
            f"{table_name}: only the first data row is kept, {stats.dropped} row(s) ignored."
        )
    return stats


def resolve_stops(
    session: MergeSession,
    table_name: str,
    header: Row,
    rows: List[Row],
    feed_index: int,
    is_first_contributor: bool,
) -> TableMergeStats:
    """
    Resolve stop_id collisions by exact string comparison of stop_lat and
    stop_lon.
    """
    stats = TableMergeStats(table_name=table_name, rows_read=len(rows))
    rows = prepare_rows(session, table_name, header, rows, is_first_contributor)
    columns = session.store.column_map(table_name)
    id_idx = columns.get("stop_id", -1)
    lat_idx = columns.get("stop_lat", -1)
    lon_idx = columns.get("stop_lon", -1)
    renames = session.renames.stops
    feed_ids = column_values(rows, id_idx)

    for row in rows:
        stop_id = _field(row, id_idx)
        if not stop_id:
            session.store.append_row(table_name, row)
            stats.appended += 1
            continue

        lat = _field(row, lat_idx) or ""
        lon = _field(row, lon_idx) or ""

        if stop_id in renames:
            row[id_idx] = renames[stop_id]
            session.store.append_row(table_name, row)
            stats.appended += 1
            stats.rewritten += 1
            continue

        known = session.known_stops.get(stop_id)
        if known is None:
            session.known_stops[stop_id] = StopIdentity(lat=lat, lon=lon, introduced_in=feed_index)
            session.store.append_row(table_name, row)
            stats.appended += 1
        elif known.introduced_in == feed_index:
            session.store.append_row(table_name, row)
            stats.appended += 1
        elif known.lat == lat and known.lon == lon:
            stats.dropped += 1
            module_logger.debug(f"[stops] {stop_id} identical to feed {known.introduced_in}, deduplicated")
        else:
            new_id = session.renamed_id(stop_id, feed_index, session.known_stops, feed_ids)
            row[id_idx] = new_id
            session.known_stops[new_id] = StopIdentity(lat=lat, lon=lon, introduced_in=feed_index)
            renames[stop_id] = new_id
            session.store.append_row(table_name, row)
            stats.appended += 1
            stats.renamed += 1
            module_logger.debug(f"[stops] rename {stop_id} => {new_id}")

    return stats


def resolve_calendar(
    session: MergeSession,
    table_name: str,
    header: Row,
    rows: List[Row],
    feed_index: int,
    is_first_contributor: bool,
) -> TableMergeStats:
    """
    Resolve service_id collisions in calendar.txt.

    A service is identical to an earlier feed's only when both its calendar
    row (every field except service_id) and this feed's calendar_dates rows
    for it (`session.feed_service_dates`) match what that feed recorded.
    Identical services are deduplicated and marked confirmed, so their
    calendar_dates rows are dropped too; any difference renames the service
    in both tables.
    """
    stats = TableMergeStats(table_name=table_name, rows_read=len(rows))
    rows = prepare_rows(session, table_name, header, rows, is_first_contributor)
    svc_idx = session.store.column_index(table_name, "service_id")
    renames = session.renames.services
    feed_ids = column_values(rows, svc_idx) | set(session.feed_service_dates)

    for row in rows:
        service_id = _field(row, svc_idx)
        if not service_id:
            session.store.append_row(table_name, row)
            stats.appended += 1
            continue

        if service_id in renames:
            row[svc_idx] = renames[service_id]
            session.store.append_row(table_name, row)
            stats.appended += 1
            stats.rewritten += 1
            continue

        fingerprint = _fingerprint(row, svc_idx)
        dates = session.feed_service_dates.get(service_id, frozenset())
        known = session.known_services.get(service_id)
        if known is None:
            session.known_services[service_id] = ServiceIdentity(
                introduced_in=feed_index, calendar_fingerprint=fingerprint, date_fingerprint=dates
            )
            session.store.append_row(table_name, row)
            stats.appended += 1
        elif known.introduced_in == feed_index:
            if known.calendar_fingerprint is None:
                known.calendar_fingerprint = fingerprint
            session.store.append_row(table_name, row)
            stats.appended += 1
        elif (
            known.calendar_fingerprint == fingerprint
            and (known.date_fingerprint or frozenset()) == dates
        ):
            session.confirmed_services.add(service_id)
            stats.dropped += 1
            module_logger.debug(
                f"[calendar] {service_id} identical to feed {known.introduced_in}, deduplicated"
            )
        else:
            new_id = session.renamed_id(service_id, feed_index, session.known_services, feed_ids)
            row[svc_idx] = new_id
            session.known_services[new_id] = ServiceIdentity(
                introduced_in=feed_index, calendar_fingerprint=fingerprint, date_fingerprint=dates
            )
            renames[service_id] = new_id
            session.store.append_row(table_name, row)
            stats.appended += 1
            stats.renamed += 1
            if known.calendar_fingerprint == fingerprint:
                module_logger.info(
                    f"[calendar] {service_id} matches feed {known.introduced_in} but its "
                    f"calendar_dates differ, renamed to {new_id}"
                )
            else:
                module_logger.debug(f"[calendar] rename service_id {service_id} => {new_id}")

    return stats


def resolve_calendar_dates(
    session: MergeSession,
    table_name: str,
    header: Row,
    rows: List[Row],
    feed_index: int,
    is_first_contributor: bool,
) -> TableMergeStats:
    """
    Resolve service_id collisions in calendar_dates.txt.

    Every service is decided once, from the full set of its exception rows
    in this feed, before its rows are appended in their original order:

    - renamed by calendar.txt earlier in this feed: translate the reference;
    - confirmed identical by calendar.txt: drop, the earlier feed's rows stand;
    - unknown or introduced by this feed: keep;
    - only in calendar_dates.txt and introduced earlier: deduplicate when the
      exception set is identical, rename otherwise;
    - introduced earlier with a calendar.txt row this feed lacks: rename.
    """
    stats = TableMergeStats(table_name=table_name, rows_read=len(rows))
    dates_by_service = service_date_fingerprints(header, rows)
    rows = prepare_rows(session, table_name, header, rows, is_first_contributor)
    svc_idx = session.store.column_index(table_name, "service_id")
    renames = session.renames.services

    # service_id -> target id, or _DROP
    targets: Dict[str, Optional[str]] = {}

    for service_id, dates in dates_by_service.items():
        if service_id in renames:
            targets[service_id] = renames[service_id]
            continue
        if service_id in session.confirmed_services:
            targets[service_id] = _DROP
            continue

        known = session.known_services.get(service_id)
        if known is None:
            session.known_services[service_id] = ServiceIdentity(
                introduced_in=feed_index, date_fingerprint=dates
            )
            targets[service_id] = service_id
        elif known.introduced_in == feed_index:
            if known.date_fingerprint is None:
                known.date_fingerprint = dates
            targets[service_id] = service_id
        elif known.calendar_fingerprint is None and known.date_fingerprint == dates:
            targets[service_id] = _DROP
            module_logger.debug(
                f"[calendar_dates] {service_id} identical to feed {known.introduced_in}, deduplicated"
            )
        else:
            new_id = session.renamed_id(service_id, feed_index, session.known_services, dates_by_service)
            session.known_services[new_id] = ServiceIdentity(
                introduced_in=feed_index, date_fingerprint=dates
            )
            renames[service_id] = new_id
            targets[service_id] = new_id
            stats.renamed += 1
            module_logger.debug(f"[calendar_dates] rename service_id {service_id} => {new_id}")

    for row in rows:
        service_id = _field(row, svc_idx)
        if not service_id:
            session.store.append_row(table_name, row)
            stats.appended += 1
            continue

        target = targets.get(service_id, service_id)
        if target is _DROP:
            stats.dropped += 1
            continue
        if target != service_id:
            row[svc_idx] = target
            stats.rewritten += 1
        session.store.append_row(table_name, row)
        stats.appended += 1

    return stats


def resolve_shapes(
    session: MergeSession,
    table_name: str,
    header: Row,
    rows: List[Row],
    feed_index: int,
    is_first_contributor: bool,
) -> TableMergeStats:
    """
    Resolve shape_id collisions by the feed that introduced the id.

    Every row is appended in the order read; shape points are never
    reordered or deduplicated.
    """
    stats = TableMergeStats(table_name=table_name, rows_read=len(rows))
    rows = prepare_rows(session, table_name, header, rows, is_first_contributor)
    shape_idx = session.store.column_index(table_name, "shape_id")
    renames = session.renames.shapes
    feed_ids = column_values(rows, shape_idx)

    for row in rows:
        shape_id = _field(row, shape_idx)
        if shape_id:
            if shape_id in renames:
                row[shape_idx] = renames[shape_id]
                stats.rewritten += 1
            else:
                introduced_in = session.known_shapes.get(shape_id)
                if introduced_in is None:
                    session.known_shapes[shape_id] = feed_index
                elif introduced_in < feed_index:
                    new_id = session.renamed_id(shape_id, feed_index, session.known_shapes, feed_ids)
                    row[shape_idx] = new_id
                    session.known_shapes[new_id] = feed_index
                    renames[shape_id] = new_id
                    stats.renamed += 1
                    module_logger.debug(
                        f"[shapes] rename {shape_id} => {new_id} (introduced in feed {introduced_in})"
                    )
        session.store.append_row(table_name, row)
        stats.appended += 1

    return stats


def resolve_routes(
    session: MergeSession,
    table_name: str,
    header: Row,
    rows: List[Row],
    feed_index: int,
    is_first_contributor: bool,
) -> TableMergeStats:
    """Keep the first occurrence of each route_id and drop every repeat."""
    stats = TableMergeStats(table_name=table_name, rows_read=len(rows))
    rows = prepare_rows(session, table_name, header, rows, is_first_contributor)
    route_idx = session.store.column_index(table_name, "route_id")

    for row in rows:
        route_id = _field(row, route_idx)
        if route_id:
            if route_id in session.seen_route_ids:
                stats.dropped += 1
                module_logger.debug(f"[routes] duplicate route_id {route_id} dropped")
                continue
            session.seen_route_ids.add(route_id)
        session.store.append_row(table_name, row)
        stats.appended += 1

    return stats
