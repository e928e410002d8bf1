#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Loads one GTFS zip archive into a merge session.

The archive is extracted into a scoped temporary directory and every table
file is parsed before the session's store is touched, so a corrupt feed is
rejected as a whole. Tables are then merged in a fixed dependency order so
identifier renames are known before dependent tables are rewritten:

    stops -> calendar -> calendar_dates -> shapes -> trips -> stop_times
    -> routes -> everything else (agency and feed_info as singletons)
"""

import logging
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple, Union

import pandas as pd

from common.file_utils import scoped_temp_directory

from . import identity, rewrite
from . import pipeline_definitions as defs
from .errors import FeedLoadError
from .schema_definitions import FeedMetadata, TableFileMetadata, TableMergeStats
from .session import MergeSession
from .table_io import read_table

module_logger = logging.getLogger(__name__)

Row = List[str]
TableHandler = Callable[[MergeSession, str, Row, List[Row], int, bool], TableMergeStats]

TABLE_HANDLERS: Dict[str, TableHandler] = {
    "stops.txt": identity.resolve_stops,
    "calendar.txt": identity.resolve_calendar,
    "calendar_dates.txt": identity.resolve_calendar_dates,
    "shapes.txt": identity.resolve_shapes,
    "trips.txt": rewrite.rewrite_trips,
    "stop_times.txt": rewrite.rewrite_stop_times,
    "routes.txt": identity.resolve_routes,
}
for _singleton in defs.SINGLETON_TABLES:
    TABLE_HANDLERS[_singleton] = identity.keep_first_feed


def order_table_files(file_names: Iterable[str]) -> List[str]:
    """
    Sort table file names into merge order: the dependency order first, then
    all remaining files alphabetically (case-insensitive).
    """
    priority = {name: position for position, name in enumerate(defs.MERGE_LOAD_ORDER)}
    fallback = len(priority)
    return sorted(
        file_names,
        key=lambda name: (priority.get(name.lower(), fallback), name.lower()),
    )


def _file_metadata(path: Path) -> TableFileMetadata:
    stat = path.stat()
    return TableFileMetadata(
        file_name=path.name,
        size=stat.st_size,
        created=datetime.fromtimestamp(stat.st_ctime),
        modified=datetime.fromtimestamp(stat.st_mtime),
    )


def _extract_archive(archive_path: Path, extract_dir: Path) -> None:
    try:
        with zipfile.ZipFile(archive_path, "r") as zip_ref:
            bad_member = zip_ref.testzip()
            if bad_member is not None:
                raise FeedLoadError(
                    f"Archive '{archive_path}' is corrupted (bad CRC for '{bad_member}').",
                    archive_path,
                )
            zip_ref.extractall(extract_dir)
    except zipfile.BadZipFile as e:
        raise FeedLoadError(
            f"'{archive_path}' is not a valid zip file or is corrupted.", archive_path, e
        ) from e
    except OSError as e:
        raise FeedLoadError(
            f"File I/O error while extracting '{archive_path}': {e}", archive_path, e
        ) from e


def _find_table_dir(extract_dir: Path) -> Path:
    """
    Return the directory holding the tables: the extraction root, or its
    single subdirectory when the archive wraps the tables in a folder.
    """
    if any(p.is_file() and p.suffix.lower() == ".txt" for p in extract_dir.iterdir()):
        return extract_dir
    subdirs = [p for p in extract_dir.iterdir() if p.is_dir() and p.name != "__MACOSX"]
    if len(subdirs) == 1:
        module_logger.warning(f"Tables found in nested folder '{subdirs[0].name}' of the archive.")
        return subdirs[0]
    return extract_dir


def collect_feed_metadata(table_dir: Path) -> List[TableFileMetadata]:
    """Return filesystem metadata for every `.txt` table in `table_dir`."""
    return [
        _file_metadata(path)
        for path in sorted(table_dir.iterdir(), key=lambda p: p.name.lower())
        if path.is_file() and path.suffix.lower() == ".txt"
    ]


def _read_feed_tables(
    table_dir: Path, archive_path: Path, inner_files: List[TableFileMetadata]
) -> Dict[str, Tuple[Row, List[Row]]]:
    tables: Dict[str, Tuple[Row, List[Row]]] = {}
    inner_files.extend(collect_feed_metadata(table_dir))
    for file_meta in inner_files:
        try:
            tables[file_meta.file_name] = read_table(table_dir / file_meta.file_name)
        except (OSError, UnicodeDecodeError, pd.errors.ParserError) as e:
            raise FeedLoadError(
                f"Could not parse '{file_meta.file_name}' in '{archive_path}': {e}",
                archive_path,
                e,
            ) from e
    return tables


def _service_dates(tables: Dict[str, Tuple[Row, List[Row]]]) -> Dict[str, identity.DateFingerprint]:
    """Service date fingerprints of a feed, read before calendar.txt is merged."""
    for file_name, (header, rows) in tables.items():
        if file_name.lower() == "calendar_dates.txt":
            return identity.service_date_fingerprints(header, rows)
    return {}


def _merge_table(
    session: MergeSession,
    file_name: str,
    header: Row,
    rows: List[Row],
    feed_index: int,
) -> TableMergeStats:
    table_name = file_name.lower()
    is_first_contributor = session.is_first_contributor(table_name)
    handler = TABLE_HANDLERS.get(table_name, identity.append_generic)

    start = max(len(session.store.ensure_table(table_name)), 1)
    stats = handler(session, table_name, header, rows, feed_index, is_first_contributor)
    feed_rows = session.store.rows(table_name)[start:]

    if table_name == "stops.txt":
        stats.rewritten += rewrite.rewrite_parent_stations(session, table_name, feed_rows)
    elif table_name in defs.SECONDARY_REFERENCE_COLUMNS:
        stats.rewritten += rewrite.rewrite_secondary_references(session, table_name, feed_rows)

    module_logger.info(
        f"Feed {feed_index} {table_name}: read {stats.rows_read}, appended {stats.appended}, "
        f"renamed {stats.renamed}, rewritten {stats.rewritten}, dropped {stats.dropped}"
    )
    return stats


def load_feed(
    session: MergeSession,
    archive_path: Union[str, Path],
    feed_index: int,
    temp_root: Optional[Union[str, Path]] = None,
) -> List[TableMergeStats]:
    """
    Merge one GTFS archive into `session`.

    Args:
        session: The merge session accumulating all feeds.
        archive_path: Path of the GTFS zip archive.
        feed_index: 1-based position of this feed; must increase per call.
        temp_root: Parent directory for the scoped extraction directory.

    Returns:
        Per-table merge statistics, in processing order.

    Raises:
        FeedLoadError: If the archive is missing, not a valid zip, or one of
            its tables cannot be parsed. The session's tables are left
            untouched in that case.
        ValueError: If `feed_index` does not follow the previous feed.
    """
    zip_path = Path(archive_path)
    if not zip_path.is_file():
        raise FeedLoadError(f"GTFS archive not found or is not a file: {zip_path}", zip_path)

    session.begin_feed(feed_index)
    zip_stat = zip_path.stat()
    inner_files: List[TableFileMetadata] = []
    all_stats: List[TableMergeStats] = []
    module_logger.info(f"Loading feed {feed_index}: {zip_path}")

    try:
        with scoped_temp_directory(prefix=f"gtfs_merge_{feed_index}_", parent=temp_root) as extract_dir:
            _extract_archive(zip_path, extract_dir)
            tables = _read_feed_tables(_find_table_dir(extract_dir), zip_path, inner_files)
            if not tables:
                module_logger.warning(f"Archive '{zip_path}' contains no .txt tables.")
            session.feed_service_dates = _service_dates(tables)
            for file_name in order_table_files(tables):
                header, rows = tables[file_name]
                all_stats.append(_merge_table(session, file_name, header, rows, feed_index))
    finally:
        session.record_feed(
            FeedMetadata(
                feed_index=feed_index,
                zip_file_path=str(zip_path),
                zip_file_size=zip_stat.st_size,
                zip_created=datetime.fromtimestamp(zip_stat.st_ctime),
                zip_modified=datetime.fromtimestamp(zip_stat.st_mtime),
                inner_files=tuple(inner_files),
            )
        )

    module_logger.info(
        f"Feed {feed_index} merged: {len(all_stats)} table(s), "
        f"{session.renames.total()} identifier rename(s)."
    )
    return all_stats
