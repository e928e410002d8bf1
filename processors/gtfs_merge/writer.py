# processors/gtfs_merge/writer.py
# -*- coding: utf-8 -*-
"""
Writes a merged feed to disk: the table files, the audit report listing the
source archives, and the final zip archive of the canonical GTFS tables.
"""

import logging
import zipfile
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Union

from common.file_utils import remove_files_except

from .errors import MergeOutputError
from .pipeline_definitions import AUDIT_LOG_FILENAME, CANONICAL_GTFS_FILES
from .schema_definitions import FeedMetadata
from .table_io import write_table
from .tabular_store import TabularStore

module_logger = logging.getLogger(__name__)

_SECTION_RULE = "=" * 48
_FEED_RULE = "-" * 48


def write_tables(store: TabularStore, out_dir: Union[str, Path]) -> List[Path]:
    """
    Write every table of `store` into `out_dir` under its table name.

    Returns:
        The written file paths, in store order.

    Raises:
        MergeOutputError: If `out_dir` is not an existing directory or a
            table cannot be written.
    """
    out_path = Path(out_dir)
    if not out_path.is_dir():
        raise MergeOutputError(f"Output directory does not exist: {out_path}", out_path)

    written: List[Path] = []
    for table_name in store:
        target = out_path / table_name
        try:
            write_table(target, store.rows(table_name))
        except OSError as e:
            raise MergeOutputError(f"Failed to write '{target}': {e}", target, e) from e
        written.append(target)
    module_logger.info(f"Wrote {len(written)} merged table(s) to {out_path}")
    return written


def write_audit_log(
    feeds: Sequence[FeedMetadata],
    out_dir: Union[str, Path],
    name: str = AUDIT_LOG_FILENAME,
    generated_at: Optional[datetime] = None,
) -> Path:
    """
    Write the human-readable merge report listing each source archive and
    the table files it contained.
    """
    log_path = Path(out_dir) / name
    stamp = (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")

    lines = ["GTFS Merge Log", f"Generated on {stamp}", _SECTION_RULE, ""]
    for feed in feeds:
        lines.extend(
            [
                f"ZIP File: {feed.zip_file_path}",
                f"   Size:     {feed.zip_file_size} bytes",
                f"   Created:  {feed.zip_created:%Y-%m-%d %H:%M:%S}",
                f"   Modified: {feed.zip_modified:%Y-%m-%d %H:%M:%S}",
                f"   Contains {len(feed.inner_files)} file(s) unzipped:",
                "",
            ]
        )
        for inner in feed.inner_files:
            lines.extend(
                [
                    f"     - {inner.file_name}",
                    f"        Size:     {inner.size} bytes",
                    f"        Created:  {inner.created:%Y-%m-%d %H:%M:%S}",
                    f"        Modified: {inner.modified:%Y-%m-%d %H:%M:%S}",
                    "",
                ]
            )
        lines.extend([_FEED_RULE, ""])

    try:
        log_path.write_text("\n".join(lines), encoding="utf-8")
    except OSError as e:
        raise MergeOutputError(f"Failed to write audit log '{log_path}': {e}", log_path, e) from e
    module_logger.info(f"Merge audit log written to {log_path}")
    return log_path


def package_archive(
    out_dir: Union[str, Path],
    archive_path: Union[str, Path],
    preserve: Iterable[str] = (AUDIT_LOG_FILENAME,),
) -> Path:
    """
    Zip the canonical GTFS tables found in `out_dir` into `archive_path`,
    then delete every other loose file in `out_dir` except the names in
    `preserve` and the archive itself.

    Raises:
        MergeOutputError: If the archive cannot be created.
    """
    out_path = Path(out_dir)
    zip_path = Path(archive_path)
    present = [name for name in CANONICAL_GTFS_FILES if (out_path / name).is_file()]
    if not present:
        module_logger.warning(f"No canonical GTFS tables found in {out_path}; archive will be empty.")

    try:
        with zipfile.ZipFile(zip_path, "w", compression=zipfile.ZIP_DEFLATED) as zip_ref:
            for name in present:
                zip_ref.write(out_path / name, arcname=name)
    except OSError as e:
        raise MergeOutputError(f"Failed to create archive '{zip_path}': {e}", zip_path, e) from e

    keep = list(preserve)
    if zip_path.parent.resolve() == out_path.resolve():
        keep.append(zip_path.name)
    removed = remove_files_except(out_path, keep)
    module_logger.info(
        f"Packaged {len(present)} table(s) into {zip_path}; removed {len(removed)} loose file(s)."
    )
    return zip_path
