#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Main orchestrator for merging several GTFS feeds into one.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Sequence, Union

from common.file_utils import unique_directory
from settings.config_models import MergeSettings

from . import discrepancy, feed_info, writer
from .errors import FeedLoadError, MergeOutputError
from .feed_loader import load_feed
from .session import MergeSession

module_logger = logging.getLogger(__name__)


def prepare_output_folder(base_dir: Union[str, Path], name: str) -> Path:
    """
    Create the folder for one merge run inside `base_dir`.

    Raises:
        MergeOutputError: If `base_dir` does not exist or the folder cannot
            be created.
    """
    base = Path(base_dir)
    if not base.is_dir():
        raise MergeOutputError(f"Output base directory does not exist: {base}", base)
    try:
        folder = unique_directory(base, name)
    except OSError as e:
        raise MergeOutputError(f"Could not create output folder in {base}: {e}", base, e) from e
    module_logger.info(f"Merge output folder: {folder}")
    return folder


def run_merge_pipeline(
    feed_paths: Sequence[Union[str, Path]],
    settings: Optional[MergeSettings] = None,
) -> Path:
    """
    Merge `feed_paths`, in order, into a single GTFS archive.

    The first feed is authoritative: entities introduced by later feeds are
    renamed when their ids collide with different data, and dropped when
    they duplicate an existing entity.

    Returns:
        Path of the merged zip archive.

    Raises:
        FeedLoadError: If an input archive is missing or cannot be read.
        MergeOutputError: If the output cannot be written.
    """
    cfg = settings or MergeSettings()
    symbols = cfg.symbols
    start_time = datetime.now()
    module_logger.info(
        f"{symbols.get('rocket', '')} ===== GTFS Merge Started at {start_time.isoformat()} ====="
    )

    if not feed_paths:
        raise FeedLoadError("No GTFS archives were given to merge.")
    if not Path(cfg.output_dir).is_dir():
        raise MergeOutputError(f"Output directory does not exist: {cfg.output_dir}", cfg.output_dir)
    missing = [str(p) for p in feed_paths if not Path(p).is_file()]
    if missing:
        raise FeedLoadError(f"GTFS archive(s) not found: {', '.join(missing)}", missing[0])

    module_logger.info("--- Step 1: Loading feeds ---")
    session = MergeSession(renamed_id_separator=cfg.renamed_id_separator)
    for feed_index, feed_path in enumerate(feed_paths, start=1):
        try:
            load_feed(session, feed_path, feed_index, temp_root=cfg.temp_dir)
        except FeedLoadError as e:
            module_logger.critical(
                f"{symbols.get('critical', '')} Feed {feed_index} ({feed_path}) could not be merged: {e}"
            )
            raise

    module_logger.info("--- Step 2: Writing merged tables ---")
    archive_stem = f"{cfg.archive_prefix}_{start_time:%Y%m%d_%H%M%S}"
    out_dir = prepare_output_folder(cfg.output_dir, archive_stem)
    writer.write_tables(session.store, out_dir)

    if cfg.update_feed_info:
        module_logger.info("--- Step 3: Updating feed_info.txt ---")
        feed_info.update_or_create_feed_info(
            out_dir / "calendar.txt",
            out_dir / "feed_info.txt",
            out_dir / "agency.txt",
            cfg.feed_info,
            generated_at=start_time,
        )

    preserve = [cfg.audit_log_name]
    if cfg.detect_discrepancies:
        module_logger.info("--- Step 4: Checking shape distance discrepancies ---")
        found = discrepancy.find_distance_discrepancies(out_dir)
        discrepancy.write_discrepancy_report(found, out_dir / cfg.discrepancy_report_name)
        preserve.append(cfg.discrepancy_report_name)

    module_logger.info("--- Step 5: Packaging merged feed ---")
    writer.write_audit_log(session.feeds, out_dir, cfg.audit_log_name)
    archive_path = writer.package_archive(out_dir, out_dir / f"{archive_stem}.zip", preserve=preserve)

    duration = datetime.now() - start_time
    module_logger.info(
        f"{symbols.get('success', '')} ===== GTFS Merge Finished: {len(feed_paths)} feed(s) "
        f"-> {archive_path} in {duration} ====="
    )
    return archive_path
