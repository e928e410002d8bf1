#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Command-line interface for the GTFS merge tool.

Subcommands:
    merge FEED [FEED ...]   Merge GTFS zip archives, in order, into one feed.
    feed-info DIR           Create or update feed_info.txt of an unpacked feed.
    discrepancies DIR       Report trips running past the end of their shape.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from common.core_utils import setup_logging_from_settings
from processors.gtfs_merge import discrepancy, feed_info
from processors.gtfs_merge.errors import GTFSMergeError
from processors.gtfs_merge.main_pipeline import run_merge_pipeline
from settings.config_loader import load_merge_settings

module_logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gtfs-merge",
        description="Merge several GTFS feeds into one, renaming colliding identifiers.",
    )
    parser.add_argument(
        "--config-file",
        dest="config_file",
        default="gtfs_merge.yaml",
        help="Path to the YAML configuration file (default: gtfs_merge.yaml).",
    )
    parser.add_argument(
        "--log-level",
        dest="log_level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Set the logging level (default: INFO).",
    )
    parser.add_argument("--log-file", dest="log_file", default=None, help="Also log to this file.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    merge = subparsers.add_parser("merge", help="Merge GTFS zip archives into one feed.")
    merge.add_argument("feeds", nargs="+", type=Path, help="GTFS zip archives; the first is authoritative.")
    merge.add_argument("-o", "--output-dir", dest="output_dir", type=Path, default=None,
                       help="Existing directory to create the merge folder in.")
    merge.add_argument("--archive-prefix", dest="archive_prefix", default=None,
                       help="Prefix of the merged archive name.")
    merge.add_argument("--separator", dest="renamed_id_separator", default=None,
                       help="Text between a colliding id and its feed index (default: _Merged_).")
    merge.add_argument("--no-feed-info", dest="update_feed_info", action="store_const", const=False,
                       default=None, help="Do not create or update feed_info.txt.")
    merge.add_argument("--detect-discrepancies", dest="detect_discrepancies", action="store_const",
                       const=True, default=None, help="Write a shape distance discrepancy report.")
    merge.add_argument("--temp-dir", dest="temp_dir", type=Path, default=None,
                       help="Parent directory for temporary extraction folders.")
    merge.add_argument("--publisher-name", dest="publisher_name", default=None)
    merge.add_argument("--publisher-url", dest="publisher_url", default=None)
    merge.add_argument("--contact-email", dest="contact_email", default=None)
    merge.add_argument("--contact-url", dest="contact_url", default=None)

    info = subparsers.add_parser("feed-info", help="Create or update feed_info.txt in a feed directory.")
    info.add_argument("feed_dir", type=Path)
    info.add_argument("--publisher-name", dest="publisher_name", default=None)
    info.add_argument("--publisher-url", dest="publisher_url", default=None)
    info.add_argument("--contact-email", dest="contact_email", default=None)
    info.add_argument("--contact-url", dest="contact_url", default=None)

    disc = subparsers.add_parser("discrepancies", help="Report shape distance discrepancies.")
    disc.add_argument("feed_dir", type=Path)
    disc.add_argument("--report", dest="report", type=Path, default=None,
                      help="Report path (default: <feed_dir>/discrepancies.txt).")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main command-line interface entry point. Returns the exit code."""
    args = build_parser().parse_args(argv)
    settings = load_merge_settings(cli_args=args, config_file_path=args.config_file)
    setup_logging_from_settings(settings)

    try:
        if args.command == "merge":
            archive = run_merge_pipeline(args.feeds, settings)
            print(f"Merged feed written to {archive}")
        elif args.command == "feed-info":
            feed_dir: Path = args.feed_dir
            changed = feed_info.update_or_create_feed_info(
                feed_dir / "calendar.txt",
                feed_dir / "feed_info.txt",
                feed_dir / "agency.txt",
                settings.feed_info,
            )
            if not changed:
                return 1
        elif args.command == "discrepancies":
            report = args.report or args.feed_dir / settings.discrepancy_report_name
            found = discrepancy.find_distance_discrepancies(args.feed_dir)
            discrepancy.write_discrepancy_report(found, report)
            print(f"{len(found)} discrepancy(ies) written to {report}")
    except GTFSMergeError as e:
        module_logger.error(f"{settings.symbols.get('error', '')} {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
