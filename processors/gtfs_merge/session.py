# processors/gtfs_merge/session.py
# -*- coding: utf-8 -*-
"""
State of one merge session.

A `MergeSession` owns the Tabular Store and every identity map used to
resolve collisions across feeds. Feeds are loaded strictly one after the
other; the per-feed rename maps are reset by `begin_feed` and never leak
into the next feed's decisions.
"""

import logging
from typing import Container, Dict, FrozenSet, List, Optional, Set, Tuple

from . import pipeline_definitions as defs
from .schema_definitions import FeedMetadata, ServiceIdentity, StopIdentity
from .tabular_store import TabularStore

module_logger = logging.getLogger(__name__)


class RenameMaps:
    """Old id -> new id mappings decided while loading the current feed."""

    def __init__(self) -> None:
        self.stops: Dict[str, str] = {}
        self.services: Dict[str, str] = {}
        self.shapes: Dict[str, str] = {}
        self.trips: Dict[str, str] = {}

    def for_kind(self, kind: str) -> Dict[str, str]:
        """Return the map for one of the `pipeline_definitions` kinds."""
        maps = {
            defs.STOPS: self.stops,
            defs.SERVICES: self.services,
            defs.SHAPES: self.shapes,
            defs.TRIPS: self.trips,
        }
        return maps[kind]

    def reset(self) -> None:
        self.stops = {}
        self.services = {}
        self.shapes = {}
        self.trips = {}

    def total(self) -> int:
        return len(self.stops) + len(self.services) + len(self.shapes) + len(self.trips)


class MergeSession:
    """
    Identity maps and accumulated tables for one multi-feed merge.

    Attributes:
        store: Accumulated tables across all feeds.
        known_stops: stop_id -> recorded coordinates and introducing feed.
        known_services: service_id -> recorded fingerprints and introducing feed.
        known_shapes: shape_id -> feed index that introduced it.
        known_trips: trip_id -> feed index that introduced it.
        seen_route_ids: route ids already written to routes.txt.
        renames: Rename maps of the feed currently being loaded.
        confirmed_services: Services of the current feed whose calendar row
            and calendar_dates rows both matched an earlier feed exactly.
        feed_service_dates: service_id -> calendar_dates fingerprint of the
            feed currently being loaded, set before any table is merged.
        feeds: Audit metadata, one record per loaded archive.
    """

    def __init__(self, renamed_id_separator: str = defs.DEFAULT_RENAMED_ID_SEPARATOR):
        self.renamed_id_separator = renamed_id_separator
        self.store = TabularStore()

        self.known_stops: Dict[str, StopIdentity] = {}
        self.known_services: Dict[str, ServiceIdentity] = {}
        self.known_shapes: Dict[str, int] = {}
        self.known_trips: Dict[str, int] = {}
        self.seen_route_ids: Set[str] = set()

        self.renames = RenameMaps()
        self.confirmed_services: Set[str] = set()
        self.feed_service_dates: Dict[str, FrozenSet[Tuple[Tuple[str, str], ...]]] = {}
        self.feeds: List[FeedMetadata] = []

        self._contributed_tables: Set[str] = set()
        self._current_feed: Optional[int] = None

    @property
    def current_feed(self) -> Optional[int]:
        return self._current_feed

    def begin_feed(self, feed_index: int) -> None:
        """
        Start loading a feed: reset the per-feed maps.

        Raises:
            ValueError: If `feed_index` is not a positive index strictly
                greater than the previously loaded feed's index.
        """
        if feed_index < 1:
            raise ValueError(f"Feed index must be 1-based, got {feed_index}.")
        if self._current_feed is not None and feed_index <= self._current_feed:
            raise ValueError(
                f"Feeds must be loaded in increasing order: got {feed_index} "
                f"after {self._current_feed}."
            )
        self._current_feed = feed_index
        self.renames.reset()
        self.confirmed_services = set()
        self.feed_service_dates = {}
        module_logger.debug(f"Rename maps reset for feed {feed_index}.")

    def renamed_id(self, old_id: str, feed_index: int, *taken: Container[str]) -> str:
        """
        Return `<old_id><separator><feed_index>`, suffixed `_1`, `_2`, ... until
        it is in none of the `taken` id collections.
        """
        base = f"{old_id}{self.renamed_id_separator}{feed_index}"
        candidate = base
        suffix = 1
        while any(candidate in ids for ids in taken):
            candidate = f"{base}_{suffix}"
            suffix += 1
        if candidate != base:
            module_logger.warning(
                f"Renamed id {base} for {old_id} is already in use, using {candidate} instead."
            )
        return candidate

    def is_first_contributor(self, table_name: str) -> bool:
        """True until some feed has written a header for `table_name`."""
        return table_name.lower() not in self._contributed_tables

    def mark_contributed(self, table_name: str) -> None:
        self._contributed_tables.add(table_name.lower())

    def record_feed(self, metadata: FeedMetadata) -> None:
        self.feeds.append(metadata)
