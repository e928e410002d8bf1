#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Flags trips whose stop times run further along the shape than the shape
itself: the last stop's shape_dist_traveled exceeds the last shape point's.
"""

import logging
import math
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import pandas as pd

from .schema_definitions import DISCREPANCY_REPORT_COLUMNS, Discrepancy

module_logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6371e3

REQUIRED_COLUMNS: Dict[str, List[str]] = {
    "trips.txt": ["trip_id", "shape_id"],
    "stop_times.txt": ["trip_id", "stop_id", "stop_sequence"],
    "stops.txt": ["stop_id", "stop_lat", "stop_lon"],
    "shapes.txt": ["shape_id", "shape_pt_lat", "shape_pt_lon", "shape_pt_sequence", "shape_dist_traveled"],
}


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres between two WGS84 points."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return EARTH_RADIUS_M * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def _load_table(feed_dir: Path, table_name: str) -> Optional[pd.DataFrame]:
    path = feed_dir / table_name
    if not path.is_file():
        module_logger.warning(f"{table_name} not found in {feed_dir}; skipping discrepancy check.")
        return None
    try:
        df = pd.read_csv(path, dtype=str, keep_default_na=False, na_values=[], encoding="utf-8-sig")
    except pd.errors.EmptyDataError:
        module_logger.warning(f"{table_name} is empty; skipping discrepancy check.")
        return None
    missing = [c for c in REQUIRED_COLUMNS[table_name] if c not in df.columns]
    if missing:
        module_logger.warning(f"{table_name} lacks columns {missing}; skipping discrepancy check.")
        return None
    return df


def _numeric(series: pd.Series, fill: Optional[float] = None) -> pd.Series:
    values = pd.to_numeric(series.str.strip(), errors="coerce")
    return values.fillna(fill) if fill is not None else values


def _last_stop_per_trip(stop_times_df: pd.DataFrame, stops_df: pd.DataFrame) -> pd.DataFrame:
    st = pd.DataFrame(
        {
            "trip_id": stop_times_df["trip_id"],
            "stop_id": stop_times_df["stop_id"],
            "seq": _numeric(stop_times_df["stop_sequence"]),
            "max_trip_distance_traveled": (
                _numeric(stop_times_df["shape_dist_traveled"], fill=0.0)
                if "shape_dist_traveled" in stop_times_df.columns
                else 0.0
            ),
        }
    ).dropna(subset=["seq"])
    last = st.sort_values(["trip_id", "seq"], kind="mergesort").groupby("trip_id").tail(1)

    coords = pd.DataFrame(
        {
            "stop_id": stops_df["stop_id"],
            "stop_lat": _numeric(stops_df["stop_lat"], fill=0.0),
            "stop_lon": _numeric(stops_df["stop_lon"], fill=0.0),
        }
    ).drop_duplicates(subset="stop_id", keep="last")
    last = last.merge(coords, on="stop_id", how="left")
    last[["stop_lat", "stop_lon"]] = last[["stop_lat", "stop_lon"]].fillna(0.0)
    return last[["trip_id", "max_trip_distance_traveled", "stop_lat", "stop_lon"]]


def _last_point_per_shape(shapes_df: pd.DataFrame) -> pd.DataFrame:
    pts = pd.DataFrame(
        {
            "shape_id": shapes_df["shape_id"],
            "seq": _numeric(shapes_df["shape_pt_sequence"]),
            "max_shape_distance_traveled": _numeric(shapes_df["shape_dist_traveled"], fill=0.0),
            "shape_lat": _numeric(shapes_df["shape_pt_lat"], fill=0.0),
            "shape_lon": _numeric(shapes_df["shape_pt_lon"], fill=0.0),
        }
    ).dropna(subset=["seq"])
    last = pts.sort_values(["shape_id", "seq"], kind="mergesort").groupby("shape_id").tail(1)
    return last.drop(columns="seq")


def find_distance_discrepancies(feed_dir: Union[str, Path]) -> List[Discrepancy]:
    """
    Compare, for every trip with both stop times and shape points, the last
    stop's shape_dist_traveled with the last shape point's.

    Args:
        feed_dir: Directory holding trips, stop_times, stops and shapes.

    Returns:
        One Discrepancy per trip whose stop distance is greater, in trips.txt
        order. Empty if a required table or column is missing.
    """
    feed_path = Path(feed_dir)
    tables = {name: _load_table(feed_path, name) for name in REQUIRED_COLUMNS}
    if any(df is None for df in tables.values()):
        return []

    trips_df = tables["trips.txt"][["trip_id", "shape_id"]]
    joined = (
        trips_df.merge(_last_stop_per_trip(tables["stop_times.txt"], tables["stops.txt"]), on="trip_id")
        .merge(_last_point_per_shape(tables["shapes.txt"]), on="shape_id")
    )
    flagged = joined[joined["max_trip_distance_traveled"] > joined["max_shape_distance_traveled"]]

    discrepancies = [
        Discrepancy(
            trip_id=row.trip_id,
            shape_id=row.shape_id,
            max_trip_distance_traveled=row.max_trip_distance_traveled,
            max_shape_distance_traveled=row.max_shape_distance_traveled,
            geo_distance_to_shape=haversine_m(row.stop_lat, row.stop_lon, row.shape_lat, row.shape_lon),
            stop_lat=row.stop_lat,
            stop_lon=row.stop_lon,
            shape_lat=row.shape_lat,
            shape_lon=row.shape_lon,
        )
        for row in flagged.itertuples(index=False)
    ]
    module_logger.info(
        f"Checked {len(joined)} trip(s) in {feed_path}; {len(discrepancies)} distance discrepancy(ies)."
    )
    return discrepancies


def write_discrepancy_report(discrepancies: Sequence[Discrepancy], report_path: Union[str, Path]) -> Path:
    """Write discrepancies as CSV with a fixed header, even when there are none."""
    path = Path(report_path)
    report_df = pd.DataFrame(
        [d.model_dump() for d in discrepancies], columns=DISCREPANCY_REPORT_COLUMNS
    )
    report_df.to_csv(path, index=False, lineterminator="\n", encoding="utf-8")
    module_logger.info(f"Discrepancy report written to {path} ({len(discrepancies)} row(s)).")
    return path
