# tests/conftest.py
import zipfile
from pathlib import Path
from typing import Dict

import pytest

from processors.gtfs_merge.session import MergeSession

AGENCY = "agency_id,agency_name,agency_url,agency_timezone\nA1,Metro,http://metro.example,Australia/Hobart\n"
CALENDAR_HEADER = "service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date\n"


def write_feed_zip(path: Path, tables: Dict[str, str]) -> Path:
    """Write `tables` (file name -> CSV text) into a GTFS zip at `path`."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, text in tables.items():
            zf.writestr(name, text)
    return path


@pytest.fixture
def make_feed(tmp_path):
    """Factory fixture: make_feed("feed1", {"stops.txt": "..."}) -> zip path."""

    def _make(name: str, tables: Dict[str, str]) -> Path:
        return write_feed_zip(tmp_path / "feeds" / f"{name}.zip", tables)

    return _make


@pytest.fixture
def session():
    return MergeSession()


@pytest.fixture
def base_feed_tables() -> Dict[str, str]:
    """A small but complete feed used as feed 1 in merge tests."""
    return {
        "agency.txt": AGENCY,
        "stops.txt": "stop_id,stop_name,stop_lat,stop_lon\nS1,Central,1.0,2.0\nS2,North,1.5,2.5\n",
        "calendar.txt": CALENDAR_HEADER + "WK,1,1,1,1,1,0,0,20240101,20241231\n",
        "calendar_dates.txt": "service_id,date,exception_type\nWK,20240101,2\n",
        "routes.txt": "route_id,agency_id,route_short_name,route_type\nR1,A1,1,3\n",
        "shapes.txt": (
            "shape_id,shape_pt_lat,shape_pt_lon,shape_pt_sequence,shape_dist_traveled\n"
            "SH1,1.0,2.0,1,0\nSH1,1.2,2.2,2,100\nSH1,1.5,2.5,3,200\n"
        ),
        "trips.txt": "route_id,service_id,trip_id,shape_id\nR1,WK,T1,SH1\n",
        "stop_times.txt": (
            "trip_id,arrival_time,departure_time,stop_id,stop_sequence,shape_dist_traveled\n"
            "T1,08:00:00,08:00:00,S1,1,0\nT1,08:10:00,08:10:00,S2,2,200\n"
        ),
    }
