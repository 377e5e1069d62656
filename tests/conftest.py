# tests/conftest.py
from typing import Dict

import pytest

from config.config_models import AgencyConfig, ImportSettings
from processors.gtfs.memory_store import MemoryFeedStore

DEMO_FEED: Dict[str, str] = {
    "agency": (
        "agency_id,agency_name,agency_url,agency_timezone\n"
        "DEMO,Demo Transit,https://demo.example.com,America/Los_Angeles\n"
    ),
    "calendar": (
        "service_id,monday,tuesday,wednesday,thursday,friday,saturday,sunday,start_date,end_date\n"
        "WK,1,1,1,1,1,0,0,20240101,20241231\n"
    ),
    "routes": (
        "route_id,agency_id,route_short_name,route_long_name,route_type\n"
        "R1,DEMO,1,Main Street,3\n"
    ),
    "stops": (
        "stop_id,stop_name,stop_lat,stop_lon\n"
        "S1,First Avenue,45.5,-122.6\n"
        "S2,Second Avenue,45.6,-122.4\n"
    ),
    "trips": (
        "route_id,service_id,trip_id\n"
        "R1,WK,T1\n"
        "R404,WK,T2\n"
    ),
    "stop_times": (
        "trip_id,arrival_time,departure_time,stop_id,stop_sequence\n"
        "T1,08:00:00,08:00:00,S1,1\n"
        "T1,08:10:00,08:10:00,S2,2\n"
    ),
}


@pytest.fixture
def memory_store():
    return MemoryFeedStore()


@pytest.fixture
def write_feed(tmp_path):
    """Write {filename_base: text} as .txt files into a fresh directory."""

    def _write(files: Dict[str, str], name: str = "feed"):
        feed_dir = tmp_path / "sources" / name
        feed_dir.mkdir(parents=True, exist_ok=True)
        for filename_base, content in files.items():
            (feed_dir / f"{filename_base}.txt").write_text(content, encoding="utf-8")
        return feed_dir

    return _write


@pytest.fixture
def make_settings(tmp_path):
    """ImportSettings for the given agencies, downloading under tmp_path."""

    def _make(*agencies: AgencyConfig, **overrides):
        overrides.setdefault("download_dir", tmp_path / "downloads")
        return ImportSettings(agencies=list(agencies), **overrides)

    return _make


@pytest.fixture
def demo_feed():
    """A small valid feed: one agency, route and service, two stops and trips."""
    return dict(DEMO_FEED)
