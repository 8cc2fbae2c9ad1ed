from __future__ import annotations

from datetime import datetime, timedelta, timezone

import gpxpy

from common.strava import Activity, StreamSet
from gpx.track import build_gpx, gpx_filename


def _activity() -> Activity:
    return Activity(
        id=42,
        name="Evening Ride",
        type="Ride",
        start_date=datetime(2024, 1, 5, 18, 0, tzinfo=timezone.utc),
        start_date_local=datetime(2024, 1, 5, 10, 0),
    )


def test_build_gpx_points_with_time_and_elevation():
    streams = StreamSet(
        latlng=[[45.0, -122.0], [45.001, -122.001]],
        time=[0, 30],
        altitude=[100.0, 102.5],
    )

    gpx = build_gpx(_activity(), streams)
    assert gpx is not None

    parsed = gpxpy.parse(gpx.to_xml())
    points = parsed.tracks[0].segments[0].points
    assert len(points) == 2
    assert points[1].latitude == 45.001
    assert points[1].elevation == 102.5
    assert points[1].time == datetime(2024, 1, 5, 18, 0, tzinfo=timezone.utc) + timedelta(seconds=30)
    assert parsed.tracks[0].name == "Evening Ride"


def test_build_gpx_without_gps_returns_none():
    assert build_gpx(_activity(), StreamSet()) is None


def test_filename_uses_local_date():
    assert gpx_filename(_activity()) == "20240105_42.gpx"
