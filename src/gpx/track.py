from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional

import gpxpy
import gpxpy.gpx

from common.strava import Activity, StreamSet


logger = logging.getLogger(__name__)


def build_gpx(activity: Activity, streams: StreamSet) -> Optional[gpxpy.gpx.GPX]:
    """Convert activity streams to a single-track GPX; None when there is no GPS data."""
    if not streams.latlng:
        logger.warning("No GPS data available for activity %s", activity.id)
        return None

    gpx = gpxpy.gpx.GPX()
    gpx.name = activity.name
    gpx.description = f"https://www.strava.com/activities/{activity.id}"
    gpx.time = activity.start_date

    track = gpxpy.gpx.GPXTrack(name=activity.name)
    track.type = activity.sport_type or activity.type
    gpx.tracks.append(track)
    segment = gpxpy.gpx.GPXTrackSegment()
    track.segments.append(segment)

    for i, coords in enumerate(streams.latlng):
        if len(coords) < 2:
            continue
        point = gpxpy.gpx.GPXTrackPoint(latitude=coords[0], longitude=coords[1])
        if i < len(streams.time):
            point.time = activity.start_date + timedelta(seconds=streams.time[i])
        if i < len(streams.altitude):
            point.elevation = streams.altitude[i]
        segment.points.append(point)

    return gpx


def gpx_filename(activity: Activity) -> str:
    return f"{activity.start_date_local:%Y%m%d}_{activity.id}.gpx"
