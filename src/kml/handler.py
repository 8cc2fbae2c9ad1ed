from __future__ import annotations

import logging
from typing import Any, Dict

from common.runner import RunOptions, UsageError, fetch_activities, resolve_date_ranges
from common.settings import UserSettings
from common.strava import StravaClient
from state.tracker import StateTracker

from .document import KmlDocument, coordinates_from_polyline, coordinates_from_streams


logger = logging.getLogger(__name__)


def run(
    opts: RunOptions,
    *,
    client: StravaClient,
    tracker: StateTracker,
    settings: UserSettings,
) -> Dict[str, Any]:
    ranges = resolve_date_ranges(opts.date, tracker, "kml")

    output = opts.output or settings.kml_file
    if not output:
        raise UsageError(
            "--output is required (or set kmlFile in user.settings.json). "
            "Specify output filename (e.g., -o activities.kml)"
        )

    activities = fetch_activities(client, ranges)

    doc = KmlDocument(line_styles=settings.line_styles, imperial=opts.imperial)
    for activity in activities:
        if opts.streams:
            points = coordinates_from_streams(client.streams(activity.id))
        else:
            points = coordinates_from_polyline(activity.map.summary_polyline if activity.map else None)
        doc.add_activity(activity, points)

    if opts.segments:
        for summary in client.starred_segments():
            doc.add_segment(client.segment(summary.id))

    if opts.dry_run:
        logger.info(
            "Dry run: would write %d activities and %d segments to %s",
            doc.activity_count,
            doc.segment_count,
            output,
        )
    else:
        doc.write(output)
        tracker.update_last_updated("kml", activities)

    return {
        "ok": True,
        "activities": doc.activity_count,
        "segments": doc.segment_count,
        "output": output,
        "dry_run": opts.dry_run,
    }
