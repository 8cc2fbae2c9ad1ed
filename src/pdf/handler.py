from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from common.runner import RunOptions, UsageError, fetch_activities, resolve_date_ranges
from common.settings import UserSettings
from common.strava import Athlete, StravaClient
from state.tracker import StateTracker

from .bikelog import BikelogBuilder


logger = logging.getLogger(__name__)


def run(
    opts: RunOptions,
    *,
    client: StravaClient,
    tracker: StateTracker,
    settings: UserSettings,
    athlete: Optional[Athlete] = None,
) -> Dict[str, Any]:
    ranges = resolve_date_ranges(opts.date, tracker, "pdf")

    output = opts.output or settings.forms_data_file
    if not output:
        raise UsageError(
            "--output is required (or set formsDataFile in user.settings.json). "
            "Specify output filename (e.g., -o bikelog.xml)"
        )

    # Bike names come from the athlete's gear list
    if athlete is None:
        athlete = client.athlete()

    summaries = fetch_activities(client, ranges)
    # Summary listings omit description and private note
    activities = [client.activity(a.id) for a in summaries]

    builder = BikelogBuilder(athlete=athlete, bikes=settings.bikes, imperial=opts.imperial)
    builder.add(activities)

    if opts.dry_run:
        logger.info("Dry run: would write %d field(s) to %s", len(builder.fields()), output)
    else:
        builder.write(output)
        tracker.update_last_updated("pdf", activities)

    return {
        "ok": True,
        "activities": len(activities),
        "output": output,
        "dry_run": opts.dry_run,
    }
