from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List

from common.runner import RunOptions, UsageError, fetch_activities, resolve_date_ranges
from common.settings import UserSettings
from common.strava import StravaClient

from .track import build_gpx, gpx_filename


logger = logging.getLogger(__name__)


def run(opts: RunOptions, *, client: StravaClient, settings: UserSettings) -> Dict[str, Any]:
    # GPX export has no state channel, so --date is always required
    ranges = resolve_date_ranges(opts.date, None, None)

    out_dir = opts.output or settings.gpx_dir
    if not out_dir:
        raise UsageError(
            "--output is required (or set gpxDir in user.settings.json). "
            "Specify an output directory (e.g., -o ./gpx)"
        )

    written: List[str] = []
    skipped = 0
    for activity in fetch_activities(client, ranges):
        gpx = build_gpx(activity, client.streams(activity.id))
        if gpx is None:
            skipped += 1
            continue
        path = Path(out_dir) / gpx_filename(activity)
        if opts.dry_run:
            logger.info("Dry run: would write %s", path)
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(gpx.to_xml(), encoding="utf-8")
            logger.debug("Wrote %s", path)
        written.append(str(path))

    logger.info("GPX: %d file(s), %d skipped without GPS data", len(written), skipped)
    return {"ok": True, "files": written, "skipped": skipped, "dry_run": opts.dry_run}
