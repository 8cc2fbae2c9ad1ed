from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from .daterange import DateRanges
from .strava import Activity, StravaClient

if TYPE_CHECKING:
    from state.models import OutputType
    from state.tracker import StateTracker


logger = logging.getLogger(__name__)


class UsageError(RuntimeError):
    """Command line is incomplete (e.g. no --date on a first run)."""


@dataclass
class RunOptions:
    date: Optional[DateRanges] = None
    output: Optional[str] = None
    imperial: bool = False
    dry_run: bool = False
    streams: bool = False
    segments: bool = False


def resolve_date_ranges(
    requested: Optional[DateRanges],
    tracker: Optional["StateTracker"],
    channel: Optional["OutputType"],
) -> DateRanges:
    """Explicit ranges win; otherwise continue from the channel's last run."""
    if requested is not None and requested.has_ranges():
        return requested
    if tracker is not None and channel is not None:
        ranges = tracker.get_date_range_from(channel)
        if ranges is not None:
            logger.info(
                "Fetching activities since last update %s", tracker.get_last_updated(channel)
            )
            return ranges
    raise UsageError(
        "--date is required for first run. Specify date range(s) (e.g., 20240101-20241231)"
    )


def fetch_activities(client: StravaClient, ranges: DateRanges) -> List[Activity]:
    """Activities whose local start date falls in `ranges`, oldest first."""
    after, before = ranges.query_window()
    items = client.activities(after=after, before=before)
    selected = [a for a in items if ranges.contains(a.start_date_local)]
    selected.sort(key=lambda a: a.start_date_local)
    logger.info("Selected %d of %d activities for %s", len(selected), len(items), ranges)
    return selected
