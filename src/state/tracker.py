from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Iterable, Optional

from common.daterange import DateRanges

from .models import ChannelState, OutputType, UserState, parse_local_timestamp
from .store import JsonStateStore


logger = logging.getLogger(__name__)


class StateTracker:
    """
    Remembers, per output channel, the local start time of the newest activity
    included in a previous run, so commands can run without `--date`.

    Usage
        tracker = StateTracker(JsonStateStore(state_path()))
        tracker.load()
        ranges = tracker.get_date_range_from("kml")
        ...
        tracker.update_last_updated("kml", activities)

    `update_last_updated` does not clamp: passing activities older than the
    stored watermark moves it backwards (a warning is logged).
    """

    def __init__(self, store: JsonStateStore) -> None:
        self._store = store
        self._state = UserState.empty()

    @property
    def state(self) -> UserState:
        return self._state

    def load(self) -> None:
        self._state = self._store.load()

    def save(self) -> None:
        self._store.save(self._state)

    def get_last_updated(self, channel: OutputType) -> Optional[str]:
        entry = self._state.channel(channel)
        return entry.last_updated if entry else None

    def get_date_range_from(self, channel: OutputType) -> Optional[DateRanges]:
        """Open-ended range from the calendar date of the channel watermark to now."""
        last = self.get_last_updated(channel)
        if not last:
            return None
        return DateRanges.since(parse_local_timestamp(last).date())

    def update_last_updated(self, channel: OutputType, activities: Iterable[Any]) -> None:
        most_recent: Optional[datetime] = None
        for activity in activities:
            ts = parse_local_timestamp(activity.start_date_local)
            if most_recent is None or ts > most_recent:
                most_recent = ts

        if most_recent is None:
            logger.debug("No activities to update %s state from", channel)
            return

        new_value = most_recent.isoformat()
        previous = self.get_last_updated(channel)
        if previous and parse_local_timestamp(previous) > most_recent:
            logger.warning(
                "%s watermark moves backwards from %s to %s", channel, previous, new_value
            )

        setattr(self._state, channel, ChannelState(last_updated=new_value))
        logger.info("Updated %s last updated to %s", channel, new_value)
        self.save()
