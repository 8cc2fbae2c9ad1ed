from __future__ import annotations

import calendar
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Tuple, Union


_DATE_RE = re.compile(r"^\d{4}(\d{2}(\d{2})?)?$")


def _parse_bound(s: str, *, end: bool) -> date:
    """Parse YYYY, YYYYMM or YYYYMMDD; partial dates expand to the first/last day."""
    if not _DATE_RE.match(s):
        raise ValueError(f"Invalid date '{s}': expected YYYY, YYYYMM or YYYYMMDD")
    year = int(s[0:4])
    if len(s) == 4:
        return date(year, 12, 31) if end else date(year, 1, 1)
    month = int(s[4:6])
    if len(s) == 6:
        if not 1 <= month <= 12:
            raise ValueError(f"Invalid month in '{s}'")
        last = calendar.monthrange(year, month)[1]
        return date(year, month, last) if end else date(year, month, 1)
    return date(year, month, int(s[6:8]))


def _as_date(value: Union[date, datetime]) -> date:
    return value.date() if isinstance(value, datetime) else value


@dataclass(frozen=True)
class DateRange:
    """Inclusive range of local calendar dates. A missing `end` means "up to now"."""

    start: Optional[date] = None
    end: Optional[date] = None

    def has_bounds(self) -> bool:
        return self.start is not None or self.end is not None

    def contains(self, value: Union[date, datetime]) -> bool:
        d = _as_date(value)
        if self.start is not None and d < self.start:
            return False
        if self.end is not None and d > self.end:
            return False
        return True


@dataclass
class DateRanges:
    """
    A list of `DateRange` items, as given on the command line.

    Text form: comma-separated items `A`, `A-B`, `A-` or `-B` where each date
    is `YYYY`, `YYYYMM` or `YYYYMMDD`, e.g. `20240101-20240630,2025`.
    """

    ranges: List[DateRange] = field(default_factory=list)

    @classmethod
    def parse(cls, text: str) -> "DateRanges":
        items: List[DateRange] = []
        for token in (t.strip() for t in text.split(",")):
            if not token:
                continue
            if "-" in token:
                left, _, right = token.partition("-")
                start = _parse_bound(left, end=False) if left else None
                end = _parse_bound(right, end=True) if right else None
                if start is None and end is None:
                    raise ValueError(f"Invalid date range '{token}'")
            else:
                start = _parse_bound(token, end=False)
                end = _parse_bound(token, end=True)
            if start and end and end < start:
                raise ValueError(f"Date range '{token}' ends before it starts")
            items.append(DateRange(start=start, end=end))
        if not items:
            raise ValueError("Empty date range")
        return cls(items)

    @classmethod
    def since(cls, day: Union[date, datetime]) -> "DateRanges":
        """Single open-ended range from `day` (inclusive) to now."""
        return cls([DateRange(start=_as_date(day), end=None)])

    def has_ranges(self) -> bool:
        return any(r.has_bounds() for r in self.ranges)

    def contains(self, value: Union[date, datetime]) -> bool:
        return any(r.contains(value) for r in self.ranges)

    def query_window(self) -> Tuple[Optional[int], Optional[int]]:
        """
        Epoch-second `(after, before)` bounds covering every range.

        Strava filters on the UTC start time while ranges are local dates, so the
        window is padded by a day on each side; callers filter precisely with
        `contains(activity.start_date_local)`.
        """
        if not self.ranges:
            return (None, None)
        after: Optional[int] = None
        before: Optional[int] = None
        if all(r.start is not None for r in self.ranges):
            first = min(r.start for r in self.ranges) - timedelta(days=1)  # type: ignore[type-var]
            after = int(datetime.combine(first, time.min, tzinfo=timezone.utc).timestamp())
        if all(r.end is not None for r in self.ranges):
            last = max(r.end for r in self.ranges) + timedelta(days=2)  # type: ignore[type-var]
            before = int(datetime.combine(last, time.min, tzinfo=timezone.utc).timestamp())
        return (after, before)

    def __str__(self) -> str:
        def fmt(d: Optional[date]) -> str:
            return d.strftime("%Y%m%d") if d else ""

        return ",".join(f"{fmt(r.start)}-{fmt(r.end)}" for r in self.ranges)


__all__ = ["DateRange", "DateRanges"]
