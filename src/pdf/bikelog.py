from __future__ import annotations

import logging
import re
import xml.etree.ElementTree as ET
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from common import units
from common.strava import Activity, Athlete


logger = logging.getLogger(__name__)

XFDF_NS = "http://ns.adobe.com/xfdf/"

# Rides per day with dedicated form fields; further rides are summarized in notes
RIDES_PER_DAY = 2

WEIGHT_KEYS = {"weight", "wt"}

_PROP_RE = re.compile(r"^\s*([A-Za-z][\w ]*?)\s*=\s*(.+?)\s*$")


@dataclass
class ParsedNotes:
    """Description text split into free-form lines and `key=value` properties."""

    lines: List[str] = field(default_factory=list)
    props: Dict[str, str] = field(default_factory=dict)


def parse_notes(*texts: Optional[str]) -> ParsedNotes:
    out = ParsedNotes()
    for text in texts:
        if not text:
            continue
        for raw in text.splitlines():
            line = raw.strip()
            if not line:
                continue
            m = _PROP_RE.match(line)
            if m:
                out.props[m.group(1).strip().lower()] = m.group(2)
            else:
                out.lines.append(line)
    return out


def julian_day(d: date) -> int:
    """Day of the year, 1-based; bikelog form fields are keyed on it."""
    return d.timetuple().tm_yday


class BikelogBuilder:
    """
    Collects activities into Acroforms field values for a yearly bikelog PDF.

    Per local calendar day (field suffix = day of year):
    - distance{n}, bike{n}, el{n}, time{n} for the first two rides (n = 0, 1)
    - notes: descriptions, private notes, custom properties and one-line
      summaries of non-bike (or surplus) activities
    - wt: weight taken from a `weight=` or `wt=` property
    """

    def __init__(
        self,
        *,
        athlete: Optional[Athlete] = None,
        bikes: Optional[Dict[str, str]] = None,
        imperial: bool = False,
    ) -> None:
        self._athlete = athlete
        self._bikes = bikes or {}
        self._imperial = imperial
        self._days: Dict[date, List[Activity]] = defaultdict(list)

    def add(self, activities: Iterable[Activity]) -> None:
        for a in activities:
            self._days[a.start_date_local.date()].append(a)

    def bike_label(self, activity: Activity) -> str:
        name = self._athlete.gear_name(activity.gear_id) if self._athlete else None
        if name:
            return self._bikes.get(name, name)
        if activity.trainer:
            return "Trainer"
        return ""

    def _summary(self, activity: Activity) -> str:
        kind = activity.sport_type or activity.type
        parts = [units.distance(activity.distance, imperial=self._imperial)] if activity.distance else []
        parts.append(units.duration(activity.moving_time))
        head = f"{kind}: {activity.name}" if activity.is_ride() else f"{kind}:"
        return f"{head} {', '.join(parts)}"

    def _day_fields(self, day: date, activities: List[Activity]) -> List[Tuple[str, str]]:
        doy = julian_day(day)
        out: List[Tuple[str, str]] = []
        notes: List[str] = []
        weight: Optional[str] = None

        ride_index = 0
        for a in sorted(activities, key=lambda x: x.start_date_local):
            if a.is_ride() and ride_index < RIDES_PER_DAY:
                n = ride_index
                ride_index += 1
                out.append((f"distance{n}_{doy}", units.distance(a.distance, imperial=self._imperial, unit=False)))
                out.append((f"bike{n}_{doy}", self.bike_label(a)))
                out.append((f"el{n}_{doy}", units.elevation(a.total_elevation_gain, imperial=self._imperial, unit=False)))
                out.append((f"time{n}_{doy}", units.duration(a.moving_time)))
            else:
                notes.append(self._summary(a))

            parsed = parse_notes(a.description, a.private_note)
            notes.extend(parsed.lines)
            for key, value in parsed.props.items():
                if key in WEIGHT_KEYS:
                    weight = value
                else:
                    notes.append(f"{key}: {value}")

        if notes:
            out.append((f"notes_{doy}", "\n".join(notes)))
        if weight is not None:
            out.append((f"wt_{doy}", weight))
        return out

    def fields(self) -> List[Tuple[str, str]]:
        years = {d.year for d in self._days}
        if len(years) > 1:
            logger.warning(
                "Activities span years %s; bikelog fields are keyed by day of year and will collide",
                ", ".join(str(y) for y in sorted(years)),
            )
        out: List[Tuple[str, str]] = []
        for day in sorted(self._days):
            out.extend(self._day_fields(day, self._days[day]))
        return out

    def to_xml(self) -> str:
        root = ET.Element("xfdf", {"xmlns": XFDF_NS, "xml:space": "preserve"})
        fields_el = ET.SubElement(root, "fields")
        for name, value in self.fields():
            f = ET.SubElement(fields_el, "field", {"name": name})
            ET.SubElement(f, "value").text = value
        ET.indent(root)
        return '<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(root, encoding="unicode") + "\n"

    def write(self, path: Path | str) -> None:
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(self.to_xml(), encoding="utf-8")
        logger.info("Wrote bikelog for %d day(s) to %s", len(self._days), p)
