from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import polyline

from common import units
from common.settings import LineStyle
from common.strava import Activity, Segment, StreamSet


logger = logging.getLogger(__name__)

KML_NS = "http://www.opengis.net/kml/2.2"

# aabbggrr
DEFAULT_STYLES: Dict[str, LineStyle] = {
    "Ride": LineStyle(color="C00000FF", width=4),
    "EBikeRide": LineStyle(color="C00080FF", width=4),
    "GravelRide": LineStyle(color="C0004080", width=4),
    "MountainBikeRide": LineStyle(color="C0008000", width=4),
    "Run": LineStyle(color="C0FF0000", width=4),
    "Walk": LineStyle(color="C0FF00FF", width=4),
    "Hike": LineStyle(color="C000FFFF", width=4),
    "Swim": LineStyle(color="C0FFFF00", width=4),
    "Default": LineStyle(color="C0808080", width=4),
    "Segment": LineStyle(color="C000A5FF", width=6),
}

LatLng = Tuple[float, float]


def coordinates_from_polyline(encoded: Optional[str]) -> List[LatLng]:
    if not encoded:
        return []
    return [(lat, lng) for lat, lng in polyline.decode(encoded)]


def coordinates_from_streams(streams: Optional[StreamSet]) -> List[LatLng]:
    if streams is None:
        return []
    return [(p[0], p[1]) for p in streams.latlng if len(p) >= 2]


def _format_coordinates(points: Sequence[LatLng]) -> str:
    return " ".join(f"{lng:.6f},{lat:.6f},0" for lat, lng in points)


def _sub(parent: ET.Element, tag: str, text: Optional[str] = None) -> ET.Element:
    el = ET.SubElement(parent, tag)
    if text is not None:
        el.text = text
    return el


class KmlDocument:
    """
    KML 2.2 document of activity tracks and, optionally, segments.

    Each activity type gets a shared `<Style>`; colours in `line_styles`
    override the built-in palette.
    """

    def __init__(
        self,
        name: str = "Strava Activities",
        *,
        line_styles: Optional[Dict[str, LineStyle]] = None,
        imperial: bool = False,
    ) -> None:
        self._styles: Dict[str, LineStyle] = {**DEFAULT_STYLES, **(line_styles or {})}
        self._imperial = imperial
        self._root = ET.Element("kml", {"xmlns": KML_NS})
        self._doc = _sub(self._root, "Document")
        _sub(self._doc, "name", name)
        self._used_styles: set[str] = set()
        self._activities: Optional[ET.Element] = None
        self._segments: Optional[ET.Element] = None
        self.activity_count = 0
        self.segment_count = 0

    def _style_id(self, kind: str) -> str:
        key = kind if kind in self._styles else "Default"
        if key not in self._used_styles:
            self._used_styles.add(key)
            style = self._styles[key]
            # Styles must precede folders in the document
            st = ET.Element("Style", {"id": key})
            ls = _sub(st, "LineStyle")
            _sub(ls, "color", style.color)
            _sub(ls, "width", f"{style.width:g}")
            self._doc.insert(len(self._used_styles), st)
        return key

    def _folder(self, name: str) -> ET.Element:
        folder = _sub(self._doc, "Folder")
        _sub(folder, "name", name)
        return folder

    def _placemark(
        self, folder: ET.Element, name: str, description: str, style: str, points: Sequence[LatLng]
    ) -> None:
        pm = _sub(folder, "Placemark")
        _sub(pm, "name", name)
        _sub(pm, "description", description)
        _sub(pm, "styleUrl", f"#{style}")
        ls = _sub(pm, "LineString")
        _sub(ls, "tessellate", "1")
        _sub(ls, "coordinates", _format_coordinates(points))

    def add_activity(self, activity: Activity, points: Sequence[LatLng]) -> bool:
        if not points:
            logger.debug("Skipping activity %s without coordinates", activity.id)
            return False
        if self._activities is None:
            self._activities = self._folder("Activities")
        kind = activity.sport_type or activity.type
        description = " ".join(
            [
                activity.start_date_local.strftime("%Y-%m-%d %H:%M"),
                kind,
                units.distance(activity.distance, imperial=self._imperial),
                units.elevation(activity.total_elevation_gain, imperial=self._imperial),
                units.duration(activity.moving_time),
            ]
        )
        name = f"{activity.start_date_local:%Y-%m-%d} {activity.name}"
        self._placemark(self._activities, name, description, self._style_id(kind), points)
        self.activity_count += 1
        return True

    def add_segment(self, segment: Segment) -> bool:
        points = coordinates_from_polyline(segment.map.polyline if segment.map else None)
        if not points:
            logger.debug("Skipping segment %s without polyline", segment.id)
            return False
        if self._segments is None:
            self._segments = self._folder("Segments")
        description = (
            f"{units.distance(segment.distance, imperial=self._imperial)}, "
            f"{segment.average_grade:.1f}% avg grade"
        )
        self._placemark(self._segments, segment.name, description, self._style_id("Segment"), points)
        self.segment_count += 1
        return True

    def to_string(self) -> str:
        ET.indent(self._root)
        body = ET.tostring(self._root, encoding="unicode")
        return '<?xml version="1.0" encoding="UTF-8"?>\n' + body + "\n"

    def write(self, path: Path | str) -> None:
        p = Path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(self.to_string(), encoding="utf-8")
        logger.info("Wrote %d activities and %d segments to %s", self.activity_count, self.segment_count, p)
