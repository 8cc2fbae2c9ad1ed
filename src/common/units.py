from __future__ import annotations


METERS_PER_MILE = 1609.344
FEET_PER_METER = 3.28084


def distance(meters: float, *, imperial: bool = False, unit: bool = True) -> str:
    value = meters / METERS_PER_MILE if imperial else meters / 1000.0
    text = f"{value:.2f}"
    if unit:
        text += " mi" if imperial else " km"
    return text


def elevation(meters: float, *, imperial: bool = False, unit: bool = True) -> str:
    value = meters * FEET_PER_METER if imperial else meters
    text = f"{round(value):d}"
    if unit:
        text += " ft" if imperial else " m"
    return text


def duration(seconds: int) -> str:
    """H:MM:SS"""
    seconds = max(int(seconds), 0)
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h}:{m:02d}:{s:02d}"


__all__ = ["distance", "duration", "elevation"]
