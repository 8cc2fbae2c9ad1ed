from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import pytest

from common.daterange import DateRanges
from common.runner import RunOptions, UsageError
from common.settings import UserSettings
from common.strava import Activity, ActivityMap, Athlete, Gear, Segment, StreamSet
from state.models import ChannelState, UserState
from state.store import JsonStateStore, StateSaveError
from state.tracker import StateTracker


POLY = "_p~iF~ps|U_ulLnnqC_mqNvxq`@"


def _act(ident: int, local: str, kind: str = "Ride", **kw) -> Activity:
    dt = datetime.fromisoformat(local)
    base: Dict[str, Any] = dict(
        id=ident,
        name=f"{kind} {ident}",
        type=kind,
        start_date=dt.replace(tzinfo=timezone.utc),
        start_date_local=dt,
        distance=10000.0,
        moving_time=1800,
        gear_id="b1",
        map=ActivityMap(summary_polyline=POLY),
    )
    base.update(kw)
    return Activity(**base)


class _FakeStrava:
    def __init__(self, activities: List[Activity]) -> None:
        self._activities = activities
        self.list_calls: List[Dict[str, Optional[int]]] = []
        self.detail_calls: List[int] = []
        self.stream_calls: List[int] = []

    def activities(self, *, after=None, before=None, per_page=100):  # noqa: ARG002
        self.list_calls.append({"after": after, "before": before})
        return list(self._activities)

    def activity(self, activity_id: int) -> Activity:
        self.detail_calls.append(activity_id)
        src = next(a for a in self._activities if a.id == activity_id)
        return src.model_copy(update={"description": f"detail {activity_id}"})

    def streams(self, activity_id: int) -> StreamSet:
        self.stream_calls.append(activity_id)
        return StreamSet(latlng=[[45.0, -122.0], [45.1, -122.1]])

    def athlete(self) -> Athlete:
        return Athlete(id=1, bikes=[Gear(id="b1", name="Domane")])

    def starred_segments(self) -> List[Segment]:
        return [Segment(id=5, name="Climb")]

    def segment(self, segment_id: int) -> Segment:
        return Segment(id=segment_id, name="Climb", map=ActivityMap(polyline=POLY))


def _tracker(tmp_path, state: Optional[UserState] = None) -> StateTracker:
    store = JsonStateStore(tmp_path / "user.state.json")
    if state is not None:
        store.save(state)
    tracker = StateTracker(store)
    tracker.load()
    return tracker


ACTIVITIES = [
    _act(1, "2024-01-05T10:00:00"),
    _act(2, "2024-01-07T08:00:00"),
    _act(3, "2024-01-06T23:00:00", kind="Run"),
    _act(4, "2023-12-30T09:00:00"),
]


def test_kml_first_run_without_date_requires_date(tmp_path):
    from kml import handler as kml

    with pytest.raises(UsageError):
        kml.run(
            RunOptions(output=str(tmp_path / "a.kml")),
            client=_FakeStrava(ACTIVITIES),  # type: ignore[arg-type]
            tracker=_tracker(tmp_path),
            settings=UserSettings(),
        )


def test_kml_with_date_writes_and_advances_watermark(tmp_path):
    from kml import handler as kml

    tracker = _tracker(tmp_path)
    out = tmp_path / "a.kml"
    strava = _FakeStrava(ACTIVITIES)

    result = kml.run(
        RunOptions(date=DateRanges.parse("202401"), output=str(out), segments=True),
        client=strava,  # type: ignore[arg-type]
        tracker=tracker,
        settings=UserSettings(),
    )

    assert result["activities"] == 3  # 2023 activity filtered out
    assert result["segments"] == 1
    assert out.exists()
    assert tracker.get_last_updated("kml") == "2024-01-07T08:00:00"
    assert tracker.get_last_updated("pdf") is None
    assert strava.stream_calls == []


def test_kml_without_date_continues_from_watermark(tmp_path):
    from kml import handler as kml

    tracker = _tracker(tmp_path, UserState(kml=ChannelState(last_updated="2024-01-06T23:30:00")))
    strava = _FakeStrava(ACTIVITIES)

    result = kml.run(
        RunOptions(streams=True),
        client=strava,  # type: ignore[arg-type]
        tracker=tracker,
        settings=UserSettings(kmlFile=str(tmp_path / "default.kml")),
    )

    # Same-day activity before the watermark time is included again
    assert sorted(strava.stream_calls) == [2, 3]
    assert result["output"] == str(tmp_path / "default.kml")
    assert strava.list_calls[0]["after"] is not None
    assert strava.list_calls[0]["before"] is None
    assert tracker.get_last_updated("kml") == "2024-01-07T08:00:00"


def test_kml_dry_run_writes_nothing(tmp_path):
    from kml import handler as kml

    tracker = _tracker(tmp_path)
    out = tmp_path / "a.kml"
    kml.run(
        RunOptions(date=DateRanges.parse("2024"), output=str(out), dry_run=True),
        client=_FakeStrava(ACTIVITIES),  # type: ignore[arg-type]
        tracker=tracker,
        settings=UserSettings(),
    )

    assert not out.exists()
    assert not (tmp_path / "user.state.json").exists()


def test_kml_requires_output(tmp_path):
    from kml import handler as kml

    with pytest.raises(UsageError):
        kml.run(
            RunOptions(date=DateRanges.parse("2024")),
            client=_FakeStrava(ACTIVITIES),  # type: ignore[arg-type]
            tracker=_tracker(tmp_path),
            settings=UserSettings(),
        )


def test_pdf_uses_detailed_activities_and_pdf_channel(tmp_path):
    from pdf import handler as pdf

    tracker = _tracker(tmp_path, UserState(kml=ChannelState(last_updated="2020-01-01T00:00:00")))
    out = tmp_path / "bikelog.xml"
    strava = _FakeStrava(ACTIVITIES)

    result = pdf.run(
        RunOptions(date=DateRanges.parse("20240101-20240131")),
        client=strava,  # type: ignore[arg-type]
        tracker=tracker,
        settings=UserSettings(formsDataFile=str(out)),
    )

    assert result["activities"] == 3
    assert strava.detail_calls == [1, 3, 2]  # oldest first
    text = out.read_text(encoding="utf-8")
    assert "detail 1" in text
    assert "Domane" in text
    assert tracker.get_last_updated("pdf") == "2024-01-07T08:00:00"
    assert tracker.get_last_updated("kml") == "2020-01-01T00:00:00"


def test_pdf_first_run_requires_date(tmp_path):
    from pdf import handler as pdf

    with pytest.raises(UsageError):
        pdf.run(
            RunOptions(output=str(tmp_path / "b.xml")),
            client=_FakeStrava(ACTIVITIES),  # type: ignore[arg-type]
            tracker=_tracker(tmp_path),
            settings=UserSettings(),
        )


def test_pdf_save_failure_propagates(tmp_path):
    from pdf import handler as pdf

    blocker = tmp_path / "blocker"
    blocker.write_text("", encoding="utf-8")
    tracker = StateTracker(JsonStateStore(blocker / "user.state.json"))
    tracker.load()

    with pytest.raises(StateSaveError):
        pdf.run(
            RunOptions(date=DateRanges.parse("2024"), output=str(tmp_path / "b.xml")),
            client=_FakeStrava(ACTIVITIES),  # type: ignore[arg-type]
            tracker=tracker,
            settings=UserSettings(),
        )


def test_gpx_writes_one_file_per_activity(tmp_path):
    from gpx import handler as gpx

    result = gpx.run(
        RunOptions(date=DateRanges.parse("20240105-20240106"), output=str(tmp_path / "gpx")),
        client=_FakeStrava(ACTIVITIES),  # type: ignore[arg-type]
        settings=UserSettings(),
    )

    names = sorted(p.name for p in (tmp_path / "gpx").iterdir())
    assert names == ["20240105_1.gpx", "20240106_3.gpx"]
    assert result["skipped"] == 0


def test_gpx_requires_date(tmp_path):
    from gpx import handler as gpx

    with pytest.raises(UsageError):
        gpx.run(
            RunOptions(output=str(tmp_path)),
            client=_FakeStrava(ACTIVITIES),  # type: ignore[arg-type]
            settings=UserSettings(),
        )
