from __future__ import annotations

from datetime import date, datetime, timezone

import pytest

from common.daterange import DateRange, DateRanges


def test_parse_closed_range():
    r = DateRanges.parse("20240101-20241231")
    assert r.ranges == [DateRange(start=date(2024, 1, 1), end=date(2024, 12, 31))]


def test_parse_partial_dates_expand_to_full_periods():
    r = DateRanges.parse("2024,202402")
    assert r.ranges[0] == DateRange(start=date(2024, 1, 1), end=date(2024, 12, 31))
    # Leap year February
    assert r.ranges[1] == DateRange(start=date(2024, 2, 1), end=date(2024, 2, 29))


def test_parse_open_ranges():
    r = DateRanges.parse("20240601-, -20230101")
    assert r.ranges[0] == DateRange(start=date(2024, 6, 1), end=None)
    assert r.ranges[1] == DateRange(start=None, end=date(2023, 1, 1))
    assert r.has_ranges()


@pytest.mark.parametrize("text", ["", "-", "2024-13", "20240230", "abc", "20241231-20240101"])
def test_parse_rejects_invalid(text):
    with pytest.raises(ValueError):
        DateRanges.parse(text)


def test_contains_uses_local_date():
    r = DateRanges.parse("20240105")
    assert r.contains(datetime(2024, 1, 5, 23, 59))
    assert not r.contains(datetime(2024, 1, 6, 0, 0))


def test_since_is_open_ended():
    r = DateRanges.since(datetime(2024, 12, 1, 23, 30))
    assert r.ranges == [DateRange(start=date(2024, 12, 1), end=None)]
    assert r.contains(date(2030, 1, 1))


def test_empty_ranges_have_no_bounds():
    assert not DateRanges().has_ranges()
    assert not DateRanges([DateRange()]).has_ranges()


def test_query_window_pads_one_day_each_side():
    after, before = DateRanges.parse("20240105-20240110").query_window()
    assert after == int(datetime(2024, 1, 4, tzinfo=timezone.utc).timestamp())
    assert before == int(datetime(2024, 1, 12, tzinfo=timezone.utc).timestamp())


def test_query_window_open_end():
    after, before = DateRanges.since(date(2024, 1, 5)).query_window()
    assert after == int(datetime(2024, 1, 4, tzinfo=timezone.utc).timestamp())
    assert before is None


def test_str_form():
    assert str(DateRanges.parse("20240105-,2023")) == "20240105-,20230101-20231231"
