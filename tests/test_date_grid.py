"""Tests for the date-to-pixel grid."""

from datetime import date, datetime

import pytest

from ganttboard.core.date_grid import ChartBounds, DateGrid, days_between
from ganttboard.core.error_handler import ValidationError


def test_days_between_forward():
    assert days_between(date(2025, 1, 1), date(2025, 1, 10)) == 9


def test_days_between_negative():
    assert days_between(date(2025, 1, 10), date(2025, 1, 1)) == -9


def test_days_between_ignores_time_of_day():
    assert days_between(datetime(2025, 1, 1, 23, 59), datetime(2025, 1, 2, 0, 1)) == 1


def test_bounds_day_count_is_inclusive():
    assert ChartBounds(date(2025, 1, 1), date(2025, 1, 1)).day_count == 1
    assert ChartBounds(date(2025, 1, 1), date(2025, 1, 10)).day_count == 10


def test_bounds_reject_end_before_start():
    with pytest.raises(ValidationError):
        ChartBounds(date(2025, 1, 10), date(2025, 1, 1))


def test_bounds_normalize_datetimes():
    bounds = ChartBounds(datetime(2025, 1, 1, 9), datetime(2025, 1, 3, 18))
    assert bounds.start == date(2025, 1, 1)
    assert bounds.to_dict() == {'start': '2025-01-01', 'end': '2025-01-03'}


def test_day_width_must_be_positive():
    with pytest.raises(ValidationError):
        DateGrid(0)


def test_offset_and_bar_width():
    grid = DateGrid(40)
    assert grid.offset_of(date(2025, 1, 4), date(2025, 1, 1)) == 120
    assert grid.offset_of(date(2024, 12, 31), date(2025, 1, 1)) == -40
    assert grid.bar_width(date(2025, 1, 1), date(2025, 1, 6)) == 200


def test_bar_width_clamps_to_one_day():
    grid = DateGrid(40)
    assert grid.bar_width(date(2025, 1, 5), date(2025, 1, 5)) == 40
    assert grid.bar_width(date(2025, 1, 10), date(2025, 1, 5)) == 40


def test_total_width():
    grid = DateGrid(40)
    assert grid.total_width(ChartBounds(date(2025, 1, 1), date(2025, 1, 10))) == 400


def test_day_columns():
    grid = DateGrid(40)
    columns = grid.day_columns(ChartBounds(date(2025, 1, 1), date(2025, 1, 10)))
    assert len(columns) == 10
    assert columns[2].date == date(2025, 1, 3)
    assert columns[2].left_px == 80
    assert columns[2].label == "3"
    assert columns[0].weekday == "Wed"


def test_month_spans_split_at_month_boundary():
    grid = DateGrid(40)
    spans = grid.month_spans(ChartBounds(date(2025, 1, 30), date(2025, 2, 2)))
    assert [(s.month, s.left_px, s.width_px) for s in spans] == [(1, 0, 80), (2, 80, 80)]
    assert spans[0].label == "Jan 2025"


def test_week_ticks_start_on_monday_before_bounds():
    grid = DateGrid(40)
    ticks = grid.scale_ticks(ChartBounds(date(2025, 1, 1), date(2025, 1, 14)), "week")
    assert [t.date for t in ticks] == [date(2024, 12, 30), date(2025, 1, 6), date(2025, 1, 13)]
    assert ticks[0].left_px == -80


def test_month_ticks():
    grid = DateGrid(40)
    ticks = grid.scale_ticks(ChartBounds(date(2025, 1, 15), date(2025, 2, 10)), "month")
    assert [t.date for t in ticks] == [date(2025, 1, 1), date(2025, 2, 1)]
    assert ticks[0].left_px == -560
    assert ticks[1].left_px == 680


def test_day_ticks_match_columns():
    grid = DateGrid(20)
    bounds = ChartBounds(date(2025, 3, 1), date(2025, 3, 5))
    assert [t.left_px for t in grid.scale_ticks(bounds, "day")] == [0, 20, 40, 60, 80]


def test_unknown_scale_rejected():
    with pytest.raises(ValidationError):
        DateGrid(40).scale_ticks(ChartBounds(date(2025, 1, 1), date(2025, 1, 2)), "year")
