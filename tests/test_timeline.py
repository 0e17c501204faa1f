"""Tests for the Gantt timeline layout."""

from datetime import date

import pytest

from ganttboard.core.date_grid import ChartBounds
from ganttboard.core.error_handler import ValidationError
from ganttboard.core.timeline import (
    ScheduledItem, TimelineLayout, compute_layout, validate_progress
)
from ganttboard.models import Milestone


def item(item_id, start, end, progress=0, depends_on=()):
    return ScheduledItem(item_id, item_id.upper(), start, end, progress, frozenset(depends_on))


def test_bounds_span_all_item_dates():
    items = [
        item("a", date(2025, 1, 5), date(2025, 1, 10)),
        item("b", date(2025, 1, 3), date(2025, 1, 8)),
    ]
    result = compute_layout(items)
    assert result.bounds == ChartBounds(date(2025, 1, 3), date(2025, 1, 10))


def test_bounds_include_end_before_start_dates():
    items = [item("a", date(2025, 1, 10), date(2025, 1, 2))]
    result = compute_layout(items)
    assert result.bounds == ChartBounds(date(2025, 1, 2), date(2025, 1, 10))


def test_width_never_below_one_day():
    items = [
        item("same-day", date(2025, 1, 5), date(2025, 1, 5)),
        item("reversed", date(2025, 1, 9), date(2025, 1, 4)),
        item("normal", date(2025, 1, 1), date(2025, 1, 4)),
    ]
    result = compute_layout(items, day_width=40)
    assert [row.width_px for row in result.rows] == [40, 40, 120]
    assert all(row.width_px >= 40 for row in result.rows)


def test_progress_width_scales_with_progress():
    widths = []
    for progress in (0, 25, 50, 100):
        rows = compute_layout([item("a", date(2025, 1, 1), date(2025, 1, 11), progress)]).rows
        widths.append(rows[0].progress_px)
    assert widths[0] == 0
    assert widths[-1] == 400
    assert widths == sorted(widths)
    assert widths[2] == 200


def test_empty_items_use_default_window():
    result = compute_layout([], today=date(2025, 3, 1))
    assert result.bounds == ChartBounds(date(2025, 3, 1), date(2025, 3, 31))
    assert result.rows == []
    assert result.total_width == 31 * 40


def test_empty_items_with_explicit_bounds():
    bounds = ChartBounds(date(2025, 5, 1), date(2025, 5, 7))
    result = compute_layout([], bounds=bounds, today=date(2025, 3, 1))
    assert result.bounds == bounds


def test_rows_keep_input_order_and_offsets():
    items = [
        item("late", date(2025, 1, 8), date(2025, 1, 9)),
        item("early", date(2025, 1, 1), date(2025, 1, 3)),
    ]
    result = compute_layout(items)
    assert [row.item_id for row in result.rows] == ["late", "early"]
    assert [row.left_px for row in result.rows] == [280, 0]


def test_items_outside_explicit_bounds_are_not_clipped():
    bounds = ChartBounds(date(2025, 1, 10), date(2025, 1, 20))
    items = [
        item("before", date(2025, 1, 5), date(2025, 1, 7)),
        item("after", date(2025, 1, 25), date(2025, 1, 26)),
    ]
    result = compute_layout(items, bounds=bounds)
    assert result.rows[0].left_px == -200
    assert result.rows[1].left_px == 600
    assert result.rows[1].left_px > result.total_width - 40


def test_compute_layout_is_idempotent():
    items = [
        item("a", date(2025, 1, 1), date(2025, 1, 4), 30, ["b"]),
        item("b", date(2025, 1, 2), date(2025, 1, 9), 80),
    ]
    layout = TimelineLayout(32)
    assert layout.compute_layout(items) == layout.compute_layout(items)
    assert layout.compute_layout(items).to_dict() == layout.compute_layout(items).to_dict()


def test_custom_day_width():
    rows = compute_layout([item("a", date(2025, 1, 1), date(2025, 1, 3))], day_width=10).rows
    assert rows[0].width_px == 20


@pytest.mark.parametrize("bad", [-1, 101, "50", None, True, 50.5])
def test_invalid_progress_rejected(bad):
    with pytest.raises(ValidationError):
        validate_progress(bad)


def test_integral_float_progress_accepted():
    assert validate_progress(50.0) == 50


def test_scheduled_item_requires_dates():
    with pytest.raises(ValidationError):
        ScheduledItem("a", "A", None, date(2025, 1, 1))


def test_scheduled_item_rejects_bad_progress():
    with pytest.raises(ValidationError):
        ScheduledItem("a", "A", date(2025, 1, 1), date(2025, 1, 2), progress=120)


def test_scheduled_item_defaults():
    scheduled = ScheduledItem("a", "A", date(2025, 1, 1), date(2025, 1, 2))
    assert scheduled.progress == 0
    assert scheduled.depends_on == frozenset()
    assert scheduled.color is None


def test_milestone_markers():
    bounds = ChartBounds(date(2025, 1, 1), date(2025, 1, 31))
    milestones = [
        Milestone("proj-1", "Kickoff", date(2025, 1, 1)),
        Milestone("proj-1", "Review", "2025-01-20", color="#10B981", completed=True),
    ]
    markers = TimelineLayout(40).milestone_markers(milestones, bounds)
    assert [m.left_px for m in markers] == [0, 760]
    assert markers[1].color == "#10B981"
    assert markers[1].to_dict()['date'] == "2025-01-20"
    assert markers[1].completed is True
