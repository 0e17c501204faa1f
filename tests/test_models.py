"""Tests for the entity models."""

from datetime import date, datetime, timedelta, timezone

import pytest

from ganttboard.core.error_handler import ValidationError
from ganttboard.models import (
    Milestone, Project, ProjectStatus, Task, TaskPriority, TaskStatus, parse_datetime
)


def test_task_defaults():
    task = Task("Write docs", "proj-1")
    assert task.status == TaskStatus.TODO
    assert task.priority == TaskPriority.MEDIUM
    assert task.progress == 0
    assert task.dependencies == []
    assert task.tags == []
    assert task.validate()


def test_task_round_trip_keeps_identity_and_dates():
    task = Task("API", "proj-1", start_date="2025-01-18", end_date=date(2025, 2, 1),
                dependencies=["task-1"], tags=["backend"], estimated_hours=12)
    restored = Task.from_dict(task.to_dict())
    assert restored.id == task.id
    assert restored.created_at == task.created_at
    assert restored.start_date == datetime(2025, 1, 18)
    assert restored.end_date == datetime(2025, 2, 1)
    assert restored.dependencies == ["task-1"]
    assert restored == task


def test_parse_datetime_handles_utc_suffix():
    expected = datetime(2025, 1, 15, 10, tzinfo=timezone.utc).astimezone().replace(tzinfo=None)
    assert parse_datetime("2025-01-15T10:00:00Z") == expected


def test_parse_datetime_keeps_the_instant_across_offsets():
    assert parse_datetime("2025-01-20T23:00:00-05:00") == parse_datetime("2025-01-21T04:00:00Z")
    assert parse_datetime("2025-01-21T13:00:00+09:00") == parse_datetime("2025-01-21T04:00:00+00:00")


def test_parse_datetime_returns_naive_for_aware_input():
    aware = datetime(2025, 1, 21, 4, tzinfo=timezone(timedelta(hours=-5)))
    result = parse_datetime(aware)
    assert result.tzinfo is None
    assert result == parse_datetime("2025-01-21T04:00:00-05:00")
    assert parse_datetime(datetime(2025, 1, 21, 4)) == datetime(2025, 1, 21, 4)


def test_aware_due_date_compares_with_naive_now():
    task = Task("t", "proj-1", due_date=datetime(2025, 6, 14, tzinfo=timezone.utc))
    assert task.due_date.tzinfo is None
    assert task.is_overdue(datetime(2025, 6, 20))


def test_parse_datetime_rejects_garbage():
    with pytest.raises(ValidationError):
        parse_datetime("not a date", 'due_date')


def test_task_validation_rules():
    assert not Task("", "proj-1").validate()
    assert not Task("t", "proj-1", status="blocked").validate()
    assert not Task("t", "proj-1", progress=150).validate()
    assert not Task("t", "proj-1", estimated_hours=-1).validate()


def test_set_progress_validates():
    task = Task("t", "proj-1")
    task.set_progress(75)
    assert task.progress == 75
    with pytest.raises(ValidationError):
        task.set_progress(101)


def test_set_schedule_rejects_end_before_start():
    task = Task("t", "proj-1")
    with pytest.raises(ValidationError):
        task.set_schedule("2025-01-10", "2025-01-01")
    with pytest.raises(ValidationError):
        task.set_schedule(None, "2025-01-01")
    task.set_schedule("2025-01-01", "2025-01-01")
    assert task.end_date == task.start_date


def test_overdue_and_high_priority():
    now = datetime(2025, 6, 15)
    task = Task("t", "proj-1", priority=TaskPriority.URGENT, due_date="2025-06-14")
    assert task.is_overdue(now)
    assert task.is_high_priority()
    task.status = TaskStatus.DONE
    assert not task.is_overdue(now)


def test_to_scheduled_item_fills_missing_dates():
    task = Task("t", "proj-1", status=TaskStatus.DONE, start_date="2025-01-05",
                progress=100, dependencies=["a"], tags=["ux", "design"])
    item = task.to_scheduled_item(date(2025, 1, 10), {'done': '#10b981'}, '#4f46e5')
    assert item.start_date == date(2025, 1, 5)
    assert item.end_date == date(2025, 1, 10)
    assert item.color == '#10b981'
    assert item.depends_on == frozenset({"a"})
    assert item.label == "ux, design"


def test_to_scheduled_item_default_color():
    item = Task("t", "p").to_scheduled_item(date(2025, 1, 1), {}, '#4f46e5')
    assert item.color == '#4f46e5'


def test_project_round_trip():
    project = Project("Website", "renewal", due_date="2025-03-01")
    restored = Project.from_dict(project.to_dict())
    assert restored.name == "Website"
    assert restored.status == ProjectStatus.ACTIVE
    assert restored.due_date == datetime(2025, 3, 1)
    assert restored.is_active()


def test_project_invalid_status():
    assert not Project("p", status="paused").validate()


def test_milestone_requires_date():
    with pytest.raises(ValidationError):
        Milestone("proj-1", "Launch", None)


def test_milestone_round_trip():
    milestone = Milestone("proj-1", "Launch", "2025-02-15", color="#8B5CF6")
    restored = Milestone.from_dict(milestone.to_dict())
    assert restored.date == datetime(2025, 2, 15)
    assert restored.color == "#8B5CF6"
    assert restored.completed is False


def test_status_enum_helpers():
    assert TaskStatus.get_all_values() == ["todo", "in_progress", "done"]
    assert TaskPriority.is_valid("urgent")
    assert not TaskPriority.is_valid("critical")
