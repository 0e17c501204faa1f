"""Tests for the ProjectManagementSystem facade."""

from datetime import date, datetime

import pytest

from ganttboard.core.error_handler import NotFoundError, StoreError, ValidationError, get_error_handler
from ganttboard.core.logger import AuditAction, LogCategory
from ganttboard.core.manager import ProjectManagementSystem
from ganttboard.models import Milestone, Project, Task
from ganttboard.storage import MemoryStorage


class FailingStorage(MemoryStorage):
    """list_tasks が常に失敗するストア"""

    def __init__(self, error):
        super().__init__(load_sample_data=True)
        self.error = error

    def list_tasks(self, project_id=None):
        raise self.error


# ==================== ガントチャート ====================

def test_gantt_layout_for_sample_project(pms):
    gantt = pms.get_gantt_data('proj-1', today=date(2025, 1, 1))

    assert gantt['bounds'] == {'start': '2025-01-01', 'end': '2025-02-01'}
    assert gantt['total_width'] == 1280
    assert [row['item_id'] for row in gantt['rows']] == ['task-4', 'task-2', 'task-1']

    task1 = gantt['rows'][2]
    assert task1['left_px'] == 0
    assert task1['width_px'] == 760
    assert task1['progress_px'] == 760
    assert task1['color'] == '#10b981'

    task4 = gantt['rows'][0]
    assert task4['left_px'] == 17 * 40
    assert task4['width_px'] == 14 * 40
    assert task4['progress_px'] == 224


def test_gantt_dependencies_and_milestones(pms):
    gantt = pms.get_gantt_data('proj-1', today=date(2025, 1, 1))

    assert gantt['dependencies'] == {'task-4': ['task-1'], 'task-2': ['task-1'], 'task-1': []}
    markers = {m['milestone_id']: m for m in gantt['milestones']}
    assert set(markers) == {'milestone-1', 'milestone-3'}
    assert markers['milestone-1']['left_px'] == 760
    assert markers['milestone-3']['left_px'] > gantt['total_width'] - 1


def test_gantt_header_and_summary(pms):
    gantt = pms.get_gantt_data('proj-1', today=date(2025, 1, 1))
    assert len(gantt['header']['days']) == 32
    assert [m['month'] for m in gantt['header']['months']] == [1, 2]
    assert gantt['summary'] == {'total_tasks': 3, 'completed_tasks': 1,
                                'in_progress_tasks': 2, 'milestones': 2}


def test_gantt_layout_is_logged(pms):
    pms.get_gantt_data('proj-1', today=date(2025, 1, 1))
    entry = pms.logger.get_logs(category=LogCategory.LAYOUT)[0]
    assert entry.metadata['rows'] == 3
    assert entry.metadata['bounds'] == {'start': '2025-01-01', 'end': '2025-02-01'}


def test_gantt_all_projects(pms):
    gantt = pms.get_gantt_data(today=date(2025, 1, 1))
    assert gantt['project_id'] is None
    assert len(gantt['rows']) == 4
    assert gantt['bounds']['end'] == '2025-02-01'


def test_gantt_unknown_project(pms):
    with pytest.raises(NotFoundError):
        pms.get_gantt_data('missing', today=date(2025, 1, 1))


def test_gantt_empty_project_uses_default_window(pms):
    project = pms.create_project(Project("Empty"))
    gantt = pms.get_gantt_data(project.id, today=date(2025, 3, 1))
    assert gantt['bounds'] == {'start': '2025-03-01', 'end': '2025-03-31'}
    assert gantt['rows'] == []


def test_gantt_task_without_dates_uses_today(pms):
    project = pms.create_project(Project("Undated"))
    pms.create_task(Task("no dates", project.id))
    gantt = pms.get_gantt_data(project.id, today=date(2025, 4, 1))
    assert gantt['rows'][0]['start_date'] == '2025-04-01'
    assert gantt['rows'][0]['width_px'] == 40


# ==================== 更新 ====================

def test_update_task_progress(pms):
    updated = pms.update_task_progress('task-3', 45)
    assert updated.progress == 45
    assert pms.get_task('task-3').progress == 45

    audit = pms.logger.get_audit_logs(action=AuditAction.UPDATE)
    assert audit[0].entity_id == 'task-3'
    assert audit[0].before_data == {'progress': 0}


@pytest.mark.parametrize("bad", [-5, 101, "50", 12.5])
def test_update_task_progress_rejects_invalid(pms, bad):
    with pytest.raises(ValidationError):
        pms.update_task_progress('task-3', bad)
    assert pms.get_task('task-3').progress == 0


def test_update_task_progress_unknown_task(pms):
    with pytest.raises(NotFoundError):
        pms.update_task_progress('missing', 10)
    assert get_error_handler().get_error_statistics()['total_errors'] == 1


def test_update_task_schedule(pms):
    updated = pms.update_task_schedule('task-3', date(2025, 2, 1), date(2025, 2, 10))
    assert updated.start_date == datetime(2025, 2, 1)
    assert updated.end_date == datetime(2025, 2, 10)

    gantt = pms.get_gantt_data('proj-2', today=date(2025, 1, 1))
    assert gantt['rows'][0]['width_px'] == 9 * 40


def test_update_task_schedule_invalid(pms):
    with pytest.raises(ValidationError):
        pms.update_task_schedule('task-3', date(2025, 2, 10), date(2025, 2, 1))
    with pytest.raises(NotFoundError):
        pms.update_task_schedule('missing', date(2025, 2, 1), date(2025, 2, 10))


def test_invalid_input_is_rejected_before_task_lookup(pms):
    with pytest.raises(ValidationError):
        pms.update_task_progress('missing', 150)
    with pytest.raises(ValidationError):
        pms.update_task_schedule('missing', '2025-02-03', '2025-02-01')
    with pytest.raises(ValidationError):
        pms.update_task_schedule('missing', None, '2025-02-01')
    assert pms.logger.get_audit_logs(action=AuditAction.UPDATE) == []


def test_update_task_schedule_accepts_keyword_arguments(pms):
    updated = pms.update_task_schedule(task_id='task-3', start_date='2025-03-01',
                                       end_date='2025-03-04')
    assert updated.end_date == datetime(2025, 3, 4)


# ==================== 登録・削除 ====================

def test_create_task_requires_project(pms):
    with pytest.raises(NotFoundError):
        pms.create_task(Task("orphan", "missing"))


def test_create_and_delete(pms):
    project = pms.create_project(Project("New"))
    task = pms.create_task(Task("t", project.id))
    pms.create_milestone(Milestone(project.id, "m", "2025-05-01"))
    assert [t.id for t in pms.list_tasks(project.id)] == [task.id]
    assert pms.delete_task(task.id)
    assert pms.delete_project(project.id)
    with pytest.raises(NotFoundError):
        pms.get_project(project.id)


def test_list_tasks_unknown_project(pms):
    with pytest.raises(NotFoundError):
        pms.list_tasks('missing')


def test_search(pms):
    result = pms.search('web')
    assert [p.id for p in result['projects']] == ['proj-2']
    assert result['tasks'] == []


# ==================== ストア障害 ====================

def test_store_error_propagates_unchanged(settings, logger):
    error = StoreError("disk unavailable", operation='list_tasks')
    pms = ProjectManagementSystem(FailingStorage(error), settings, logger)
    with pytest.raises(StoreError) as excinfo:
        pms.get_overview()
    assert excinfo.value is error


def test_store_error_propagates_without_threading(settings, logger):
    settings.performance.enable_threading = False
    error = StoreError("disk unavailable")
    pms = ProjectManagementSystem(FailingStorage(error), settings, logger)
    with pytest.raises(StoreError) as excinfo:
        pms.get_gantt_data('proj-1')
    assert excinfo.value is error


# ==================== 分析 ====================

def test_sample_overview(pms):
    overview = pms.get_overview(datetime(2025, 1, 21))
    assert overview['completion_rate'] == 25.0
    assert overview['total_projects'] == 2
    assert overview['overdue_tasks'] == 0


def test_sample_risk_analysis(pms):
    risk = pms.get_risk_analysis(datetime(2025, 1, 26))
    assert [t['id'] for t in risk['overdue_tasks']] == ['task-2']
    # overdue 1*3 + high incomplete 2*2
    assert risk['risk_score'] == 7
    assert risk['blocked_tasks'] == []


def test_analytics_delegates_without_threading(settings, logger, storage):
    settings.performance.enable_threading = False
    pms = ProjectManagementSystem(storage, settings, logger)
    now = datetime(2025, 1, 21)
    assert pms.get_efficiency_stats(now)['completed_tasks'] == 1
    assert pms.get_resource_utilization()['total_estimated_hours'] == 36
    assert pms.get_agile_metrics(now)['active_projects'] == 2


def test_system_statistics_and_integrity(pms):
    assert pms.validate_data_integrity() is True
    stats = pms.get_system_statistics()
    assert stats['counts'] == {'projects': 2, 'tasks': 4, 'milestones': 3}
    assert stats['day_width'] == 40


def test_defaults_without_settings(storage, logger):
    pms = ProjectManagementSystem(storage, logger=logger)
    assert pms.day_width == 40
    assert pms.get_gantt_data('proj-2', today=date(2025, 1, 1))['rows'][0]['color'] is None
