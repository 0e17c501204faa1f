"""Shared test fixtures for the ganttboard tests."""

import pytest

from ganttboard.config.settings import SystemSettings, reset_global_settings
from ganttboard.core.error_handler import get_error_handler
from ganttboard.core.logger import ProjectLogger
from ganttboard.core.manager import ProjectManagementSystem
from ganttboard.models import Task
from ganttboard.storage import MemoryStorage


def _reset_singletons():
    ProjectLogger.reset_instance()
    handler = get_error_handler()
    handler.reset_logger()
    handler.clear_history()
    reset_global_settings()


@pytest.fixture(autouse=True)
def reset_singletons():
    """Process-wide logger, error history and settings start fresh per test."""
    _reset_singletons()
    yield
    _reset_singletons()


@pytest.fixture
def settings(tmp_path):
    """Settings persisted under tmp_path, console logging off."""
    s = SystemSettings(str(tmp_path / "settings.json"))
    s.logging.enable_console_output = False
    s.database.data_directory = str(tmp_path / "data")
    return s


@pytest.fixture
def logger(settings):
    return ProjectLogger(settings=settings.logging)


@pytest.fixture
def storage():
    """In-memory store seeded with the demo projects, tasks and milestones."""
    return MemoryStorage(load_sample_data=True)


@pytest.fixture
def pms(storage, settings, logger):
    return ProjectManagementSystem(storage, settings, logger)


@pytest.fixture
def make_task():
    """Build a Task with explicit timestamps."""
    def _make(title="task", project_id="proj-1", created_at=None, updated_at=None, **fields):
        task = Task(title, project_id, **fields)
        if created_at is not None:
            task.created_at = created_at
        if updated_at is not None:
            task.updated_at = updated_at
        elif created_at is not None:
            task.updated_at = created_at
        return task
    return _make
