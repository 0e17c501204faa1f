"""Tests for the error hierarchy and decorators."""

import pytest

from ganttboard.core.error_handler import (
    ErrorCategory, NotFoundError, classify_exception, ProjectManagementError, StoreError, ValidationError,
    format_exception_summary, get_error_handler, handle_errors, measure_performance,
    validate_input
)
from ganttboard.core.logger import LogCategory


def test_error_details():
    error = ValidationError("bad progress", field='progress', value=150)
    assert error.category == ErrorCategory.VALIDATION
    assert error.details == {'field': 'progress', 'value': '150'}

    missing = NotFoundError("no task", entity_type='Task', entity_id='t-1')
    assert missing.to_dict()['details'] == {'entity_type': 'Task', 'entity_id': 't-1'}


def test_handle_errors_reraises_original(logger):
    error = StoreError("disk full")

    @handle_errors()
    def failing():
        raise error

    with pytest.raises(StoreError) as excinfo:
        failing()
    assert excinfo.value is error
    stats = get_error_handler().get_error_statistics()
    assert stats['total_errors'] == 1
    assert stats['category_counts'] == {ErrorCategory.STORE: 1}


def test_handle_errors_fallback(logger):
    @handle_errors(reraise=False, fallback_value="fallback")
    def failing():
        raise ValueError("boom")

    assert failing() == "fallback"
    history = get_error_handler().error_history
    assert history[-1]['category'] == ErrorCategory.VALIDATION
    assert history[-1]['original_exception']['type'] == 'ValueError'


def test_handle_errors_logs_to_project_logger(logger):
    @handle_errors(reraise=False)
    def failing():
        raise KeyError("k")

    failing()
    errors = logger.get_logs(level="ERROR")
    assert errors[0].metadata['exception_type'] == 'KeyError'


def test_validate_input():
    @validate_input(lambda value: value > 0, "positive only")
    def double(value):
        return value * 2

    assert double(2) == 4
    with pytest.raises(ValidationError) as excinfo:
        double(-1)
    assert excinfo.value.message == "positive only"


def test_measure_performance_logs_slow_calls(logger):
    @measure_performance(threshold_ms=-1)
    def instant():
        return 42

    assert instant() == 42
    entries = logger.get_logs(category=LogCategory.PERFORMANCE)
    assert entries[0].metadata['operation'] == 'instant'


def test_measure_performance_quiet_under_threshold(logger):
    @measure_performance(threshold_ms=60000)
    def instant():
        return 1

    instant()
    assert logger.get_logs(category=LogCategory.PERFORMANCE) == []


def test_format_exception_summary():
    assert format_exception_summary(NotFoundError("no task")) == "[NOT_FOUND] no task"
    assert format_exception_summary(ValueError("bad")) == "ValueError: bad"


def test_clear_history():
    handler = get_error_handler()
    handler.handle_error(ProjectManagementError("x"))
    assert handler.clear_history() == 1
    assert handler.get_error_statistics() == {'total_errors': 0}


@pytest.mark.parametrize("error, category", [
    (FileNotFoundError("x"), ErrorCategory.FILE_IO),
    (OSError("x"), ErrorCategory.SYSTEM),
    (KeyError("x"), ErrorCategory.NOT_FOUND),
    (ValueError("x"), ErrorCategory.VALIDATION),
    (RuntimeError("x"), ErrorCategory.SYSTEM),
])
def test_classify_exception(error, category):
    assert classify_exception(error)[0] == category


def test_error_id_carries_category():
    assert StoreError("x").error_id.startswith("store-")
