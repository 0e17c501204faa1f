"""Tests for SystemSettings."""

import json

from ganttboard.config.settings import SystemSettings, get_settings


def test_defaults_written_on_first_load(tmp_path):
    config = tmp_path / "settings.json"
    settings = SystemSettings(str(config))
    assert config.exists()
    data = json.loads(config.read_text(encoding='utf-8'))
    assert data['gantt']['day_width'] == 40
    assert data['analytics']['overdue_weight'] == 3
    assert settings.validate_settings() == {}


def test_load_partial_section_and_ignore_unknown_keys(tmp_path):
    config = tmp_path / "settings.json"
    config.write_text(json.dumps({
        'gantt': {'day_width': 24, 'legacy_option': True},
        'database': {'backend': 'json'},
    }), encoding='utf-8')

    settings = SystemSettings(str(config))
    assert settings.gantt.day_width == 24
    assert settings.gantt.default_window_days == 30
    assert settings.database.backend == 'json'
    assert not hasattr(settings.gantt, 'legacy_option')


def test_broken_file_falls_back_to_defaults(tmp_path):
    config = tmp_path / "settings.json"
    config.write_text("{not json", encoding='utf-8')
    settings = SystemSettings(str(config))
    assert settings.gantt.day_width == 40


def test_update_and_get_setting(tmp_path):
    config = tmp_path / "settings.json"
    settings = SystemSettings(str(config))
    assert settings.update_setting('gantt', 'day_width', 30)
    assert not settings.update_setting('gantt', 'missing', 1)
    assert not settings.update_setting('nope', 'day_width', 1)

    reloaded = SystemSettings(str(config))
    assert reloaded.get_setting('gantt', 'day_width') == 30
    assert reloaded.get_setting('nope', 'x', 'fallback') == 'fallback'


def test_validate_settings_reports_errors(tmp_path):
    settings = SystemSettings(str(tmp_path / "settings.json"))
    settings.gantt.day_width = 0
    settings.gantt.time_scale = 'year'
    settings.analytics.medium_risk_threshold = 20
    settings.database.backend = 'sqlite'

    errors = settings.validate_settings()
    assert len(errors['gantt']) == 2
    assert len(errors['analytics']) == 1
    assert 'database' in errors


def test_reset_to_defaults(tmp_path):
    settings = SystemSettings(str(tmp_path / "settings.json"))
    settings.gantt.day_width = 10
    assert settings.reset_to_defaults()
    assert settings.gantt.day_width == 40


def test_global_settings_is_shared(tmp_path):
    first = get_settings(str(tmp_path / "settings.json"))
    assert get_settings() is first
