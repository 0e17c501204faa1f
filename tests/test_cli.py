"""Tests for the CLI and the application entry point."""

import io
import json

import pytest

from ganttboard.cli import CLIInterface
from ganttboard.main import create_argument_parser, main


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def cli(pms, output):
    return CLIInterface(pms, output=output)


def test_projects_command(cli, output):
    assert cli.execute("projects")
    text = output.getvalue()
    assert "[proj-1]" in text
    assert text.index("proj-2") < text.index("proj-1")


def test_alias_and_case_insensitive(cli, output):
    assert cli.execute("T proj-2")
    assert "task-3" in output.getvalue()


def test_unknown_command(cli, output):
    assert not cli.execute("frobnicate")
    assert "不明なコマンド" in output.getvalue()


def test_gantt_command(cli, output):
    assert cli.execute("gantt proj-1")
    text = output.getvalue()
    assert "データベース設計" in text
    assert "task-2 ← task-1" in text


def test_gantt_unknown_project_reports_error(cli, output):
    assert not cli.execute("gantt missing")
    assert "❌ [NOT_FOUND]" in output.getvalue()


def test_progress_command(cli, output, pms):
    assert cli.execute("progress task-3 35")
    assert pms.get_task('task-3').progress == 35


def test_progress_out_of_range(cli, output, pms):
    assert not cli.execute("progress task-3 250")
    assert "❌ [VALIDATION]" in output.getvalue()
    assert pms.get_task('task-3').progress == 0


def test_progress_not_an_integer(cli, output):
    assert cli.execute("progress task-3 abc")
    assert "整数" in output.getvalue()


def test_schedule_command(cli, pms):
    assert cli.execute("schedule task-3 2025-02-01 2025-02-03")
    assert pms.get_task('task-3').end_date.day == 3
    assert not cli.execute("schedule task-3 2025-02-03 2025-02-01")


def test_analytics_json_output(cli, output):
    assert cli.execute("overview json")
    data = json.loads(output.getvalue())
    assert data['total_tasks'] == 4


@pytest.mark.parametrize("command", ["overview", "risk", "resource", "efficiency", "agile"])
def test_analytics_commands(cli, command):
    assert cli.execute(command)


def test_search_command(cli, output):
    assert cli.execute('search "API"')
    assert "[task-4]" in output.getvalue()


def test_export_command(cli, output, tmp_path):
    path = tmp_path / "out.xlsx"
    assert cli.execute(f"export {path} simple")
    assert path.exists()
    assert "エクスポート完了" in output.getvalue()


def test_run_loop_until_quit(pms, output):
    commands = iter(["projects", "quit", "never"])
    cli = CLIInterface(pms, output=output, input_func=lambda prompt: next(commands))
    assert cli.run() == 0
    assert cli.command_history == ["projects", "quit"]


def test_run_loop_ends_on_eof(pms, output):
    def raise_eof(prompt):
        raise EOFError

    assert CLIInterface(pms, output=output, input_func=raise_eof).run() == 0
    assert "CLIを終了します。" in output.getvalue()


# ==================== エントリポイント ====================

def _base_args(tmp_path):
    return ['--data-dir', str(tmp_path / "data"), '--config', str(tmp_path / "settings.json"),
            '--sample-data']


def test_main_single_command(tmp_path, capsys):
    assert main(_base_args(tmp_path) + ['--command', 'projects']) == 0
    assert "proj-1" in capsys.readouterr().out


def test_main_failed_command_exit_code(tmp_path):
    assert main(_base_args(tmp_path) + ['--command', 'progress task-1 500']) == 1


def test_main_check_only_with_json_store(tmp_path, capsys):
    assert main(_base_args(tmp_path) + ['--storage', 'json', '--check-only']) == 0
    assert "OK" in capsys.readouterr().out
    assert (tmp_path / "data" / "tasks.json").exists()


def test_argument_parser_rejects_unknown_storage():
    with pytest.raises(SystemExit):
        create_argument_parser().parse_args(['--storage', 'sqlite'])
