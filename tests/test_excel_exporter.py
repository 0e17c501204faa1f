"""Tests for the Excel exporter."""

from datetime import date

import pytest
from openpyxl import load_workbook

from ganttboard.core.logger import AuditAction
from ganttboard.external import ExcelExporter, ExportFormat, ExportOptions


@pytest.fixture
def exporter(pms, settings):
    return ExcelExporter(pms, settings)


@pytest.fixture
def gantt_options():
    options = ExportOptions()
    options.project_id = 'proj-1'
    options.today = date(2025, 1, 1)
    return options


def test_gantt_export(exporter, gantt_options, tmp_path):
    path = tmp_path / "gantt.xlsx"
    result = exporter.export_to_file(str(path), ExportFormat.GANTT, gantt_options)

    assert result.success, result.errors
    assert result.exported_counts['tasks'] == 3
    assert result.exported_counts['milestones'] == 2
    # 2/15 のマイルストーンは表示期間外
    assert len(result.warnings) == 1

    sheet = load_workbook(path)['ガントチャート']
    assert sheet.cell(row=1, column=1).value == 'タスク'
    assert sheet.cell(row=1, column=6).value == '1'
    assert sheet.max_column == 5 + 32
    assert sheet.cell(row=4, column=1).value == 'データベース設計'
    assert sheet.cell(row=4, column=2).value == '2025-01-01'
    assert sheet.cell(row=4, column=4).value == 1
    assert sheet.cell(row=4, column=6).fill.fgColor.rgb.endswith('10B981')
    # task-1 は 1/20 まで
    assert sheet.cell(row=4, column=6 + 19).fill.fgColor.rgb.endswith('10B981')
    assert sheet.cell(row=4, column=6 + 20).fill.fill_type is None


def test_gantt_export_without_colors(exporter, gantt_options, tmp_path):
    gantt_options.use_colors = False
    path = tmp_path / "plain.xlsx"
    assert exporter.export_to_file(str(path), ExportFormat.GANTT, gantt_options).success
    sheet = load_workbook(path)['ガントチャート']
    assert sheet.cell(row=2, column=6 + 17).value == '■'
    assert sheet.cell(row=2, column=6).value is None


def test_analytics_export(exporter, tmp_path):
    path = tmp_path / "analytics.xlsx"
    result = exporter.export_to_file(str(path), ExportFormat.ANALYTICS)
    assert result.success, result.errors

    workbook = load_workbook(path)
    assert workbook.sheetnames == ['サマリー', 'リスク', 'リソース']
    summary = {row[0]: row[1] for row in workbook['サマリー'].iter_rows(min_row=2, values_only=True)}
    assert summary['total_tasks'] == 4
    assert summary['completion_rate'] == 25.0
    assert workbook['リスク'].cell(row=1, column=1).value == 'risk_score'
    assert workbook['リソース'].cell(row=2, column=1).value == 'backend'


def test_simple_export_with_status_filter(exporter, tmp_path):
    options = ExportOptions()
    options.status_filter = ['in_progress']
    path = tmp_path / "tasks.xlsx"
    result = exporter.export_to_file(str(path), ExportFormat.SIMPLE, options)
    assert result.exported_counts['tasks'] == 2

    sheet = load_workbook(path)['タスク']
    assert [sheet.cell(row=r, column=1).value for r in (2, 3)] == ['task-4', 'task-2']


def test_rejects_non_xlsx_path(exporter, tmp_path):
    result = exporter.export_to_file(str(tmp_path / "out.csv"))
    assert not result.success
    assert result.errors
    assert exporter.get_export_statistics()['failed_exports'] == 1


def test_rejects_unknown_format(exporter, tmp_path):
    result = exporter.export_to_file(str(tmp_path / "out.xlsx"), "pdf")
    assert not result.success
    assert not (tmp_path / "out.xlsx").exists()


def test_export_disabled(exporter, settings, tmp_path):
    settings.external.excel_export_enabled = False
    result = exporter.export_to_file(str(tmp_path / "out.xlsx"))
    assert not result.success


def test_unknown_project_reported_as_error(exporter, tmp_path):
    options = ExportOptions()
    options.project_id = 'missing'
    result = exporter.export_to_file(str(tmp_path / "out.xlsx"), ExportFormat.GANTT, options)
    assert not result.success
    assert exporter.get_export_statistics() == {
        'total_exports': 1, 'successful_exports': 0, 'failed_exports': 1}


def test_successful_export_is_audited(exporter, tmp_path):
    path = tmp_path / "audited.xlsx"
    assert exporter.export_to_file(str(path), ExportFormat.SIMPLE).success

    entry = exporter.logger.get_audit_logs(action=AuditAction.EXPORT)[0]
    assert entry.entity_id == str(path)
    assert entry.metadata['counts']['tasks'] == 4


def test_options_to_dict():
    options = ExportOptions(project_id='proj-1', today=date(2025, 1, 1))
    data = options.to_dict()
    assert data['today'] == '2025-01-01'
    assert data['sheet_names']['gantt'] == 'ガントチャート'
