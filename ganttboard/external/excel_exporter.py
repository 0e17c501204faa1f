"""
Excel出力
ガントチャート・分析レポート・タスク一覧を .xlsx に書き出す

ガントチャートは 1タスク1行・1日1列で、バーはタスク色で塗りつぶす
（use_colors=False なら '■' を置く）。
"""

import os
import time
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from ..core.error_handler import ExportError, ValidationError, format_exception_summary
from ..core.logger import AuditAction, LogCategory, ProjectLogger
from ..models.base import format_datetime


class ExportFormat:
    """出力フォーマット"""
    GANTT = "gantt"
    ANALYTICS = "analytics"    # サマリー・リスク・リソースの3シート
    SIMPLE = "simple"          # タスク一覧のみ

    @classmethod
    def get_all_values(cls) -> List[str]:
        return [cls.GANTT, cls.ANALYTICS, cls.SIMPLE]


DEFAULT_SHEET_NAMES = {
    'gantt': 'ガントチャート',
    'summary': 'サマリー',
    'risk': 'リスク',
    'resources': 'リソース',
    'tasks': 'タスク',
}


@dataclass
class ExportOptions:
    """
    出力対象と書式

    project_id が None なら全プロジェクト、today はガントの表示期間と
    日付未設定タスクの基準日（None なら当日）。
    """
    project_id: Optional[str] = None
    status_filter: List[str] = field(default_factory=list)
    today: Optional[date] = None
    date_format: str = "%Y-%m-%d"
    use_colors: bool = True
    freeze_panes: bool = True
    sheet_names: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_SHEET_NAMES))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['today'] = self.today.isoformat() if self.today else None
        return data


@dataclass
class ExportResult:
    """出力結果。失敗は例外ではなく success=False と errors で表す"""
    format_type: str = ""
    success: bool = False
    file_path: str = ""
    file_size: int = 0
    processing_time: float = 0.0
    exported_counts: Dict[str, int] = field(
        default_factory=lambda: {'tasks': 0, 'milestones': 0, 'projects': 0})
    warnings: List[Dict[str, str]] = field(default_factory=list)
    errors: List[Dict[str, str]] = field(default_factory=list)

    @staticmethod
    def _note(message: str) -> Dict[str, str]:
        return {'message': message, 'timestamp': datetime.now().isoformat()}

    def add_warning(self, message: str) -> None:
        self.warnings.append(self._note(message))

    def add_error(self, message: str) -> None:
        self.errors.append(self._note(message))

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.update(warning_count=len(self.warnings), error_count=len(self.errors))
        return data


def _solid(hex_color: str) -> PatternFill:
    return PatternFill(start_color=hex_color, end_color=hex_color, fill_type="solid")


class ExcelStyleManager:
    """ヘッダー・バー・リスク区分のスタイル"""

    HEADER_COLOR = "1F2937"
    RISK_COLORS = {'high': "FCA5A5", 'medium': "FDE68A", 'low': "A7F3D0"}

    def __init__(self, default_bar_color: str = '#4f46e5'):
        thin = Side(style='thin')
        self.header_font = Font(bold=True, color="FFFFFF")
        self.header_fill = _solid(self.HEADER_COLOR)
        self.border = Border(left=thin, right=thin, top=thin, bottom=thin)
        self.center = Alignment(horizontal='center', vertical='center')
        self.risk_fills = {level: _solid(color) for level, color in self.RISK_COLORS.items()}
        self.default_bar_color = default_bar_color

    def bar_fill(self, color: Optional[str]) -> PatternFill:
        """'#rrggbb' 形式のタスク色からバーの塗りつぶしを作る"""
        return _solid((color or self.default_bar_color).lstrip('#').upper())

    def write_header(self, sheet, headers: List[str], row: int = 1) -> None:
        for column, title in enumerate(headers, 1):
            cell = sheet.cell(row=row, column=column, value=title)
            cell.font = self.header_font
            cell.fill = self.header_fill
            cell.border = self.border
            cell.alignment = self.center


class ExcelExporter:
    """ProjectManagementSystem のデータを Excel に書き出す"""

    def __init__(self, project_management_system=None, settings=None):
        """
        Args:
            project_management_system: 出力元の ProjectManagementSystem
            settings: SystemSettings（出力可否・日付書式・既定のバー色）
        """
        self.pms = project_management_system
        self.settings = settings
        self.logger = ProjectLogger()
        gantt = getattr(settings, 'gantt', None)
        self.style_manager = ExcelStyleManager(gantt.default_color if gantt else '#4f46e5')
        self.export_stats = {'total_exports': 0, 'successful_exports': 0, 'failed_exports': 0}

        self._writers: Dict[str, Callable[[Workbook, ExportOptions, ExportResult], None]] = {
            ExportFormat.GANTT: self._export_gantt_format,
            ExportFormat.ANALYTICS: self._export_analytics_format,
            ExportFormat.SIMPLE: self._export_simple_format,
        }

    def export_to_file(self, file_path: str, format_type: str = ExportFormat.GANTT,
                       options: ExportOptions = None) -> ExportResult:
        """
        指定フォーマットで .xlsx を書き出す

        検証エラー・未検出・ストア障害・書き込み失敗はすべて result.errors に
        入れて返し、例外は送出しない。失敗時にファイルは作られない。
        """
        started = time.perf_counter()
        result = ExportResult(format_type=format_type)
        options = options or self._default_options()

        try:
            self._check_request(file_path, format_type)
            self.logger.info(LogCategory.EXPORT, f"Excel出力開始: {file_path}",
                             module="external.excel_exporter", format_type=format_type)

            workbook = Workbook()
            workbook.remove(workbook.active)
            self._writers[format_type](workbook, options, result)
            workbook.save(file_path)

            result.file_path = file_path
            result.file_size = os.path.getsize(file_path)
            result.success = True
        except Exception as e:
            result.add_error(format_exception_summary(e))
            self.logger.error(LogCategory.EXPORT, f"Excel出力に失敗しました: {file_path}",
                              module="external.excel_exporter", exception=e)

        result.processing_time = time.perf_counter() - started
        self._record(result)
        return result

    def _record(self, result: ExportResult) -> None:
        self.export_stats['total_exports'] += 1
        if not result.success:
            self.export_stats['failed_exports'] += 1
            return

        self.export_stats['successful_exports'] += 1
        self.logger.audit(AuditAction.EXPORT, "Workbook", result.file_path, result.format_type,
                          f"{result.file_size:,} bytes", counts=dict(result.exported_counts))
        self.logger.info(LogCategory.EXPORT,
                         f"Excel出力完了: {result.file_size:,} bytes / {result.processing_time:.2f}s",
                         module="external.excel_exporter", warnings=len(result.warnings))

    def _default_options(self) -> ExportOptions:
        external = getattr(self.settings, 'external', None)
        if external is None:
            return ExportOptions()
        return ExportOptions(date_format=external.default_date_format)

    def _check_request(self, file_path: str, format_type: str) -> None:
        external = getattr(self.settings, 'external', None)
        if external is not None and not external.excel_export_enabled:
            raise ExportError("Excel出力は設定で無効になっています", file_path=file_path)
        if self.pms is None:
            raise ExportError("出力元が設定されていません", file_path=file_path)
        if format_type not in self._writers:
            raise ValidationError(f"未対応のフォーマット: {format_type}",
                                  field='format_type', value=format_type)
        if not str(file_path).lower().endswith('.xlsx'):
            raise ValidationError(f"出力先は .xlsx ファイルにしてください: {file_path}",
                                  field='file_path', value=file_path)

    def _format_date(self, value: Optional[datetime], options: ExportOptions) -> str:
        return value.strftime(options.date_format) if value else ''

    # ==================== ガントチャート ====================

    def _export_gantt_format(self, workbook: Workbook, options: ExportOptions,
                             result: ExportResult) -> None:
        """ガントチャート（固定列 + 表示期間の1日1列）"""
        gantt = self.pms.get_gantt_data(options.project_id, today=options.today)
        sheet = workbook.create_sheet(options.sheet_names['gantt'])

        fixed_headers = ['タスク', '開始日', '終了日', '進捗率', 'ラベル']
        bounds_start = date.fromisoformat(gantt['bounds']['start'])
        day_headers = [column['label'] for column in gantt['header']['days']]
        self.style_manager.write_header(sheet, fixed_headers + day_headers)

        first_day_col = len(fixed_headers) + 1
        for offset in range(len(day_headers)):
            sheet.column_dimensions[get_column_letter(first_day_col + offset)].width = 4
        sheet.column_dimensions['A'].width = 30

        for row_index, row in enumerate(gantt['rows'], 2):
            start = date.fromisoformat(row['start_date'])
            end = max(date.fromisoformat(row['end_date']), start)
            sheet.cell(row=row_index, column=1, value=row['name'])
            sheet.cell(row=row_index, column=2, value=start.strftime(options.date_format))
            sheet.cell(row=row_index, column=3, value=end.strftime(options.date_format))
            sheet.cell(row=row_index, column=4, value=row['progress'] / 100).number_format = '0%'
            sheet.cell(row=row_index, column=5, value=row['label'] or '')

            fill = self.style_manager.bar_fill(row['color'])
            day = start
            while day <= end:
                offset = (day - bounds_start).days
                if 0 <= offset < len(day_headers):
                    cell = sheet.cell(row=row_index, column=first_day_col + offset)
                    if options.use_colors:
                        cell.fill = fill
                    else:
                        cell.value = '■'
                day += timedelta(days=1)

        for marker in gantt['milestones']:
            if not 0 <= marker['left_px'] < gantt['total_width']:
                result.add_warning(f"表示期間外のマイルストーン: {marker['name']} ({marker['date']})")

        if options.freeze_panes:
            sheet.freeze_panes = sheet.cell(row=2, column=first_day_col)

        result.exported_counts['tasks'] = len(gantt['rows'])
        result.exported_counts['milestones'] = len(gantt['milestones'])

    # ==================== 分析 ====================

    def _export_analytics_format(self, workbook: Workbook, options: ExportOptions,
                                 result: ExportResult) -> None:
        """分析結果（サマリー・リスク・リソース）"""
        overview = self.pms.get_overview()
        risk = self.pms.get_risk_analysis()
        resources = self.pms.get_resource_utilization()

        # サマリー
        summary_sheet = workbook.create_sheet(options.sheet_names['summary'])
        self.style_manager.write_header(summary_sheet, ['指標', '値'])
        for row_index, (key, value) in enumerate(overview.items(), 2):
            summary_sheet.cell(row=row_index, column=1, value=key)
            summary_sheet.cell(row=row_index, column=2, value=value)
        summary_sheet.column_dimensions['A'].width = 24

        # リスク
        risk_sheet = workbook.create_sheet(options.sheet_names['risk'])
        risk_sheet.cell(row=1, column=1, value='risk_score')
        risk_sheet.cell(row=1, column=2, value=risk['risk_score'])
        risk_sheet.cell(row=2, column=1, value='risk_level')
        level_cell = risk_sheet.cell(row=2, column=2, value=risk['risk_level'])
        if options.use_colors:
            level_cell.fill = self.style_manager.risk_fills[risk['risk_level']]

        self.style_manager.write_header(risk_sheet, ['タスク', '影響度', '発生確率', 'リスク'], row=4)
        for row_index, record in enumerate(risk['risk_matrix'], 5):
            risk_sheet.cell(row=row_index, column=1, value=record['title'])
            risk_sheet.cell(row=row_index, column=2, value=record['impact'])
            risk_sheet.cell(row=row_index, column=3, value=record['probability'])
            risk_sheet.cell(row=row_index, column=4, value=record['risk_score'])

        # リソース
        resource_sheet = workbook.create_sheet(options.sheet_names['resources'])
        headers = ['タグ', 'タスク数', '予想工数', '実績工数', '効率(%)']
        self.style_manager.write_header(resource_sheet, headers)
        for row_index, row in enumerate(resources['by_tag'], 2):
            values = [row['tag'], row['task_count'], row['estimated_hours'],
                      row['actual_hours'], row['efficiency']]
            for col, value in enumerate(values, 1):
                resource_sheet.cell(row=row_index, column=col, value=value)

        result.exported_counts['tasks'] = overview['total_tasks']
        result.exported_counts['projects'] = overview['total_projects']

    # ==================== シンプル ====================

    def _export_simple_format(self, workbook: Workbook, options: ExportOptions,
                              result: ExportResult) -> None:
        """タスク一覧"""
        tasks = self.pms.list_tasks(options.project_id)
        if options.status_filter:
            tasks = [t for t in tasks if t.status in options.status_filter]

        sheet = workbook.create_sheet(options.sheet_names['tasks'])
        headers = ['ID', 'タイトル', 'プロジェクト', '状態', '優先度', '期限', '進捗率', 'タグ', '更新日時']
        self.style_manager.write_header(sheet, headers)

        for row_index, task in enumerate(tasks, 2):
            values = [
                task.id,
                task.title,
                task.project_id,
                task.status,
                task.priority,
                self._format_date(task.due_date, options),
                task.progress / 100,
                ", ".join(task.tags),
                format_datetime(task.updated_at),
            ]
            for col, value in enumerate(values, 1):
                sheet.cell(row=row_index, column=col, value=value)
            sheet.cell(row=row_index, column=7).number_format = '0%'

        if options.freeze_panes:
            sheet.freeze_panes = 'A2'

        result.exported_counts['tasks'] = len(tasks)

    def get_export_statistics(self) -> Dict[str, Any]:
        return dict(self.export_stats)

    def __str__(self) -> str:
        return f"ExcelExporter(exports={self.export_stats['total_exports']})"
