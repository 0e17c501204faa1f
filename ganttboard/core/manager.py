"""
プロジェクト管理統合機能
ストアからの読み込み・ガントチャート生成・分析・進捗/日程更新の統合窓口
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict
from datetime import datetime, date
from typing import Any, Dict, List, Tuple

from ..config.settings import SystemSettings
from ..models.base import TaskStatus, parse_datetime
from ..models.milestone import Milestone
from ..models.project import Project
from ..models.task import Task
from ..storage.base import StorageInterface
from .analytics import AnalyticsEngine, RiskLevel
from .date_grid import ChartBounds
from .dependencies import adjacency_to_dict, extract_dependencies
from .error_handler import (
    NotFoundError, ValidationError, handle_errors, measure_performance, validate_input
)
from .logger import AuditAction, LogCategory, ProjectLogger
from .timeline import TimelineLayout, validate_progress


def _check_progress(self, task_id: str, progress) -> bool:
    validate_progress(progress)
    return True


def _check_schedule(self, task_id: str, start_date, end_date) -> bool:
    start = parse_datetime(start_date, 'start_date')
    end = parse_datetime(end_date, 'end_date')
    if start is None or end is None:
        raise ValidationError("開始日と終了日は必須です", field='start_date/end_date')
    if end < start:
        raise ValidationError(f"終了日が開始日より前です: {start.date()} > {end.date()}",
                              field='end_date', value=end.isoformat())
    return True


class ProjectManagementSystem:
    """
    プロジェクト管理システム統合クラス

    ストアは生成時に注入する（環境や設定でストアを切り替えない）。
    派生データはリクエストごとに再計算し、保持しない。
    """

    def __init__(self, storage: StorageInterface, settings: SystemSettings = None,
                 logger: ProjectLogger = None):
        """
        システムの初期化

        Args:
            storage: ストレージ実装
            settings: システム設定（省略時は既定値）
            logger: ログ管理（省略時は共有インスタンス）
        """
        self.storage = storage
        self.settings = settings
        self.logger = logger or ProjectLogger()

        gantt = settings.gantt if settings else None
        self.day_width = gantt.day_width if gantt else 40
        self.time_scale = gantt.time_scale if gantt else "day"
        self.status_colors = dict(gantt.status_colors) if gantt else {}
        self.default_color = gantt.default_color if gantt else None

        performance = settings.performance if settings else None
        self.enable_threading = performance.enable_threading if performance else True
        self.max_worker_threads = performance.max_worker_threads if performance else 3

        self.layout = TimelineLayout(self.day_width,
                                     gantt.default_window_days if gantt else 30)
        self.analytics = AnalyticsEngine(settings.analytics if settings else None)

        self.logger.info(
            LogCategory.SYSTEM,
            f"プロジェクト管理システムが初期化されました: {storage}",
            module="core.manager"
        )

    # ==================== 読み込み ====================

    def _read(self, project_id: str = None,
              tasks: bool = True, projects: bool = True,
              milestones: bool = False) -> Tuple[List[Task], List[Project], List[Milestone]]:
        """
        タスク・プロジェクト・マイルストーンを並行して読み込み

        いずれかの読み込みが失敗した場合はその例外をそのまま送出する。
        """
        readers = {}
        if tasks:
            readers['tasks'] = lambda: self.storage.list_tasks(project_id)
        if projects:
            readers['projects'] = self.storage.list_projects
        if milestones:
            readers['milestones'] = lambda: self.storage.list_milestones(project_id)

        if self.enable_threading and len(readers) > 1:
            with ThreadPoolExecutor(max_workers=self.max_worker_threads) as executor:
                futures = {name: executor.submit(reader) for name, reader in readers.items()}
                results = {name: future.result() for name, future in futures.items()}
        else:
            results = {name: reader() for name, reader in readers.items()}

        return results.get('tasks', []), results.get('projects', []), results.get('milestones', [])

    def get_project(self, project_id: str) -> Project:
        """
        プロジェクトを取得

        Raises:
            NotFoundError: 存在しない場合
        """
        project = self.storage.get_project(project_id)
        if project is None:
            raise NotFoundError(f"プロジェクトが見つかりません: {project_id}",
                                entity_type="Project", entity_id=project_id)
        return project

    def get_task(self, task_id: str) -> Task:
        """
        タスクを取得

        Raises:
            NotFoundError: 存在しない場合
        """
        task = self.storage.get_task(task_id)
        if task is None:
            raise NotFoundError(f"タスクが見つかりません: {task_id}",
                                entity_type="Task", entity_id=task_id)
        return task

    def list_projects(self) -> List[Project]:
        return self.storage.list_projects()

    def list_tasks(self, project_id: str = None) -> List[Task]:
        if project_id is not None:
            self.get_project(project_id)
        return self.storage.list_tasks(project_id)

    def list_milestones(self, project_id: str = None) -> List[Milestone]:
        return self.storage.list_milestones(project_id)

    def search(self, query: str) -> Dict[str, List[Any]]:
        """タスク・プロジェクトを横断検索"""
        return {
            'tasks': self.storage.search_tasks(query),
            'projects': self.storage.search_projects(query),
        }

    # ==================== 登録・削除 ====================

    @handle_errors()
    def create_project(self, project: Project) -> Project:
        """プロジェクトを登録"""
        created = self.storage.create_project(project)
        self.logger.audit(AuditAction.CREATE, "Project", created.id, created.name,
                          "プロジェクト作成", after_data=created.to_dict())
        return created

    @handle_errors()
    def create_task(self, task: Task) -> Task:
        """
        タスクを登録

        Raises:
            NotFoundError: 所属プロジェクトが存在しない場合
        """
        self.get_project(task.project_id)
        task.progress = validate_progress(task.progress)
        created = self.storage.create_task(task)
        self.logger.audit(AuditAction.CREATE, "Task", created.id, created.title,
                          "タスク作成", after_data=created.to_dict())
        return created

    @handle_errors()
    def create_milestone(self, milestone: Milestone) -> Milestone:
        """マイルストーンを登録"""
        self.get_project(milestone.project_id)
        created = self.storage.create_milestone(milestone)
        self.logger.audit(AuditAction.CREATE, "Milestone", created.id, created.name,
                          "マイルストーン作成", after_data=created.to_dict())
        return created

    @handle_errors()
    def delete_project(self, project_id: str) -> bool:
        """プロジェクトと所属タスクを削除"""
        project = self.get_project(project_id)
        deleted = self.storage.delete_project(project_id)
        self.logger.audit(AuditAction.DELETE, "Project", project.id, project.name,
                          "プロジェクト削除", before_data=project.to_dict())
        return deleted

    @handle_errors()
    def delete_task(self, task_id: str) -> bool:
        """タスクを削除"""
        task = self.get_task(task_id)
        deleted = self.storage.delete_task(task_id)
        self.logger.audit(AuditAction.DELETE, "Task", task.id, task.title,
                          "タスク削除", before_data=task.to_dict())
        return deleted

    # ==================== 更新 ====================

    @handle_errors()
    @validate_input(_check_progress)
    def update_task_progress(self, task_id: str, progress: int) -> Task:
        """
        タスクの進捗率を更新

        Args:
            task_id: タスクID
            progress: 0-100 の整数

        Returns:
            更新後のタスク

        Raises:
            ValidationError: 進捗率が不正な場合（ストアには書き込まない）
            NotFoundError: タスクが存在しない場合
        """
        before = self.get_task(task_id)

        updated = self.storage.update_task_progress(task_id, progress)
        if updated is None:
            raise NotFoundError(f"タスクが見つかりません: {task_id}",
                                entity_type="Task", entity_id=task_id)

        self.logger.audit(
            AuditAction.UPDATE,
            "Task",
            updated.id,
            updated.title,
            f"進捗更新: {before.progress}% → {updated.progress}%",
            before_data={'progress': before.progress},
            after_data={'progress': updated.progress}
        )
        return updated

    @handle_errors()
    @validate_input(_check_schedule)
    def update_task_schedule(self, task_id: str, start_date, end_date) -> Task:
        """
        タスクの開始日・終了日を更新

        Raises:
            ValidationError: 日付が欠けている、または終了日が開始日より前の場合
            NotFoundError: タスクが存在しない場合
        """
        before = self.get_task(task_id)

        updated = self.storage.update_task_schedule(task_id, start_date, end_date)
        if updated is None:
            raise NotFoundError(f"タスクが見つかりません: {task_id}",
                                entity_type="Task", entity_id=task_id)

        self.logger.audit(
            AuditAction.UPDATE,
            "Task",
            updated.id,
            updated.title,
            f"日程更新: {updated.start_date.date()} - {updated.end_date.date()}",
            before_data={'start_date': before.to_dict()['start_date'],
                         'end_date': before.to_dict()['end_date']},
            after_data={'start_date': updated.to_dict()['start_date'],
                        'end_date': updated.to_dict()['end_date']}
        )
        return updated

    # ==================== ガントチャート ====================

    @measure_performance()
    def get_gantt_data(self, project_id: str = None, today: date = None,
                       bounds: ChartBounds = None) -> Dict[str, Any]:
        """
        ガントチャート描画データを生成

        Args:
            project_id: 対象プロジェクト（省略時は全タスク）
            today: 日付未設定タスクと空チャートの基準日
            bounds: 明示的な表示期間

        Returns:
            表示期間・行レイアウト・依存関係・マイルストーン・ヘッダー・集計

        Raises:
            NotFoundError: 指定プロジェクトが存在しない場合
        """
        today = today or date.today()
        tasks, projects, milestones = self._read(project_id, milestones=True)

        if project_id is not None and project_id not in {p.id for p in projects}:
            raise NotFoundError(f"プロジェクトが見つかりません: {project_id}",
                                entity_type="Project", entity_id=project_id)

        items = [task.to_scheduled_item(today, self.status_colors, self.default_color)
                 for task in tasks]
        result = self.layout.compute_layout(items, bounds, today)
        grid = self.layout.grid
        self.logger.debug(LogCategory.LAYOUT, "ガントレイアウトを計算しました", module="core.manager",
                          project_id=project_id, rows=len(result.rows),
                          bounds=result.bounds.to_dict())

        rows = []
        for item, row in zip(items, result.rows):
            rows.append(dict(row.to_dict(),
                             name=item.name,
                             start_date=item.start_date.isoformat(),
                             end_date=item.end_date.isoformat(),
                             progress=item.progress,
                             color=item.color,
                             label=item.label))

        return {
            'project_id': project_id,
            'day_width': self.day_width,
            'bounds': result.bounds.to_dict(),
            'total_width': result.total_width,
            'rows': rows,
            'dependencies': adjacency_to_dict(extract_dependencies(items)),
            'milestones': [m.to_dict() for m in self.layout.milestone_markers(milestones, result.bounds)],
            'header': {
                'months': [asdict(span) for span in grid.month_spans(result.bounds)],
                'days': [dict(asdict(col), date=col.date.isoformat())
                         for col in grid.day_columns(result.bounds)],
                'ticks': [dict(asdict(tick), date=tick.date.isoformat())
                          for tick in grid.scale_ticks(result.bounds, self.time_scale)],
            },
            'summary': {
                'total_tasks': len(tasks),
                'completed_tasks': sum(1 for t in tasks if t.is_done()),
                'in_progress_tasks': sum(1 for t in tasks if t.status == TaskStatus.IN_PROGRESS),
                'milestones': len(milestones),
            },
        }

    # ==================== 分析 ====================

    @measure_performance()
    def get_overview(self, now: datetime = None) -> Dict[str, Any]:
        tasks, projects, _ = self._read()
        return self.analytics.get_overview(tasks, projects, now)

    @measure_performance()
    def get_risk_analysis(self, now: datetime = None) -> Dict[str, Any]:
        tasks, _, _ = self._read(projects=False)
        risk = self.analytics.get_risk_analysis(tasks, now)
        if risk['risk_level'] == RiskLevel.HIGH:
            self.logger.warning(LogCategory.ANALYTICS, f"リスクスコアが高水準です: {risk['risk_score']}",
                                module="core.manager", overdue=len(risk['overdue_tasks']),
                                blocked=len(risk['blocked_tasks']))
        return risk

    @measure_performance()
    def get_resource_utilization(self) -> Dict[str, Any]:
        tasks, projects, _ = self._read()
        return self.analytics.get_resource_utilization(tasks, projects)

    @measure_performance()
    def get_efficiency_stats(self, now: datetime = None) -> Dict[str, Any]:
        tasks, _, _ = self._read(projects=False)
        return self.analytics.get_efficiency_stats(tasks, now)

    @measure_performance()
    def get_agile_metrics(self, now: datetime = None) -> Dict[str, Any]:
        tasks, projects, _ = self._read()
        return self.analytics.get_agile_metrics(tasks, projects, now)

    # ==================== システム ====================

    @handle_errors(reraise=False, fallback_value=False)
    def validate_data_integrity(self) -> bool:
        """データ整合性を検証"""
        integrity_result = self.storage.validate_data_integrity()

        if not integrity_result['valid']:
            self.logger.error(
                LogCategory.DATA,
                f"データ整合性エラー: {integrity_result['errors']}",
                module="core.manager",
                errors=integrity_result['errors']
            )
        for warning in integrity_result['warnings']:
            self.logger.warning(LogCategory.DATA, warning, module="core.manager")

        return integrity_result['valid']

    def get_system_statistics(self) -> Dict[str, Any]:
        """システム統計情報を取得"""
        return {
            'storage': str(self.storage),
            'counts': self.storage.get_statistics(),
            'day_width': self.day_width,
            'threading': self.enable_threading,
        }

    def __str__(self) -> str:
        return f"ProjectManagementSystem(storage={self.storage})"
