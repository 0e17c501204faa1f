"""
分析エンジン
タスク・プロジェクト一覧からダッシュボード指標を算出する

すべて読み取り時点のコレクションに対する純粋な集計であり、結果はキャッシュしない。
累積フロー・バーンダウンはタスクごとに1つしかない updated_at から過去の状態を
推定した近似値である（状態遷移の履歴は保持していない）。
"""

from dataclasses import dataclass
from datetime import datetime, date, timedelta
from typing import Any, Dict, Iterable, List

from ..config.settings import AnalyticsSettings
from ..models.base import TaskStatus, TaskPriority, ProjectStatus
from ..models.project import Project
from ..models.task import Task


# 優先度ごとの影響度（1-5）
PRIORITY_IMPACT = {
    TaskPriority.LOW: 1,
    TaskPriority.MEDIUM: 2,
    TaskPriority.HIGH: 4,
    TaskPriority.URGENT: 5,
}

UNTAGGED = "untagged"

_ONE_DAY = timedelta(days=1)


class RiskLevel:
    """リスク区分"""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class SprintHealth:
    """スプリント健全性"""
    HEALTHY = "healthy"
    AT_RISK = "at_risk"
    CRITICAL = "critical"


def classify_risk(score: int, high_threshold: int = 15, medium_threshold: int = 8) -> str:
    """
    リスクスコアを区分に変換

    全体スコア・タスク別リスク・スプリント健全性で共通の閾値を用いる。
    """
    if score >= high_threshold:
        return RiskLevel.HIGH
    if score >= medium_threshold:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def calculate_efficiency(estimated_hours: float, actual_hours: float) -> float:
    """実績/予想 × 100（予想が0なら0）"""
    if not estimated_hours:
        return 0.0
    return round(actual_hours / estimated_hours * 100, 1)


def _percentage(part: int, whole: int) -> float:
    return round(part / whole * 100, 1) if whole else 0.0


def _mean(values: List[float]) -> float:
    return round(sum(values) / len(values), 1) if values else 0.0


def _days(delta: timedelta) -> float:
    return delta.total_seconds() / 86400


@dataclass(frozen=True)
class RiskRecord:
    """タスク別リスク（影響度 × 発生確率）"""
    task_id: str
    title: str
    impact: int
    probability: int

    @property
    def risk_score(self) -> int:
        return self.impact * self.probability

    def to_dict(self) -> Dict[str, Any]:
        return {
            'task_id': self.task_id,
            'title': self.title,
            'impact': self.impact,
            'probability': self.probability,
            'risk_score': self.risk_score,
        }


@dataclass(frozen=True)
class AgileSnapshot:
    """累積フローの1日分"""
    date: date
    todo_count: int
    in_progress_count: int
    done_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date.isoformat(),
            'todo_count': self.todo_count,
            'in_progress_count': self.in_progress_count,
            'done_count': self.done_count,
        }


class AnalyticsEngine:
    """
    ダッシュボード指標の算出

    ストアには触れない。呼び出し側が読み込んだコレクションを渡す。
    """

    def __init__(self, settings: AnalyticsSettings = None):
        self.settings = settings or AnalyticsSettings()

    # ==================== 共通 ====================

    def classify(self, score: int) -> str:
        """設定値の閾値でリスク区分を判定"""
        return classify_risk(score, self.settings.high_risk_threshold,
                             self.settings.medium_risk_threshold)

    @staticmethod
    def blocked_by(task: Task, task_index: Dict[str, Task]) -> List[str]:
        """
        タスクをブロックしている依存先ID

        未完了タスクについて、既知かつ未完了の依存先を返す。未知のIDは無視する。
        """
        if task.is_done():
            return []
        return [dep_id for dep_id in task.dependencies
                if dep_id in task_index and not task_index[dep_id].is_done()]

    @staticmethod
    def days_overdue(task: Task, now: datetime) -> int:
        """期限超過日数（切り捨て）"""
        return (now - task.due_date) // _ONE_DAY

    @staticmethod
    def cycle_time_days(task: Task) -> float:
        """着手（開始日がなければ作成日）から完了更新までの日数"""
        started = task.start_date or task.created_at
        return max(_days(task.updated_at - started), 0.0)

    @staticmethod
    def lead_time_days(task: Task) -> float:
        """作成から完了更新までの日数"""
        return max(_days(task.updated_at - task.created_at), 0.0)

    def risk_record(self, task: Task, now: datetime) -> RiskRecord:
        """
        タスク別リスクを算出

        影響度は優先度から、発生確率は期限までの残り（超過）日数から決める。
        """
        impact = PRIORITY_IMPACT.get(task.priority, PRIORITY_IMPACT[TaskPriority.MEDIUM])

        probability = 1
        if task.due_date is not None:
            remaining = task.due_date - now
            if remaining < timedelta(0):
                probability = 5 if self.days_overdue(task, now) > 14 else 4
            elif remaining <= timedelta(days=3):
                probability = 3
            elif remaining <= timedelta(days=7):
                probability = 2

        return RiskRecord(task.id, task.title, impact, probability)

    # ==================== 概要 ====================

    def get_overview(self, tasks: Iterable[Task], projects: Iterable[Project],
                     now: datetime = None) -> Dict[str, Any]:
        """
        概要指標

        Returns:
            件数・完了率など
        """
        now = now or datetime.now()
        tasks = list(tasks)
        projects = list(projects)

        completed = [t for t in tasks if t.status == TaskStatus.DONE]
        in_progress = sum(1 for t in tasks if t.status == TaskStatus.IN_PROGRESS)
        todo = sum(1 for t in tasks if t.status == TaskStatus.TODO)

        return {
            'active_projects': sum(1 for p in projects if p.status == ProjectStatus.ACTIVE),
            'total_projects': len(projects),
            'total_tasks': len(tasks),
            'completed_tasks': len(completed),
            'in_progress_tasks': in_progress,
            'todo_tasks': todo,
            'overdue_tasks': sum(1 for t in tasks if t.is_overdue(now)),
            'completion_rate': _percentage(len(completed), len(tasks)),
            'avg_cycle_time': _mean([self.cycle_time_days(t) for t in completed]),
        }

    # ==================== リスク ====================

    def get_risk_analysis(self, tasks: Iterable[Task], now: datetime = None) -> Dict[str, Any]:
        """
        リスク分析

        risk_score = 期限超過数×3 + 未完了の高優先度数×2 + ブロック中数×1
        """
        now = now or datetime.now()
        tasks = list(tasks)
        task_index = {t.id: t for t in tasks}

        overdue = [
            {
                'id': t.id,
                'title': t.title,
                'project_id': t.project_id,
                'priority': t.priority,
                'due_date': t.due_date.isoformat(),
                'days_overdue': self.days_overdue(t, now),
            }
            for t in tasks if t.is_overdue(now)
        ]
        overdue.sort(key=lambda item: item['days_overdue'], reverse=True)

        high_priority = [
            {'id': t.id, 'title': t.title, 'project_id': t.project_id,
             'priority': t.priority, 'status': t.status}
            for t in tasks if t.is_high_priority() and not t.is_done()
        ]

        blocked = []
        for t in tasks:
            blockers = self.blocked_by(t, task_index)
            if blockers:
                blocked.append({'id': t.id, 'title': t.title,
                                'project_id': t.project_id, 'blocked_by': blockers})

        risk_score = (len(overdue) * self.settings.overdue_weight
                      + len(high_priority) * self.settings.high_priority_weight
                      + len(blocked) * self.settings.blocked_weight)

        matrix = [self.risk_record(t, now) for t in tasks if not t.is_done()]
        matrix.sort(key=lambda record: record.risk_score, reverse=True)

        summary = {RiskLevel.HIGH: 0, RiskLevel.MEDIUM: 0, RiskLevel.LOW: 0}
        for record in matrix:
            summary[self.classify(record.risk_score)] += 1

        horizon = now + timedelta(days=self.settings.upcoming_deadline_days)
        upcoming = [
            {'id': t.id, 'title': t.title, 'project_id': t.project_id,
             'due_date': t.due_date.isoformat(),
             'days_remaining': (t.due_date - now).days}
            for t in sorted((t for t in tasks if t.due_date is not None), key=lambda t: t.due_date)
            if not t.is_done() and now <= t.due_date <= horizon
        ]

        return {
            'overdue_tasks': overdue,
            'high_priority_incomplete': high_priority,
            'blocked_tasks': blocked,
            'risk_score': risk_score,
            'risk_level': self.classify(risk_score),
            'risk_matrix': [record.to_dict() for record in matrix],
            'risk_summary': summary,
            'upcoming_deadlines': upcoming,
        }

    # ==================== リソース ====================

    def _hours_breakdown(self, tasks: List[Task]) -> Dict[str, Any]:
        estimated = sum(t.estimated_hours or 0 for t in tasks)
        actual = sum(t.actual_hours or 0 for t in tasks)
        return {
            'task_count': len(tasks),
            'completed_tasks': sum(1 for t in tasks if t.is_done()),
            'estimated_hours': estimated,
            'actual_hours': actual,
            'efficiency': calculate_efficiency(estimated, actual),
        }

    def get_resource_utilization(self, tasks: Iterable[Task],
                                 projects: Iterable[Project] = ()) -> Dict[str, Any]:
        """
        リソース利用状況

        タグ別・プロジェクト別に予想/実績工数を集計する。
        タグのないタスクは untagged に計上する。
        """
        tasks = list(tasks)
        project_names = {p.id: p.name for p in projects}

        by_tag: Dict[str, List[Task]] = {}
        by_project: Dict[str, List[Task]] = {}
        for t in tasks:
            for tag in (t.tags or [UNTAGGED]):
                by_tag.setdefault(tag, []).append(t)
            by_project.setdefault(t.project_id, []).append(t)

        tag_rows = [dict(tag=tag, **self._hours_breakdown(items)) for tag, items in by_tag.items()]
        tag_rows.sort(key=lambda row: (-row['task_count'], row['tag']))

        project_rows = [
            dict(project_id=project_id, project_name=project_names.get(project_id, ""),
                 **self._hours_breakdown(items))
            for project_id, items in by_project.items()
        ]
        project_rows.sort(key=lambda row: -row['task_count'])

        tagged_rows = [row for row in tag_rows if row['tag'] != UNTAGGED]
        durations = [_days(t.end_date - t.start_date) for t in tasks if t.start_date and t.end_date]
        totals = self._hours_breakdown(tasks)

        return {
            'total_estimated_hours': totals['estimated_hours'],
            'total_actual_hours': totals['actual_hours'],
            'efficiency': totals['efficiency'],
            'tasks_by_priority': {
                priority: sum(1 for t in tasks if t.priority == priority)
                for priority in TaskPriority.get_all_values()
            },
            'average_task_duration': _mean(durations),
            'by_tag': tag_rows,
            'by_project': project_rows,
            'most_active_tag': tagged_rows[0]['tag'] if tagged_rows else None,
        }

    # ==================== 効率 ====================

    def _completed_between(self, tasks: List[Task], start: datetime, end: datetime) -> List[Task]:
        return [t for t in tasks if t.is_done() and start <= t.updated_at <= end]

    def get_efficiency_stats(self, tasks: Iterable[Task], now: datetime = None) -> Dict[str, Any]:
        """
        効率指標

        期限のない完了タスクは期限内扱い。進捗未設定は0として平均する。
        """
        now = now or datetime.now()
        tasks = list(tasks)
        completed = [t for t in tasks if t.is_done()]

        on_time = sum(1 for t in completed
                      if t.due_date is None or t.updated_at.date() <= t.due_date.date())
        on_time_rate = _percentage(on_time, len(completed))
        average_progress = _mean([t.progress or 0 for t in tasks])
        completion_rate = _percentage(len(completed), len(tasks))

        velocity_window = timedelta(days=self.settings.velocity_window_days)
        velocity = len(self._completed_between(tasks, now - velocity_window, now))

        velocity_trend = []
        weeks = self.settings.velocity_trend_weeks
        for index in range(weeks):
            week_end = now - timedelta(weeks=weeks - 1 - index)
            week_start = week_end - timedelta(weeks=1)
            velocity_trend.append({
                'week': f"W{index + 1}",
                'start': week_start.date().isoformat(),
                'completed': len(self._completed_between(tasks, week_start, week_end)),
            })

        estimated = [t.estimated_hours for t in tasks if t.estimated_hours is not None]
        actual = [t.actual_hours for t in tasks if t.actual_hours is not None]

        return {
            'on_time_delivery_rate': on_time_rate,
            'average_progress': average_progress,
            'completed_tasks': len(completed),
            'total_tasks': len(tasks),
            'productivity_score': round((completion_rate + on_time_rate + average_progress) / 3, 1),
            'velocity': velocity,
            'velocity_trend': velocity_trend,
            'avg_estimated_hours': _mean(estimated),
            'avg_actual_hours': _mean(actual),
            'cycle_time_data': [
                {'id': t.id, 'title': t.title, 'cycle_time': round(self.cycle_time_days(t), 1)}
                for t in completed
            ],
        }

    # ==================== アジャイル ====================

    def cumulative_flow(self, tasks: Iterable[Task], now: datetime = None,
                        window_days: int = None) -> List[AgileSnapshot]:
        """
        日別の状態別件数（古い日付から）

        作成日以前は数えない。updated_at 以降は現在の状態、それより前は todo とみなす。
        """
        now = now or datetime.now()
        tasks = list(tasks)
        window_days = window_days or self.settings.flow_window_days
        today = now.date()

        snapshots = []
        for offset in range(window_days - 1, -1, -1):
            day = today - timedelta(days=offset)
            counts = {TaskStatus.TODO: 0, TaskStatus.IN_PROGRESS: 0, TaskStatus.DONE: 0}
            for t in tasks:
                if t.created_at.date() > day:
                    continue
                status = t.status if t.updated_at.date() <= day else TaskStatus.TODO
                counts[status if status in counts else TaskStatus.TODO] += 1
            snapshots.append(AgileSnapshot(day, counts[TaskStatus.TODO],
                                           counts[TaskStatus.IN_PROGRESS], counts[TaskStatus.DONE]))
        return snapshots

    def burndown(self, tasks: Iterable[Task], now: datetime = None,
                 window_days: int = None) -> List[Dict[str, Any]]:
        """
        残タスク数と理想線（累積フローと同じ近似）

        理想線は初日の残数から最終日の0まで直線で減らす。
        """
        flow = self.cumulative_flow(tasks, now, window_days)
        if not flow:
            return []

        start_remaining = flow[0].todo_count + flow[0].in_progress_count
        steps = max(len(flow) - 1, 1)
        return [
            {
                'date': snapshot.date.isoformat(),
                'remaining': snapshot.todo_count + snapshot.in_progress_count,
                'ideal': round(start_remaining * (1 - index / steps), 1),
            }
            for index, snapshot in enumerate(flow)
        ]

    def get_agile_metrics(self, tasks: Iterable[Task], projects: Iterable[Project],
                          now: datetime = None) -> Dict[str, Any]:
        """
        アジャイル指標

        Returns:
            速度・バーンダウン・スプリント健全性・累積フロー・WIP など
        """
        now = now or datetime.now()
        tasks = list(tasks)
        projects = list(projects)
        completed = [t for t in tasks if t.is_done()]

        velocity_window = timedelta(days=self.settings.velocity_window_days)
        velocity = len(self._completed_between(tasks, now - velocity_window, now))

        throughput = []
        for offset in range(self.settings.velocity_window_days - 1, -1, -1):
            day = now.date() - timedelta(days=offset)
            throughput.append({
                'date': day.isoformat(),
                'completed': sum(1 for t in completed if t.updated_at.date() == day),
            })

        wip = {}
        for status, limit in self.settings.wip_limits.items():
            count = sum(1 for t in tasks if t.status == status)
            wip[status] = {'count': count, 'limit': limit, 'exceeded': count > limit}

        risk_level = self.get_risk_analysis(tasks, now)['risk_level']
        sprint_health = {
            RiskLevel.LOW: SprintHealth.HEALTHY,
            RiskLevel.MEDIUM: SprintHealth.AT_RISK,
            RiskLevel.HIGH: SprintHealth.CRITICAL,
        }[risk_level]

        return {
            'velocity': velocity,
            'burndown': self.burndown(tasks, now),
            'sprint_health': sprint_health,
            'active_projects': sum(1 for p in projects if p.status == ProjectStatus.ACTIVE),
            'cumulative_flow': [snapshot.to_dict() for snapshot in self.cumulative_flow(tasks, now)],
            'throughput': throughput,
            'wip': wip,
            'avg_lead_time': _mean([self.lead_time_days(t) for t in completed]),
            'avg_cycle_time': _mean([self.cycle_time_days(t) for t in completed]),
        }
