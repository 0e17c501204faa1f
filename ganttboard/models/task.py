"""
タスクモデル
ガントチャート・分析の対象となる作業単位
"""

from datetime import datetime, date
from typing import Dict, Any, Optional, List

from .base import (
    BaseEntity, TaskStatus, TaskPriority, DateLike,
    parse_datetime, format_datetime
)
from ..core.error_handler import ValidationError
from ..core.timeline import ScheduledItem, validate_progress


class Task(BaseEntity):
    """
    タスククラス

    省略可能な項目はすべて既定値を持つ（progress=0, dependencies=[], tags=[]）。
    """

    def __init__(self,
                 title: str,
                 project_id: str,
                 description: str = "",
                 status: str = TaskStatus.TODO,
                 priority: str = TaskPriority.MEDIUM,
                 due_date: DateLike = None,
                 start_date: DateLike = None,
                 end_date: DateLike = None,
                 progress: int = 0,
                 dependencies: List[str] = None,
                 milestone_id: Optional[str] = None,
                 estimated_hours: Optional[float] = None,
                 actual_hours: Optional[float] = None,
                 tags: List[str] = None):
        super().__init__()
        self.title: str = title
        self.project_id: str = project_id
        self.description: str = description or ""
        self.status: str = status
        self.priority: str = priority
        self.due_date: Optional[datetime] = parse_datetime(due_date, 'due_date')
        self.start_date: Optional[datetime] = parse_datetime(start_date, 'start_date')
        self.end_date: Optional[datetime] = parse_datetime(end_date, 'end_date')
        self.progress: int = 0 if progress is None else progress
        self.dependencies: List[str] = list(dependencies or [])
        self.milestone_id: Optional[str] = milestone_id
        self.estimated_hours: Optional[float] = estimated_hours
        self.actual_hours: Optional[float] = actual_hours
        self.tags: List[str] = list(tags or [])

    def is_done(self) -> bool:
        """完了状態かどうか"""
        return self.status == TaskStatus.DONE

    def is_overdue(self, now: datetime) -> bool:
        """期限超過かどうか（完了済みは対象外）"""
        return self.due_date is not None and self.due_date < now and not self.is_done()

    def is_high_priority(self) -> bool:
        """高優先度（high / urgent）かどうか"""
        return self.priority in (TaskPriority.HIGH, TaskPriority.URGENT)

    def set_progress(self, progress: int) -> None:
        """
        進捗率を設定

        Raises:
            ValidationError: 0-100 の整数でない場合
        """
        self.progress = validate_progress(progress)
        self.update_timestamp()

    def set_schedule(self, start_date: DateLike, end_date: DateLike) -> None:
        """
        開始日・終了日を設定

        Raises:
            ValidationError: 日付が欠けている、または終了日が開始日より前の場合
        """
        start = parse_datetime(start_date, 'start_date')
        end = parse_datetime(end_date, 'end_date')
        if start is None or end is None:
            raise ValidationError("開始日と終了日は必須です", field='start_date/end_date')
        if end < start:
            raise ValidationError(
                f"終了日が開始日より前です: {start.date()} > {end.date()}",
                field='end_date', value=end.isoformat()
            )
        self.start_date = start
        self.end_date = end
        self.update_timestamp()

    def to_scheduled_item(self, today: date, status_colors: Dict[str, str] = None,
                          default_color: str = None) -> ScheduledItem:
        """
        ガントチャート表示用の ScheduledItem に変換

        開始日・終了日が未設定の場合は today を用いる。

        Args:
            today: 欠損日付の代替値
            status_colors: ステータス別の色
            default_color: 未知ステータスの色
        """
        start = self.start_date.date() if self.start_date else today
        end = self.end_date.date() if self.end_date else today
        colors = status_colors or {}

        return ScheduledItem(
            id=self.id,
            name=self.title,
            start_date=start,
            end_date=end,
            progress=self.progress,
            depends_on=frozenset(self.dependencies),
            color=colors.get(self.status, default_color),
            label=", ".join(self.tags) if self.tags else None,
        )

    def _to_dict_additional(self) -> Dict[str, Any]:
        """タスク固有属性を辞書に変換"""
        return {
            'title': self.title,
            'project_id': self.project_id,
            'description': self.description,
            'status': self.status,
            'priority': self.priority,
            'due_date': format_datetime(self.due_date),
            'start_date': format_datetime(self.start_date),
            'end_date': format_datetime(self.end_date),
            'progress': self.progress,
            'dependencies': self.dependencies.copy(),
            'milestone_id': self.milestone_id,
            'estimated_hours': self.estimated_hours,
            'actual_hours': self.actual_hours,
            'tags': self.tags.copy()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Task':
        """辞書からタスクを復元"""
        task = cls(
            data['title'],
            data['project_id'],
            description=data.get('description') or "",
            status=data.get('status') or TaskStatus.TODO,
            priority=data.get('priority') or TaskPriority.MEDIUM,
            due_date=data.get('due_date'),
            start_date=data.get('start_date'),
            end_date=data.get('end_date'),
            progress=data.get('progress'),
            dependencies=data.get('dependencies'),
            milestone_id=data.get('milestone_id'),
            estimated_hours=data.get('estimated_hours'),
            actual_hours=data.get('actual_hours'),
            tags=data.get('tags'),
        )
        task._restore_base(data)
        return task

    def _validate_additional(self) -> bool:
        """タスク固有の妥当性検証"""
        if not self.title or not self.title.strip():
            return False
        if not self.project_id:
            return False
        if not TaskStatus.is_valid(self.status):
            return False
        if not TaskPriority.is_valid(self.priority):
            return False
        if isinstance(self.progress, bool) or not isinstance(self.progress, int):
            return False
        if not (0 <= self.progress <= 100):
            return False
        if self.estimated_hours is not None and self.estimated_hours < 0:
            return False
        if self.actual_hours is not None and self.actual_hours < 0:
            return False
        return True

    def __str__(self) -> str:
        """文字列表現"""
        return f"Task(title='{self.title}', status='{self.status}', priority='{self.priority}')"
