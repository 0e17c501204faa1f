"""
プロジェクトモデル
"""

from datetime import datetime
from typing import Dict, Any, Optional

from .base import BaseEntity, ProjectStatus, DateLike, parse_datetime, format_datetime


class Project(BaseEntity):
    """
    プロジェクトクラス
    タスク・マイルストーンをまとめる単位
    """

    def __init__(self,
                 name: str,
                 description: str = "",
                 status: str = ProjectStatus.ACTIVE,
                 due_date: DateLike = None,
                 group_id: Optional[str] = None):
        """
        プロジェクトの初期化

        Args:
            name: プロジェクト名
            description: プロジェクト説明
            status: active / archived
            due_date: 期限
            group_id: 所属プロジェクトグループ
        """
        super().__init__()
        self.name: str = name
        self.description: str = description or ""
        self.status: str = status
        self.due_date: Optional[datetime] = parse_datetime(due_date, 'due_date')
        self.group_id: Optional[str] = group_id

    def is_active(self) -> bool:
        """アクティブかどうか"""
        return self.status == ProjectStatus.ACTIVE

    def _to_dict_additional(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'description': self.description,
            'status': self.status,
            'due_date': format_datetime(self.due_date),
            'group_id': self.group_id
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Project':
        """辞書からプロジェクトを復元"""
        project = cls(
            data['name'],
            data.get('description') or "",
            status=data.get('status') or ProjectStatus.ACTIVE,
            due_date=data.get('due_date'),
            group_id=data.get('group_id'),
        )
        project._restore_base(data)
        return project

    def _validate_additional(self) -> bool:
        if not self.name or not self.name.strip():
            return False
        return ProjectStatus.is_valid(self.status)

    def __str__(self) -> str:
        return f"Project(name='{self.name}', status='{self.status}')"
