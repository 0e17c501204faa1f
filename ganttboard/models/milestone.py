"""
マイルストーンモデル
ガントチャート上の節目
"""

from datetime import datetime
from typing import Dict, Any

from .base import BaseEntity, DateLike, parse_datetime, format_datetime
from ..core.error_handler import ValidationError


class Milestone(BaseEntity):
    """マイルストーンクラス"""

    def __init__(self,
                 project_id: str,
                 name: str,
                 date: DateLike,
                 description: str = "",
                 color: str = "#EF4444",
                 completed: bool = False):
        super().__init__()
        self.project_id: str = project_id
        self.name: str = name
        parsed = parse_datetime(date, 'date')
        if parsed is None:
            raise ValidationError("マイルストーンの日付は必須です", field='date')
        self.date: datetime = parsed
        self.description: str = description or ""
        self.color: str = color
        self.completed: bool = completed

    def _to_dict_additional(self) -> Dict[str, Any]:
        return {
            'project_id': self.project_id,
            'name': self.name,
            'description': self.description,
            'date': format_datetime(self.date),
            'color': self.color,
            'completed': self.completed
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Milestone':
        """辞書からマイルストーンを復元"""
        milestone = cls(
            data['project_id'],
            data['name'],
            data['date'],
            description=data.get('description') or "",
            color=data.get('color') or "#EF4444",
            completed=bool(data.get('completed', False)),
        )
        milestone._restore_base(data)
        return milestone

    def _validate_additional(self) -> bool:
        return bool(self.project_id) and bool(self.name and self.name.strip())

    def __str__(self) -> str:
        return f"Milestone(name='{self.name}', date='{self.date.date()}')"
