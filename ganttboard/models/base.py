"""
エンティティ共通部
ID・作成/更新時刻・日時の正規化と、ステータス・優先度の定数
"""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, date
from typing import Dict, Any, Optional, Union

from ..core.error_handler import ValidationError


DateLike = Union[datetime, date, str, None]


def parse_datetime(value: DateLike, field: str = None) -> Optional[datetime]:
    """
    日時値を datetime に正規化

    Args:
        value: datetime / date / ISO8601文字列 / None
        field: エラー表示用のフィールド名

    Returns:
        正規化された naive datetime（None と空文字は None）。
        オフセット付きの値はローカル時刻に変換してから tzinfo を外す。
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return _to_local_naive(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError as e:
            raise ValidationError(f"日時の形式が不正です: {value}", field=field, value=value,
                                  original_exception=e)
        return _to_local_naive(parsed)
    raise ValidationError(f"日時として解釈できません: {value!r}", field=field, value=value)


def _to_local_naive(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def format_datetime(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class BaseEntity(ABC):
    """
    プロジェクト・タスク・マイルストーンの共通基底

    等価性と hash は型とIDだけで決まる（同じIDなら別インスタンスでも等しい）。
    """

    def __init__(self):
        now = datetime.now()
        self.id: str = str(uuid.uuid4())
        self.created_at: datetime = now
        self.updated_at: datetime = now

    def update_timestamp(self) -> None:
        self.updated_at = datetime.now()

    def to_dict(self) -> Dict[str, Any]:
        """JSON化できる辞書（日時は ISO8601 文字列）"""
        data = {
            'id': self.id,
            'created_at': format_datetime(self.created_at),
            'updated_at': format_datetime(self.updated_at),
        }
        data.update(self._to_dict_additional())
        return data

    @abstractmethod
    def _to_dict_additional(self) -> Dict[str, Any]:
        """サブクラス固有の属性"""

    def _restore_base(self, data: Dict[str, Any]) -> None:
        """to_dict() の出力から ID と時刻を戻す"""
        if data.get('id'):
            self.id = data['id']
        for name in ('created_at', 'updated_at'):
            if data.get(name):
                setattr(self, name, parse_datetime(data[name], name))

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'BaseEntity':
        raise NotImplementedError(f"{cls.__name__}.from_dict が未実装です")

    def validate(self) -> bool:
        return bool(self.id) and self._validate_additional()

    @abstractmethod
    def _validate_additional(self) -> bool:
        """サブクラス固有の妥当性検証"""

    def __eq__(self, other) -> bool:
        return type(self) is type(other) and self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


class StatusEnum:
    """文字列定数の集合（公開クラス属性がそのまま取り得る値になる）"""

    @classmethod
    def get_all_values(cls) -> list:
        return [value for key, value in vars(cls).items()
                if not key.startswith('_') and isinstance(value, str)]

    @classmethod
    def is_valid(cls, value: str) -> bool:
        return value in cls.get_all_values()


class ProjectStatus(StatusEnum):
    """プロジェクトの状態"""
    ACTIVE = "active"
    ARCHIVED = "archived"


class TaskStatus(StatusEnum):
    """タスクの状態（カンバンの列に対応）"""
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class TaskPriority(StatusEnum):
    """タスクの優先度"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"
