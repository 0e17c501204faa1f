# ====================
# models/__init__.py
# ====================
"""
データモデルパッケージ
プロジェクト・タスク・マイルストーン
"""

from .base import (
    BaseEntity, StatusEnum, ProjectStatus, TaskStatus, TaskPriority,
    parse_datetime, format_datetime
)
from .project import Project
from .task import Task
from .milestone import Milestone

__all__ = [
    # 基底クラス
    'BaseEntity',
    'StatusEnum',
    'ProjectStatus',
    'TaskStatus',
    'TaskPriority',

    # エンティティクラス
    'Project',
    'Task',
    'Milestone',

    # ユーティリティ
    'parse_datetime',
    'format_datetime'
]
