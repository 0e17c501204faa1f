# ====================
# core/__init__.py
# ====================
"""
コア機能パッケージ
タイムラインレイアウト・依存関係・ログ・エラーハンドリング

分析エンジンと統合管理クラスはモデルに依存するため、
ganttboard.core.analytics / ganttboard.core.manager から直接インポートする。
"""

from .logger import (
    ProjectLogger, LogLevel, LogCategory, AuditAction,
    LogEntry, AuditEntry, LogStatistics
)
from .error_handler import (
    ProjectManagementError, ValidationError, NotFoundError,
    StoreError, ExportError,
    ErrorHandler, ErrorSeverity, ErrorCategory,
    handle_errors, validate_input, measure_performance,
    get_error_handler, format_exception_summary, classify_exception
)
from .date_grid import (
    DateGrid, ChartBounds, DayColumn, MonthSpan, ScaleTick,
    days_between, to_date
)
from .timeline import (
    ScheduledItem, LayoutRow, MilestoneMarker, TimelineLayout,
    TimelineLayoutResult, compute_layout, validate_progress
)
from .dependencies import extract_dependencies, dangling_references, adjacency_to_dict

__all__ = [
    # タイムライン
    'DateGrid',
    'ChartBounds',
    'DayColumn',
    'MonthSpan',
    'ScaleTick',
    'days_between',
    'to_date',
    'ScheduledItem',
    'LayoutRow',
    'MilestoneMarker',
    'TimelineLayout',
    'TimelineLayoutResult',
    'compute_layout',
    'validate_progress',

    # 依存関係
    'extract_dependencies',
    'dangling_references',
    'adjacency_to_dict',

    # ログ関連
    'ProjectLogger',
    'LogLevel',
    'LogCategory',
    'AuditAction',
    'LogEntry',
    'AuditEntry',
    'LogStatistics',

    # エラーハンドリング関連
    'ProjectManagementError',
    'ValidationError',
    'NotFoundError',
    'StoreError',
    'ExportError',
    'ErrorHandler',
    'ErrorSeverity',
    'ErrorCategory',

    # デコレータ
    'handle_errors',
    'validate_input',
    'measure_performance',

    # ユーティリティ
    'get_error_handler',
    'format_exception_summary',
    'classify_exception'
]
