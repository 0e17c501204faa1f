"""
ログ管理
ガントボード全体で共有するカテゴリ付きログと監査証跡

エントリはメモリに保持して検索・集計に使い、同じ内容を標準 logging の
'ganttboard' 階層へも流す（ファイル出力は log_dir 指定時のみ）。
"""

import json
import logging
import logging.handlers
import threading
import traceback
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

ROOT_LOGGER_NAME = 'ganttboard'
AUDIT_LOGGER_NAME = 'ganttboard.audit'


class LogLevel:
    """ログレベル"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"

    @staticmethod
    def to_python(level: str) -> int:
        """標準 logging の数値レベルへ変換（未知の値は INFO）"""
        return getattr(logging, str(level).upper(), logging.INFO)


class LogCategory:
    """ログの発生源カテゴリ"""
    SYSTEM = "SYSTEM"            # 起動・設定
    DATA = "DATA"                # エンティティの読み書き
    LAYOUT = "LAYOUT"            # ガントのレイアウト計算
    ANALYTICS = "ANALYTICS"      # 分析レポート
    STORAGE = "STORAGE"          # 永続化・バックアップ
    EXPORT = "EXPORT"            # Excel出力
    PERFORMANCE = "PERFORMANCE"
    AUDIT = "AUDIT"
    ERROR = "ERROR"


class AuditAction:
    """監査対象の操作"""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    EXPORT = "EXPORT"


_ERROR_LEVELS = (LogLevel.ERROR, LogLevel.CRITICAL)


@dataclass
class LogEntry:
    """メモリ上に保持する1件のログ"""
    level: str
    category: str
    message: str
    module: str = "unknown"
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=datetime.now)

    @property
    def is_error(self) -> bool:
        return self.level in _ERROR_LEVELS

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'timestamp': self.timestamp.isoformat(),
            'level': self.level,
            'category': self.category,
            'module': self.module,
            'message': self.message,
            'metadata': dict(self.metadata),
        }


@dataclass
class AuditEntry:
    """
    エンティティ変更の監査記録

    before_data / after_data には変更されたフィールドだけを入れる
    （例: 進捗更新なら {'progress': 10} → {'progress': 20}）。
    """
    action: str
    entity_type: str
    entity_id: str
    entity_name: str
    details: str = ""
    before_data: Optional[Dict[str, Any]] = None
    after_data: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'timestamp': self.timestamp.isoformat(),
            'action': self.action,
            'entity': {'type': self.entity_type, 'id': self.entity_id, 'name': self.entity_name},
            'details': self.details,
            'before_data': self.before_data,
            'after_data': self.after_data,
            'metadata': dict(self.metadata),
        }


class LogStatistics:
    """レベル・カテゴリ・モジュール別の件数集計"""

    def __init__(self):
        self.started_at = datetime.now()
        self.levels: Counter = Counter()
        self.categories: Counter = Counter()
        self.modules: Counter = Counter()
        self.last_error_at: Optional[datetime] = None

    def record(self, entry: LogEntry) -> None:
        self.levels[entry.level] += 1
        self.categories[entry.category] += 1
        self.modules[entry.module] += 1
        if entry.is_error:
            self.last_error_at = entry.timestamp

    def get_summary(self) -> Dict[str, Any]:
        total = sum(self.levels.values())
        errors = sum(self.levels[level] for level in _ERROR_LEVELS)
        return {
            'start_time': self.started_at.isoformat(),
            'uptime_seconds': (datetime.now() - self.started_at).total_seconds(),
            'total_entries': total,
            'error_count': errors,
            'error_rate': round(errors / total * 100, 2) if total else 0,
            'last_error': self.last_error_at.isoformat() if self.last_error_at else None,
            'level_counts': dict(self.levels),
            'category_counts': dict(self.categories),
            'top_modules': dict(self.modules.most_common(10)),
        }


def _exception_metadata(exception: BaseException, with_traceback: bool) -> Dict[str, Any]:
    data = {
        'exception_type': type(exception).__name__,
        'exception_message': str(exception),
    }
    if with_traceback:
        data['traceback'] = ''.join(
            traceback.format_exception(type(exception), exception, exception.__traceback__))
    return data


class ProjectLogger:
    """
    ガントボードのログ管理（プロセス内シングルトン）

    2回目以降の ProjectLogger(...) は最初のインスタンスを返し、引数は無視する。
    テストや設定の再読込では reset_instance() で作り直す。
    """

    _instance: Optional['ProjectLogger'] = None
    _lock = threading.Lock()

    def __new__(cls, log_dir: str = None, settings=None) -> 'ProjectLogger':
        with cls._lock:
            if cls._instance is None:
                instance = super().__new__(cls)
                instance._initialized = False
                cls._instance = instance
        return cls._instance

    def __init__(self, log_dir: str = None, settings=None):
        """
        Args:
            log_dir: ログファイルの出力先（None ならファイルに書かない）
            settings: LoggingSettings（None なら既定値）
        """
        if self._initialized:
            return

        self.log_dir = Path(log_dir) if log_dir else None
        self.level = getattr(settings, 'level', LogLevel.INFO)
        self.max_entries_in_memory = getattr(settings, 'max_entries_in_memory', 10000)
        self.max_file_bytes = getattr(settings, 'max_file_size_mb', 100) * 1024 * 1024
        self.backup_count = getattr(settings, 'backup_count', 5)
        self.enable_file_output = getattr(settings, 'enable_file_output', True)
        self.enable_console_output = getattr(settings, 'enable_console_output', True)
        self.enable_audit_log = getattr(settings, 'enable_audit_log', True)

        self.log_entries: List[LogEntry] = []
        self.audit_entries: List[AuditEntry] = []
        self.statistics = LogStatistics()
        self._entries_lock = threading.RLock()
        self._handlers: List[logging.Handler] = []

        self._install_handlers()
        self._initialized = True

        self.info(LogCategory.SYSTEM, "ロガーを初期化しました", module="core.logger",
                  log_dir=str(self.log_dir) if self.log_dir else None)

    @classmethod
    def reset_instance(cls) -> None:
        """シングルトンを破棄し、自分が登録したハンドラーを外す"""
        with cls._lock:
            instance = cls._instance
            if instance is not None and instance._initialized:
                instance._remove_handlers()
            cls._instance = None

    # ==================== ハンドラー ====================

    def _install_handlers(self) -> None:
        root = logging.getLogger(ROOT_LOGGER_NAME)
        root.setLevel(LogLevel.to_python(self.level))
        file_format = logging.Formatter('%(asctime)s %(levelname)-8s %(name)s: %(message)s')

        if self.log_dir is not None and self.enable_file_output:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            self._attach(root, self._rotating("application.log", file_format))
            self._attach(root, self._rotating("error.log", file_format, logging.ERROR))
            if self.enable_audit_log:
                self._attach(logging.getLogger(AUDIT_LOGGER_NAME),
                             self._rotating("audit.log", file_format))

        if self.enable_console_output:
            console = logging.StreamHandler()
            console.setLevel(logging.WARNING)
            console.setFormatter(logging.Formatter('%(levelname)s: %(message)s'))
            self._attach(root, console)

    def _rotating(self, filename: str, formatter: logging.Formatter,
                  level: int = logging.NOTSET) -> logging.Handler:
        handler = logging.handlers.RotatingFileHandler(
            self.log_dir / filename,
            maxBytes=self.max_file_bytes,
            backupCount=self.backup_count,
            encoding='utf-8'
        )
        handler.setLevel(level)
        handler.setFormatter(formatter)
        return handler

    def _attach(self, target: logging.Logger, handler: logging.Handler) -> None:
        handler._ganttboard_owner = target
        target.addHandler(handler)
        self._handlers.append(handler)

    def _remove_handlers(self) -> None:
        while self._handlers:
            handler = self._handlers.pop()
            handler._ganttboard_owner.removeHandler(handler)
            handler.close()

    def set_level(self, level: str) -> None:
        self.level = level
        logging.getLogger(ROOT_LOGGER_NAME).setLevel(LogLevel.to_python(level))

    # ==================== 記録 ====================

    def _log(self, level: str, category: str, message: str,
             module: str = None, **metadata) -> None:
        entry = LogEntry(level, category, message, module or "unknown", metadata)

        with self._entries_lock:
            self.log_entries.append(entry)
            # 上限を超えたら新しい半分だけ残す
            if len(self.log_entries) > self.max_entries_in_memory:
                del self.log_entries[:-(self.max_entries_in_memory // 2)]
            self.statistics.record(entry)

        text = f"[{category}] {message}"
        if metadata:
            text = f"{text} {json.dumps(metadata, ensure_ascii=False, default=str)}"
        name = f"{ROOT_LOGGER_NAME}.{module}" if module else ROOT_LOGGER_NAME
        logging.getLogger(name).log(LogLevel.to_python(level), text)

    def debug(self, category: str, message: str, module: str = None, **metadata) -> None:
        self._log(LogLevel.DEBUG, category, message, module, **metadata)

    def info(self, category: str, message: str, module: str = None, **metadata) -> None:
        self._log(LogLevel.INFO, category, message, module, **metadata)

    def warning(self, category: str, message: str, module: str = None, **metadata) -> None:
        self._log(LogLevel.WARNING, category, message, module, **metadata)

    def error(self, category: str, message: str, module: str = None,
              exception: BaseException = None, **metadata) -> None:
        """エラーログ（exception を渡すとトレースバックもメタデータに残す）"""
        if exception is not None:
            metadata.update(_exception_metadata(exception, with_traceback=True))
        self._log(LogLevel.ERROR, category, message, module, **metadata)

    def critical(self, category: str, message: str, module: str = None,
                 exception: BaseException = None, **metadata) -> None:
        if exception is not None:
            metadata.update(_exception_metadata(exception, with_traceback=False))
        self._log(LogLevel.CRITICAL, category, message, module, **metadata)

    def audit(self, action: str, entity_type: str, entity_id: str,
              entity_name: str, details: str = "",
              before_data: Dict[str, Any] = None,
              after_data: Dict[str, Any] = None, **metadata) -> None:
        """エンティティの作成・更新・削除を監査証跡に残す"""
        if not self.enable_audit_log:
            return

        entry = AuditEntry(
            action, entity_type, entity_id, entity_name, details,
            before_data=dict(before_data) if before_data else None,
            after_data=dict(after_data) if after_data else None,
            metadata=metadata
        )
        with self._entries_lock:
            self.audit_entries.append(entry)

        logging.getLogger(AUDIT_LOGGER_NAME).info(
            json.dumps(entry.to_dict(), ensure_ascii=False, default=str))

    def performance(self, operation: str, duration_ms: float,
                    details: Dict[str, Any] = None) -> None:
        """閾値を超えた処理時間を警告として残す"""
        self._log(LogLevel.WARNING, LogCategory.PERFORMANCE,
                  f"{operation}: {duration_ms:.2f}ms", 'performance',
                  operation=operation, duration_ms=round(duration_ms, 3),
                  details=details or {})

    # ==================== 検索・集計 ====================

    @staticmethod
    def _newest_first(entries: list, predicate: Callable[[Any], bool], limit: int) -> list:
        matched = []
        for entry in reversed(entries):
            if predicate(entry):
                matched.append(entry)
                if limit and len(matched) >= limit:
                    break
        return matched

    def get_logs(self, level: str = None, category: str = None,
                 module: str = None, start_time: datetime = None,
                 limit: int = 1000) -> List[LogEntry]:
        """条件に合うログを新しい順に返す"""
        def matches(entry: LogEntry) -> bool:
            return ((level is None or entry.level == level)
                    and (category is None or entry.category == category)
                    and (module is None or entry.module == module)
                    and (start_time is None or entry.timestamp >= start_time))

        with self._entries_lock:
            return self._newest_first(self.log_entries, matches, limit)

    def get_audit_logs(self, action: str = None, entity_type: str = None,
                       limit: int = 1000) -> List[AuditEntry]:
        """監査記録を新しい順に返す"""
        def matches(entry: AuditEntry) -> bool:
            return ((action is None or entry.action == action)
                    and (entity_type is None or entry.entity_type == entity_type))

        with self._entries_lock:
            return self._newest_first(self.audit_entries, matches, limit)

    def get_statistics(self) -> Dict[str, Any]:
        return self.statistics.get_summary()

    def get_error_summary(self, hours: int = 24) -> Dict[str, Any]:
        """直近 hours 時間のエラーをメッセージ別・モジュール別に集計"""
        since = datetime.now() - timedelta(hours=hours)
        with self._entries_lock:
            errors = [e for e in self.log_entries if e.is_error and e.timestamp >= since]

        by_message = Counter(e.message for e in errors)
        by_module = Counter(e.module for e in errors)
        return {
            'period_hours': hours,
            'total_errors': len(errors),
            'unique_errors': len(by_message),
            'top_errors': dict(by_message.most_common(10)),
            'errors_by_module': dict(by_module.most_common()),
        }

    def __str__(self) -> str:
        return f"ProjectLogger(log_dir={self.log_dir}, entries={len(self.log_entries)})"
