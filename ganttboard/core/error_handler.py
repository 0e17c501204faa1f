"""
エラーハンドリング
ガントボードの例外階層と、記録・計測用のデコレータ

業務エラー（検証・未検出・ストア障害・出力失敗）は ProjectManagementError の
サブクラスとして送出し、CLI などの境界で format_exception_summary により
1行に整形して表示する。
"""

import functools
import threading
import time
import traceback
from collections import Counter, deque
from datetime import datetime
from typing import Any, Callable, Dict, List, Tuple, Type


class ErrorSeverity:
    """エラー重要度"""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class ErrorCategory:
    """エラーカテゴリ"""
    VALIDATION = "VALIDATION"      # 日付範囲・進捗値などの入力不正
    NOT_FOUND = "NOT_FOUND"        # プロジェクト・タスクが存在しない
    STORE = "STORE"                # ストアの読み書き失敗
    FILE_IO = "FILE_IO"            # エクスポート先への書き込み失敗
    SYSTEM = "SYSTEM"


class ProjectManagementError(Exception):
    """
    ガントボードの業務例外の基底クラス

    サブクラスは default_category / default_severity を上書きし、
    固有の引数を details に積む。
    """

    default_category = ErrorCategory.SYSTEM
    default_severity = ErrorSeverity.MEDIUM

    def __init__(self,
                 message: str,
                 category: str = None,
                 severity: str = None,
                 details: Dict[str, Any] = None,
                 original_exception: BaseException = None):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.severity = severity or self.default_severity
        self.details: Dict[str, Any] = dict(details or {})
        self.original_exception = original_exception
        self.timestamp = datetime.now()
        self.error_id = f"{self.category.lower()}-{self.timestamp:%Y%m%d%H%M%S}-{id(self):x}"

    def _add_details(self, **values: Any) -> None:
        self.details.update({key: value for key, value in values.items() if value is not None})

    def to_dict(self) -> Dict[str, Any]:
        original = self.original_exception
        return {
            'error_id': self.error_id,
            'timestamp': self.timestamp.isoformat(),
            'message': self.message,
            'category': self.category,
            'severity': self.severity,
            'details': dict(self.details),
            'original_exception': {
                'type': type(original).__name__ if original is not None else None,
                'message': str(original) if original is not None else None,
            },
        }


class ValidationError(ProjectManagementError):
    """入力値が不正（日付の前後関係・進捗率の範囲など）"""

    default_category = ErrorCategory.VALIDATION
    default_severity = ErrorSeverity.LOW

    def __init__(self, message: str, field: str = None, value: Any = None, **kwargs):
        super().__init__(message, **kwargs)
        self._add_details(field=field, value=None if value is None else str(value))


class NotFoundError(ProjectManagementError):
    """指定されたIDのエンティティが存在しない"""

    default_category = ErrorCategory.NOT_FOUND
    default_severity = ErrorSeverity.LOW

    def __init__(self, message: str, entity_type: str = None, entity_id: str = None, **kwargs):
        super().__init__(message, **kwargs)
        self._add_details(entity_type=entity_type, entity_id=entity_id)


class StoreError(ProjectManagementError):
    """ストア障害。呼び出し側へそのまま伝播させ、リトライしない"""

    default_category = ErrorCategory.STORE
    default_severity = ErrorSeverity.HIGH

    def __init__(self, message: str, operation: str = None, **kwargs):
        super().__init__(message, **kwargs)
        self._add_details(operation=operation)


class ExportError(ProjectManagementError):
    """Excel出力の失敗"""

    default_category = ErrorCategory.FILE_IO

    def __init__(self, message: str, file_path: str = None, **kwargs):
        super().__init__(message, **kwargs)
        self._add_details(file_path=file_path)


# 標準例外の分類（先に一致したものを採用するため派生クラスを先に並べる）
_BUILTIN_ERROR_MAP: List[Tuple[Type[BaseException], str, str]] = [
    (FileNotFoundError, ErrorCategory.FILE_IO, ErrorSeverity.MEDIUM),
    (PermissionError, ErrorCategory.FILE_IO, ErrorSeverity.HIGH),
    (OSError, ErrorCategory.SYSTEM, ErrorSeverity.HIGH),
    (KeyError, ErrorCategory.NOT_FOUND, ErrorSeverity.MEDIUM),
    (ValueError, ErrorCategory.VALIDATION, ErrorSeverity.LOW),
    (TypeError, ErrorCategory.VALIDATION, ErrorSeverity.LOW),
]


def classify_exception(error: BaseException) -> Tuple[str, str]:
    """標準例外を (カテゴリ, 重要度) に分類"""
    for error_type, category, severity in _BUILTIN_ERROR_MAP:
        if isinstance(error, error_type):
            return category, severity
    return ErrorCategory.SYSTEM, ErrorSeverity.MEDIUM


class ErrorHandler:
    """
    発生したエラーの履歴と集計

    handle_error は記録とログ出力だけを行い、例外の送出は呼び出し側に任せる。
    """

    def __init__(self, max_history_size: int = 1000):
        self.error_history: deque = deque(maxlen=max_history_size)
        self.error_counts: Counter = Counter()
        self._lock = threading.RLock()
        self._logger = None

    @property
    def logger(self):
        # logger モジュールとの循環を避けるため初回アクセス時に取得
        if self._logger is None:
            from .logger import ProjectLogger
            self._logger = ProjectLogger()
        return self._logger

    def reset_logger(self) -> None:
        """ロガーの参照を捨て、次回アクセス時に取り直す"""
        self._logger = None

    def handle_error(self, error: BaseException, context: Dict[str, Any] = None) -> ProjectManagementError:
        """
        エラーを履歴に残してログへ出力する

        Args:
            error: 発生した例外（標準例外はカテゴリを付けてラップする）
            context: 発生箇所の情報（'module' があればログのモジュール名に使う）

        Returns:
            記録した ProjectManagementError
        """
        if isinstance(error, ProjectManagementError):
            wrapped = error
        else:
            category, severity = classify_exception(error)
            wrapped = ProjectManagementError(str(error), category, severity, original_exception=error)

        context = context or {}
        record = wrapped.to_dict()
        record.update(context=context, thread_id=threading.get_ident())

        with self._lock:
            self.error_history.append(record)
            self.error_counts[f"{wrapped.category}:{wrapped.message}"] += 1

        self.logger.error(
            wrapped.category,
            wrapped.message,
            module=context.get('module', 'core.error_handler'),
            exception=wrapped.original_exception,
            error_id=wrapped.error_id,
            severity=wrapped.severity,
            context=context
        )
        return wrapped

    def get_error_statistics(self) -> Dict[str, Any]:
        """エラー件数の集計（カテゴリ・重要度は直近100件が対象）"""
        with self._lock:
            if not self.error_history:
                return {'total_errors': 0}

            recent = list(self.error_history)[-100:]
            return {
                'total_errors': len(self.error_history),
                'category_counts': dict(Counter(r['category'] for r in recent)),
                'severity_counts': dict(Counter(r['severity'] for r in recent)),
                'top_errors': dict(self.error_counts.most_common(10)),
            }

    def clear_history(self) -> int:
        """履歴を消去し、消去した件数を返す"""
        with self._lock:
            cleared = len(self.error_history)
            self.error_history.clear()
            self.error_counts.clear()
            return cleared


_global_error_handler = ErrorHandler()


def get_error_handler() -> ErrorHandler:
    return _global_error_handler


def handle_errors(fallback_value: Any = None, reraise: bool = True, log_errors: bool = True):
    """
    例外を記録するデコレータ

    既定では元の例外オブジェクトをそのまま再送出する。
    reraise=False のときだけ fallback_value を返して握りつぶす。
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                if log_errors:
                    _global_error_handler.handle_error(
                        e, {'function': func.__qualname__, 'module': func.__module__})
                if reraise:
                    raise
                return fallback_value

        return wrapper
    return decorator


def validate_input(validation_func: Callable = None, error_message: str = None):
    """
    呼び出し前に引数を検証するデコレータ

    validation_func が偽を返すか例外を送出すると ValidationError になる。
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            if validation_func is not None:
                try:
                    ok = validation_func(*args, **kwargs)
                except ValidationError:
                    raise
                except Exception as e:
                    raise ValidationError(error_message or f"検証エラー: {e}",
                                          original_exception=e) from e
                if not ok:
                    raise ValidationError(error_message or f"{func.__name__} の入力値が不正です")
            return func(*args, **kwargs)

        return wrapper
    return decorator


def measure_performance(threshold_ms: float = 1000.0):
    """処理時間が threshold_ms を超えた呼び出しを PERFORMANCE ログに残すデコレータ"""
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                return func(*args, **kwargs)
            finally:
                elapsed_ms = (time.perf_counter() - started) * 1000
                if elapsed_ms > threshold_ms:
                    _global_error_handler.logger.performance(
                        func.__name__, elapsed_ms,
                        {'module': func.__module__, 'threshold_ms': threshold_ms})

        return wrapper
    return decorator


def format_exception_summary(error: BaseException) -> str:
    """例外を1行に整形（業務エラーは '[カテゴリ] メッセージ'）"""
    if isinstance(error, ProjectManagementError):
        return f"[{error.category}] {error.message}"
    lines = traceback.format_exception_only(type(error), error)
    return lines[-1].strip() if lines else str(error)
