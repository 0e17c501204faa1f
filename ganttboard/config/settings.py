"""
設定管理
ストア・ログ・ガント表示・分析のしきい値をJSONファイルで管理する

各セクションはデータクラスで、ファイルに無いキーは既定値のまま、
未知のキーは警告を出して読み飛ばす。
"""

import json
import logging
import os
from dataclasses import dataclass, asdict, field, fields
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, Any, Optional, List


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "data/settings.json"


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class StorageBackend(Enum):
    """ストアの実装"""
    MEMORY = "memory"
    JSON = "json"


class TimeScale(Enum):
    """ガントヘッダーの目盛り単位"""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


def _values(enum_type) -> List[str]:
    return [member.value for member in enum_type]


@dataclass
class DatabaseSettings:
    """ストア設定"""
    backend: str = StorageBackend.MEMORY.value
    data_directory: str = "data"
    load_sample_data: bool = False

    def validate(self) -> List[str]:
        if self.backend not in _values(StorageBackend):
            return [f"無効なストレージ種別: {self.backend}"]
        return []


@dataclass
class LoggingSettings:
    """ProjectLogger の設定"""
    level: str = LogLevel.INFO.value
    max_file_size_mb: int = 100
    backup_count: int = 5
    max_entries_in_memory: int = 10000
    enable_console_output: bool = True
    enable_file_output: bool = True
    enable_audit_log: bool = True

    def validate(self) -> List[str]:
        problems = []
        if self.level not in _values(LogLevel):
            problems.append(f"無効なログレベル: {self.level}")
        if self.max_file_size_mb < 1:
            problems.append("ログファイルサイズは1MB以上にしてください")
        if self.backup_count < 1:
            problems.append("ログのバックアップ数は1以上にしてください")
        return problems


@dataclass
class GanttSettings:
    """
    ガントチャートの表示設定

    status_colors はタスクステータスごとのバー色。該当しないステータスには
    default_color を使う。
    """
    day_width: int = 40
    default_window_days: int = 30
    time_scale: str = TimeScale.DAY.value
    status_colors: Dict[str, str] = field(default_factory=lambda: {
        'done': '#10b981',
        'in_progress': '#f59e0b',
        'todo': '#6b7280',
    })
    default_color: str = '#4f46e5'

    def validate(self) -> List[str]:
        problems = []
        if self.day_width < 1:
            problems.append("日幅は1ピクセル以上にしてください")
        if self.default_window_days < 1:
            problems.append("既定の表示期間は1日以上にしてください")
        if self.time_scale not in _values(TimeScale):
            problems.append(f"無効な目盛り単位: {self.time_scale}")
        return problems


@dataclass
class AnalyticsSettings:
    """リスクスコアの重みと判定しきい値、各指標の集計期間"""
    overdue_weight: int = 3
    high_priority_weight: int = 2
    blocked_weight: int = 1
    high_risk_threshold: int = 15
    medium_risk_threshold: int = 8
    velocity_window_days: int = 7
    flow_window_days: int = 30
    upcoming_deadline_days: int = 7
    velocity_trend_weeks: int = 4
    wip_limits: Dict[str, int] = field(default_factory=lambda: {'todo': 20, 'in_progress': 5})

    def validate(self) -> List[str]:
        problems = []
        if self.medium_risk_threshold > self.high_risk_threshold:
            problems.append("medium_risk_threshold は high_risk_threshold 以下にしてください")
        for name in ('velocity_window_days', 'flow_window_days',
                     'upcoming_deadline_days', 'velocity_trend_weeks'):
            if getattr(self, name) < 1:
                problems.append(f"{name} は1以上にしてください")
        return problems


@dataclass
class PerformanceSettings:
    """ストア読み込みの並列化"""
    enable_threading: bool = True
    max_worker_threads: int = 3

    def validate(self) -> List[str]:
        if self.max_worker_threads < 1:
            return ["ワーカースレッド数は1以上にしてください"]
        return []


@dataclass
class ExternalIntegrationSettings:
    """Excel出力"""
    excel_export_enabled: bool = True
    default_date_format: str = "%Y-%m-%d"

    def validate(self) -> List[str]:
        return []


SECTIONS = {
    'database': DatabaseSettings,
    'logging': LoggingSettings,
    'gantt': GanttSettings,
    'analytics': AnalyticsSettings,
    'performance': PerformanceSettings,
    'external': ExternalIntegrationSettings,
}


def _section_from_dict(section_type, data: Dict[str, Any]):
    known = {f.name for f in fields(section_type)}
    ignored = sorted(set(data) - known)
    if ignored:
        logger.warning("%s: 未知の設定キーを無視します %s", section_type.__name__, ignored)
    return section_type(**{key: value for key, value in data.items() if key in known})


class SystemSettings:
    """
    全セクションをまとめた設定オブジェクト

    生成時に config_file を読み込み、ファイルが無ければ既定値で作成する。
    読み込みに失敗した場合は既定値のまま動作を続ける。
    """

    def __init__(self, config_file: str = None):
        self.config_file = Path(config_file or DEFAULT_CONFIG_FILE)

        self.database = DatabaseSettings()
        self.logging = LoggingSettings()
        self.gantt = GanttSettings()
        self.analytics = AnalyticsSettings()
        self.performance = PerformanceSettings()
        self.external = ExternalIntegrationSettings()

        now = datetime.now().isoformat()
        self.system_info = {
            'version': '1.0.0',
            'created_at': now,
            'last_modified': now,
            'config_file': str(self.config_file)
        }

        self.load_settings()

    def load_settings(self) -> bool:
        """設定ファイルを読み込む（無ければ既定値で書き出す）"""
        if not self.config_file.exists():
            return self.save_settings()

        try:
            data = json.loads(self.config_file.read_text(encoding='utf-8'))
            for name, section_type in SECTIONS.items():
                if name in data:
                    setattr(self, name, _section_from_dict(section_type, data[name]))
            self.system_info.update(data.get('system_info', {}))
        except (json.JSONDecodeError, OSError, TypeError, AttributeError) as e:
            logger.warning("設定ファイルを読み込めないため既定値を使います: %s", e)
            return False
        return True

    def save_settings(self) -> bool:
        """一時ファイルに書いてから置き換える"""
        self.system_info['last_modified'] = datetime.now().isoformat()
        temp_file = self.config_file.with_suffix('.tmp')
        try:
            self.config_file.parent.mkdir(parents=True, exist_ok=True)
            temp_file.write_text(json.dumps(self.get_all_settings(), ensure_ascii=False, indent=2),
                                 encoding='utf-8')
            os.replace(temp_file, self.config_file)
        except OSError as e:
            logger.error("設定を保存できません %s: %s", self.config_file, e)
            temp_file.unlink(missing_ok=True)
            return False
        return True

    def reset_to_defaults(self) -> bool:
        for name, section_type in SECTIONS.items():
            setattr(self, name, section_type())
        return self.save_settings()

    def update_setting(self, section: str, key: str, value: Any) -> bool:
        """1項目を書き換えて保存する。未知のセクション・キーなら False"""
        target = getattr(self, section) if section in SECTIONS else None
        if target is None or not hasattr(target, key):
            return False
        setattr(target, key, value)
        return self.save_settings()

    def get_setting(self, section: str, key: str, default: Any = None) -> Any:
        if section not in SECTIONS:
            return default
        return getattr(getattr(self, section), key, default)

    def validate_settings(self) -> Dict[str, List[str]]:
        """問題のあるセクションだけを {セクション名: [メッセージ]} で返す"""
        report = {}
        for name in SECTIONS:
            problems = getattr(self, name).validate()
            if problems:
                report[name] = problems
        return report

    def get_all_settings(self) -> Dict[str, Any]:
        data = {name: asdict(getattr(self, name)) for name in SECTIONS}
        data['system_info'] = self.system_info
        return data

    def __repr__(self) -> str:
        return f"SystemSettings(config_file='{self.config_file}', version='{self.system_info.get('version')}')"


_global_settings: Optional[SystemSettings] = None


def get_settings(config_file: str = None) -> SystemSettings:
    """プロセス共通の設定を返す（config_file は初回のみ有効）"""
    global _global_settings
    if _global_settings is None:
        _global_settings = SystemSettings(config_file)
    return _global_settings


def reset_global_settings() -> None:
    global _global_settings
    _global_settings = None
