# ====================
# config/__init__.py
# ====================
"""
設定管理パッケージ
システム設定・ガントチャート設定・分析設定
"""

from .settings import (
    SystemSettings, DatabaseSettings, LoggingSettings,
    GanttSettings, AnalyticsSettings, PerformanceSettings,
    ExternalIntegrationSettings, LogLevel, StorageBackend, TimeScale,
    get_settings, reset_global_settings
)

__all__ = [
    # メイン設定クラス
    'SystemSettings',

    # 設定データクラス
    'DatabaseSettings',
    'LoggingSettings',
    'GanttSettings',
    'AnalyticsSettings',
    'PerformanceSettings',
    'ExternalIntegrationSettings',

    # 列挙型
    'LogLevel',
    'StorageBackend',
    'TimeScale',

    # ユーティリティ関数
    'get_settings',
    'reset_global_settings'
]
