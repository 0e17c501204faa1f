# ====================
# storage/__init__.py
# ====================
"""
永続化層パッケージ
ストレージインターフェースと実装
"""

from ..core.error_handler import ValidationError
from .base import StorageInterface, merge_entity
from .memory_store import MemoryStorage
from .data_store import JsonFileStorage


def create_storage(settings) -> StorageInterface:
    """
    設定からストアを生成（エントリポイント専用）

    Args:
        settings: SystemSettings

    Returns:
        ストレージ実装
    """
    database = settings.database
    if database.backend == 'json':
        storage = JsonFileStorage(database.data_directory)
        if database.load_sample_data and not storage.list_projects():
            MemoryStorage(load_sample_data=True).copy_into(storage)
        return storage
    if database.backend == 'memory':
        return MemoryStorage(load_sample_data=database.load_sample_data)
    raise ValidationError(f"未対応のストレージ種別: {database.backend}",
                          field='database.backend', value=database.backend)


__all__ = [
    'StorageInterface',
    'MemoryStorage',
    'JsonFileStorage',
    'merge_entity',
    'create_storage'
]
