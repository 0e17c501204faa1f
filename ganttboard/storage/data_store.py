"""
JSONファイルストア
コレクション（projects / tasks / milestones）ごとに1ファイルで永続化する

書き込みのたびに直前の内容を <name>.json.backup に退避し、一時ファイル経由で
置き換える。本体が壊れていればバックアップから読み、両方読めなければ StoreError。
"""

import json
import os
import shutil
import tempfile
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..core.error_handler import StoreError
from ..core.logger import LogCategory, ProjectLogger
from ..models.milestone import Milestone
from ..models.project import Project
from ..models.task import Task
from .base import StorageInterface, merge_entity


COLLECTIONS = ('projects', 'tasks', 'milestones')


def _read_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding='utf-8'))


def _write_json_atomic(path: Path, data: Any) -> None:
    """同じディレクトリの一時ファイルに書いてから os.replace する"""
    fd, temp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.stem}-", suffix='.tmp')
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(data, f, ensure_ascii=False, indent=2)
        os.replace(temp_name, path)
    except OSError:
        Path(temp_name).unlink(missing_ok=True)
        raise


class JsonFileStorage(StorageInterface):
    """
    JSONファイルストア

    各ファイルは {id: 属性辞書}。metadata.json にはコレクションごとの
    書き込み回数（file_versions）を記録する。
    """

    def __init__(self, data_dir: str = None):
        self.data_dir = Path(data_dir or "data")
        try:
            self.data_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"データディレクトリを作成できません: {self.data_dir}",
                             operation='init', original_exception=e) from e

        self.files = {name: self.data_dir / f"{name}.json" for name in COLLECTIONS}
        self.metadata_file = self.data_dir / "metadata.json"
        self._locks = {name: threading.RLock() for name in COLLECTIONS + ('metadata',)}
        self.metadata = self._load_metadata()

    # ==================== ファイル入出力 ====================

    def _load_metadata(self) -> Dict[str, Any]:
        metadata = None
        if self.metadata_file.exists():
            try:
                metadata = _read_json(self.metadata_file)
            except (ValueError, OSError):
                metadata = None  # 壊れていれば作り直す

        fresh = not isinstance(metadata, dict)
        if fresh:
            now = datetime.now().isoformat()
            metadata = {'version': '1.0.0', 'created_at': now, 'last_modified': now}

        versions = metadata.setdefault('file_versions', {})
        for name in COLLECTIONS:
            versions.setdefault(name, 1)
        if fresh:
            self._save_metadata(metadata)
        return metadata

    def _save_metadata(self, metadata: Dict[str, Any]) -> None:
        metadata['last_modified'] = datetime.now().isoformat()
        with self._locks['metadata']:
            try:
                _write_json_atomic(self.metadata_file, metadata)
            except OSError as e:
                raise StoreError("metadata.json を保存できません", operation='save_metadata',
                                 original_exception=e) from e

    @staticmethod
    def _backup_path(file_path: Path) -> Path:
        return file_path.with_name(file_path.name + '.backup')

    @staticmethod
    def _read_collection_file(path: Path) -> Dict[str, Dict[str, Any]]:
        data = _read_json(path)
        if not isinstance(data, dict):
            raise ValueError(f"{path.name} の内容が {{id: 属性}} の形式ではありません: {type(data).__name__}")
        return data

    def _load_collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        """
        コレクションを {id: 属性辞書} で読む（ファイルが無ければ空）

        壊れたJSONと形式の違うJSONは同じ扱いで、バックアップから読み直す。
        """
        path = self.files[name]
        with self._locks[name]:
            if not path.exists():
                return {}
            try:
                return self._read_collection_file(path)
            except (ValueError, OSError) as e:
                return self._recover_from_backup(name, e)

    def _recover_from_backup(self, name: str, cause: Exception) -> Dict[str, Dict[str, Any]]:
        backup = self._backup_path(self.files[name])
        try:
            data = self._read_collection_file(backup)
        except (ValueError, OSError):
            raise StoreError(f"{self.files[name].name} を読み込めません: {cause}",
                             operation=f'load_{name}', original_exception=cause) from cause
        ProjectLogger().warning(LogCategory.STORAGE, f"{self.files[name].name} をバックアップから読み込みました",
                                module="storage.data_store", cause=str(cause))
        return data

    def _save_collection(self, name: str, data: Dict[str, Dict[str, Any]]) -> None:
        path = self.files[name]
        with self._locks[name]:
            try:
                if path.exists():
                    shutil.copy2(path, self._backup_path(path))
                _write_json_atomic(path, data)
            except OSError as e:
                raise StoreError(f"{path.name} を保存できません: {e}",
                                 operation=f'save_{name}', original_exception=e) from e

            self.metadata['file_versions'][name] += 1
            self._save_metadata(self.metadata)

    # ==================== 共通操作 ====================

    def _entities(self, name: str, factory: Callable[[Dict[str, Any]], Any]) -> List[Any]:
        return [factory(data) for data in self._load_collection(name).values()]

    def _get(self, name: str, entity_id: str, factory):
        data = self._load_collection(name).get(entity_id)
        return factory(data) if data else None

    def _put(self, name: str, entity) -> None:
        with self._locks[name]:
            collection = self._load_collection(name)
            collection[entity.id] = entity.to_dict()
            self._save_collection(name, collection)

    def _update(self, name: str, entity_id: str, updates: Dict[str, Any], factory):
        with self._locks[name]:
            collection = self._load_collection(name)
            if entity_id not in collection:
                return None
            updated = merge_entity(factory(collection[entity_id]), updates)
            collection[entity_id] = updated.to_dict()
            self._save_collection(name, collection)
            return updated

    def _delete(self, name: str, entity_id: str) -> bool:
        with self._locks[name]:
            collection = self._load_collection(name)
            if collection.pop(entity_id, None) is None:
                return False
            self._save_collection(name, collection)
            return True

    # ==================== プロジェクト ====================

    def list_projects(self) -> List[Project]:
        projects = self._entities('projects', Project.from_dict)
        return sorted(projects, key=lambda p: p.created_at, reverse=True)

    def get_project(self, project_id: str) -> Optional[Project]:
        return self._get('projects', project_id, Project.from_dict)

    def create_project(self, project: Project) -> Project:
        self._put('projects', project)
        return project

    def update_project(self, project_id: str, updates: Dict[str, Any]) -> Optional[Project]:
        return self._update('projects', project_id, updates, Project.from_dict)

    def delete_project(self, project_id: str) -> bool:
        with self._locks['tasks']:
            tasks = self._load_collection('tasks')
            remaining = {task_id: data for task_id, data in tasks.items()
                         if data.get('project_id') != project_id}
            if len(remaining) != len(tasks):
                self._save_collection('tasks', remaining)
        return self._delete('projects', project_id)

    # ==================== タスク ====================

    def list_tasks(self, project_id: str = None) -> List[Task]:
        tasks = [t for t in self._entities('tasks', Task.from_dict)
                 if project_id is None or t.project_id == project_id]
        return sorted(tasks, key=lambda t: t.updated_at, reverse=True)

    def get_task(self, task_id: str) -> Optional[Task]:
        return self._get('tasks', task_id, Task.from_dict)

    def create_task(self, task: Task) -> Task:
        self._put('tasks', task)
        return task

    def update_task(self, task_id: str, updates: Dict[str, Any]) -> Optional[Task]:
        return self._update('tasks', task_id, updates, Task.from_dict)

    def delete_task(self, task_id: str) -> bool:
        return self._delete('tasks', task_id)

    # ==================== マイルストーン ====================

    def list_milestones(self, project_id: str = None) -> List[Milestone]:
        milestones = [m for m in self._entities('milestones', Milestone.from_dict)
                      if project_id is None or m.project_id == project_id]
        return sorted(milestones, key=lambda m: m.date)

    def get_milestone(self, milestone_id: str) -> Optional[Milestone]:
        return self._get('milestones', milestone_id, Milestone.from_dict)

    def create_milestone(self, milestone: Milestone) -> Milestone:
        self._put('milestones', milestone)
        return milestone

    def update_milestone(self, milestone_id: str, updates: Dict[str, Any]) -> Optional[Milestone]:
        return self._update('milestones', milestone_id, updates, Milestone.from_dict)

    def delete_milestone(self, milestone_id: str) -> bool:
        return self._delete('milestones', milestone_id)

    # ==================== 保守 ====================

    def create_full_backup(self, backup_dir: str = None) -> str:
        """
        全コレクションとメタデータを1つのディレクトリに複製する

        Returns:
            複製先ディレクトリ（省略時は data_dir/backup_YYYYmmdd_HHMMSS）
        """
        target = Path(backup_dir) if backup_dir else self.data_dir / f"backup_{datetime.now():%Y%m%d_%H%M%S}"
        sources = [*self.files.values(), self.metadata_file]
        try:
            target.mkdir(parents=True, exist_ok=True)
            for source in sources:
                if source.exists():
                    shutil.copy2(source, target / source.name)
        except OSError as e:
            raise StoreError(f"バックアップを作成できません: {target}", operation='backup',
                             original_exception=e) from e
        return str(target)

    def validate_data_integrity(self) -> Dict[str, Any]:
        """参照整合性をチェック（ファイルが読めない場合も invalid として返す）"""
        try:
            return super().validate_data_integrity()
        except StoreError as e:
            return {'valid': False, 'errors': [f"データ読み込みエラー: {e.message}"],
                    'warnings': [], 'statistics': {}}

    def __str__(self) -> str:
        return f"JsonFileStorage(data_dir='{self.data_dir}')"
