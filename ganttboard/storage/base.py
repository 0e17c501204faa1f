"""
ストレージインターフェース
コアに注入される永続化層の抽象
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Type, TypeVar

from ..core.error_handler import ValidationError
from ..core.timeline import validate_progress
from ..models.base import BaseEntity, DateLike, parse_datetime
from ..models.milestone import Milestone
from ..models.project import Project
from ..models.task import Task


EntityT = TypeVar('EntityT', bound=BaseEntity)

# 更新で上書きさせない属性
PROTECTED_FIELDS = ('id', 'created_at')


def merge_entity(entity: EntityT, updates: Dict[str, Any], touch: bool = True) -> EntityT:
    """
    部分更新を適用した新しいエンティティを返す

    Args:
        entity: 更新対象
        updates: 更新する属性（未知のキーは無視）
        touch: updated_at を現在時刻にする

    Returns:
        更新後のエンティティ（元のオブジェクトは変更しない）
    """
    data = entity.to_dict()
    for key, value in updates.items():
        if key in PROTECTED_FIELDS or key not in data:
            continue
        data[key] = value
    if touch:
        data['updated_at'] = datetime.now().isoformat()
    entity_type: Type[EntityT] = type(entity)
    return entity_type.from_dict(data)


def _matches(query: str, *values: Optional[str]) -> bool:
    lowered = query.lower()
    return any(value and lowered in value.lower() for value in values)


class StorageInterface(ABC):
    """
    ストレージインターフェース

    存在しないIDに対しては None / False を返す（NotFoundError への変換は呼び出し側）。
    実装固有の障害は StoreError として送出する。
    """

    # ==================== プロジェクト ====================

    @abstractmethod
    def list_projects(self) -> List[Project]:
        """プロジェクト一覧（作成日時の新しい順）"""

    @abstractmethod
    def get_project(self, project_id: str) -> Optional[Project]:
        """プロジェクトを取得"""

    @abstractmethod
    def create_project(self, project: Project) -> Project:
        """プロジェクトを登録"""

    @abstractmethod
    def update_project(self, project_id: str, updates: Dict[str, Any]) -> Optional[Project]:
        """プロジェクトを部分更新"""

    @abstractmethod
    def delete_project(self, project_id: str) -> bool:
        """プロジェクトを削除（所属タスクも削除）"""

    # ==================== タスク ====================

    @abstractmethod
    def list_tasks(self, project_id: str = None) -> List[Task]:
        """タスク一覧（更新日時の新しい順）"""

    @abstractmethod
    def get_task(self, task_id: str) -> Optional[Task]:
        """タスクを取得"""

    @abstractmethod
    def create_task(self, task: Task) -> Task:
        """タスクを登録"""

    @abstractmethod
    def update_task(self, task_id: str, updates: Dict[str, Any]) -> Optional[Task]:
        """タスクを部分更新（updated_at を更新）"""

    @abstractmethod
    def delete_task(self, task_id: str) -> bool:
        """タスクを削除"""

    # ==================== マイルストーン ====================

    @abstractmethod
    def list_milestones(self, project_id: str = None) -> List[Milestone]:
        """マイルストーン一覧（日付の古い順）"""

    @abstractmethod
    def get_milestone(self, milestone_id: str) -> Optional[Milestone]:
        """マイルストーンを取得"""

    @abstractmethod
    def create_milestone(self, milestone: Milestone) -> Milestone:
        """マイルストーンを登録"""

    @abstractmethod
    def update_milestone(self, milestone_id: str, updates: Dict[str, Any]) -> Optional[Milestone]:
        """マイルストーンを部分更新"""

    @abstractmethod
    def delete_milestone(self, milestone_id: str) -> bool:
        """マイルストーンを削除"""

    # ==================== 共通操作 ====================

    def update_task_progress(self, task_id: str, progress: int) -> Optional[Task]:
        """
        タスクの進捗率を更新

        Raises:
            ValidationError: 0-100 の整数でない場合
        """
        return self.update_task(task_id, {'progress': validate_progress(progress)})

    def update_task_schedule(self, task_id: str, start_date: DateLike,
                             end_date: DateLike) -> Optional[Task]:
        """
        タスクの開始日・終了日を更新

        Raises:
            ValidationError: 日付が欠けている、または終了日が開始日より前の場合
        """
        start = parse_datetime(start_date, 'start_date')
        end = parse_datetime(end_date, 'end_date')
        if start is None or end is None:
            raise ValidationError("開始日と終了日は必須です", field='start_date/end_date')
        if end < start:
            raise ValidationError(
                f"終了日が開始日より前です: {start.date()} > {end.date()}",
                field='end_date', value=end.isoformat()
            )
        return self.update_task(task_id, {'start_date': start, 'end_date': end})

    def search_tasks(self, query: str) -> List[Task]:
        """タイトル・説明・タグの部分一致検索（大文字小文字を区別しない）"""
        return [task for task in self.list_tasks()
                if _matches(query, task.title, task.description, *task.tags)]

    def search_projects(self, query: str) -> List[Project]:
        """名前・説明の部分一致検索"""
        return [project for project in self.list_projects()
                if _matches(query, project.name, project.description)]

    def copy_into(self, target: 'StorageInterface') -> Dict[str, int]:
        """全エンティティを別のストアへ複製"""
        projects = self.list_projects()
        tasks = self.list_tasks()
        milestones = self.list_milestones()
        for project in projects:
            target.create_project(project)
        for task in tasks:
            target.create_task(task)
        for milestone in milestones:
            target.create_milestone(milestone)
        return {'projects': len(projects), 'tasks': len(tasks), 'milestones': len(milestones)}

    def validate_data_integrity(self) -> Dict[str, Any]:
        """
        参照整合性をチェック

        存在しないプロジェクトへの参照はエラー、存在しない依存先は警告とする。
        """
        projects = {p.id for p in self.list_projects()}
        tasks = self.list_tasks()
        task_ids = {t.id for t in tasks}
        milestones = self.list_milestones()

        errors = []
        warnings = []
        for task in tasks:
            if task.project_id not in projects:
                errors.append(f"タスク {task.id} が存在しないプロジェクト {task.project_id} を参照")
            for dep_id in task.dependencies:
                if dep_id not in task_ids:
                    warnings.append(f"タスク {task.id} の依存先 {dep_id} が存在しません")
        for milestone in milestones:
            if milestone.project_id not in projects:
                errors.append(
                    f"マイルストーン {milestone.id} が存在しないプロジェクト {milestone.project_id} を参照")

        return {
            'valid': not errors,
            'errors': errors,
            'warnings': warnings,
            'statistics': {
                'projects': len(projects),
                'tasks': len(tasks),
                'milestones': len(milestones),
            },
        }

    def get_statistics(self) -> Dict[str, int]:
        """件数"""
        return {
            'projects': len(self.list_projects()),
            'tasks': len(self.list_tasks()),
            'milestones': len(self.list_milestones()),
        }
