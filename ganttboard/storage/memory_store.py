"""
インメモリストア
プロセス内の辞書にエンティティを保持する（テスト・デモ用）
"""

import threading
from typing import Any, Dict, List, Optional

from ..models.base import ProjectStatus, TaskStatus, TaskPriority
from ..models.milestone import Milestone
from ..models.project import Project
from ..models.task import Task
from .base import StorageInterface, merge_entity


class MemoryStorage(StorageInterface):
    """
    インメモリストア

    読み書きは RLock で保護し、呼び出し側には複製を返す。
    """

    def __init__(self, load_sample_data: bool = False):
        """
        Args:
            load_sample_data: デモ用のサンプルデータを投入する
        """
        self._projects: Dict[str, Project] = {}
        self._tasks: Dict[str, Task] = {}
        self._milestones: Dict[str, Milestone] = {}
        self._lock = threading.RLock()

        if load_sample_data:
            self.load_sample_data()

    @staticmethod
    def _copy(entity):
        return type(entity).from_dict(entity.to_dict())

    # ==================== プロジェクト ====================

    def list_projects(self) -> List[Project]:
        with self._lock:
            projects = [self._copy(p) for p in self._projects.values()]
        return sorted(projects, key=lambda p: p.created_at, reverse=True)

    def get_project(self, project_id: str) -> Optional[Project]:
        with self._lock:
            project = self._projects.get(project_id)
            return self._copy(project) if project else None

    def create_project(self, project: Project) -> Project:
        with self._lock:
            self._projects[project.id] = self._copy(project)
        return project

    def update_project(self, project_id: str, updates: Dict[str, Any]) -> Optional[Project]:
        with self._lock:
            project = self._projects.get(project_id)
            if project is None:
                return None
            updated = merge_entity(project, updates)
            self._projects[project_id] = updated
            return self._copy(updated)

    def delete_project(self, project_id: str) -> bool:
        with self._lock:
            for task_id in [t.id for t in self._tasks.values() if t.project_id == project_id]:
                del self._tasks[task_id]
            return self._projects.pop(project_id, None) is not None

    # ==================== タスク ====================

    def list_tasks(self, project_id: str = None) -> List[Task]:
        with self._lock:
            tasks = [self._copy(t) for t in self._tasks.values()
                     if project_id is None or t.project_id == project_id]
        return sorted(tasks, key=lambda t: t.updated_at, reverse=True)

    def get_task(self, task_id: str) -> Optional[Task]:
        with self._lock:
            task = self._tasks.get(task_id)
            return self._copy(task) if task else None

    def create_task(self, task: Task) -> Task:
        with self._lock:
            self._tasks[task.id] = self._copy(task)
        return task

    def update_task(self, task_id: str, updates: Dict[str, Any]) -> Optional[Task]:
        with self._lock:
            task = self._tasks.get(task_id)
            if task is None:
                return None
            updated = merge_entity(task, updates)
            self._tasks[task_id] = updated
            return self._copy(updated)

    def delete_task(self, task_id: str) -> bool:
        with self._lock:
            return self._tasks.pop(task_id, None) is not None

    # ==================== マイルストーン ====================

    def list_milestones(self, project_id: str = None) -> List[Milestone]:
        with self._lock:
            milestones = [self._copy(m) for m in self._milestones.values()
                          if project_id is None or m.project_id == project_id]
        return sorted(milestones, key=lambda m: m.date)

    def get_milestone(self, milestone_id: str) -> Optional[Milestone]:
        with self._lock:
            milestone = self._milestones.get(milestone_id)
            return self._copy(milestone) if milestone else None

    def create_milestone(self, milestone: Milestone) -> Milestone:
        with self._lock:
            self._milestones[milestone.id] = self._copy(milestone)
        return milestone

    def update_milestone(self, milestone_id: str, updates: Dict[str, Any]) -> Optional[Milestone]:
        with self._lock:
            milestone = self._milestones.get(milestone_id)
            if milestone is None:
                return None
            updated = merge_entity(milestone, updates)
            self._milestones[milestone_id] = updated
            return self._copy(updated)

    def delete_milestone(self, milestone_id: str) -> bool:
        with self._lock:
            return self._milestones.pop(milestone_id, None) is not None

    # ==================== サンプルデータ ====================

    def load_sample_data(self) -> None:
        """デモ用データ（2プロジェクト・4タスク・3マイルストーン）を投入"""
        for data in SAMPLE_PROJECTS:
            self.create_project(Project.from_dict(data))
        for data in SAMPLE_TASKS:
            self.create_task(Task.from_dict(data))
        for data in SAMPLE_MILESTONES:
            self.create_milestone(Milestone.from_dict(data))

    def clear(self) -> None:
        with self._lock:
            self._projects.clear()
            self._tasks.clear()
            self._milestones.clear()

    def __str__(self) -> str:
        return (f"MemoryStorage(projects={len(self._projects)}, "
                f"tasks={len(self._tasks)}, milestones={len(self._milestones)})")


SAMPLE_PROJECTS = [
    {
        'id': 'proj-1',
        'name': '個人プロジェクト管理アプリ',
        'description': 'タスク管理・進捗追跡・可視化を備えた個人向けプロジェクト管理ツールを開発する。',
        'status': ProjectStatus.ACTIVE,
        'due_date': '2025-02-28T00:00:00',
        'created_at': '2025-01-01T00:00:00',
        'updated_at': '2025-01-01T00:00:00',
    },
    {
        'id': 'proj-2',
        'name': 'Webサイトリニューアル',
        'description': '公式サイトを再設計し、ユーザー体験を改善する。',
        'status': ProjectStatus.ACTIVE,
        'due_date': '2025-03-15T00:00:00',
        'created_at': '2025-01-10T00:00:00',
        'updated_at': '2025-01-10T00:00:00',
    },
]

SAMPLE_TASKS = [
    {
        'id': 'task-1',
        'project_id': 'proj-1',
        'title': 'データベース設計',
        'description': 'プロジェクトとタスクのデータモデルを設計する。',
        'status': TaskStatus.DONE,
        'priority': TaskPriority.HIGH,
        'due_date': '2025-01-20T00:00:00',
        'start_date': '2025-01-01T00:00:00',
        'end_date': '2025-01-20T00:00:00',
        'progress': 100,
        'dependencies': [],
        'milestone_id': 'milestone-1',
        'estimated_hours': 6,
        'actual_hours': 5,
        'tags': ['backend', 'database'],
        'created_at': '2025-01-01T00:00:00',
        'updated_at': '2025-01-15T00:00:00',
    },
    {
        'id': 'task-2',
        'project_id': 'proj-1',
        'title': 'タスクボード実装',
        'description': 'ドラッグ操作でステータスを切り替えられるボードを実装する。',
        'status': TaskStatus.IN_PROGRESS,
        'priority': TaskPriority.HIGH,
        'due_date': '2025-01-25T00:00:00',
        'start_date': '2025-01-15T00:00:00',
        'end_date': '2025-01-25T00:00:00',
        'progress': 60,
        'dependencies': ['task-1'],
        'milestone_id': None,
        'estimated_hours': 10,
        'actual_hours': None,
        'tags': ['frontend', 'react'],
        'created_at': '2025-01-10T00:00:00',
        'updated_at': '2025-01-18T00:00:00',
    },
    {
        'id': 'task-3',
        'project_id': 'proj-2',
        'title': 'ユーザー調査',
        'description': 'インタビューと要件分析でユーザーの課題を把握する。',
        'status': TaskStatus.TODO,
        'priority': TaskPriority.MEDIUM,
        'due_date': '2025-01-30T00:00:00',
        'start_date': '2025-01-20T00:00:00',
        'end_date': '2025-01-30T00:00:00',
        'progress': 0,
        'dependencies': [],
        'milestone_id': 'milestone-2',
        'estimated_hours': 8,
        'actual_hours': None,
        'tags': ['ux', 'research'],
        'created_at': '2025-01-12T00:00:00',
        'updated_at': '2025-01-12T00:00:00',
    },
    {
        'id': 'task-4',
        'project_id': 'proj-1',
        'title': 'API開発',
        'description': 'プロジェクトとタスクのCRUD APIを開発する。',
        'status': TaskStatus.IN_PROGRESS,
        'priority': TaskPriority.HIGH,
        'due_date': '2025-02-01T00:00:00',
        'start_date': '2025-01-18T00:00:00',
        'end_date': '2025-02-01T00:00:00',
        'progress': 40,
        'dependencies': ['task-1'],
        'milestone_id': None,
        'estimated_hours': 12,
        'actual_hours': None,
        'tags': ['backend', 'api'],
        'created_at': '2025-01-15T00:00:00',
        'updated_at': '2025-01-19T00:00:00',
    },
]

SAMPLE_MILESTONES = [
    {
        'id': 'milestone-1',
        'project_id': 'proj-1',
        'name': 'データベース設計完了',
        'description': 'データモデルとスキーマ設計をすべて終える',
        'date': '2025-01-20T00:00:00',
        'color': '#10B981',
        'completed': True,
        'created_at': '2025-01-01T00:00:00',
    },
    {
        'id': 'milestone-2',
        'project_id': 'proj-2',
        'name': 'ユーザー調査完了',
        'description': '要件調査と分析を終える',
        'date': '2025-01-30T00:00:00',
        'color': '#EF4444',
        'completed': False,
        'created_at': '2025-01-12T00:00:00',
    },
    {
        'id': 'milestone-3',
        'project_id': 'proj-1',
        'name': 'コア機能開発完了',
        'description': 'プロジェクト管理のコア機能を完成させる',
        'date': '2025-02-15T00:00:00',
        'color': '#8B5CF6',
        'completed': False,
        'created_at': '2025-01-15T00:00:00',
    },
]
