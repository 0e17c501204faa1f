"""
CLIインターフェース
対話式コマンドラインインターフェース
"""

import json
import shlex
import sys
from typing import Any, Callable, Dict, List, TextIO

from ..core.error_handler import ProjectManagementError, format_exception_summary
from ..core.logger import LogCategory
from ..core.manager import ProjectManagementSystem
from ..external.excel_exporter import ExcelExporter, ExportFormat, ExportOptions
from ..models.base import TaskStatus


class CLIInterface:
    """
    コマンドラインインターフェース
    対話式メニューシステム
    """

    def __init__(self, pms: ProjectManagementSystem, exporter: ExcelExporter = None,
                 output: TextIO = None, input_func: Callable[[str], str] = input):
        """
        CLIインターフェースの初期化

        Args:
            pms: プロジェクト管理システム
            exporter: Excelエクスポーター（省略時は pms から生成）
            output: 出力先（省略時は標準出力）
            input_func: 入力関数
        """
        self.pms = pms
        self.exporter = exporter or ExcelExporter(pms, pms.settings)
        self.output = output or sys.stdout
        self.input_func = input_func
        self.logger = pms.logger

        self.running = True

        # コマンド履歴
        self.command_history: List[str] = []

        self.commands: Dict[str, Callable[[List[str]], None]] = {
            'help': self._show_help,
            'projects': self._list_projects,
            'tasks': self._list_tasks,
            'gantt': self._show_gantt,
            'overview': self._show_overview,
            'risk': self._show_risk,
            'resource': self._show_resource,
            'efficiency': self._show_efficiency,
            'agile': self._show_agile,
            'progress': self._update_progress,
            'schedule': self._update_schedule,
            'export': self._export,
            'search': self._search,
            'quit': self._quit,
        }
        self.aliases = {'h': 'help', 'p': 'projects', 't': 'tasks', 'g': 'gantt',
                        'exit': 'quit', 'q': 'quit'}

        self.logger.info(
            LogCategory.SYSTEM,
            "CLIインターフェース初期化",
            module="cli.cli_interface"
        )

    def _print(self, *values: Any) -> None:
        print(*values, file=self.output)

    def run(self) -> int:
        """
        CLIインターフェースを実行

        Returns:
            終了コード
        """
        self._print("=" * 60)
        self._print("ganttboard CLI")
        self._print("=" * 60)
        self._show_help([])

        while self.running:
            try:
                command = self.input_func("[ganttboard]> ").strip()
                if command:
                    self.execute(command)

            except KeyboardInterrupt:
                self._print("\n操作が中断されました")
                break
            except EOFError:
                self._print("")
                break
            except Exception as e:
                self._print(f"エラー: {e}")
                self.logger.error(
                    LogCategory.ERROR,
                    f"CLI実行エラー: {e}",
                    module="cli.cli_interface",
                    exception=e
                )

        self._print("CLIを終了します。")
        return 0

    def execute(self, command_line: str) -> bool:
        """
        1行のコマンドを実行

        業務エラー（検証・未検出・ストア障害）はメッセージを表示して False を返す。

        Returns:
            成功したかどうか
        """
        parts = shlex.split(command_line)
        if not parts:
            return True

        self.command_history.append(command_line)
        name = parts[0].lower()
        name = self.aliases.get(name, name)
        handler = self.commands.get(name)

        if handler is None:
            self._print(f"不明なコマンド: {parts[0]}")
            self._print("'help' でコマンド一覧を表示")
            return False

        try:
            handler(parts[1:])
            return True
        except ProjectManagementError as e:
            self._print(f"❌ {format_exception_summary(e)}")
            return False

    # ==================== 表示 ====================

    def _show_help(self, args: List[str]) -> None:
        """ヘルプメッセージを表示"""
        self._print("主要コマンド:")
        self._print("  help, h                          - ヘルプを表示")
        self._print("  projects, p                      - プロジェクト一覧")
        self._print("  tasks, t [プロジェクトID]        - タスク一覧")
        self._print("  gantt, g [プロジェクトID]        - ガントチャート")
        self._print("  overview | risk | resource       - 分析（末尾に json でJSON出力）")
        self._print("  efficiency | agile               - 分析（末尾に json でJSON出力）")
        self._print("  progress <タスクID> <0-100>      - 進捗率を更新")
        self._print("  schedule <タスクID> <開始> <終了> - 日程を更新（YYYY-MM-DD）")
        self._print("  export <ファイル.xlsx> [gantt|analytics|simple] [プロジェクトID]")
        self._print("  search <キーワード>              - タスク・プロジェクト検索")
        self._print("  quit, exit, q                    - 終了")
        self._print()

    def _get_status_mark(self, status: str) -> str:
        """ステータスマークを取得"""
        status_marks = {
            TaskStatus.TODO: "⚪",
            TaskStatus.IN_PROGRESS: "🔄",
            TaskStatus.DONE: "✅",
        }
        return status_marks.get(status, "❓")

    def _dump(self, data: Dict[str, Any]) -> None:
        self._print(json.dumps(data, ensure_ascii=False, indent=2, default=str))

    def _list_projects(self, args: List[str]) -> None:
        """プロジェクト一覧を表示"""
        projects = self.pms.list_projects()
        if not projects:
            self._print("プロジェクトがありません。")
            return

        self._print("\n=== プロジェクト一覧 ===")
        for i, project in enumerate(projects):
            due = project.due_date.date().isoformat() if project.due_date else '未設定'
            self._print(f"{i + 1:2d}. [{project.id}] {project.name} ({project.status}) 期限: {due}")

    def _list_tasks(self, args: List[str]) -> None:
        """タスク一覧を表示"""
        tasks = self.pms.list_tasks(args[0] if args else None)
        if not tasks:
            self._print("タスクがありません。")
            return

        self._print("\n=== タスク一覧 ===")
        for task in tasks:
            mark = self._get_status_mark(task.status)
            self._print(f"{mark} [{task.id}] {task.title} | {task.priority} | 進捗: {task.progress}%")

    def _show_gantt(self, args: List[str]) -> None:
        """ガントチャートを文字で表示（1文字=1日）"""
        gantt = self.pms.get_gantt_data(args[0] if args else None)
        day_width = gantt['day_width']
        bounds = gantt['bounds']

        self._print(f"\n=== ガントチャート {bounds['start']} 〜 {bounds['end']} ===")
        if not gantt['rows']:
            self._print("タスクがありません。")
            return

        label_width = max(len(row['name']) for row in gantt['rows'])
        for row in gantt['rows']:
            offset = max(row['left_px'] // day_width, 0)
            length = row['width_px'] // day_width
            done = int(row['progress_px'] // day_width)
            bar = "█" * done + "░" * (length - done)
            self._print(f"{row['name']:<{label_width}} |{' ' * offset}{bar} {row['progress']}%")

        for marker in gantt['milestones']:
            flag = "✅" if marker['completed'] else "◆"
            self._print(f"{flag} {marker['date']} {marker['name']}")

        dependencies = {k: v for k, v in gantt['dependencies'].items() if v}
        if dependencies:
            self._print("依存関係:")
            for task_id, depends_on in dependencies.items():
                self._print(f"  {task_id} ← {', '.join(depends_on)}")

    def _show_overview(self, args: List[str]) -> None:
        overview = self.pms.get_overview()
        if 'json' in args:
            self._dump(overview)
            return
        self._print("\n=== 概要 ===")
        self._print(f"アクティブプロジェクト: {overview['active_projects']} / {overview['total_projects']}")
        self._print(f"タスク: 完了 {overview['completed_tasks']} / 進行中 {overview['in_progress_tasks']} "
                    f"/ 未着手 {overview['todo_tasks']} (全 {overview['total_tasks']})")
        self._print(f"期限超過: {overview['overdue_tasks']}")
        self._print(f"完了率: {overview['completion_rate']}%")

    def _show_risk(self, args: List[str]) -> None:
        risk = self.pms.get_risk_analysis()
        if 'json' in args:
            self._dump(risk)
            return
        self._print("\n=== リスク分析 ===")
        self._print(f"リスクスコア: {risk['risk_score']} ({risk['risk_level']})")
        for task in risk['overdue_tasks']:
            self._print(f"  ⚠ {task['title']} : {task['days_overdue']}日超過")
        for task in risk['blocked_tasks']:
            self._print(f"  ⛔ {task['title']} ← {', '.join(task['blocked_by'])}")

    def _show_resource(self, args: List[str]) -> None:
        resource = self.pms.get_resource_utilization()
        if 'json' in args:
            self._dump(resource)
            return
        self._print("\n=== リソース ===")
        self._print(f"予想工数: {resource['total_estimated_hours']}h / "
                    f"実績工数: {resource['total_actual_hours']}h / 効率: {resource['efficiency']}%")
        for row in resource['by_tag']:
            self._print(f"  {row['tag']}: {row['task_count']}件 {row['efficiency']}%")

    def _show_efficiency(self, args: List[str]) -> None:
        stats = self.pms.get_efficiency_stats()
        if 'json' in args:
            self._dump(stats)
            return
        self._print("\n=== 効率 ===")
        self._print(f"期限内完了率: {stats['on_time_delivery_rate']}%")
        self._print(f"平均進捗: {stats['average_progress']}%")
        self._print(f"生産性スコア: {stats['productivity_score']}")
        self._print(f"ベロシティ: {stats['velocity']}")

    def _show_agile(self, args: List[str]) -> None:
        metrics = self.pms.get_agile_metrics()
        if 'json' in args:
            self._dump(metrics)
            return
        self._print("\n=== アジャイル ===")
        self._print(f"ベロシティ: {metrics['velocity']}")
        self._print(f"スプリント健全性: {metrics['sprint_health']}")
        for status, wip in metrics['wip'].items():
            mark = "⚠" if wip['exceeded'] else " "
            self._print(f" {mark} WIP {status}: {wip['count']} / {wip['limit']}")

    # ==================== 更新 ====================

    def _update_progress(self, args: List[str]) -> None:
        """進捗率を更新"""
        if len(args) != 2:
            self._print("使用法: progress <タスクID> <0-100>")
            return
        try:
            progress = int(args[1])
        except ValueError:
            self._print(f"進捗率は整数で指定してください: {args[1]}")
            return

        task = self.pms.update_task_progress(args[0], progress)
        self._print(f"✓ タスク '{task.title}' の進捗を {task.progress}% に更新しました")

    def _update_schedule(self, args: List[str]) -> None:
        """日程を更新"""
        if len(args) != 3:
            self._print("使用法: schedule <タスクID> <開始日> <終了日>")
            return

        task = self.pms.update_task_schedule(args[0], args[1], args[2])
        self._print(f"✓ タスク '{task.title}' の日程を "
                    f"{task.start_date.date()} 〜 {task.end_date.date()} に更新しました")

    # ==================== その他 ====================

    def _export(self, args: List[str]) -> None:
        """Excel出力"""
        if not args:
            self._print("使用法: export <ファイル.xlsx> [gantt|analytics|simple] [プロジェクトID]")
            return

        format_type = args[1] if len(args) > 1 else ExportFormat.GANTT
        options = ExportOptions()
        if self.pms.settings is not None:
            options.date_format = self.pms.settings.external.default_date_format
        options.project_id = args[2] if len(args) > 2 else None

        result = self.exporter.export_to_file(args[0], format_type, options)
        if result.success:
            self._print(f"✓ エクスポート完了: {result.file_path} ({result.file_size:,} bytes)")
        else:
            for error in result.errors:
                self._print(f"❌ {error['message']}")

    def _search(self, args: List[str]) -> None:
        if not args:
            self._print("使用法: search <キーワード>")
            return

        found = self.pms.search(" ".join(args))
        for project in found['projects']:
            self._print(f"📁 [{project.id}] {project.name}")
        for task in found['tasks']:
            self._print(f"{self._get_status_mark(task.status)} [{task.id}] {task.title}")
        if not found['projects'] and not found['tasks']:
            self._print("該当なし")

    def _quit(self, args: List[str]) -> None:
        self.running = False

    def __str__(self) -> str:
        """文字列表現"""
        return f"CLIInterface(history={len(self.command_history)})"
