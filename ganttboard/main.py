"""
ganttboard エントリーポイント

設定を読み込んでストアを1つ選び、ProjectManagementSystem に注入してから
対話CLI・単発コマンド・整合性チェックのいずれかを実行する。
"""

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from . import __version__
from .cli.cli_interface import CLIInterface
from .config.settings import LogLevel, StorageBackend, SystemSettings, get_settings
from .core.error_handler import ProjectManagementError, format_exception_summary, get_error_handler
from .core.logger import LogCategory, ProjectLogger
from .core.manager import ProjectManagementSystem
from .external.excel_exporter import ExcelExporter
from .storage import create_storage


class ApplicationManager:
    """起動からシャットダウンまでを管理する"""

    def __init__(self):
        self.settings: Optional[SystemSettings] = None
        self.pms: Optional[ProjectManagementSystem] = None
        self.logger: Optional[ProjectLogger] = None
        self.error_handler = get_error_handler()
        self.is_initialized = False

    def apply_arguments(self, args: argparse.Namespace) -> SystemSettings:
        """設定ファイルを読み、コマンドライン引数で上書きする"""
        settings = get_settings(args.config)
        overrides = {
            ('database', 'data_directory'): args.data_dir,
            ('database', 'backend'): args.storage,
            ('database', 'load_sample_data'): True if args.sample_data else None,
            ('logging', 'level'): args.log_level,
        }
        for (section, key), value in overrides.items():
            if value is not None:
                setattr(getattr(settings, section), key, value)
        return settings

    def _start_logger(self) -> ProjectLogger:
        # 起動時の設定でロガーを作り直す
        log_dir = None
        if self.settings.logging.enable_file_output:
            log_dir = str(Path(self.settings.database.data_directory) / "logs")
        ProjectLogger.reset_instance()
        self.error_handler.reset_logger()
        return ProjectLogger(log_dir=log_dir, settings=self.settings.logging)

    def initialize(self, args: argparse.Namespace) -> bool:
        """
        設定・ロガー・ストア・管理システムを用意する

        Returns:
            起動できたかどうか（設定不正やストア障害なら False）
        """
        self.settings = self.apply_arguments(args)

        problems = self.settings.validate_settings()
        if problems:
            for section, messages in problems.items():
                for message in messages:
                    print(f"設定エラー [{section}] {message}")
            return False

        self.logger = self._start_logger()
        self.logger.info(LogCategory.SYSTEM, "起動", module="main",
                         backend=self.settings.database.backend,
                         data_dir=self.settings.database.data_directory)

        try:
            self.pms = ProjectManagementSystem(create_storage(self.settings), self.settings, self.logger)
            if not self.pms.validate_data_integrity():
                self.logger.warning(LogCategory.DATA, "ストアに整合性の問題があります", module="main")
        except ProjectManagementError as e:
            print(f"初期化エラー: {format_exception_summary(e)}")
            self.error_handler.handle_error(e, {'module': 'main'})
            return False

        self.is_initialized = True
        self.logger.info(LogCategory.SYSTEM, "初期化完了", module="main",
                         counts=self.pms.get_system_statistics()['counts'])
        return True

    def run(self, args: argparse.Namespace) -> int:
        """整合性チェック・単発コマンド・対話CLIのどれかを実行して終了コードを返す"""
        if args.check_only:
            ok = self.pms.validate_data_integrity()
            print(f"データ整合性: {'OK' if ok else 'エラーあり'}")
            return 0 if ok else 1

        cli = CLIInterface(self.pms, ExcelExporter(self.pms, self.settings))
        if args.command:
            return 0 if cli.execute(args.command) else 1
        return cli.run()

    def shutdown(self) -> None:
        if not self.is_initialized:
            return
        self.logger.info(LogCategory.SYSTEM, "終了", module="main",
                         error_statistics=self.error_handler.get_error_statistics())

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()


def create_argument_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ganttboard",
        description="プロジェクトのガントチャート表示と進捗分析",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
例:
  %(prog)s --sample-data                          対話モード（デモデータ）
  %(prog)s --storage json --data-dir ./data       JSONファイルに保存
  %(prog)s --sample-data -c "gantt proj-1"        1コマンドだけ実行
  %(prog)s --check-only                           整合性チェックのみ
        """
    )
    parser.add_argument('--config', metavar='FILE',
                        help='設定ファイル（既定: data/settings.json）')
    parser.add_argument('--data-dir', metavar='DIR',
                        help='データディレクトリ（設定ファイルの値を上書き）')
    parser.add_argument('--storage', choices=[backend.value for backend in StorageBackend],
                        help='ストアの種類（設定ファイルの値を上書き）')
    parser.add_argument('--sample-data', action='store_true',
                        help='空のストアにデモデータを投入する')
    parser.add_argument('--log-level', choices=[level.value for level in LogLevel],
                        help='ログレベル')
    parser.add_argument('--check-only', action='store_true',
                        help='データ整合性をチェックして終了')
    parser.add_argument('--command', '-c', metavar='CMD',
                        help='CLIコマンドを1つ実行して終了')
    parser.add_argument('--version', action='version', version=f'%(prog)s {__version__}')
    return parser


def main(argv: List[str] = None) -> int:
    args = create_argument_parser().parse_args(argv)

    try:
        with ApplicationManager() as app:
            if not app.initialize(args):
                return 1
            return app.run(args)
    except KeyboardInterrupt:
        print("\n中断しました")
        return 130


if __name__ == "__main__":
    sys.exit(main())
