# ====================
# external/__init__.py
# ====================
"""
外部連携パッケージ
Excelエクスポート
"""

from .excel_exporter import (
    ExcelExporter, ExportFormat, ExportOptions, ExportResult, ExcelStyleManager
)

__all__ = [
    'ExcelExporter',
    'ExportFormat',
    'ExportOptions',
    'ExportResult',
    'ExcelStyleManager'
]
