# ====================
# cli/__init__.py
# ====================
"""
CLIパッケージ
"""

from .cli_interface import CLIInterface

__all__ = [
    'CLIInterface'
]
