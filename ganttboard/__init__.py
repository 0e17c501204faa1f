# ====================
# ganttboard/__init__.py
# ====================
"""
ganttboard
ガントチャートのレイアウト計算とスケジュール分析
"""

__version__ = "1.0.0"
