"""
タイムラインレイアウト
ScheduledItem の列からガントチャートの行レイアウトと表示期間を算出する
"""

from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Sequence

from .date_grid import ChartBounds, DateGrid, to_date
from .error_handler import ValidationError


def validate_progress(progress: Any) -> int:
    """
    進捗率を検証して整数で返す

    Raises:
        ValidationError: 数値でない、整数でない、0-100 の範囲外
    """
    if isinstance(progress, bool) or not isinstance(progress, (int, float)):
        raise ValidationError(f"進捗率は数値である必要があります: {progress!r}",
                              field='progress', value=progress)
    if isinstance(progress, float):
        if not progress.is_integer():
            raise ValidationError(f"進捗率は整数である必要があります: {progress}",
                                  field='progress', value=progress)
        progress = int(progress)
    if not (0 <= progress <= 100):
        raise ValidationError(f"進捗率は0-100の範囲である必要があります: {progress}",
                              field='progress', value=progress)
    return progress


@dataclass(frozen=True)
class ScheduledItem:
    """ガントチャートに載せる1件（描画ごとに生成し永続化しない）"""
    id: str
    name: str
    start_date: date
    end_date: date
    progress: int = 0
    depends_on: FrozenSet[str] = field(default_factory=frozenset)
    color: Optional[str] = None
    label: Optional[str] = None

    def __post_init__(self):
        if self.start_date is None or self.end_date is None:
            raise ValidationError(f"開始日・終了日が未設定です: {self.id}", field='start_date/end_date')
        object.__setattr__(self, 'start_date', to_date(self.start_date))
        object.__setattr__(self, 'end_date', to_date(self.end_date))
        object.__setattr__(self, 'progress', validate_progress(self.progress))
        object.__setattr__(self, 'depends_on', frozenset(self.depends_on or ()))


@dataclass(frozen=True)
class LayoutRow:
    """1件分のピクセル配置"""
    item_id: str
    left_px: int
    width_px: int
    progress_px: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            'item_id': self.item_id,
            'left_px': self.left_px,
            'width_px': self.width_px,
            'progress_px': self.progress_px,
        }


@dataclass(frozen=True)
class MilestoneMarker:
    """マイルストーンの表示位置"""
    milestone_id: str
    name: str
    date: date
    left_px: int
    color: str
    completed: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            'milestone_id': self.milestone_id,
            'name': self.name,
            'date': self.date.isoformat(),
            'left_px': self.left_px,
            'color': self.color,
            'completed': self.completed,
        }


@dataclass(frozen=True)
class TimelineLayoutResult:
    """compute_layout の結果"""
    bounds: ChartBounds
    rows: List[LayoutRow]
    total_width: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'bounds': self.bounds.to_dict(),
            'rows': [row.to_dict() for row in self.rows],
            'total_width': self.total_width,
        }


class TimelineLayout:
    """
    ガントチャートのレイアウト計算

    副作用なし。同じ入力には同じ結果を返す。
    """

    def __init__(self, day_width: int = 40, default_window_days: int = 30):
        self.grid = DateGrid(day_width)
        self.default_window_days = default_window_days

    @property
    def day_width(self) -> int:
        return self.grid.day_width

    def resolve_bounds(self, items: Sequence[ScheduledItem],
                       bounds: Optional[ChartBounds] = None,
                       today: Optional[date] = None) -> ChartBounds:
        """
        表示期間を決定

        明示指定 > 項目なしなら [today, today+30日] > 全項目の開始・終了の min/max
        """
        if bounds is not None:
            return bounds

        if not items:
            start = today or date.today()
            return ChartBounds(start, start + timedelta(days=self.default_window_days))

        all_dates = [d for item in items for d in (item.start_date, item.end_date)]
        return ChartBounds(min(all_dates), max(all_dates))

    def layout_row(self, item: ScheduledItem, chart_start: date) -> LayoutRow:
        """1件分の配置を計算（終了日<開始日は1日幅に丸める）"""
        width_px = self.grid.bar_width(item.start_date, item.end_date)
        return LayoutRow(
            item_id=item.id,
            left_px=self.grid.offset_of(item.start_date, chart_start),
            width_px=width_px,
            progress_px=width_px * item.progress / 100,
        )

    def compute_layout(self, items: Iterable[ScheduledItem],
                       bounds: Optional[ChartBounds] = None,
                       today: Optional[date] = None) -> TimelineLayoutResult:
        """
        レイアウトを計算

        Args:
            items: 表示項目（入力順を保持し並べ替えない）
            bounds: 明示的な表示期間
            today: 項目なしの場合の期間起点（省略時は本日）

        Returns:
            表示期間と行レイアウト
        """
        items = list(items)
        resolved = self.resolve_bounds(items, bounds, today)
        rows = [self.layout_row(item, resolved.start) for item in items]

        return TimelineLayoutResult(
            bounds=resolved,
            rows=rows,
            total_width=self.grid.total_width(resolved),
        )

    def milestone_markers(self, milestones: Iterable[Any], bounds: ChartBounds) -> List[MilestoneMarker]:
        """マイルストーンの表示位置（期間外は負値や全幅超えのまま返す）"""
        markers = []
        for milestone in milestones:
            marker_date = to_date(milestone.date)
            markers.append(MilestoneMarker(
                milestone_id=milestone.id,
                name=milestone.name,
                date=marker_date,
                left_px=self.grid.offset_of(marker_date, bounds.start),
                color=milestone.color,
                completed=milestone.completed,
            ))
        return markers


def compute_layout(items: Iterable[ScheduledItem],
                   bounds: Optional[ChartBounds] = None,
                   day_width: int = 40,
                   today: Optional[date] = None) -> TimelineLayoutResult:
    """TimelineLayout を使わずに1回だけ計算する場合のショートカット"""
    return TimelineLayout(day_width).compute_layout(items, bounds, today)
