"""
日付グリッド
日付範囲とピクセル座標の対応付け（状態を持たない純粋関数群）
"""

import calendar
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import List, Union

from .error_handler import ValidationError


def to_date(value: Union[date, datetime]) -> date:
    """datetime を date に落とす（date はそのまま）"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raise ValidationError(f"日付ではありません: {value!r}", value=value)


def days_between(a: Union[date, datetime], b: Union[date, datetime]) -> int:
    """
    a から b までの日数（b < a なら負）

    Args:
        a: 起点
        b: 終点

    Returns:
        整数の日数
    """
    return (to_date(b) - to_date(a)).days


@dataclass(frozen=True)
class ChartBounds:
    """チャートの表示期間（両端を含む）"""
    start: date
    end: date

    def __post_init__(self):
        start = to_date(self.start)
        end = to_date(self.end)
        if end < start:
            raise ValidationError(
                f"表示期間の終了日が開始日より前です: {start} > {end}",
                field='bounds', value=f"{start}..{end}"
            )
        object.__setattr__(self, 'start', start)
        object.__setattr__(self, 'end', end)

    @property
    def day_count(self) -> int:
        """期間内の日数（両端を含む）"""
        return days_between(self.start, self.end) + 1

    def each_day(self) -> List[date]:
        """期間内の全日付"""
        return [self.start + timedelta(days=offset) for offset in range(self.day_count)]

    def to_dict(self) -> dict:
        return {'start': self.start.isoformat(), 'end': self.end.isoformat()}


@dataclass(frozen=True)
class DayColumn:
    """日単位ヘッダーの1列"""
    date: date
    left_px: int
    label: str
    weekday: str


@dataclass(frozen=True)
class MonthSpan:
    """月単位ヘッダーの1区間"""
    year: int
    month: int
    label: str
    left_px: int
    width_px: int


@dataclass(frozen=True)
class ScaleTick:
    """目盛り"""
    date: date
    left_px: int
    label: str


class DateGrid:
    """
    日付→ピクセル変換

    day_width は設定値（1日あたりのピクセル数）であり計算はしない。
    """

    def __init__(self, day_width: int = 40):
        if day_width < 1:
            raise ValidationError("日幅は1ピクセル以上である必要があります", field='day_width', value=day_width)
        self.day_width = day_width

    def offset_of(self, target: date, chart_start: date) -> int:
        """chart_start を原点とした target の左端座標"""
        return days_between(chart_start, target) * self.day_width

    def bar_width(self, start: date, end: date) -> int:
        """バー幅（最小1日分）"""
        return max(days_between(start, end), 1) * self.day_width

    def total_width(self, bounds: ChartBounds) -> int:
        """チャート全体の幅"""
        return bounds.day_count * self.day_width

    def day_columns(self, bounds: ChartBounds) -> List[DayColumn]:
        """日単位のヘッダー列"""
        return [
            DayColumn(
                date=day,
                left_px=self.offset_of(day, bounds.start),
                label=str(day.day),
                weekday=calendar.day_abbr[day.weekday()],
            )
            for day in bounds.each_day()
        ]

    def month_spans(self, bounds: ChartBounds) -> List[MonthSpan]:
        """月単位のヘッダー区間（期間内の日数分の幅）"""
        spans = []
        current = bounds.start
        while current <= bounds.end:
            last_of_month = date(current.year, current.month,
                                 calendar.monthrange(current.year, current.month)[1])
            span_end = min(last_of_month, bounds.end)
            spans.append(MonthSpan(
                year=current.year,
                month=current.month,
                label=f"{calendar.month_abbr[current.month]} {current.year}",
                left_px=self.offset_of(current, bounds.start),
                width_px=(days_between(current, span_end) + 1) * self.day_width,
            ))
            current = span_end + timedelta(days=1)
        return spans

    def scale_ticks(self, bounds: ChartBounds, scale: str = "day") -> List[ScaleTick]:
        """
        目盛りを生成

        Args:
            bounds: 表示期間
            scale: day / week / month
        """
        if scale == "day":
            return [ScaleTick(col.date, col.left_px, col.label) for col in self.day_columns(bounds)]

        if scale == "week":
            ticks = []
            # 週の開始（月曜）から刻む。期間開始より前の月曜は左にはみ出す
            current = bounds.start - timedelta(days=bounds.start.weekday())
            while current <= bounds.end:
                ticks.append(ScaleTick(current, self.offset_of(current, bounds.start),
                                       current.strftime('%m/%d')))
                current += timedelta(days=7)
            return ticks

        if scale == "month":
            return [
                ScaleTick(date(span.year, span.month, 1),
                          self.offset_of(date(span.year, span.month, 1), bounds.start),
                          span.label)
                for span in self.month_spans(bounds)
            ]

        raise ValidationError(f"未対応の目盛り単位: {scale}", field='scale', value=scale)
