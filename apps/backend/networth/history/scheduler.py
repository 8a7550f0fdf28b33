"""
取樣日期排程

將查詢期間解析為具體日期範圍，依跨度選擇取樣粒度（日／週／月），
點數超過上限時以固定間隔抽樣，並永遠保留起訖日。
相同輸入必定產生相同日期。
"""

import calendar
import enum
import logging
import math
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, timedelta

from networth.history.errors import InvalidRequest

logger = logging.getLogger(__name__)


class HistoryPeriod(str, enum.Enum):
    """查詢期間"""
    ONE_MONTH = "1M"
    THREE_MONTHS = "3M"
    SIX_MONTHS = "6M"
    TWELVE_MONTHS = "12M"
    ALL = "ALL"
    CUSTOM = "CUSTOM"


class SamplingStrategy(str, enum.Enum):
    """取樣粒度"""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    ADAPTIVE = "adaptive"


PERIOD_MONTHS: dict[HistoryPeriod, int] = {
    HistoryPeriod.ONE_MONTH: 1,
    HistoryPeriod.THREE_MONTHS: 3,
    HistoryPeriod.SIX_MONTHS: 6,
    HistoryPeriod.TWELVE_MONTHS: 12,
}

# 自動選擇粒度的跨度門檻（天）
DAILY_MAX_SPAN = 31
WEEKLY_MAX_SPAN = 180
MONTHLY_MAX_SPAN = 730

DEFAULT_MAX_POINTS = 60


@dataclass(frozen=True)
class SamplingSpec:
    """一次請求的取樣結果"""
    strategy: SamplingStrategy  # 實際使用的粒度（不會是 adaptive）
    requested_strategy: SamplingStrategy
    start_date: date
    end_date: date
    dates: tuple[date, ...]
    candidate_count: int

    @property
    def decimated(self) -> bool:
        return len(self.dates) < self.candidate_count

    @property
    def span_days(self) -> int:
        return (self.end_date - self.start_date).days


def shift_months(d: date, months: int) -> date:
    """往前或往後移動 N 個月，日期超出該月天數時取月底"""
    month_index = d.year * 12 + (d.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def select_strategy(span_days: int) -> SamplingStrategy:
    """依期間跨度自動選擇取樣粒度"""
    if span_days <= DAILY_MAX_SPAN:
        return SamplingStrategy.DAILY
    if span_days <= WEEKLY_MAX_SPAN:
        return SamplingStrategy.WEEKLY
    # 超過 MONTHLY_MAX_SPAN 仍採月取樣，再交由點數上限抽樣
    return SamplingStrategy.MONTHLY


def candidate_dates(start: date, end: date, strategy: SamplingStrategy) -> list[date]:
    """產生完整候選日期（含起訖日）"""
    if strategy == SamplingStrategy.DAILY:
        return [start + timedelta(days=i) for i in range((end - start).days + 1)]

    dates: list[date] = []
    if strategy == SamplingStrategy.WEEKLY:
        current = start
        while current <= end:
            dates.append(current)
            current += timedelta(days=7)
    elif strategy == SamplingStrategy.MONTHLY:
        # 以起始日的日期為錨點，避免月底漂移
        i = 0
        current = start
        while current <= end:
            dates.append(current)
            i += 1
            current = shift_months(start, i)
    else:
        raise ValueError(f"無法直接產生 {strategy.value} 取樣日期")

    if dates[-1] != end:
        dates.append(end)
    return dates


def decimate(dates: list[date], max_points: int) -> list[date]:
    """
    以固定間隔抽樣至 max_points 以內，保留首尾。

    max_points 為 1 時只保留最後一天。
    """
    if max_points < 1:
        raise ValueError("max_points 必須大於 0")
    if len(dates) <= max_points:
        return list(dates)
    if max_points == 1:
        return [dates[-1]]

    step = math.ceil((len(dates) - 1) / (max_points - 1))
    kept = dates[::step]
    if kept[-1] != dates[-1]:
        if len(kept) < max_points:
            kept.append(dates[-1])
        else:
            kept[-1] = dates[-1]
    return kept


class SampleScheduler:
    """
    取樣排程器

    使用方式：
        scheduler = SampleScheduler(today=lambda: date(2024, 3, 31))
        sampling = scheduler.schedule(HistoryPeriod.THREE_MONTHS, max_points=60)
    """

    def __init__(self, today: Callable[[], date] = date.today):
        self._today = today

    def resolve_range(
        self,
        period: HistoryPeriod,
        custom_range: tuple[date, date] | None = None,
        earliest_entry: date | None = None,
    ) -> tuple[date, date]:
        """將期間解析為 [start, end]，end 不超過今天"""
        today = self._today()

        if period == HistoryPeriod.CUSTOM:
            if custom_range is None:
                raise InvalidRequest("CUSTOM 期間必須提供起訖日期")
            start, end = custom_range
        elif period == HistoryPeriod.ALL:
            end = today
            start = earliest_entry if earliest_entry is not None else today
        else:
            end = today
            start = shift_months(today, -PERIOD_MONTHS[period])

        end = min(end, today)
        start = min(start, end)
        return start, end

    def schedule(
        self,
        period: HistoryPeriod,
        custom_range: tuple[date, date] | None = None,
        strategy: SamplingStrategy | None = None,
        max_points: int = DEFAULT_MAX_POINTS,
        earliest_entry: date | None = None,
    ) -> SamplingSpec:
        start, end = self.resolve_range(period, custom_range, earliest_entry)
        span = (end - start).days

        requested = strategy or SamplingStrategy.ADAPTIVE
        chosen = select_strategy(span) if requested == SamplingStrategy.ADAPTIVE else requested

        candidates = candidate_dates(start, end, chosen)
        dates = decimate(candidates, max_points)

        logger.debug(
            "取樣排程 %s ~ %s (%s): %d 候選 → %d 點",
            start, end, chosen.value, len(candidates), len(dates),
        )
        return SamplingSpec(
            strategy=chosen,
            requested_strategy=requested,
            start_date=start,
            end_date=end,
            dates=tuple(dates),
            candidate_count=len(candidates),
        )
