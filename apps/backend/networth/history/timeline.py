"""
帳戶餘額時間軸

將每個帳戶稀疏的餘額紀錄攤平成連續陣列，
以「最後觀測值延續」(LOCF) 回答「某日（含）之前最新餘額」。

查詢日期遞增時，每個帳戶只需移動游標，
整段掃描為 O(取樣點 + 紀錄數)。
"""

from bisect import bisect_right
from collections.abc import Mapping, Sequence
from datetime import date
from decimal import Decimal

from networth.stores.base import BalancePoint


class BalanceTimeline:
    """
    使用方式：
        timeline = BalanceTimeline.from_entries({"acc-1": [...], "acc-2": [...]})
        for d in sample_dates:
            amount = timeline.latest_at_or_before("acc-1", d)
    """

    def __init__(self):
        self._dates: list[date] = []
        self._amounts: list[Decimal] = []
        # account_id -> (起始索引, 結束索引)，左閉右開
        self._slices: dict[str, tuple[int, int]] = {}
        # account_id -> 已確認 <= 上次查詢日期的紀錄數（相對於起始索引）
        self._cursors: dict[str, int] = {}
        self._last_query: dict[str, date] = {}

    @classmethod
    def from_entries(
        cls, entries: Mapping[str, Sequence[BalancePoint]]
    ) -> "BalanceTimeline":
        timeline = cls()
        for account_id, points in entries.items():
            timeline.add_account(account_id, points)
        return timeline

    def add_account(self, account_id: str, points: Sequence[BalancePoint]) -> None:
        """登錄帳戶的餘額紀錄（同一帳戶同日不會重複）"""
        if account_id in self._slices:
            raise ValueError(f"帳戶 {account_id} 已登錄")

        start = len(self._dates)
        for p in sorted(points, key=lambda p: p.date):
            self._dates.append(p.date)
            self._amounts.append(p.amount)
        self._slices[account_id] = (start, len(self._dates))
        self._cursors[account_id] = 0

    def __contains__(self, account_id: str) -> bool:
        return account_id in self._slices

    def first_date(self, account_id: str) -> date | None:
        """帳戶最早的餘額日期，無紀錄時回傳 None"""
        start, end = self._slices.get(account_id, (0, 0))
        return self._dates[start] if end > start else None

    def entry_count(self, account_id: str) -> int:
        start, end = self._slices.get(account_id, (0, 0))
        return end - start

    def latest_at_or_before(self, account_id: str, on: date) -> Decimal | None:
        """
        取得帳戶在 on（含）之前最新的餘額。

        Returns:
            餘額；若當日之前沒有任何紀錄則回傳 None（不視為 0）
        """
        bounds = self._slices.get(account_id)
        if bounds is None:
            return None
        start, end = bounds

        last = self._last_query.get(account_id)
        if last is not None and on < last:
            # 往回查詢：以二分搜尋重新定位游標
            cursor = bisect_right(self._dates, on, start, end) - start
        else:
            cursor = self._cursors[account_id]
            while start + cursor < end and self._dates[start + cursor] <= on:
                cursor += 1

        self._cursors[account_id] = cursor
        self._last_query[account_id] = on

        if cursor == 0:
            return None
        return self._amounts[start + cursor - 1]
