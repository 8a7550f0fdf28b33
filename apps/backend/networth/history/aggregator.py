"""
淨值聚合器

對每個取樣日：
1. 以 BalanceTimeline 取得每個計入淨值帳戶的最新餘額（無紀錄則略過）
2. 以 ExchangeRateResolver 依取樣日當時的匯率換算為目標幣別
3. 依帳戶類型累加至總資產或總負債（負債以正值累計）

全程以 Decimal 計算，不在中間步驟捨入。
任何匯率缺漏都會中止整個請求，不會只略過單一帳戶。
"""

import asyncio
import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, localcontext

from networth.history.rates import ExchangeRateResolver, RateQuote, IDENTITY_QUOTE
from networth.history.scheduler import SamplingSpec
from networth.history.timeline import BalanceTimeline
from networth.models.account import AccountType
from networth.stores.base import AccountInfo

logger = logging.getLogger(__name__)

# 累加時使用的精度，高於 Decimal 預設的 28 位
ACCUMULATION_PRECISION = 40


@dataclass
class AccountContribution:
    """單一帳戶於某取樣日的貢獻"""
    account_id: str
    name: str
    type: AccountType
    currency: str
    balance: Decimal
    converted: Decimal
    included: bool
    rate_approximated: bool = False


@dataclass
class NetWorthDataPoint:
    """單一取樣日的淨值（目標幣別，未捨入）"""
    date: date
    total_assets: Decimal = Decimal("0")
    total_liabilities: Decimal = Decimal("0")
    rate_approximated: bool = False
    accounts_counted: int = 0
    breakdown: list[AccountContribution] | None = None

    @property
    def net_worth(self) -> Decimal:
        """淨值 = 總資產 - 總負債"""
        return self.total_assets - self.total_liabilities


@dataclass
class AggregationResult:
    points: list[NetWorthDataPoint] = field(default_factory=list)
    rate_seconds: float = 0.0
    rate_lookups: int = 0

    @property
    def approximated_points(self) -> int:
        return sum(1 for p in self.points if p.rate_approximated)

    @property
    def rate_approximated(self) -> bool:
        return self.approximated_points > 0


class NetWorthAggregator:
    """
    使用方式：
        aggregator = NetWorthAggregator(resolver)
        result = await aggregator.aggregate(accounts, timeline, sampling, "EUR")
    """

    def __init__(self, resolver: ExchangeRateResolver, max_concurrency: int = 8):
        if max_concurrency < 1:
            raise ValueError("max_concurrency 必須大於 0")
        self._resolver = resolver
        self._max_concurrency = max_concurrency

    async def aggregate(
        self,
        accounts: Sequence[AccountInfo],
        timeline: BalanceTimeline,
        sampling: SamplingSpec,
        target_currency: str,
        include_breakdown: bool = False,
    ) -> AggregationResult:
        target = target_currency.upper()

        # 不計入淨值的帳戶只在需要明細時才換算
        tracked = [
            acc for acc in accounts
            if acc.include_in_net_worth or include_breakdown
        ]

        # A. 依日期遞增掃描餘額（每個帳戶游標只前進不後退）
        observations: list[list[tuple[AccountInfo, Decimal]]] = []
        for sample_date in sampling.dates:
            row = []
            for acc in tracked:
                amount = timeline.latest_at_or_before(acc.id, sample_date)
                if amount is not None:
                    row.append((acc, amount))
            observations.append(row)

        # B. 只查詢真的有餘額的 (幣別, 日期)
        needed = sorted({
            (acc.currency.upper(), sample_date)
            for sample_date, row in zip(sampling.dates, observations)
            for acc, _ in row
            if acc.currency.upper() != target
        })

        started = time.perf_counter()
        quotes = await self._resolve_all(needed, target)
        rate_seconds = time.perf_counter() - started

        # C. 累加
        points: list[NetWorthDataPoint] = []
        with localcontext() as ctx:
            ctx.prec = ACCUMULATION_PRECISION
            for sample_date, row in zip(sampling.dates, observations):
                points.append(
                    self._accumulate(sample_date, row, quotes, target, include_breakdown)
                )

        logger.debug(
            "聚合完成: %d 點, %d 次匯率查詢 (%.3fs)",
            len(points), len(needed), rate_seconds,
        )
        return AggregationResult(
            points=points,
            rate_seconds=rate_seconds,
            rate_lookups=len(needed),
        )

    def _accumulate(
        self,
        sample_date: date,
        row: list[tuple[AccountInfo, Decimal]],
        quotes: dict[tuple[str, date], RateQuote],
        target: str,
        include_breakdown: bool,
    ) -> NetWorthDataPoint:
        point = NetWorthDataPoint(
            date=sample_date,
            breakdown=[] if include_breakdown else None,
        )

        for acc, amount in row:
            currency = acc.currency.upper()
            quote = IDENTITY_QUOTE if currency == target else quotes[(currency, sample_date)]
            converted = amount * quote.rate

            if acc.include_in_net_worth:
                point.accounts_counted += 1
                point.rate_approximated |= quote.approximated
                if acc.is_liability:
                    point.total_liabilities += converted
                else:
                    point.total_assets += converted

            if include_breakdown:
                point.breakdown.append(AccountContribution(
                    account_id=acc.id,
                    name=acc.name,
                    type=acc.type,
                    currency=currency,
                    balance=amount,
                    converted=converted,
                    included=acc.include_in_net_worth,
                    rate_approximated=quote.approximated,
                ))

        return point

    async def _resolve_all(
        self, keys: list[tuple[str, date]], target: str
    ) -> dict[tuple[str, date], RateQuote]:
        """並行解析匯率，任一失敗即取消其餘查詢"""
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _one(currency: str, on: date) -> RateQuote:
            async with semaphore:
                return await self._resolver.quote(currency, target, on)

        tasks = [asyncio.ensure_future(_one(currency, on)) for currency, on in keys]
        try:
            results = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise
        return dict(zip(keys, results))
