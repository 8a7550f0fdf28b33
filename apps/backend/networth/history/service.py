"""
淨值歷史服務層

驗證查詢參數 → 批次讀取帳戶與餘額 → 排程取樣日期 → 聚合淨值 → 輸出格式化。
整段計算在時限內完成，否則取消所有進行中的查詢；不會回傳部分結果。
"""

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from datetime import date, datetime, timezone

from networth.config import Settings, get_settings
from networth.history.aggregator import NetWorthAggregator, NetWorthDataPoint
from networth.history.currency import normalize_code, quantize_amount
from networth.history.errors import HistoryTimeout, InvalidRequest
from networth.history.rate_cache import RateCache
from networth.history.rates import ExchangeRateResolver
from networth.history.scheduler import HistoryPeriod, SampleScheduler
from networth.history.timeline import BalanceTimeline
from networth.schemas.history import (
    AccountBreakdownItem, HistoryMetadata, HistoryPerformance,
    NetWorthHistoryRequest, NetWorthHistoryResponse, NetWorthPoint,
)
from networth.stores.base import (
    AccountStore, BalanceStore, PreferenceStore, RateStore,
)

logger = logging.getLogger(__name__)

LOCF_NOTE = "帳戶餘額以最近一次登錄值延續至下一筆紀錄；尚無紀錄的帳戶不計入當日淨值。"
APPROXIMATED_NOTE = "部分取樣日缺少當日以前的匯率，已使用之後最早的匯率近似。"


class HistoryService:
    """
    淨值歷史業務邏輯

    使用方式：
        store = SqlAlchemyStore(db)
        service = HistoryService(store, store, store, store)
        response = await service.get_history(user_id, request)
    """

    def __init__(
        self,
        accounts: AccountStore,
        balances: BalanceStore,
        rates: RateStore,
        preferences: PreferenceStore,
        settings: Settings | None = None,
        today: Callable[[], date] = date.today,
        rate_cache: RateCache | None = None,
    ):
        self._accounts = accounts
        self._balances = balances
        self._rates = rates
        self._preferences = preferences
        self._settings = settings or get_settings()
        self._today = today

        if rate_cache is None and self._settings.rate_cache_enabled:
            rate_cache = RateCache(self._settings.rate_cache_ttl)
        self._rate_cache = rate_cache

    async def get_history(
        self, user_id: str, request: NetWorthHistoryRequest
    ) -> NetWorthHistoryResponse:
        """
        計算淨值走勢

        Raises:
            InvalidRequest: 期間或日期範圍不合法
            MissingExchangeRate: 任一需要換算的帳戶缺少匯率
            UpstreamUnavailable: 資料來源無法連線
            HistoryTimeout: 超過 history_timeout_seconds
        """
        request_id = str(uuid.uuid4())
        today = self._today()
        custom_range, max_points = self._validate(request, today)

        logger.info(
            "開始計算淨值歷史 (request=%s, user=%s, period=%s)",
            request_id, user_id, request.period.value,
        )

        timeout = self._settings.history_timeout_seconds
        try:
            response = await asyncio.wait_for(
                self._compute(user_id, request, request_id, today, custom_range, max_points),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            logger.warning("淨值歷史計算逾時 (request=%s, %.1fs)", request_id, timeout)
            raise HistoryTimeout(f"淨值歷史計算超過 {timeout} 秒") from e

        logger.info(
            "淨值歷史完成 (request=%s, %d 點, %.3fs)",
            request_id,
            response.actual_data_points,
            response.performance.total_processing_time,
        )
        return response

    def _validate(
        self, request: NetWorthHistoryRequest, today: date
    ) -> tuple[tuple[date, date] | None, int]:
        """檢查期間與日期組合，回傳 (自訂範圍, 點數上限)"""
        custom_range = None
        if request.period == HistoryPeriod.CUSTOM:
            if request.start_date is None or request.end_date is None:
                raise InvalidRequest("CUSTOM 期間必須同時提供 start_date 與 end_date")
            if request.start_date > request.end_date:
                raise InvalidRequest("start_date 不可晚於 end_date")
            if request.end_date > today:
                raise InvalidRequest("end_date 不可晚於今天")
            custom_range = (request.start_date, request.end_date)
        elif request.start_date is not None or request.end_date is not None:
            raise InvalidRequest("只有 CUSTOM 期間可指定 start_date / end_date")

        max_points = request.max_data_points or self._settings.history_default_max_points
        if max_points > self._settings.history_max_points_limit:
            raise InvalidRequest(
                f"max_data_points 不可超過 {self._settings.history_max_points_limit}"
            )

        return custom_range, max_points

    async def _resolve_currency(self, user_id: str, requested: str | None) -> str:
        """請求指定 → 用戶偏好 → 系統預設"""
        if requested:
            code = normalize_code(requested)
            if code is None:
                raise InvalidRequest(f"無效的幣別代碼: {requested}")
            return code

        preferred = await self._preferences.get_preferred_currency(user_id)
        if preferred:
            code = normalize_code(preferred)
            if code is not None:
                return code
            logger.warning("用戶 %s 偏好幣別格式錯誤: %s", user_id, preferred)

        return self._settings.default_currency.upper()

    async def _compute(
        self,
        user_id: str,
        request: NetWorthHistoryRequest,
        request_id: str,
        today: date,
        custom_range: tuple[date, date] | None,
        max_points: int,
    ) -> NetWorthHistoryResponse:
        total_started = time.perf_counter()

        # 1. 讀取帳戶與餘額（每個帳戶只讀一次）
        target = await self._resolve_currency(user_id, request.target_currency)
        accounts = await self._accounts.list_accounts(user_id)
        included = [acc for acc in accounts if acc.include_in_net_worth]
        up_to = custom_range[1] if custom_range else today
        entries = await self._balances.list_balance_entries_bulk(
            [acc.id for acc in accounts], up_to
        )
        db_time = time.perf_counter() - total_started

        # 2. 排程取樣日期（ALL 以計入淨值帳戶的最早紀錄為起點）
        timeline = BalanceTimeline.from_entries(entries)
        earliest = min(
            (d for d in (timeline.first_date(acc.id) for acc in included) if d is not None),
            default=None,
        )
        scheduler = SampleScheduler(today=lambda: today)
        sampling = scheduler.schedule(
            request.period,
            custom_range=custom_range,
            strategy=request.sampling_strategy,
            max_points=max_points,
            earliest_entry=earliest,
        )

        # 3. 聚合
        resolver = ExchangeRateResolver(self._rates, self._rate_cache)
        aggregator = NetWorthAggregator(
            resolver, max_concurrency=self._settings.history_max_concurrency
        )
        result = await aggregator.aggregate(
            accounts, timeline, sampling, target,
            include_breakdown=request.include_account_breakdown,
        )

        # 4. 輸出格式化（只在此處捨入）
        data = [self._format_point(point, target) for point in result.points]

        total_time = time.perf_counter() - total_started
        note = LOCF_NOTE
        if result.rate_approximated:
            note = f"{LOCF_NOTE}{APPROXIMATED_NOTE}"

        return NetWorthHistoryResponse(
            period=request.period,
            start_date=sampling.start_date,
            end_date=sampling.end_date,
            currency=target,
            sampling_strategy=sampling.strategy,
            requested_strategy=sampling.requested_strategy,
            max_data_points=max_points,
            actual_data_points=len(data),
            calculated_at=datetime.now(timezone.utc),
            data=data,
            metadata=HistoryMetadata(
                include_account_breakdown=request.include_account_breakdown,
                unique_currencies=len({acc.currency.upper() for acc in accounts}),
                total_accounts=len(accounts),
                included_accounts=len(included),
                rate_approximated=result.rate_approximated,
                approximated_points=result.approximated_points,
            ),
            performance=HistoryPerformance(
                db_query_time=round(db_time, 4),
                rate_query_time=round(result.rate_seconds, 4),
                processing_time=round(max(total_time - db_time - result.rate_seconds, 0.0), 4),
                total_processing_time=round(total_time, 4),
                rate_cache_hits=resolver.cache_hits,
                request_id=request_id,
            ),
            note=note,
        )

    @staticmethod
    def _format_point(point: NetWorthDataPoint, currency: str) -> NetWorthPoint:
        assets = quantize_amount(point.total_assets, currency)
        liabilities = quantize_amount(point.total_liabilities, currency)

        breakdown = None
        if point.breakdown is not None:
            breakdown = [
                AccountBreakdownItem(
                    account_id=item.account_id,
                    name=item.name,
                    type=item.type,
                    currency=item.currency,
                    balance=quantize_amount(item.balance, item.currency),
                    converted=quantize_amount(item.converted, currency),
                    included=item.included,
                    rate_approximated=item.rate_approximated,
                )
                for item in point.breakdown
            ]

        return NetWorthPoint(
            date=point.date,
            # 以捨入後的數字相減，確保 淨值 = 資產 - 負債 完全成立
            net_worth=assets - liabilities,
            total_assets=assets,
            total_liabilities=liabilities,
            rate_approximated=point.rate_approximated,
            accounts_counted=point.accounts_counted,
            breakdown=breakdown,
        )
