"""
歷史匯率解析器

依「取樣日當時有效」的匯率換算幣別，解析順序：
1. 直接幣別對，日期 <= 取樣日的最新匯率
2. 反向幣別對，日期 <= 取樣日的最新匯率，取倒數
3. 直接幣別對，取樣日之後最早的匯率（標記為近似）
4. 反向幣別對，取樣日之後最早的匯率，取倒數（標記為近似）
5. 皆無 → MissingExchangeRate，絕不預設為 1

每個幣別對的完整序列每次請求只向資料來源讀取一次，
每個 (幣別, 日期) 的解析結果也只計算一次。
"""

import asyncio
import logging
from bisect import bisect_right
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from networth.history.errors import MissingExchangeRate
from networth.history.rate_cache import RateCache
from networth.stores.base import RatePoint, RateStore

logger = logging.getLogger(__name__)

ONE = Decimal("1")


@dataclass(frozen=True)
class RateQuote:
    """解析後的匯率"""
    rate: Decimal
    approximated: bool = False
    source: str = "direct"  # identity / direct / inverse / direct_after / inverse_after


IDENTITY_QUOTE = RateQuote(rate=ONE, source="identity")


class _RateSeries:
    """單一幣別對依日期排序的匯率序列"""

    def __init__(self, points: Sequence[RatePoint]):
        usable = sorted((p for p in points if p.rate > 0), key=lambda p: p.date)
        if len(usable) != len(points):
            logger.warning("忽略 %d 筆非正值匯率", len(points) - len(usable))
        self.dates = [p.date for p in usable]
        self.rates = [p.rate for p in usable]

    def __len__(self) -> int:
        return len(self.dates)

    def at_or_before(self, on: date) -> Decimal | None:
        idx = bisect_right(self.dates, on)
        return self.rates[idx - 1] if idx > 0 else None

    def first_after(self, on: date) -> Decimal | None:
        idx = bisect_right(self.dates, on)
        return self.rates[idx] if idx < len(self.rates) else None


class ExchangeRateResolver:
    """
    請求範圍內的匯率解析器

    使用方式：
        resolver = ExchangeRateResolver(store)
        rate = await resolver.rate("USD", "EUR", date(2024, 2, 15))
    """

    def __init__(self, store: RateStore, shared_cache: RateCache | None = None):
        self._store = store
        self._shared_cache = shared_cache
        self._series: dict[tuple[str, str], _RateSeries] = {}
        self._fetching: dict[tuple[str, str], asyncio.Future] = {}
        self._quotes: dict[tuple[str, str, date], RateQuote] = {}
        self.store_calls = 0
        self.cache_hits = 0

    async def rate(self, from_currency: str, to_currency: str, on: date) -> Decimal:
        """取得 1 單位 from_currency 在 on 當日可換得的 to_currency"""
        quote = await self.quote(from_currency, to_currency, on)
        return quote.rate

    async def quote(self, from_currency: str, to_currency: str, on: date) -> RateQuote:
        """取得匯率與其來源（是否為近似值）"""
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()

        # 相同幣別不需查詢
        if from_currency == to_currency:
            return IDENTITY_QUOTE

        key = (from_currency, to_currency, on)
        quote = self._quotes.get(key)
        if quote is not None:
            return quote

        if self._shared_cache is not None:
            cached = await self._shared_cache.get(from_currency, to_currency, on)
            if cached is not None:
                self.cache_hits += 1
                quote = RateQuote(*cached)
                self._quotes[key] = quote
                return quote

        quote = await self._resolve(from_currency, to_currency, on)
        self._quotes[key] = quote

        if self._shared_cache is not None:
            await self._shared_cache.set(
                from_currency, to_currency, on,
                quote.rate, quote.approximated, quote.source,
            )
        return quote

    async def _resolve(self, from_currency: str, to_currency: str, on: date) -> RateQuote:
        direct = await self._load(from_currency, to_currency)
        rate = direct.at_or_before(on)
        if rate is not None:
            return RateQuote(rate=rate, source="direct")

        inverse = await self._load(to_currency, from_currency)
        rate = inverse.at_or_before(on)
        if rate is not None:
            return RateQuote(rate=ONE / rate, source="inverse")

        # 取樣日之前完全沒有匯率：改用之後最早的一筆，並標記為近似值
        rate = direct.first_after(on)
        if rate is not None:
            logger.info("%s/%s 於 %s 使用日後匯率近似", from_currency, to_currency, on)
            return RateQuote(rate=rate, approximated=True, source="direct_after")

        rate = inverse.first_after(on)
        if rate is not None:
            logger.info("%s/%s 於 %s 使用日後反向匯率近似", from_currency, to_currency, on)
            return RateQuote(rate=ONE / rate, approximated=True, source="inverse_after")

        raise MissingExchangeRate(from_currency, to_currency, on)

    async def _load(self, base: str, quote: str) -> _RateSeries:
        """讀取幣別對的完整匯率序列（同一請求只讀一次）"""
        key = (base, quote)
        series = self._series.get(key)
        if series is not None:
            return series

        # Singleflight: 相同幣別對的讀取進行中時，直接等待該結果
        if key in self._fetching:
            return await self._fetching[key]

        future = asyncio.get_running_loop().create_future()
        self._fetching[key] = future

        try:
            points = await self._store.list_rates(base, quote)
            self.store_calls += 1
            series = _RateSeries(points)
            self._series[key] = series
            logger.debug("載入 %s/%s 匯率序列 (%d 筆)", base, quote, len(series))
            future.set_result(series)
            return series
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            # 沒有其他等待者時避免未讀取例外的警告
            future.exception()
            raise
        finally:
            self._fetching.pop(key, None)
