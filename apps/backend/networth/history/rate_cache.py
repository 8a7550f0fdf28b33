"""
跨請求匯率快取

以 (幣別對, 日期) 為鍵快取已解析的匯率，帶 TTL 並可依幣別對主動失效。
匯率資料異動後應呼叫 invalidate_pair()，否則同一請求在 TTL 內可能得到舊值。
"""

import logging
from datetime import date
from decimal import Decimal

from networth.redis_client import cache_get, cache_set, cache_delete_prefix

logger = logging.getLogger(__name__)

# 快取 Key 前綴
CACHE_PREFIX = "fx"


def _pair_prefix(from_currency: str, to_currency: str) -> str:
    return f"{CACHE_PREFIX}:{from_currency.upper()}:{to_currency.upper()}:"


def _make_key(from_currency: str, to_currency: str, on: date) -> str:
    """產生快取 Key"""
    return f"{_pair_prefix(from_currency, to_currency)}{on.isoformat()}"


class RateCache:
    """限時匯率快取，後端為 Redis 或記憶體"""

    def __init__(self, ttl: int):
        if ttl <= 0:
            raise ValueError("ttl 必須為正整數")
        self.ttl = ttl

    async def get(
        self, from_currency: str, to_currency: str, on: date
    ) -> tuple[Decimal, bool, str] | None:
        """取得快取的 (rate, approximated, source)"""
        key = _make_key(from_currency, to_currency, on)
        data = await cache_get(key)
        if not data:
            return None
        logger.debug("匯率快取命中: %s", key)
        return Decimal(data["rate"]), bool(data["approximated"]), data["source"]

    async def set(
        self,
        from_currency: str,
        to_currency: str,
        on: date,
        rate: Decimal,
        approximated: bool,
        source: str,
    ) -> None:
        key = _make_key(from_currency, to_currency, on)
        await cache_set(
            key,
            {"rate": str(rate), "approximated": approximated, "source": source},
            ttl=self.ttl,
        )


async def invalidate_pair(from_currency: str, to_currency: str) -> int:
    """清除幣別對兩個方向的所有快取，回傳刪除筆數"""
    deleted = await cache_delete_prefix(_pair_prefix(from_currency, to_currency))
    deleted += await cache_delete_prefix(_pair_prefix(to_currency, from_currency))
    logger.info("已清除 %s/%s 匯率快取 (%d 筆)", from_currency, to_currency, deleted)
    return deleted
