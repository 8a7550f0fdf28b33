"""
Networth Redis 連線模組

支援 Redis 連線池；若 Redis 不可用，自動降級為記憶體快取。
所有鍵值皆帶 TTL，過期即失效。
"""

import json
import logging
import time
from typing import Any

from networth.config import get_settings

logger = logging.getLogger(__name__)

settings = get_settings()

# Redis 客戶端（延遲初始化）
_redis_client = None

# 記憶體快取（Redis 不可用時的備用方案）
_memory_cache: dict[str, tuple[Any, float]] = {}


async def get_redis():
    """取得 Redis 連線，若不可用則返回 None"""
    global _redis_client

    if settings.redis_url is None:
        return None

    if _redis_client is None:
        try:
            import redis.asyncio as aioredis
            _redis_client = aioredis.from_url(
                settings.redis_url,
                encoding="utf-8",
                decode_responses=True,
                max_connections=20,
            )
            # 測試連線
            await _redis_client.ping()
            logger.info("Redis 連線成功: %s", settings.redis_url)
        except Exception as e:
            logger.warning("Redis 連線失敗，改用記憶體快取: %s", e)
            _redis_client = None
            return None

    return _redis_client


async def cache_get(key: str) -> Any | None:
    """從快取讀取資料，優先 Redis，備用記憶體快取"""
    redis = await get_redis()
    if redis:
        try:
            value = await redis.get(key)
            if value:
                return json.loads(value)
        except Exception as e:
            logger.warning("Redis GET 失敗: %s", e)

    if key in _memory_cache:
        value, expire_at = _memory_cache[key]
        if time.time() < expire_at:
            return value
        _memory_cache.pop(key, None)

    return None


async def cache_set(key: str, value: Any, ttl: int) -> None:
    """寫入快取，優先 Redis，備用記憶體快取"""
    redis = await get_redis()
    if redis:
        try:
            await redis.set(key, json.dumps(value, default=str), ex=ttl)
            return
        except Exception as e:
            logger.warning("Redis SET 失敗: %s", e)

    _memory_cache[key] = (value, time.time() + ttl)


async def cache_delete_prefix(prefix: str) -> int:
    """刪除所有以 prefix 開頭的快取，回傳刪除筆數"""
    deleted = 0

    redis = await get_redis()
    if redis:
        try:
            keys = [key async for key in redis.scan_iter(match=f"{prefix}*")]
            if keys:
                deleted += await redis.delete(*keys)
        except Exception as e:
            logger.warning("Redis 批次刪除失敗: %s", e)

    for key in [k for k in _memory_cache if k.startswith(prefix)]:
        _memory_cache.pop(key, None)
        deleted += 1

    return deleted


async def close_redis() -> None:
    """關閉 Redis 連線"""
    global _redis_client
    if _redis_client:
        await _redis_client.aclose()
        _redis_client = None
