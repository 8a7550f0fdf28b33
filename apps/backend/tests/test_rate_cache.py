"""Tests for the cross-request rate cache (memory backend)."""

import time
from datetime import date
from decimal import Decimal

import pytest

from networth import redis_client
from networth.history.rate_cache import RateCache, invalidate_pair


def test_ttl_must_be_positive():
    with pytest.raises(ValueError):
        RateCache(ttl=0)


@pytest.mark.asyncio
async def test_set_then_get():
    cache = RateCache(ttl=60)
    await cache.set("USD", "EUR", date(2024, 2, 1), Decimal("0.9"), False, "direct")

    assert await cache.get("usd", "eur", date(2024, 2, 1)) == (Decimal("0.9"), False, "direct")
    assert await cache.get("USD", "EUR", date(2024, 2, 2)) is None


@pytest.mark.asyncio
async def test_expired_entry_is_dropped():
    cache = RateCache(ttl=60)
    await cache.set("USD", "EUR", date(2024, 2, 1), Decimal("0.9"), True, "direct_after")

    key = "fx:USD:EUR:2024-02-01"
    value, _ = redis_client._memory_cache[key]
    redis_client._memory_cache[key] = (value, time.time() - 1)

    assert await cache.get("USD", "EUR", date(2024, 2, 1)) is None
    assert key not in redis_client._memory_cache


@pytest.mark.asyncio
async def test_invalidate_pair_clears_both_directions():
    cache = RateCache(ttl=60)
    await cache.set("USD", "EUR", date(2024, 2, 1), Decimal("0.9"), False, "direct")
    await cache.set("USD", "EUR", date(2024, 3, 1), Decimal("0.92"), False, "direct")
    await cache.set("EUR", "USD", date(2024, 2, 1), Decimal("1.1"), False, "inverse")
    await cache.set("GBP", "EUR", date(2024, 2, 1), Decimal("1.15"), False, "direct")

    deleted = await invalidate_pair("eur", "usd")

    assert deleted == 3
    assert await cache.get("USD", "EUR", date(2024, 2, 1)) is None
    assert await cache.get("EUR", "USD", date(2024, 2, 1)) is None
    assert await cache.get("GBP", "EUR", date(2024, 2, 1)) is not None
