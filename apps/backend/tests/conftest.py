"""Pytest configuration and shared fixtures."""

import asyncio
import os
from collections import defaultdict
from datetime import date
from decimal import Decimal

# 測試環境設定必須在匯入 networth 之前
os.environ.setdefault("APP_ENV", "testing")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("ADMIN_EMAILS", "admin@example.com")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from networth.config import Settings
from networth.database import Base, get_db
from networth.history.service import HistoryService
from networth.models.account import AccountType
from networth.stores.base import (
    AccountInfo, BalancePoint, RatePoint,
    AccountStore, BalanceStore, RateStore, PreferenceStore,
)


def d(value: str) -> date:
    return date.fromisoformat(value)


class InMemoryStore(AccountStore, BalanceStore, RateStore, PreferenceStore):
    """測試用記憶體資料來源，記錄每次呼叫"""

    def __init__(self):
        self.accounts: list[AccountInfo] = []
        self.balances: dict[str, list[BalancePoint]] = defaultdict(list)
        self.rates: dict[tuple[str, str], list[RatePoint]] = defaultdict(list)
        self.preferred_currency: str | None = None
        self.rate_calls: list[tuple[str, str]] = []
        self.balance_calls: list[str] = []
        self.fail_with: Exception | None = None
        self.delay: float = 0.0

    def add_account(
        self,
        account_id: str,
        type: AccountType = AccountType.ASSET,
        currency: str = "EUR",
        include: bool = True,
        name: str = "",
    ) -> AccountInfo:
        account = AccountInfo(
            id=account_id,
            type=type,
            currency=currency,
            include_in_net_worth=include,
            name=name or account_id,
        )
        self.accounts.append(account)
        return account

    def add_balance(self, account_id: str, on: str, amount: str) -> None:
        self.balances[account_id].append(BalancePoint(account_id, d(on), Decimal(amount)))
        self.balances[account_id].sort(key=lambda p: p.date)

    def add_rate(self, base: str, quote: str, on: str, rate: str) -> None:
        self.rates[(base, quote)].append(RatePoint(base, quote, d(on), Decimal(rate)))
        self.rates[(base, quote)].sort(key=lambda p: p.date)

    async def _tick(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_with is not None:
            raise self.fail_with

    async def list_accounts(self, user_id: str) -> list[AccountInfo]:
        await self._tick()
        return list(self.accounts)

    async def list_balance_entries(self, account_id: str, up_to_date: date) -> list[BalancePoint]:
        await self._tick()
        self.balance_calls.append(account_id)
        return [p for p in self.balances.get(account_id, []) if p.date <= up_to_date]

    async def list_rates(self, base: str, quote: str, up_to_date: date | None = None) -> list[RatePoint]:
        await self._tick()
        self.rate_calls.append((base, quote))
        return [
            p for p in self.rates.get((base, quote), [])
            if up_to_date is None or p.date <= up_to_date
        ]

    async def get_preferred_currency(self, user_id: str) -> str | None:
        await self._tick()
        return self.preferred_currency


@pytest.fixture(autouse=True)
def clear_memory_cache():
    """每個測試前後清空記憶體快取"""
    from networth import redis_client

    redis_client._memory_cache.clear()
    yield
    redis_client._memory_cache.clear()


@pytest.fixture
def store() -> InMemoryStore:
    return InMemoryStore()


@pytest.fixture
def example_store(store: InMemoryStore) -> InMemoryStore:
    """A: 歐元資產；B: 美元負債；USD→EUR 於 2024-02-01 為 0.9"""
    store.add_account("A", AccountType.ASSET, "EUR", name="Checking")
    store.add_account("B", AccountType.LIABILITY, "USD", name="Credit card")
    store.add_balance("A", "2024-01-01", "1000")
    store.add_balance("A", "2024-03-01", "1200")
    store.add_balance("B", "2024-02-01", "300")
    store.add_rate("USD", "EUR", "2024-02-01", "0.9")
    return store


@pytest.fixture
def fixed_today() -> date:
    return date(2024, 6, 30)


@pytest.fixture
def make_service(fixed_today):
    """建立使用記憶體資料來源與固定日期的 HistoryService"""

    def _make(store: InMemoryStore, today: date | None = None, **overrides) -> HistoryService:
        settings = Settings(**overrides)
        return HistoryService(
            store, store, store, store,
            settings=settings,
            today=lambda: today or fixed_today,
        )

    return _make


# === 資料庫 ===

@pytest_asyncio.fixture
async def db_engine():
    """每個測試一個獨立的記憶體 SQLite"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, _record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    import networth.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """覆寫 get_db 的 API 測試客戶端"""
    from networth.main import app

    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
