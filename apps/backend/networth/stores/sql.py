"""
SQLAlchemy 資料來源

以單一 AsyncSession 實作帳戶、餘額、匯率與偏好查詢。
AsyncSession 不可並行使用，所有查詢以 asyncio.Lock 序列化。
"""

import asyncio
import logging
from datetime import date

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from networth.history.errors import UpstreamUnavailable
from networth.models.account import Account
from networth.models.balance_entry import BalanceEntry
from networth.models.exchange_rate import ExchangeRate
from networth.models.user import User
from networth.stores.base import (
    AccountInfo, BalancePoint, RatePoint,
    AccountStore, BalanceStore, RateStore, PreferenceStore,
)

logger = logging.getLogger(__name__)


class SqlAlchemyStore(AccountStore, BalanceStore, RateStore, PreferenceStore):
    """以 ORM 資料表提供淨值引擎所需的所有讀取介面"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self._lock = asyncio.Lock()

    async def _execute(self, stmt):
        async with self._lock:
            try:
                return await self.db.execute(stmt)
            except (SQLAlchemyError, OSError) as e:
                logger.error("資料庫查詢失敗: %s", e)
                raise UpstreamUnavailable(f"資料庫無法使用: {e}") from e

    async def list_accounts(self, user_id: str) -> list[AccountInfo]:
        stmt = (
            select(Account)
            .where(Account.user_id == user_id)
            .order_by(Account.created_at.asc(), Account.id.asc())
        )
        result = await self._execute(stmt)
        return [
            AccountInfo(
                id=acc.id,
                type=acc.type,
                currency=acc.currency.upper(),
                include_in_net_worth=acc.include_in_net_worth,
                name=acc.name,
            )
            for acc in result.scalars().all()
        ]

    async def list_balance_entries(
        self, account_id: str, up_to_date: date
    ) -> list[BalancePoint]:
        stmt = (
            select(BalanceEntry.account_id, BalanceEntry.date, BalanceEntry.amount)
            .where(BalanceEntry.account_id == account_id)
            .where(BalanceEntry.date <= up_to_date)
            .order_by(BalanceEntry.date.asc())
        )
        result = await self._execute(stmt)
        return [BalancePoint(*row) for row in result.all()]

    async def list_balance_entries_bulk(
        self, account_ids: list[str], up_to_date: date
    ) -> dict[str, list[BalancePoint]]:
        """一次查詢取得所有帳戶的餘額紀錄"""
        entries: dict[str, list[BalancePoint]] = {aid: [] for aid in account_ids}
        if not account_ids:
            return entries

        stmt = (
            select(BalanceEntry.account_id, BalanceEntry.date, BalanceEntry.amount)
            .where(BalanceEntry.account_id.in_(account_ids))
            .where(BalanceEntry.date <= up_to_date)
            .order_by(BalanceEntry.account_id.asc(), BalanceEntry.date.asc())
        )
        result = await self._execute(stmt)
        for row in result.all():
            entries[row.account_id].append(BalancePoint(*row))
        return entries

    async def list_rates(
        self, base: str, quote: str, up_to_date: date | None = None
    ) -> list[RatePoint]:
        stmt = (
            select(ExchangeRate.rate_date, ExchangeRate.rate)
            .where(ExchangeRate.base_currency == base)
            .where(ExchangeRate.quote_currency == quote)
        )
        if up_to_date is not None:
            stmt = stmt.where(ExchangeRate.rate_date <= up_to_date)
        stmt = stmt.order_by(ExchangeRate.rate_date.asc())

        result = await self._execute(stmt)
        return [
            RatePoint(base_currency=base, quote_currency=quote, date=d, rate=r)
            for d, r in result.all()
        ]

    async def get_preferred_currency(self, user_id: str) -> str | None:
        stmt = select(User.preferred_currency).where(User.id == user_id)
        result = await self._execute(stmt)
        return result.scalar_one_or_none()
