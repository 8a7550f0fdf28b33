"""
資料來源抽象基礎類別

淨值引擎只透過以下介面讀取帳戶、餘額、匯率與用戶偏好，
實際儲存方式（SQLAlchemy、測試替身…）由實作決定。
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from networth.models.account import AccountType


@dataclass(frozen=True)
class AccountInfo:
    """帳戶資料"""
    id: str
    type: AccountType
    currency: str
    include_in_net_worth: bool = True
    name: str = ""

    @property
    def is_liability(self) -> bool:
        return self.type == AccountType.LIABILITY


@dataclass(frozen=True)
class BalancePoint:
    """單筆餘額紀錄"""
    account_id: str
    date: date
    amount: Decimal


@dataclass(frozen=True)
class RatePoint:
    """單筆匯率：1 base = rate quote"""
    base_currency: str
    quote_currency: str
    date: date
    rate: Decimal


class AccountStore(ABC):

    @abstractmethod
    async def list_accounts(self, user_id: str) -> list[AccountInfo]:
        """取得用戶所有帳戶（含不計入淨值者）"""
        ...


class BalanceStore(ABC):

    @abstractmethod
    async def list_balance_entries(
        self, account_id: str, up_to_date: date
    ) -> list[BalancePoint]:
        """
        取得帳戶在 up_to_date（含）之前的所有餘額紀錄。

        Returns:
            依日期遞增排序的 BalancePoint 列表

        Raises:
            UpstreamUnavailable: 資料來源無法連線
        """
        ...

    async def list_balance_entries_bulk(
        self, account_ids: list[str], up_to_date: date
    ) -> dict[str, list[BalancePoint]]:
        """批次取得多個帳戶的餘額紀錄，預設逐一呼叫"""
        return {
            account_id: await self.list_balance_entries(account_id, up_to_date)
            for account_id in account_ids
        }


class RateStore(ABC):

    @abstractmethod
    async def list_rates(
        self, base: str, quote: str, up_to_date: date | None = None
    ) -> list[RatePoint]:
        """
        取得幣別對的匯率序列。

        Args:
            base: 基準幣別
            quote: 報價幣別
            up_to_date: 只取此日期（含）之前的資料，None 表示全部

        Returns:
            依日期遞增排序的 RatePoint 列表
        """
        ...


class PreferenceStore(ABC):

    @abstractmethod
    async def get_preferred_currency(self, user_id: str) -> str | None:
        """取得用戶偏好的淨值顯示幣別"""
        ...
