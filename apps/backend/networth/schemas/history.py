"""
淨值歷史相關 Schema

定義淨值走勢查詢的請求與回應模型。
金額一律為已依幣別最小單位捨入的 Decimal。
"""

from datetime import date as date_type, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from networth.history.scheduler import HistoryPeriod, SamplingStrategy
from networth.models.account import AccountType


class NetWorthHistoryRequest(BaseModel):
    """淨值走勢查詢"""
    period: HistoryPeriod
    start_date: date_type | None = None  # 僅 CUSTOM 使用
    end_date: date_type | None = None    # 僅 CUSTOM 使用
    target_currency: str | None = None   # 未提供時使用用戶偏好幣別
    sampling_strategy: SamplingStrategy = SamplingStrategy.ADAPTIVE
    max_data_points: int | None = Field(default=None, gt=0)
    include_account_breakdown: bool = False


class AccountBreakdownItem(BaseModel):
    """單一帳戶於某日的貢獻"""
    account_id: str
    name: str
    type: AccountType
    currency: str
    balance: Decimal      # 帳戶原幣
    converted: Decimal    # 目標幣別
    included: bool        # 是否計入淨值
    rate_approximated: bool = False


class NetWorthPoint(BaseModel):
    """單一取樣日淨值"""
    date: date_type
    net_worth: Decimal
    total_assets: Decimal
    total_liabilities: Decimal
    rate_approximated: bool = False
    accounts_counted: int = 0
    breakdown: list[AccountBreakdownItem] | None = None


class HistoryMetadata(BaseModel):
    include_account_breakdown: bool
    unique_currencies: int
    total_accounts: int
    included_accounts: int
    rate_approximated: bool
    approximated_points: int


class HistoryPerformance(BaseModel):
    """各階段耗時（秒）"""
    db_query_time: float
    rate_query_time: float
    processing_time: float
    total_processing_time: float
    rate_cache_hits: int
    request_id: str


class NetWorthHistoryResponse(BaseModel):
    """淨值走勢回應"""
    period: HistoryPeriod
    start_date: date_type
    end_date: date_type
    currency: str
    sampling_strategy: SamplingStrategy   # 實際使用的粒度
    requested_strategy: SamplingStrategy
    max_data_points: int
    actual_data_points: int
    calculated_at: datetime
    data: list[NetWorthPoint]
    metadata: HistoryMetadata
    performance: HistoryPerformance
    note: str = ""
