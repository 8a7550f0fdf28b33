"""淨值引擎資料來源介面"""

from networth.stores.base import (
    AccountInfo, BalancePoint, RatePoint,
    AccountStore, BalanceStore, RateStore, PreferenceStore,
)

__all__ = [
    "AccountInfo",
    "BalancePoint",
    "RatePoint",
    "AccountStore",
    "BalanceStore",
    "RateStore",
    "PreferenceStore",
]
