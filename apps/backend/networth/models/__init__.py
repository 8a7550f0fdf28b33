"""Networth ORM Models 套件"""

from networth.models.user import User
from networth.models.account import Account, AccountType, AccountCategory
from networth.models.balance_entry import BalanceEntry
from networth.models.exchange_rate import ExchangeRate

__all__ = [
    "User",
    "Account",
    "AccountType",
    "AccountCategory",
    "BalanceEntry",
    "ExchangeRate",
]
