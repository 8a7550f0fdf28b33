"""
匯率相關 Schema
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel


class RateQuoteResponse(BaseModel):
    """單一匯率解析結果"""
    base_currency: str
    quote_currency: str
    on: date
    rate: Decimal
    approximated: bool
    source: str


class RateCacheInvalidation(BaseModel):
    base_currency: str
    quote_currency: str
    deleted: int
