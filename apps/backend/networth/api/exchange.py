"""
匯率 API 路由

以與淨值引擎相同的規則查詢單一匯率，並提供快取失效。
"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from networth.api.auth import get_current_user
from networth.config import get_settings
from networth.database import get_db
from networth.history.currency import normalize_code
from networth.history.errors import MissingExchangeRate, UpstreamUnavailable
from networth.history.rate_cache import RateCache, invalidate_pair
from networth.history.rates import ExchangeRateResolver
from networth.models.user import User
from networth.schemas.common import ApiResponse
from networth.schemas.exchange import RateCacheInvalidation, RateQuoteResponse
from networth.stores.sql import SqlAlchemyStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/exchange-rates", tags=["匯率"])
settings = get_settings()


def _parse_pair(base: str, quote: str) -> tuple[str, str]:
    base_code = normalize_code(base)
    quote_code = normalize_code(quote)
    if base_code is None or quote_code is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"無效的幣別代碼: {base}/{quote}",
        )
    return base_code, quote_code


@router.get("/{base}/{quote}", response_model=ApiResponse[RateQuoteResponse])
async def get_exchange_rate(
    base: str,
    quote: str,
    on: date | None = None,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    取得指定日期有效的匯率

    未指定日期時使用今天；找不到當日以前的匯率時會回傳日後近似值並標記。
    """
    base_code, quote_code = _parse_pair(base, quote)
    on = on or date.today()

    shared_cache = RateCache(settings.rate_cache_ttl) if settings.rate_cache_enabled else None
    resolver = ExchangeRateResolver(SqlAlchemyStore(db), shared_cache)
    try:
        result = await resolver.quote(base_code, quote_code, on)
    except MissingExchangeRate as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except UpstreamUnavailable as e:
        logger.error("取得匯率失敗: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="資料來源暫時無法使用，請稍後再試",
            headers={"Retry-After": "5"},
        )

    return ApiResponse(data=RateQuoteResponse(
        base_currency=base_code,
        quote_currency=quote_code,
        on=on,
        rate=result.rate,
        approximated=result.approximated,
        source=result.source,
    ))


@router.delete("/{base}/{quote}/cache", response_model=ApiResponse[RateCacheInvalidation])
async def invalidate_exchange_rate_cache(
    base: str,
    quote: str,
    user: User = Depends(get_current_user),
):
    """清除幣別對（雙向）的跨請求匯率快取，匯率資料異動後呼叫"""
    if user.email not in settings.admin_email_list:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="無清除快取權限")

    base_code, quote_code = _parse_pair(base, quote)
    deleted = await invalidate_pair(base_code, quote_code)
    return ApiResponse(
        data=RateCacheInvalidation(
            base_currency=base_code, quote_currency=quote_code, deleted=deleted,
        ),
        message="匯率快取已清除",
    )
