"""
淨值歷史 API 路由

唯一負責把引擎錯誤轉成 HTTP 狀態碼的地方。
"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from networth.api.auth import get_current_user
from networth.database import get_db
from networth.history.errors import (
    HistoryTimeout, InvalidRequest, MissingExchangeRate, UpstreamUnavailable,
)
from networth.history.scheduler import HistoryPeriod, SamplingStrategy
from networth.history.service import HistoryService
from networth.models.user import User
from networth.schemas.common import ApiResponse
from networth.schemas.history import NetWorthHistoryRequest, NetWorthHistoryResponse
from networth.stores.sql import SqlAlchemyStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/net-worth", tags=["淨值歷史"])

RETRY_AFTER_SECONDS = "5"


def _get_history_service(db: AsyncSession) -> HistoryService:
    """建立 HistoryService 實例"""
    store = SqlAlchemyStore(db)
    return HistoryService(store, store, store, store)


async def _run_history(
    user: User, request: NetWorthHistoryRequest, db: AsyncSession
) -> ApiResponse[NetWorthHistoryResponse]:
    service = _get_history_service(db)
    try:
        history = await service.get_history(user.id, request)
    except InvalidRequest as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except MissingExchangeRate as e:
        logger.warning("淨值歷史缺少匯率: %s", e)
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={
                "error": "missing_exchange_rate",
                "message": str(e),
                "from_currency": e.from_currency,
                "to_currency": e.to_currency,
                "date": e.on.isoformat(),
            },
        )
    except UpstreamUnavailable as e:
        logger.error("淨值歷史資料來源無法使用: %s", e)
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="資料來源暫時無法使用，請稍後再試",
            headers={"Retry-After": RETRY_AFTER_SECONDS},
        )
    except HistoryTimeout as e:
        logger.error("淨值歷史計算逾時: %s", e)
        raise HTTPException(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT,
            detail=str(e),
        )
    return ApiResponse(data=history)


@router.post("/history", response_model=ApiResponse[NetWorthHistoryResponse])
async def query_net_worth_history(
    request: NetWorthHistoryRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    取得淨值走勢

    依期間與取樣策略產生取樣日，逐日以最後登錄餘額與當日匯率換算淨值。
    """
    return await _run_history(user, request, db)


@router.get("/history", response_model=ApiResponse[NetWorthHistoryResponse])
async def get_net_worth_history(
    period: HistoryPeriod,
    start_date: date | None = None,
    end_date: date | None = None,
    target_currency: str | None = None,
    sampling_strategy: SamplingStrategy = SamplingStrategy.ADAPTIVE,
    max_data_points: int | None = Query(default=None, gt=0),
    include_account_breakdown: bool = False,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """取得淨值走勢（以 Query 參數傳入，參數同 POST）"""
    request = NetWorthHistoryRequest(
        period=period,
        start_date=start_date,
        end_date=end_date,
        target_currency=target_currency,
        sampling_strategy=sampling_strategy,
        max_data_points=max_data_points,
        include_account_breakdown=include_account_breakdown,
    )
    return await _run_history(user, request, db)
