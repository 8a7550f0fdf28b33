"""
API 路由集中註冊
"""

from fastapi import APIRouter

from networth.api.exchange import router as exchange_router
from networth.api.history import router as history_router

api_router = APIRouter(prefix="/api")
api_router.include_router(history_router)
api_router.include_router(exchange_router)
