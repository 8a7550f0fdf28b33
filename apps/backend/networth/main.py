"""
Networth FastAPI 應用程式入口

包含 CORS 設定、全域錯誤處理中介軟體、
啟動事件（初始化資料庫）與關閉事件（釋放 Redis 與連線池）。
"""

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from networth.api.router import api_router
from networth.config import get_settings
from networth.database import engine, init_db
from networth.redis_client import close_redis, get_redis
from networth.schemas.common import ErrorResponse

# 設定日誌
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """應用程式生命週期管理"""
    # === 啟動時 ===
    logger.info("Networth History API 啟動中...")
    logger.info("環境: %s", settings.app_env)
    logger.info(
        "淨值引擎: 預設幣別 %s, 逾時 %.1fs, 並行上限 %d, 匯率快取 %s",
        settings.default_currency,
        settings.history_timeout_seconds,
        settings.history_max_concurrency,
        f"{settings.rate_cache_ttl}s" if settings.rate_cache_enabled else "停用",
    )
    if settings.rate_cache_enabled and settings.redis_url is None:
        logger.warning("未設定 REDIS_URL，匯率快取僅存在於本行程記憶體")

    # 初始化資料庫（開發模式自動建表）
    await init_db()
    logger.info("資料庫初始化完成")

    yield

    # === 關閉時 ===
    logger.info("Networth History API 關閉中...")
    await close_redis()
    await engine.dispose()
    logger.info("Networth History API 已關閉")


# 建立 FastAPI 應用
app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="個人淨值歷史走勢 API",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# === CORS 中介軟體 ===
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# === 全域錯誤處理 ===

@app.middleware("http")
async def error_handling_middleware(request: Request, call_next):
    """
    全域錯誤處理與請求日誌中介軟體

    - 記錄每個請求的處理時間
    - 捕獲未預期的例外並回傳統一格式
    """
    start_time = time.time()

    try:
        response = await call_next(request)

        process_time = time.time() - start_time
        logger.info(
            "%s %s - %d (%.3fs)",
            request.method,
            request.url.path,
            response.status_code,
            process_time,
        )

        response.headers["X-Process-Time"] = f"{process_time:.3f}"
        return response

    except Exception as e:
        process_time = time.time() - start_time
        logger.exception(
            "%s %s - 500 (%.3fs) Error: %s",
            request.method,
            request.url.path,
            process_time,
            str(e),
        )
        return JSONResponse(
            status_code=500,
            content=ErrorResponse(
                error="Internal Server Error",
                detail=str(e) if settings.is_development else None,
            ).model_dump(),
        )


# === 註冊路由 ===
app.include_router(api_router)


# === 健康檢查 ===

@app.get("/health", tags=["系統"])
async def health_check():
    """API 健康檢查"""
    redis = await get_redis()
    return {
        "status": "healthy",
        "version": settings.app_version,
        "environment": settings.app_env,
        "database": engine.dialect.name,
        "rate_cache": {
            "enabled": settings.rate_cache_enabled,
            "backend": "redis" if redis is not None else "memory",
            "ttl": settings.rate_cache_ttl,
        },
    }
