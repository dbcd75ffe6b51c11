"""FastAPI application entry point.

Run with: uvicorn src.main:app --reload --port 8000
"""

# ruff: noqa: E402  -- uvloop.install() must run before other imports

import uvloop

uvloop.install()

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from config.settings import settings
from src.ds_admin.api.router import router as admin_router
from src.ds_auction.api.router import router as auction_router
from src.ds_common.database import check_schema, engine
from src.ds_common.errors import AppError, RateLimitError
from src.ds_common.redis_client import close_redis, ping_redis
from src.ds_common.response import error_response
from src.ds_dispute.api.router import router as dispute_router
from src.ds_gateway.middleware.request_log import RequestLogMiddleware
from src.ds_listing.api.router import router as listing_router
from src.ds_review.api.router import router as review_router
from src.ds_transaction.api.cron_router import router as cron_router
from src.ds_transaction.api.payments_router import router as payments_router
from src.ds_transaction.api.router import router as transaction_router


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: verify the migrated DB and Redis. Shutdown: dispose."""
    await check_schema()
    await ping_redis()
    yield
    # Shutdown
    await engine.dispose()
    await close_redis()


app = FastAPI(
    title=settings.APP_NAME,
    version="0.1.0",
    lifespan=lifespan,
)


app.add_middleware(RequestLogMiddleware)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    resp = error_response(exc.code, exc.message, exc.data)
    resp.request_id = getattr(request.state, "request_id", resp.request_id)
    headers = None
    if isinstance(exc, RateLimitError):
        headers = {"Retry-After": str(exc.data["retry_after"])}
    return JSONResponse(
        status_code=exc.http_status,
        content=resp.model_dump(),
        headers=headers,
    )


app.include_router(listing_router, prefix="/api/v1")
app.include_router(auction_router, prefix="/api/v1")
app.include_router(transaction_router, prefix="/api/v1")
app.include_router(payments_router, prefix="/api/v1")
app.include_router(dispute_router, prefix="/api/v1")
app.include_router(review_router, prefix="/api/v1")
app.include_router(admin_router, prefix="/api/v1")
app.include_router(cron_router, prefix="/api/v1")


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok", "version": "0.1.0"}
