import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError

from auctionhouse.api.v1 import bid_requests, bids, orders, proxy_bids
from auctionhouse.core.config import settings
from auctionhouse.core.database import async_session_maker
from auctionhouse.core.exceptions import AuctionHouseError, ErrorCategory
from auctionhouse.core.logging_setup import configure_logging
from auctionhouse.core.redis import close_redis, get_redis
from auctionhouse.middleware.metrics import PrometheusMiddleware, metrics_endpoint
from auctionhouse.services.auction_cache import AuctionCache
from auctionhouse.services.closing_service import run_closer
from auctionhouse.services.notification_service import NotificationService
from auctionhouse.services.redis_service import RedisService

logger = logging.getLogger(__name__)

STATUS_BY_CATEGORY = {
    ErrorCategory.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorCategory.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCategory.AUTHORIZATION: status.HTTP_403_FORBIDDEN,
    ErrorCategory.NOT_FOUND: status.HTTP_404_NOT_FOUND,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    configure_logging()
    logger.info("Starting application...")

    redis_service = RedisService(await get_redis())
    cache = AuctionCache(redis_service)
    app.state.auction_cache = cache

    logger.info("Starting auction closer...")
    closer_task = asyncio.create_task(
        run_closer(async_session_maker, NotificationService(redis_service), cache)
    )

    yield

    logger.info("Stopping auction closer")
    closer_task.cancel()
    try:
        await closer_task
    except asyncio.CancelledError:
        pass
    await close_redis()


app = FastAPI(
    title="Auction House",
    version="1.0.0",
    description="Timed auctions with proxy bidding and order fulfillment",
    lifespan=lifespan,
)


@app.exception_handler(AuctionHouseError)
async def auction_house_error_handler(request: Request, exc: AuctionHouseError):
    return JSONResponse(
        status_code=STATUS_BY_CATEGORY[exc.category],
        content={"detail": exc.to_dict()},
    )


@app.exception_handler(DBAPIError)
async def database_error_handler(request: Request, exc: DBAPIError):
    # Lock timeouts and serialization failures; the transaction was rolled back
    logger.warning(f"Database error on {request.method} {request.url.path}: {exc.orig}")
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "detail": {
                "code": "CONCURRENCY_CONFLICT",
                "message": "The request could not be completed, please retry",
                "context": {},
            }
        },
    )


# Prometheus Metrics Middleware (must be first to capture all requests)
app.add_middleware(PrometheusMiddleware)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Include API routers
app.include_router(bids.router, prefix="/api/v1/auctions", tags=["bids"])
app.include_router(proxy_bids.router, prefix="/api/v1/auctions", tags=["proxy-bids"])
app.include_router(bid_requests.router, prefix="/api/v1", tags=["bid-gate"])
app.include_router(orders.router, prefix="/api/v1/orders", tags=["orders"])


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


# Prometheus metrics endpoint
app.add_route("/metrics", metrics_endpoint)
