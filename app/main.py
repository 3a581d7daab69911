from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from starlette.responses import Response
from starlette.middleware.base import BaseHTTPMiddleware
from sqlalchemy import text
from app.api import pricing, quotes
from app.core.config import settings
from app.core.exceptions import PricingError
from app.core.redis import init_redis, close_redis, get_redis
from app.core.metrics import request_count, request_duration, db_connected, redis_connected, get_metrics_text
from app.db.session import engine
import time
import logging
import uvicorn

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def endpoint_label(request: Request) -> str:
    # route templates keep quote ids out of label values
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


class MetricsMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        try:
            response = await call_next(request)
            duration = time.time() - start_time
            endpoint = endpoint_label(request)

            request_count.labels(
                method=request.method,
                endpoint=endpoint,
                status=response.status_code
            ).inc()

            request_duration.labels(
                method=request.method,
                endpoint=endpoint
            ).observe(duration)

            return response
        except Exception:
            duration = time.time() - start_time
            endpoint = endpoint_label(request)
            request_count.labels(
                method=request.method,
                endpoint=endpoint,
                status=500
            ).inc()
            request_duration.labels(
                method=request.method,
                endpoint=endpoint
            ).observe(duration)
            raise


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application starting...")

    logger.info("Initializing Redis connection...")
    try:
        await init_redis()
        redis_connected.set(1)
        logger.info("Redis connected")
    except Exception as e:
        logger.error(f"Redis connection failed, pricing will run uncached: {e}")
        redis_connected.set(0)

    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        db_connected.set(1)
        logger.info("Database connected")
    except Exception as e:
        logger.error(f"Database connection failed: {e}")
        db_connected.set(0)

    yield

    logger.info("Application shutting down...")
    await close_redis()
    redis_connected.set(0)
    await engine.dispose()
    logger.info("Shutdown complete")


app = FastAPI(
    title=settings.API_TITLE,
    description=settings.API_DESCRIPTION,
    version=settings.API_VERSION,
    lifespan=lifespan
)

app.add_middleware(MetricsMiddleware)

app.include_router(pricing.router)
app.include_router(quotes.router)


@app.exception_handler(PricingError)
async def pricing_error_handler(request: Request, exc: PricingError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.detail}")
    else:
        logger.info(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.get("/metrics", tags=["monitoring"])
async def metrics():
    return Response(
        content=get_metrics_text(),
        media_type="text/plain; version=0.0.4; charset=utf-8"
    )


@app.get("/health", tags=["monitoring"])
async def health_check():
    redis = get_redis()
    redis_healthy = redis is not None

    return {
        "status": "healthy",
        "service": settings.API_TITLE,
        "version": settings.API_VERSION,
        "dependencies": {
            "redis": "connected" if redis_healthy else "disconnected",
            "database": "connected"
        }
    }


@app.get("/readiness", tags=["monitoring"])
async def readiness_check():
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning(f"Readiness check failed: {e}")
        return JSONResponse(status_code=503, content={"ready": False, "reason": "Database not available"})

    return {
        "ready": True,
        "service": settings.API_TITLE
    }


@app.get("/", tags=["root"])
async def root():
    return {
        "message": settings.API_TITLE,
        "version": settings.API_VERSION,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics"
    }


def run():
    uvicorn.run("app.main:app", host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
