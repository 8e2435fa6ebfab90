"""CallAssist analytics service: FastAPI application."""

import os
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from callassist_analytics.data.backend_client import BackendClient
from callassist_analytics.logging_config import setup_logging
from callassist_analytics.middleware import SecurityHeadersMiddleware
from callassist_analytics.rate_limit import limiter
from callassist_analytics.routes.api import router as api_router
from callassist_analytics.services.analysis_cache import AnalysisCache
from callassist_analytics.services.api_timing import ApiCallTimer
from callassist_analytics.services.performance_service import PerformanceAnalyzer
from callassist_analytics.services.trend_service import TrendAnalyzer
from callassist_analytics.services.usage_service import UsageAnalyzer
from callassist_analytics.services.usage_tracker import UsageTracker

setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    backend = BackendClient()
    cache = AnalysisCache()
    timer = ApiCallTimer(backend)

    app.state.backend = backend
    app.state.cache = cache
    app.state.trends = TrendAnalyzer(backend, cache, timer)
    app.state.usage = UsageAnalyzer(backend, cache, timer)
    app.state.performance = PerformanceAnalyzer(backend, cache, timer)
    app.state.tracker = UsageTracker(backend)

    cache.start_sweeper()
    logger.info("Analytics service ready (backend {})", backend.base_url)

    yield

    # Graceful shutdown
    await cache.stop_sweeper()
    await backend.aclose()


app = FastAPI(
    title="CallAssist Analytics",
    description="Trend, usage and performance dashboards for the CallAssist admin console",
    version="0.1.0",
    lifespan=lifespan,
    docs_url=None,
    redoc_url=None,
)

# Security: rate limiting
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)  # type: ignore[arg-type]

# Security: response headers
app.add_middleware(SecurityHeadersMiddleware)

app.include_router(api_router, prefix="/api")


def main() -> None:
    dev_mode = os.environ.get("CALLASSIST_DEV", "1") == "1"
    uvicorn.run(
        "callassist_analytics.main:app",
        host=os.environ.get("CALLASSIST_HOST", "127.0.0.1"),
        port=int(os.environ.get("CALLASSIST_PORT", "8000")),
        reload=dev_mode,
    )


if __name__ == "__main__":
    main()
