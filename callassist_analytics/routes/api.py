"""JSON dashboard endpoints."""

from collections.abc import Awaitable
from typing import Any, TypeVar

from fastapi import APIRouter, Body, HTTPException, Query, Request
from loguru import logger

from callassist_analytics.models.dashboard import PerformanceFilters, TrendFilters, UsageFilters
from callassist_analytics.models.enums import DeviceType, TimeRange, TrendType, UsageEventType
from callassist_analytics.rate_limit import limiter
from callassist_analytics.utils.validation import is_valid_organization_id

router = APIRouter(tags=["API - Dashboards"])

T = TypeVar("T")


def validate_organization(organization_id: str) -> str:
    if not is_valid_organization_id(organization_id):
        raise HTTPException(400, detail="Invalid organization id")
    return organization_id


async def _load(domain: str, call: Awaitable[T]) -> T:
    try:
        return await call
    except Exception as exc:
        logger.opt(exception=True).error("Loading {} data failed", domain)
        raise HTTPException(502, detail=f"Failed to load {domain} data") from exc


# ── trends ───────────────────────────────────────────────────────────────


@router.get("/trends")
@limiter.limit("30/minute")
async def trend_dashboard(
    request: Request,
    organization_id: str = Query(..., max_length=64),
    trend_type: TrendType = TrendType.DAILY,
    category: str | None = Query(default=None, max_length=100),
    limit: int = Query(default=90, ge=1, le=365),
    refresh: bool = False,
) -> dict[str, Any]:
    validate_organization(organization_id)
    filters = TrendFilters(organization_id, trend_type, category or None, limit)
    data = await _load(
        "trend",
        request.app.state.trends.fetch_trend_dashboard(filters, force_refresh=refresh),
    )
    return data.to_dict()


@router.get("/trends/forecast")
@limiter.limit("30/minute")
async def trend_forecast(request: Request, organization_id: str = Query(..., max_length=64)):
    validate_organization(organization_id)
    return await _load("forecast", request.app.state.trends.fetch_trend_forecast(organization_id))


@router.get("/trends/anomalies")
@limiter.limit("30/minute")
async def trend_anomalies(request: Request, organization_id: str = Query(..., max_length=64)):
    validate_organization(organization_id)
    return await _load("anomaly", request.app.state.trends.fetch_trend_anomalies(organization_id))


@router.get("/trends/sectors")
@limiter.limit("30/minute")
async def sector_trends(request: Request, organization_id: str = Query(..., max_length=64)):
    validate_organization(organization_id)
    return await _load("sector trend", request.app.state.trends.fetch_sector_trends(organization_id))


@router.get("/trends/languages")
@limiter.limit("30/minute")
async def language_trends(request: Request, organization_id: str = Query(..., max_length=64)):
    validate_organization(organization_id)
    return await _load(
        "language trend", request.app.state.trends.fetch_language_trends(organization_id)
    )


# ── usage / performance ──────────────────────────────────────────────────


@router.get("/usage")
@limiter.limit("30/minute")
async def usage_statistics(
    request: Request,
    organization_id: str = Query(..., max_length=64),
    time_range: TimeRange = TimeRange.LAST_30_DAYS,
    refresh: bool = False,
) -> dict[str, Any]:
    validate_organization(organization_id)
    data = await _load(
        "usage",
        request.app.state.usage.fetch_usage_statistics(
            UsageFilters(organization_id, time_range), force_refresh=refresh
        ),
    )
    return data.to_dict()


@router.get("/performance")
@limiter.limit("30/minute")
async def performance_dashboard(
    request: Request,
    organization_id: str = Query(..., max_length=64),
    time_range: TimeRange = TimeRange.LAST_30_DAYS,
    refresh: bool = False,
) -> dict[str, Any]:
    validate_organization(organization_id)
    data = await _load(
        "performance",
        request.app.state.performance.fetch_performance_dashboard(
            PerformanceFilters(organization_id, time_range), force_refresh=refresh
        ),
    )
    return data.to_dict()


# ── events ───────────────────────────────────────────────────────────────


@router.post("/events")
@limiter.limit("120/minute")
async def track_event(
    request: Request,
    event_type: UsageEventType = Body(...),
    organization_id: str = Body(..., max_length=64),
    event_data: dict[str, Any] | None = Body(default=None),
    device_type: DeviceType | None = Body(default=None),
    language: str | None = Body(default=None, max_length=20),
    sector: str | None = Body(default=None, max_length=100),
    session_id: str | None = Body(default=None, max_length=100),
) -> dict[str, bool]:
    """Record a usage event. Always 200; ``tracked`` says whether it was stored."""
    tracked = await request.app.state.tracker.track_event(
        event_type,
        organization_id,
        event_data=event_data,
        device_type=device_type,
        user_agent=request.headers.get("user-agent"),
        language=language,
        sector=sector,
        session_id=session_id,
    )
    return {"tracked": tracked}


# ── cache / health ───────────────────────────────────────────────────────


@router.delete("/cache")
@limiter.limit("10/minute")
async def invalidate_cache(request: Request, prefix: str = Query(default="", max_length=200)):
    removed = request.app.state.cache.invalidate(prefix)
    logger.info("Invalidated {} cache entries (prefix={!r})", removed, prefix)
    return {"removed": removed}


@router.get("/health", tags=["Health"])
@limiter.limit("120/minute")
async def health(request: Request):
    """Health check endpoint."""
    return {"status": "ok", "cache": request.app.state.cache.stats()}
