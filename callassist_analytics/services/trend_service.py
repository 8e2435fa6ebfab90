"""Conversation trend analysis: time series, period summary, sector/language trends."""

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any

from callassist_analytics.config import (
    ANOMALIES_CACHE_TTL,
    ANOMALY_DAYS,
    ANOMALY_Z_THRESHOLD,
    DASHBOARD_CACHE_TTL,
    FORECAST_CACHE_TTL,
    FORECAST_DAYS_AHEAD,
    FORECAST_HISTORY_DAYS,
    RPC_DETECT_ANOMALIES,
    RPC_FORECAST_TREND,
    RPC_TREND_SUMMARY,
    TREND_INSIGHTS_TABLE,
    TRENDS_EDGE_FUNCTION,
)
from callassist_analytics.data.rows import (
    PayloadError,
    require_keys,
    rows_to_frame,
    snake_case_keys,
)
from callassist_analytics.models.dashboard import TrendDashboardData, TrendFilters
from callassist_analytics.models.enums import TrendDirection, TrendType
from callassist_analytics.models.schemas import (
    ANOMALY_DTYPES,
    CATEGORY_TREND_DTYPES,
    FORECAST_DTYPES,
    TREND_DTYPES,
)
from callassist_analytics.services.analysis_cache import build_cache_key
from callassist_analytics.services.analyzer_base import DashboardAnalyzer
from callassist_analytics.services.period_comparator import (
    calculate_overall_trend,
    calculate_trend_summary,
)

_DASHBOARD_PAYLOAD_KEYS = ("trends", "forecast", "anomalies", "sectorTrends", "languageTrends")


def to_trend_points(rows: Any) -> list[dict]:
    return rows_to_frame(rows, TREND_DTYPES, source="trend points").to_dicts()


def group_category_trends(rows: Any, label: str) -> list[dict]:
    """Group newest-first category rows into one trend entry per category.

    Each entry holds its periods (newest first) and the overall change from
    the oldest to the newest period's conversation count.
    """
    df = rows_to_frame(rows, CATEGORY_TREND_DTYPES, source=f"{label} trends")

    groups: dict[str, dict] = {}
    for row in df.iter_rows(named=True):
        name = row["category"] or "Unknown"
        group = groups.setdefault(
            name,
            {
                label: name,
                "periods": [],
                "overall_trend": TrendDirection.NO_CHANGE,
                "overall_growth": 0.0,
            },
        )
        group["periods"].append(
            {
                "period": row["dimension"],
                "conversation_count": row["conversation_count"] or 0,
                "customer_count": row["customer_count"] or 0,
                "completion_rate": row["completion_rate"] or 0.0,
                "trend_direction": row["trend_direction"],
                "change_percentage": row["change_percentage"] or 0.0,
            }
        )

    for group in groups.values():
        change = calculate_overall_trend(group["periods"])
        group["overall_trend"] = change.direction
        group["overall_growth"] = change.percentage

    return list(groups.values())


def _flatten_category_trends(items: Iterable[Any] | None, label: str) -> list[dict]:
    """Turn pre-grouped edge-function trends back into category rows."""
    rows: list[dict] = []
    for item in items or []:
        if not isinstance(item, Mapping):
            raise PayloadError(f"{label} trends: expected objects, got {type(item).__name__}")
        for period in item.get("periods") or []:
            rows.append(
                {
                    "category": item.get(label),
                    "dimension": period.get("period"),
                    "conversation_count": period.get("conversation_count"),
                    "customer_count": period.get("customer_count"),
                    "completion_rate": period.get("completion_rate"),
                    "trend_direction": period.get("trend_direction", period.get("trend")),
                    "change_percentage": period.get("change_percentage"),
                }
            )
    return rows


def parse_trend_dashboard(payload: Any) -> TrendDashboardData:
    """Validate the get-cached-trends payload.

    The remote summary is ignored and recomputed from the validated trend
    points, so both dashboard paths share one period-comparison routine.
    """
    require_keys(payload, _DASHBOARD_PAYLOAD_KEYS, source=TRENDS_EDGE_FUNCTION)
    data = snake_case_keys(payload)

    trends = to_trend_points(data["trends"])
    return TrendDashboardData(
        summary=calculate_trend_summary(trends),
        trends=trends,
        sector_trends=group_category_trends(
            _flatten_category_trends(data["sector_trends"], "sector"), "sector"
        ),
        language_trends=group_category_trends(
            _flatten_category_trends(data["language_trends"], "language"), "language"
        ),
        anomalies=rows_to_frame(data["anomalies"], ANOMALY_DTYPES, source="anomalies").to_dicts(),
        forecast=rows_to_frame(data["forecast"], FORECAST_DTYPES, source="forecast").to_dicts(),
    )


class TrendAnalyzer(DashboardAnalyzer):
    component = "TrendAnalyzer"

    def _edge_body(self, filters: TrendFilters) -> dict[str, Any]:
        return {
            "organizationId": filters.organization_id,
            "trendType": str(filters.trend_type),
            "limit": filters.limit,
            "category": filters.category,
        }

    async def fetch_trend_data(self, filters: TrendFilters) -> list[dict]:
        """Trend points for the filter, via the edge function or the RPC fallback."""
        org = filters.organization_id
        key = build_cache_key("trends", org, filters.trend_type, filters.category)

        async def primary() -> list[dict]:
            payload = await self._backend.invoke(TRENDS_EDGE_FUNCTION, self._edge_body(filters))
            require_keys(payload, ("trends",), source=TRENDS_EDGE_FUNCTION)
            return to_trend_points(payload["trends"])

        async def fallback() -> list[dict]:
            rows = await self._backend.rpc(
                RPC_TREND_SUMMARY,
                {
                    "p_organization_id": org,
                    "p_trend_type": str(filters.trend_type),
                    "p_limit": filters.limit,
                    "p_category": filters.category,
                },
            )
            return to_trend_points(rows)

        return await self._cached(
            key,
            lambda: self._primary_or_fallback("trend data", primary, fallback),
            DASHBOARD_CACHE_TTL,
        )

    async def fetch_trend_forecast(self, organization_id: str) -> list[dict]:
        key = build_cache_key("trend_forecast", organization_id, f"{FORECAST_DAYS_AHEAD}d")

        async def produce() -> list[dict]:
            rows = await self._backend.rpc(
                RPC_FORECAST_TREND,
                {
                    "p_organization_id": organization_id,
                    "p_days_ahead": FORECAST_DAYS_AHEAD,
                    "p_history_days": FORECAST_HISTORY_DAYS,
                },
            )
            return rows_to_frame(rows, FORECAST_DTYPES, source=RPC_FORECAST_TREND).to_dicts()

        return await self._cached(key, produce, FORECAST_CACHE_TTL)

    async def fetch_trend_anomalies(self, organization_id: str) -> list[dict]:
        key = build_cache_key("trend_anomalies", organization_id, f"{ANOMALY_DAYS}d")

        async def produce() -> list[dict]:
            rows = await self._backend.rpc(
                RPC_DETECT_ANOMALIES,
                {
                    "p_organization_id": organization_id,
                    "p_days": ANOMALY_DAYS,
                    "p_z_threshold": ANOMALY_Z_THRESHOLD,
                },
            )
            return rows_to_frame(rows, ANOMALY_DTYPES, source=RPC_DETECT_ANOMALIES).to_dicts()

        return await self._cached(key, produce, ANOMALIES_CACHE_TTL)

    async def _fetch_category_trends(self, organization_id: str, trend_type: TrendType) -> list[dict]:
        key = build_cache_key(f"{trend_type}_trends", organization_id, trend_type)

        async def produce() -> list[dict]:
            rows = await self._backend.select(
                TREND_INSIGHTS_TABLE,
                eq={"organization_id": organization_id, "trend_type": str(trend_type)},
                order="dimension",
                ascending=False,
            )
            return group_category_trends(rows, str(trend_type))

        return await self._cached(key, produce, DASHBOARD_CACHE_TTL)

    async def fetch_sector_trends(self, organization_id: str) -> list[dict]:
        return await self._fetch_category_trends(organization_id, TrendType.SECTOR)

    async def fetch_language_trends(self, organization_id: str) -> list[dict]:
        return await self._fetch_category_trends(organization_id, TrendType.LANGUAGE)

    async def fetch_trend_dashboard(
        self,
        filters: TrendFilters,
        force_refresh: bool = False,
    ) -> TrendDashboardData:
        """Full trend dashboard for one tenant, trend type and category."""
        org = filters.organization_id
        key = build_cache_key("trend_dashboard", org, filters.trend_type, filters.category)

        async def primary() -> TrendDashboardData:
            payload = await self._timed(
                lambda: self._backend.invoke(TRENDS_EDGE_FUNCTION, self._edge_body(filters)),
                "fetch_trend_dashboard",
                org,
                {"trend_type": str(filters.trend_type), "category": filters.category},
            )
            return parse_trend_dashboard(payload)

        async def fallback() -> TrendDashboardData:
            trends, forecast, anomalies, sector_trends, language_trends = await asyncio.gather(
                self.fetch_trend_data(filters),
                self.fetch_trend_forecast(org),
                self.fetch_trend_anomalies(org),
                self.fetch_sector_trends(org),
                self.fetch_language_trends(org),
            )
            return TrendDashboardData(
                summary=calculate_trend_summary(trends),
                trends=trends,
                sector_trends=sector_trends,
                language_trends=language_trends,
                anomalies=anomalies,
                forecast=forecast,
            )

        return await self._cached(
            key,
            lambda: self._primary_or_fallback("trend dashboard", primary, fallback),
            DASHBOARD_CACHE_TTL,
            force_refresh=force_refresh,
        )
