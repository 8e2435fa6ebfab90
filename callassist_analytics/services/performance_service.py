"""AI response-time and conversation performance dashboard."""

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any

import polars as pl
from loguru import logger

from callassist_analytics.config import (
    DASHBOARD_CACHE_TTL,
    LONGEST_CONVERSATIONS_LIMIT,
    PERFORMANCE_INSIGHTS_TABLE,
    PERFORMANCE_METRICS_TABLE,
    RPC_PERFORMANCE_STATS,
)
from callassist_analytics.data.rows import PayloadError, rows_to_frame
from callassist_analytics.models.dashboard import PerformanceDashboardData, PerformanceFilters
from callassist_analytics.models.enums import PerformanceMetricType, TimeRange
from callassist_analytics.models.schemas import (
    LONGEST_CONVERSATION_DTYPES,
    PERFORMANCE_INSIGHT_DTYPES,
    PERFORMANCE_STAT_DTYPES,
)
from callassist_analytics.services.analysis_cache import build_cache_key
from callassist_analytics.services.analyzer_base import DashboardAnalyzer

_LONGEST_COLUMNS = "id,conversation_id,total_duration_ms,success,timestamp,customers(id,name)"

_CATEGORY_SOURCE = {"sector": "sector_code", "language": "language"}

# 12m is not a performance window; it falls back to 30 days like custom
_PERFORMANCE_DAYS: dict[TimeRange, int] = {
    TimeRange.LAST_7_DAYS: 7,
    TimeRange.LAST_30_DAYS: 30,
    TimeRange.LAST_90_DAYS: 90,
}


def performance_days(time_range: TimeRange) -> int:
    return _PERFORMANCE_DAYS.get(time_range, 30)


def to_stats(rows: Any) -> list[dict]:
    df = rows_to_frame(rows, PERFORMANCE_STAT_DTYPES, source=RPC_PERFORMANCE_STATS)
    return df.with_columns(
        pl.col("current_value").fill_null(0.0),
        pl.col("previous_value").fill_null(0.0),
    ).to_dicts()


def to_time_series(rows: Any) -> list[dict]:
    """Daily performance points, in the order the backend returned them."""
    df = rows_to_frame(rows, PERFORMANCE_INSIGHT_DTYPES, source="performance time series")
    return df.select(
        pl.col("dimension").alias("date"),
        pl.col("avg_ai_response_time").fill_null(0.0).alias("avg_response_time"),
        pl.col("p95_ai_response_time").fill_null(0.0).alias("p95_response_time"),
        pl.col("success_rate").fill_null(0.0),
        pl.col("avg_duration").fill_null(0.0),
        pl.col("avg_user_delay").fill_null(0.0),
        pl.col("avg_stt_latency").fill_null(0.0),
        pl.col("avg_tts_latency").fill_null(0.0),
    ).to_dicts()


def to_category_performance(rows: Any, label: str) -> list[dict]:
    """Per-sector or per-language performance; unnamed categories become "Unknown"."""
    if label not in _CATEGORY_SOURCE:
        raise ValueError(f"Unknown performance category: {label!r}")
    df = rows_to_frame(rows, PERFORMANCE_INSIGHT_DTYPES, source=f"{label} performance")
    return df.select(
        pl.col(_CATEGORY_SOURCE[label]).fill_null("Unknown").alias(label),
        pl.col("avg_ai_response_time").fill_null(0.0).alias("avg_response_time"),
        pl.col("success_rate").fill_null(0.0),
        pl.col("total_interactions").fill_null(0),
    ).to_dicts()


def _flatten_customer(row: Any) -> dict:
    if not isinstance(row, Mapping):
        raise PayloadError(f"longest conversations: expected objects, got {type(row).__name__}")
    customer = row.get("customers") or {}
    if not isinstance(customer, Mapping):
        customer = {}
    return {**row, "customer_id": customer.get("id"), "customer_name": customer.get("name")}


def to_longest_conversations(rows: Iterable[Any] | None) -> list[dict]:
    flat = [_flatten_customer(row) for row in rows or []]
    df = rows_to_frame(flat, LONGEST_CONVERSATION_DTYPES, source="longest conversations")
    return df.select(
        pl.col("id"),
        pl.col("conversation_id"),
        pl.col("customer_id").fill_null("Unknown"),
        pl.col("customer_name").fill_null("Unknown Customer"),
        pl.col("total_duration_ms").fill_null(0).alias("duration_ms"),
        pl.col("success").fill_null(False),
        pl.col("timestamp"),
    ).to_dicts()


class PerformanceAnalyzer(DashboardAnalyzer):
    component = "PerformanceMetrics"

    async def fetch_performance_dashboard(
        self,
        filters: PerformanceFilters,
        force_refresh: bool = False,
    ) -> PerformanceDashboardData:
        org = filters.organization_id
        days = performance_days(filters.time_range)
        key = build_cache_key("performance_dashboard", org, str(filters.time_range))

        async def compute() -> PerformanceDashboardData:
            try:
                stats, series, sectors, languages, longest = await asyncio.gather(
                    self._fetch_stats(org, days),
                    self._fetch_time_series(org, days),
                    self._fetch_insights(org, PerformanceMetricType.SECTOR, "avg_ai_response_time"),
                    self._fetch_insights(org, PerformanceMetricType.LANGUAGE, "total_interactions"),
                    self._fetch_longest_conversations(org),
                )
            except Exception:
                logger.opt(exception=True).error("[{}] performance dashboard failed", self.component)
                raise
            return PerformanceDashboardData(
                stats=to_stats(stats),
                time_series=to_time_series(series),
                sectors=to_category_performance(sectors, "sector"),
                languages=to_category_performance(languages, "language"),
                longest_conversations=to_longest_conversations(longest),
            )

        return await self._cached(key, compute, DASHBOARD_CACHE_TTL, force_refresh=force_refresh)

    async def _fetch_stats(self, org: str, days: int) -> Any:
        return await self._timed(
            lambda: self._backend.rpc(RPC_PERFORMANCE_STATS, {"p_organization_id": org, "p_days": days}),
            "get_performance_stats",
            org,
        )

    async def _fetch_time_series(self, org: str, days: int) -> list[dict]:
        return await self._timed(
            lambda: self._backend.select(
                PERFORMANCE_INSIGHTS_TABLE,
                eq={"organization_id": org, "metric_type": str(PerformanceMetricType.DAILY)},
                order="dimension",
                ascending=True,
                limit=days,
            ),
            "get_performance_time_series",
            org,
        )

    async def _fetch_insights(self, org: str, metric_type: PerformanceMetricType, order: str) -> list[dict]:
        return await self._timed(
            lambda: self._backend.select(
                PERFORMANCE_INSIGHTS_TABLE,
                eq={"organization_id": org, "metric_type": str(metric_type)},
                order=order,
                ascending=False,
            ),
            f"get_{metric_type}_performance",
            org,
        )

    async def _fetch_longest_conversations(self, org: str) -> list[dict]:
        return await self._timed(
            lambda: self._backend.select(
                PERFORMANCE_METRICS_TABLE,
                columns=_LONGEST_COLUMNS,
                eq={"organization_id": org},
                order="total_duration_ms",
                ascending=False,
                limit=LONGEST_CONVERSATIONS_LIMIT,
            ),
            "get_longest_conversations",
            org,
        )
