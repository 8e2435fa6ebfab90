"""Platform usage statistics for one tenant and time range."""

import asyncio
from collections.abc import Iterable, Mapping
from typing import Any

from callassist_analytics.config import (
    DASHBOARD_CACHE_TTL,
    RPC_USAGE_STATS,
    RPC_USAGE_SUMMARY,
    USAGE_EDGE_FUNCTION,
)
from callassist_analytics.data.rows import (
    PayloadError,
    require_keys,
    rows_to_frame,
    snake_case_keys,
)
from callassist_analytics.models.dashboard import SessionMetrics, UsageFilters, UsageStatistics
from callassist_analytics.models.enums import UsageMetricType
from callassist_analytics.models.schemas import USAGE_STATS_DTYPES, USAGE_SUMMARY_DTYPES
from callassist_analytics.services.analysis_cache import build_cache_key
from callassist_analytics.services.analyzer_base import DashboardAnalyzer
from callassist_analytics.services.metric_extractors import (
    MetricRows,
    extract_dimension_usage,
    extract_feature_usage,
    extract_hourly_usage,
    extract_metric_data,
    extract_session_metrics,
)

_USAGE_PAYLOAD_KEYS = (
    "summary",
    "dailyActiveUsers",
    "monthlyActiveUsers",
    "newUsersByDay",
    "featureUsage",
    "hourlyUsage",
    "languageUsage",
    "sectorUsage",
    "deviceUsage",
    "sessionMetrics",
)

# payload field -> usage-stats column
_SERIES_FIELDS = {"date": "date_dimension", "value": "metric_value", "secondary_value": "secondary_value"}
_CATEGORY_FIELDS = {"name": "string_dimension", "count": "metric_value", "users": "secondary_value"}
_HOURLY_FIELDS = {"hour": "hour_dimension", "count": "metric_value"}


def build_usage_statistics(summary_rows: Any, stats_rows: MetricRows) -> UsageStatistics:
    """Assemble the usage dashboard from the summary and metric-row RPC results."""
    stats = rows_to_frame(stats_rows, USAGE_STATS_DTYPES, source=RPC_USAGE_STATS)
    return UsageStatistics(
        summary=rows_to_frame(summary_rows, USAGE_SUMMARY_DTYPES, source=RPC_USAGE_SUMMARY).to_dicts(),
        daily_active_users=extract_metric_data(stats, UsageMetricType.DAILY_ACTIVE_USERS),
        monthly_active_users=extract_metric_data(stats, UsageMetricType.MONTHLY_ACTIVE_USERS),
        new_users_by_day=extract_metric_data(stats, UsageMetricType.NEW_USERS),
        feature_usage=extract_feature_usage(stats),
        hourly_usage=extract_hourly_usage(stats),
        language_usage=extract_dimension_usage(stats, UsageMetricType.LANGUAGE_USAGE),
        sector_usage=extract_dimension_usage(stats, UsageMetricType.SECTOR_USAGE),
        device_usage=extract_dimension_usage(stats, UsageMetricType.DEVICE_USAGE),
        session_metrics=extract_session_metrics(stats),
    )


def _as_usage_rows(
    items: Iterable[Any] | None,
    metric_type: UsageMetricType,
    fields: Mapping[str, str],
) -> list[dict]:
    rows = []
    for item in items or []:
        if not isinstance(item, Mapping):
            raise PayloadError(f"{metric_type}: expected objects, got {type(item).__name__}")
        row = {col: item.get(key) for key, col in fields.items()}
        row["metric_type"] = str(metric_type)
        rows.append(row)
    return rows


def parse_usage_statistics(payload: Any) -> UsageStatistics:
    """Validate a get-cached-usage-stats payload.

    The pre-shaped series are mapped back onto usage-stat rows so the same
    extractors apply, e.g. hourly usage always comes out as 24 buckets.
    """
    require_keys(payload, _USAGE_PAYLOAD_KEYS, source=USAGE_EDGE_FUNCTION)
    data = snake_case_keys(payload)

    rows = [
        *_as_usage_rows(data["daily_active_users"], UsageMetricType.DAILY_ACTIVE_USERS, _SERIES_FIELDS),
        *_as_usage_rows(data["monthly_active_users"], UsageMetricType.MONTHLY_ACTIVE_USERS, _SERIES_FIELDS),
        *_as_usage_rows(data["new_users_by_day"], UsageMetricType.NEW_USERS, _SERIES_FIELDS),
        *_as_usage_rows(data["feature_usage"], UsageMetricType.FEATURE_USAGE, _CATEGORY_FIELDS),
        *_as_usage_rows(data["hourly_usage"], UsageMetricType.HOURLY_USAGE, _HOURLY_FIELDS),
        *_as_usage_rows(data["language_usage"], UsageMetricType.LANGUAGE_USAGE, _CATEGORY_FIELDS),
        *_as_usage_rows(data["sector_usage"], UsageMetricType.SECTOR_USAGE, _CATEGORY_FIELDS),
        *_as_usage_rows(data["device_usage"], UsageMetricType.DEVICE_USAGE, _CATEGORY_FIELDS),
    ]
    usage = build_usage_statistics(data["summary"], rows)

    session = data["session_metrics"] or {}
    if not isinstance(session, Mapping):
        raise PayloadError(f"{USAGE_EDGE_FUNCTION}: sessionMetrics must be an object")
    try:
        usage.session_metrics = SessionMetrics(
            avg_session_duration=float(session.get("avg_session_duration") or 0),
            sessions_per_user=float(session.get("sessions_per_user") or 0),
        )
    except (TypeError, ValueError) as exc:
        raise PayloadError(f"{USAGE_EDGE_FUNCTION}: invalid sessionMetrics") from exc
    return usage


class UsageAnalyzer(DashboardAnalyzer):
    component = "UsageStats"

    async def fetch_usage_statistics(
        self,
        filters: UsageFilters,
        force_refresh: bool = False,
    ) -> UsageStatistics:
        """Usage dashboard for the tenant, from the edge function or two RPCs."""
        org = filters.organization_id
        time_range = str(filters.time_range)
        key = build_cache_key("usage_stats", org, time_range)

        async def primary() -> UsageStatistics:
            payload = await self._timed(
                lambda: self._backend.invoke(
                    USAGE_EDGE_FUNCTION, {"organizationId": org, "timeRange": time_range}
                ),
                "fetch_usage_statistics",
                org,
                {"time_range": time_range},
            )
            return parse_usage_statistics(payload)

        async def fallback() -> UsageStatistics:
            summary_rows, stats_rows = await asyncio.gather(
                self._timed(
                    lambda: self._backend.rpc(
                        RPC_USAGE_SUMMARY,
                        {"p_organization_id": org, "p_days": filters.time_range.days},
                    ),
                    "get_usage_summary",
                    org,
                ),
                self._timed(
                    lambda: self._backend.rpc(
                        RPC_USAGE_STATS,
                        {"p_organization_id": org, "p_time_range": time_range},
                    ),
                    "get_usage_stats",
                    org,
                ),
            )
            return build_usage_statistics(summary_rows, stats_rows)

        return await self._cached(
            key,
            lambda: self._primary_or_fallback("usage statistics", primary, fallback),
            DASHBOARD_CACHE_TTL,
            force_refresh=force_refresh,
        )
