"""Tests for the trend analyzer: primary edge-function path, fallback, caching."""

import pytest

from callassist_analytics.data.backend_client import BackendError
from callassist_analytics.models.dashboard import TrendFilters
from callassist_analytics.models.enums import TrendDirection, TrendType
from callassist_analytics.services.analysis_cache import AnalysisCache
from callassist_analytics.services.api_timing import ApiCallTimer
from callassist_analytics.services.trend_service import TrendAnalyzer, group_category_trends
from tests.fixtures.sample_data import (
    ORG_ID,
    make_anomaly_rows,
    make_backend,
    make_category_rows,
    make_forecast_rows,
    make_trend_dashboard_payload,
    make_trend_points,
    paths,
    request_json,
    server_error,
)

EDGE = "/functions/v1/get-cached-trends"
RPC_SUMMARY = "/rest/v1/rpc/get_trend_summary"
RPC_FORECAST = "/rest/v1/rpc/forecast_trend"
RPC_ANOMALIES = "/rest/v1/rpc/detect_trend_anomalies"
INSIGHTS = "/rest/v1/trend_insights_materialized"


def _category_rows(request):
    trend_type = request.url.params["trend_type"].removeprefix("eq.")
    return make_category_rows(trend_type)


def _fallback_routes(**overrides):
    routes = {
        EDGE: server_error("edge function unavailable"),
        RPC_SUMMARY: make_trend_points(),
        RPC_FORECAST: make_forecast_rows(),
        RPC_ANOMALIES: make_anomaly_rows(),
        INSIGHTS: _category_rows,
    }
    routes.update(overrides)
    return routes


def _analyzer(routes, calls=None, clock=None):
    backend = make_backend(routes, calls)
    cache = AnalysisCache(clock=clock) if clock else AnalysisCache()
    return TrendAnalyzer(backend, cache, ApiCallTimer(backend))


class TestGroupCategoryTrends:
    def test_groups_by_category_newest_first(self):
        result = group_category_trends(make_category_rows("sector"), "sector")
        assert [g["sector"] for g in result] == ["healthcare", "retail"]
        assert [p["period"] for p in result[0]["periods"]] == ["2024-03", "2024-02"]

    def test_overall_trend(self):
        healthcare, retail = group_category_trends(make_category_rows("sector"), "sector")
        assert healthcare["overall_trend"] == TrendDirection.UP
        assert healthcare["overall_growth"] == pytest.approx(50.0)
        assert retail["overall_trend"] == TrendDirection.DOWN
        assert retail["overall_growth"] == pytest.approx(20.0)

    def test_single_period_is_flat(self):
        rows = [{"category": "en", "dimension": "2024-03", "conversation_count": 7}]
        (group,) = group_category_trends(rows, "language")
        assert group["language"] == "en"
        assert group["overall_trend"] == TrendDirection.NO_CHANGE
        assert group["overall_growth"] == 0

    def test_empty(self):
        assert group_category_trends([], "sector") == []


class TestTrendDashboardPrimary:
    @pytest.mark.asyncio
    async def test_edge_payload_is_validated(self):
        calls = []
        analyzer = _analyzer({EDGE: make_trend_dashboard_payload()}, calls)

        data = await analyzer.fetch_trend_dashboard(TrendFilters(ORG_ID))

        assert paths(calls) == [EDGE]
        body = request_json(calls[0])
        assert body["organizationId"] == ORG_ID
        assert body["trendType"] == "daily"
        assert body["limit"] == 90

        assert len(data.trends) == 4
        assert data.forecast[0]["predicted_conversations"] == 95.5
        assert data.anomalies[0]["z_score"] == 2.4
        (sector,) = data.sector_trends
        assert sector["sector"] == "healthcare"
        assert sector["periods"][0]["trend_direction"] == "up"
        assert sector["overall_trend"] == TrendDirection.UP
        assert data.language_trends == []

    @pytest.mark.asyncio
    async def test_summary_recomputed_locally(self):
        payload = make_trend_dashboard_payload()
        payload["trends"] = make_trend_points(
            [100, 120, 80, 90], ["2024-01-04", "2024-01-03", "2024-01-02", "2024-01-01"]
        )
        analyzer = _analyzer({EDGE: payload})

        data = await analyzer.fetch_trend_dashboard(TrendFilters(ORG_ID))

        change = data.summary.changes["conversation_count"]
        assert change.direction == TrendDirection.UP
        assert change.percentage == pytest.approx(29.41, abs=0.01)

    @pytest.mark.asyncio
    async def test_second_call_is_cached(self):
        calls = []
        analyzer = _analyzer({EDGE: make_trend_dashboard_payload()}, calls)
        filters = TrendFilters(ORG_ID)

        first = await analyzer.fetch_trend_dashboard(filters)
        second = await analyzer.fetch_trend_dashboard(filters)

        assert first is second
        assert paths(calls) == [EDGE]

    @pytest.mark.asyncio
    async def test_force_refresh_refetches(self):
        calls = []
        analyzer = _analyzer({EDGE: make_trend_dashboard_payload()}, calls)
        filters = TrendFilters(ORG_ID)

        await analyzer.fetch_trend_dashboard(filters)
        await analyzer.fetch_trend_dashboard(filters, force_refresh=True)

        assert paths(calls) == [EDGE, EDGE]

    @pytest.mark.asyncio
    async def test_expired_entry_refetched(self, clock):
        calls = []
        analyzer = _analyzer({EDGE: make_trend_dashboard_payload()}, calls, clock)
        filters = TrendFilters(ORG_ID)

        await analyzer.fetch_trend_dashboard(filters)
        clock.advance(5 * 60 + 1)
        await analyzer.fetch_trend_dashboard(filters)

        assert paths(calls) == [EDGE, EDGE]

    @pytest.mark.asyncio
    async def test_filters_use_separate_entries(self):
        calls = []
        analyzer = _analyzer({EDGE: make_trend_dashboard_payload()}, calls)

        await analyzer.fetch_trend_dashboard(TrendFilters(ORG_ID))
        await analyzer.fetch_trend_dashboard(TrendFilters(ORG_ID, TrendType.WEEKLY))
        await analyzer.fetch_trend_dashboard(TrendFilters(ORG_ID, category="healthcare"))

        assert len(paths(calls)) == 3


class TestTrendDashboardFallback:
    @pytest.mark.asyncio
    async def test_edge_failure_uses_direct_queries(self):
        calls = []
        analyzer = _analyzer(_fallback_routes(), calls)

        data = await analyzer.fetch_trend_dashboard(TrendFilters(ORG_ID))

        assert {RPC_SUMMARY, RPC_FORECAST, RPC_ANOMALIES, INSIGHTS} <= set(paths(calls))
        assert len(data.trends) == 4
        assert data.forecast == make_forecast_rows()
        assert [g["sector"] for g in data.sector_trends] == ["healthcare", "retail"]
        assert [g["language"] for g in data.language_trends] == ["en", "cs"]
        assert data.summary.changes["conversation_count"].baseline_available is True

    @pytest.mark.asyncio
    async def test_malformed_edge_payload_uses_fallback(self):
        calls = []
        analyzer = _analyzer(_fallback_routes(**{EDGE: {"unexpected": True}}), calls)

        data = await analyzer.fetch_trend_dashboard(TrendFilters(ORG_ID))

        assert RPC_SUMMARY in paths(calls)
        assert len(data.trends) == 4

    @pytest.mark.asyncio
    async def test_fallback_failure_propagates(self):
        analyzer = _analyzer(_fallback_routes(**{RPC_FORECAST: server_error("rpc failed")}))

        with pytest.raises(BackendError, match="rpc failed"):
            await analyzer.fetch_trend_dashboard(TrendFilters(ORG_ID))

    @pytest.mark.asyncio
    async def test_failure_is_not_cached(self):
        routes = _fallback_routes(**{RPC_FORECAST: server_error()})
        analyzer = _analyzer(routes)
        filters = TrendFilters(ORG_ID)

        with pytest.raises(BackendError):
            await analyzer.fetch_trend_dashboard(filters)

        routes[RPC_FORECAST] = make_forecast_rows()
        data = await analyzer.fetch_trend_dashboard(filters)
        assert len(data.forecast) == 2


class TestTrendSubQueries:
    @pytest.mark.asyncio
    async def test_forecast_rpc_params(self):
        calls = []
        analyzer = _analyzer(_fallback_routes(), calls)

        forecast = await analyzer.fetch_trend_forecast(ORG_ID)

        assert len(forecast) == 2
        assert request_json(calls[0]) == {
            "p_organization_id": ORG_ID,
            "p_days_ahead": 7,
            "p_history_days": 30,
        }

    @pytest.mark.asyncio
    async def test_anomaly_rpc_params(self):
        calls = []
        analyzer = _analyzer(_fallback_routes(), calls)

        await analyzer.fetch_trend_anomalies(ORG_ID)

        assert request_json(calls[0])["p_z_threshold"] == 2.0

    @pytest.mark.asyncio
    async def test_sector_query(self):
        calls = []
        analyzer = _analyzer(_fallback_routes(), calls)

        await analyzer.fetch_sector_trends(ORG_ID)

        params = calls[0].url.params
        assert params["trend_type"] == "eq.sector"
        assert params["organization_id"] == f"eq.{ORG_ID}"
        assert params["order"] == "dimension.desc"

    @pytest.mark.asyncio
    async def test_trend_data_rpc_fallback(self):
        calls = []
        analyzer = _analyzer(_fallback_routes(), calls)

        points = await analyzer.fetch_trend_data(TrendFilters(ORG_ID, TrendType.MONTHLY, "retail", 12))

        assert len(points) == 4
        rpc_call = next(c for c in calls if c.url.path == RPC_SUMMARY)
        assert request_json(rpc_call) == {
            "p_organization_id": ORG_ID,
            "p_trend_type": "monthly",
            "p_limit": 12,
            "p_category": "retail",
        }
