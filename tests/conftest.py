"""Shared test fixtures."""

from contextlib import asynccontextmanager
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from callassist_analytics.models.dashboard import PerformanceDashboardData, UsageStatistics
from callassist_analytics.services.analysis_cache import AnalysisCache
from callassist_analytics.services.performance_service import PerformanceAnalyzer
from callassist_analytics.services.trend_service import TrendAnalyzer
from callassist_analytics.services.usage_service import UsageAnalyzer
from callassist_analytics.services.usage_tracker import UsageTracker
from tests.fixtures.sample_data import make_forecast_rows, make_trend_dashboard


class FakeClock:
    """Manually advanced monotonic clock (seconds)."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def mock_trends():
    """A TrendAnalyzer-like mock with canned dashboard data."""
    svc = MagicMock(spec=TrendAnalyzer)
    svc.fetch_trend_dashboard.return_value = make_trend_dashboard()
    svc.fetch_trend_forecast.return_value = make_forecast_rows()
    svc.fetch_trend_anomalies.return_value = []
    svc.fetch_sector_trends.return_value = []
    svc.fetch_language_trends.return_value = []
    return svc


@pytest.fixture()
def mock_usage():
    svc = MagicMock(spec=UsageAnalyzer)
    svc.fetch_usage_statistics.return_value = UsageStatistics()
    return svc


@pytest.fixture()
def mock_performance():
    svc = MagicMock(spec=PerformanceAnalyzer)
    svc.fetch_performance_dashboard.return_value = PerformanceDashboardData()
    return svc


@pytest.fixture()
def mock_tracker():
    svc = MagicMock(spec=UsageTracker)
    svc.track_event.return_value = True
    return svc


@pytest.fixture()
def client(mock_trends, mock_usage, mock_performance, mock_tracker):
    """FastAPI TestClient with mocked analyzers (no backend traffic)."""

    @asynccontextmanager
    async def _test_lifespan(app):
        app.state.cache = AnalysisCache()
        app.state.trends = mock_trends
        app.state.usage = mock_usage
        app.state.performance = mock_performance
        app.state.tracker = mock_tracker
        yield

    from callassist_analytics.main import app
    from callassist_analytics.rate_limit import limiter

    limiter.reset()
    app.router.lifespan_context = _test_lifespan
    with TestClient(app) as c:
        yield c
