"""Tests for the backend HTTP client (via httpx.MockTransport)."""

import httpx
import pytest

from callassist_analytics.data.backend_client import BackendError
from tests.fixtures.sample_data import make_backend, request_json, server_error


class TestSelect:
    @pytest.mark.asyncio
    async def test_query_params(self):
        calls: list[httpx.Request] = []
        backend = make_backend({"/rest/v1/performance_insights": [{"id": 1}]}, calls)

        rows = await backend.select(
            "performance_insights",
            eq={"organization_id": "org", "metric_type": "daily"},
            order="dimension",
            ascending=False,
            limit=7,
        )
        await backend.aclose()

        assert rows == [{"id": 1}]
        params = calls[0].url.params
        assert params["select"] == "*"
        assert params["organization_id"] == "eq.org"
        assert params["metric_type"] == "eq.daily"
        assert params["order"] == "dimension.desc"
        assert params["limit"] == "7"

    @pytest.mark.asyncio
    async def test_auth_headers(self):
        calls: list[httpx.Request] = []
        backend = make_backend({"/rest/v1/t": []}, calls)
        await backend.select("t")
        await backend.aclose()

        assert calls[0].headers["apikey"] == "test-key"
        assert calls[0].headers["authorization"] == "Bearer test-key"


class TestRpcAndInvoke:
    @pytest.mark.asyncio
    async def test_rpc_posts_params(self):
        calls: list[httpx.Request] = []
        backend = make_backend({"/rest/v1/rpc/forecast_trend": [{"x": 1}]}, calls)
        result = await backend.rpc("forecast_trend", {"p_days_ahead": 7})
        await backend.aclose()

        assert result == [{"x": 1}]
        assert calls[0].method == "POST"
        assert request_json(calls[0]) == {"p_days_ahead": 7}

    @pytest.mark.asyncio
    async def test_invoke_error_body_raises(self):
        backend = make_backend({"/functions/v1/get-cached-trends": {"error": "cache cold"}})
        with pytest.raises(BackendError, match="cache cold"):
            await backend.invoke("get-cached-trends", {})
        await backend.aclose()

    @pytest.mark.asyncio
    async def test_empty_response_is_none(self):
        backend = make_backend({"/rest/v1/rpc/noop": httpx.Response(204)})
        assert await backend.rpc("noop") is None
        await backend.aclose()


class TestErrors:
    @pytest.mark.asyncio
    async def test_http_error_status(self):
        backend = make_backend({"/rest/v1/rpc/get_trend_summary": server_error("db timeout")})
        with pytest.raises(BackendError) as exc_info:
            await backend.rpc("get_trend_summary")
        await backend.aclose()

        assert exc_info.value.status_code == 500
        assert "db timeout" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_transport_error_is_wrapped(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        backend = make_backend({"/rest/v1/t": refuse})
        with pytest.raises(BackendError) as exc_info:
            await backend.select("t")
        await backend.aclose()

        assert exc_info.value.status_code is None
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        backend = make_backend({"/rest/v1/t": httpx.Response(200, content=b"<html>")})
        with pytest.raises(BackendError, match="invalid JSON"):
            await backend.select("t")
        await backend.aclose()
