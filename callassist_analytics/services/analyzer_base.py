"""Shared plumbing for the dashboard analyzers: caching, timing, primary/fallback."""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from loguru import logger

from callassist_analytics.data.backend_client import BackendClient
from callassist_analytics.services.analysis_cache import AnalysisCache
from callassist_analytics.services.api_timing import ApiCallTimer

T = TypeVar("T")


class DashboardAnalyzer:
    """Base for analyzers that serve one cached dashboard per filter set.

    Subclasses set ``component`` (used as the timing label) and build their
    payloads with ``_cached``, adding ``_primary_or_fallback`` where a
    pre-aggregated edge function exists.
    """

    component = "DashboardAnalyzer"

    def __init__(
        self,
        backend: BackendClient,
        cache: AnalysisCache,
        timer: ApiCallTimer | None = None,
    ) -> None:
        self._backend = backend
        self._cache = cache
        self._timer = timer or ApiCallTimer(backend)

    async def _cached(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        ttl: float,
        force_refresh: bool = False,
    ) -> T:
        if force_refresh and self._cache.delete(key):
            logger.debug("Cache DROP (refresh): {}", key)
        return await self._cache.get_or_compute(key, producer, ttl)

    async def _timed(
        self,
        fn: Callable[[], Awaitable[T]],
        operation: str,
        organization_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> T:
        return await self._timer.measure_api_call(
            fn, operation, self.component, organization_id, metadata
        )

    async def _primary_or_fallback(
        self,
        label: str,
        primary: Callable[[], Awaitable[T]],
        fallback: Callable[[], Awaitable[T]],
    ) -> T:
        """Try the pre-aggregated remote call; on any failure rebuild locally.

        Only the primary failure is absorbed. A fallback failure propagates.
        """
        try:
            return await primary()
        except Exception as exc:
            logger.warning("[{}] {} primary path failed ({}), using fallback", self.component, label, exc)

        try:
            return await fallback()
        except Exception:
            logger.opt(exception=True).error("[{}] {} fallback failed", self.component, label)
            raise
