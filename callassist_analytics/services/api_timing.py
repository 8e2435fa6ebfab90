"""Timing of remote calls, with slow and failed calls recorded to the backend."""

import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from loguru import logger

from callassist_analytics.config import API_CALL_THRESHOLD_MS, RPC_LOG_PERFORMANCE_METRIC
from callassist_analytics.data.backend_client import BackendClient
from callassist_analytics.utils.validation import is_valid_organization_id

T = TypeVar("T")


class ApiCallTimer:
    """Measures awaited backend calls and logs the slow or failed ones."""

    def __init__(
        self,
        backend: BackendClient,
        threshold_ms: int = API_CALL_THRESHOLD_MS,
    ) -> None:
        self._backend = backend
        self.threshold_ms = threshold_ms

    async def log_metric(
        self,
        component: str,
        operation: str,
        duration_ms: int,
        organization_id: str,
        metadata: dict[str, Any] | None = None,
        event_type: str = "api",
    ) -> None:
        """Record one metric row. Never raises: metric logging must not affect callers."""
        if not is_valid_organization_id(organization_id):
            logger.warning("Invalid organization id, not recording {} metric", operation)
            return

        try:
            await self._backend.rpc(
                RPC_LOG_PERFORMANCE_METRIC,
                {
                    "p_component_name": component,
                    "p_duration_ms": duration_ms,
                    "p_event_type": event_type,
                    "p_metadata": metadata or {},
                    "p_operation_name": operation,
                    "p_organization_id": organization_id,
                },
            )
        except Exception:
            logger.opt(exception=True).warning("Failed to record {} metric", operation)

    async def measure_api_call(
        self,
        fn: Callable[[], Awaitable[T]],
        operation: str,
        component: str,
        organization_id: str,
        metadata: dict[str, Any] | None = None,
    ) -> T:
        """Await *fn*, recording it if slower than the threshold or if it fails.

        The call's own exception is re-raised unchanged after being recorded.
        """
        start = time.perf_counter()
        try:
            result = await fn()
        except Exception as exc:
            duration_ms = round((time.perf_counter() - start) * 1000)
            logger.warning("{}.{} failed after {}ms: {}", component, operation, duration_ms, exc)
            await self.log_metric(
                component,
                f"{operation}_failed",
                duration_ms,
                organization_id,
                {**(metadata or {}), "error": str(exc) or type(exc).__name__},
            )
            raise

        duration_ms = round((time.perf_counter() - start) * 1000)
        if duration_ms > self.threshold_ms:
            logger.info("{}.{} took {}ms", component, operation, duration_ms)
            await self.log_metric(component, operation, duration_ms, organization_id, metadata)
        return result
