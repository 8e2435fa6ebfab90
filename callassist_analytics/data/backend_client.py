"""Async client for the hosted backend: table queries, stored procedures, edge functions."""

from typing import Any

import httpx
from loguru import logger

from callassist_analytics.config import (
    BACKEND_TIMEOUT,
    FUNCTIONS_PATH,
    REST_PATH,
    SUPABASE_ANON_KEY,
    SUPABASE_URL,
)


class BackendError(Exception):
    """A backend request failed (transport error, non-2xx, or an error body)."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text[:200] or resp.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)[:200]
    return str(body)[:200]


class BackendClient:
    """Thin request/response wrapper over the PostgREST-style backend.

    Only transport-level timeouts apply; callers add no deadlines of their own.
    """

    def __init__(
        self,
        base_url: str = SUPABASE_URL,
        api_key: str = SUPABASE_ANON_KEY,
        timeout: float = BACKEND_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        headers = {"apikey": api_key, "Content-Type": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def select(
        self,
        table: str,
        *,
        columns: str = "*",
        eq: dict[str, Any] | None = None,
        order: str | None = None,
        ascending: bool = True,
        limit: int | None = None,
    ) -> list[dict]:
        """Query rows from a table or view with equality filters and ordering."""
        params: dict[str, str] = {"select": columns}
        for col, value in (eq or {}).items():
            params[col] = f"eq.{value}"
        if order:
            params["order"] = f"{order}.{'asc' if ascending else 'desc'}"
        if limit is not None:
            params["limit"] = str(limit)

        data = await self._request("GET", f"{REST_PATH}/{table}", params=params)
        return data or []

    async def rpc(self, function: str, params: dict[str, Any] | None = None) -> Any:
        """Call a stored procedure and return its decoded result."""
        return await self._request("POST", f"{REST_PATH}/rpc/{function}", json=params or {})

    async def invoke(self, function: str, body: dict[str, Any] | None = None) -> Any:
        """Invoke an edge function by name.

        Edge functions report failures as ``{"error": "..."}``, which is raised
        as BackendError even on a 200 response.
        """
        data = await self._request("POST", f"{FUNCTIONS_PATH}/{function}", json=body or {})
        if isinstance(data, dict) and data.get("error"):
            raise BackendError(f"{function}: {data['error']}", details=data)
        return data

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            logger.error("Backend {} {} failed: {}", method, path, exc)
            raise BackendError(f"{method} {path} failed: {exc}") from exc

        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.error("Backend {} {} returned {}: {}", method, path, resp.status_code, message)
            raise BackendError(message, status_code=resp.status_code)

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise BackendError(
                f"{method} {path} returned invalid JSON", status_code=resp.status_code
            ) from exc
