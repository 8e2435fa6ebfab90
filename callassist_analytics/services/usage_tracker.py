"""Record platform usage events (the producer side of the usage statistics)."""

import re
import uuid
from typing import Any

from loguru import logger

from callassist_analytics.config import USAGE_EVENT_EDGE_FUNCTION
from callassist_analytics.data.backend_client import BackendClient
from callassist_analytics.models.enums import DeviceType, UsageEventType
from callassist_analytics.utils.validation import is_valid_organization_id

_AUTH_PAGE_RE = re.compile(r"(^|/)(login|signup|reset-password|forgot-password)/?$")

FEATURE_EVENTS: dict[str, UsageEventType] = {
    "ai_chat": UsageEventType.AI_CHAT,
    "export": UsageEventType.EXPORT_CSV,
    "playback": UsageEventType.CALL_PLAYBACK,
    "search": UsageEventType.SEARCH,
    "feedback": UsageEventType.FEEDBACK_SUBMIT,
}


def detect_device_type(user_agent: str | None) -> DeviceType:
    if not user_agent:
        return DeviceType.UNKNOWN
    ua = user_agent.lower()
    if "mobile" in ua:
        return DeviceType.MOBILE
    if "tablet" in ua or "ipad" in ua:
        return DeviceType.TABLET
    return DeviceType.DESKTOP


def is_auth_page(page: str | None) -> bool:
    return bool(page and _AUTH_PAGE_RE.search(page))


class UsageTracker:
    """Sends usage events to the backend. Tracking never raises to the caller."""

    def __init__(self, backend: BackendClient) -> None:
        self._backend = backend

    async def track_event(
        self,
        event_type: UsageEventType,
        organization_id: str,
        *,
        event_data: dict[str, Any] | None = None,
        device_type: DeviceType | None = None,
        user_agent: str | None = None,
        language: str | None = None,
        sector: str | None = None,
        session_id: str | None = None,
    ) -> bool:
        """Send one event; returns True only when the backend accepted it."""
        if not is_valid_organization_id(organization_id):
            logger.warning("Skipping {} event: invalid organization id", event_type)
            return False

        event_data = event_data or {}
        if event_type == UsageEventType.DASHBOARD_VIEW and is_auth_page(event_data.get("page")):
            logger.debug("Skipping dashboard_view on auth page {}", event_data.get("page"))
            return False

        body = {
            "event_type": str(event_type),
            "organization_id": organization_id,
            "event_data": event_data,
            "device_type": str(device_type or detect_device_type(user_agent)),
            "language": language,
            "sector": sector,
            "session_id": session_id or str(uuid.uuid4()),
        }
        try:
            await self._backend.invoke(USAGE_EVENT_EDGE_FUNCTION, body)
        except Exception:
            logger.opt(exception=True).error("Failed to track {} event", event_type)
            return False
        return True

    async def track_feature_usage(
        self,
        feature: str,
        organization_id: str,
        **kwargs: Any,
    ) -> bool:
        event_type = FEATURE_EVENTS.get(feature, UsageEventType.DASHBOARD_VIEW)
        event_data = {"feature": feature, **(kwargs.pop("event_data", None) or {})}
        return await self.track_event(event_type, organization_id, event_data=event_data, **kwargs)
