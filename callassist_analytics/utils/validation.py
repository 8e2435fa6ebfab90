"""Tenant identifier validation."""

import re

from callassist_analytics.config import PLACEHOLDER_ORGANIZATION_IDS, RESERVED_ORGANIZATION_PREFIX

_UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_valid_uuid(value: str | None) -> bool:
    return bool(value and _UUID_RE.match(value))


def is_valid_organization_id(value: str | None) -> bool:
    """True for a real tenant UUID; False for empty, malformed, or placeholder ids."""
    if not value or not is_valid_uuid(value):
        return False
    if value.lower() in PLACEHOLDER_ORGANIZATION_IDS:
        return False
    return not value.startswith(RESERVED_ORGANIZATION_PREFIX)
