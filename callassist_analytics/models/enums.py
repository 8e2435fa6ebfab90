"""Domain enumerations for dashboard analytics."""

from enum import StrEnum


class TrendDirection(StrEnum):
    UP = "up"
    DOWN = "down"
    NO_CHANGE = "no_change"


class TrendType(StrEnum):
    """Trend bucket size (daily/weekly/monthly) or grouping axis (sector/language)."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    SECTOR = "sector"
    LANGUAGE = "language"


class TimeRange(StrEnum):
    LAST_7_DAYS = "7d"
    LAST_30_DAYS = "30d"
    LAST_90_DAYS = "90d"
    LAST_12_MONTHS = "12m"
    CUSTOM = "custom"

    @property
    def days(self) -> int:
        return _TIME_RANGE_DAYS.get(self, 30)


_TIME_RANGE_DAYS: dict[TimeRange, int] = {
    TimeRange.LAST_7_DAYS: 7,
    TimeRange.LAST_30_DAYS: 30,
    TimeRange.LAST_90_DAYS: 90,
    TimeRange.LAST_12_MONTHS: 365,
}


class UsageMetricType(StrEnum):
    """Discriminator values of rows returned by get_usage_stats_cached."""

    DAILY_ACTIVE_USERS = "daily_active_users"
    MONTHLY_ACTIVE_USERS = "monthly_active_users"
    NEW_USERS = "new_users"
    FEATURE_USAGE = "feature_usage"
    LANGUAGE_USAGE = "language_usage"
    SECTOR_USAGE = "sector_usage"
    DEVICE_USAGE = "device_usage"
    HOURLY_USAGE = "hourly_usage"
    SESSION_METRICS = "session_metrics"


class PerformanceMetricType(StrEnum):
    DAILY = "daily"
    SECTOR = "sector"
    LANGUAGE = "language"


class UsageEventType(StrEnum):
    LOGIN = "login"
    AI_CHAT = "ai_chat"
    REPORT_VIEW = "report_view"
    EXPORT_CSV = "export_csv"
    CALL_PLAYBACK = "call_playback"
    NLP_TRAINING = "nlp_training"
    SETTINGS_UPDATE = "settings_update"
    VOICE_RECORDING = "voice_recording"
    CUSTOMER_ADD = "customer_add"
    DASHBOARD_VIEW = "dashboard_view"
    SEARCH = "search"
    FEEDBACK_SUBMIT = "feedback_submit"
    ERROR = "error"


class DeviceType(StrEnum):
    DESKTOP = "desktop"
    MOBILE = "mobile"
    TABLET = "tablet"
    UNKNOWN = "unknown"
