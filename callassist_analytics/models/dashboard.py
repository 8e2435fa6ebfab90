"""Filter and dashboard payload models shared by the analyzers and the API."""

from dataclasses import asdict, dataclass, field

from callassist_analytics.config import DEFAULT_TREND_LIMIT
from callassist_analytics.models.enums import TimeRange, TrendDirection, TrendType

# ── filters ──────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TrendFilters:
    organization_id: str
    trend_type: TrendType = TrendType.DAILY
    category: str | None = None
    limit: int = DEFAULT_TREND_LIMIT


@dataclass(frozen=True)
class UsageFilters:
    organization_id: str
    time_range: TimeRange = TimeRange.LAST_30_DAYS


@dataclass(frozen=True)
class PerformanceFilters:
    organization_id: str
    time_range: TimeRange = TimeRange.LAST_30_DAYS


# ── period comparison ────────────────────────────────────────────────────


@dataclass(frozen=True)
class Change:
    """Signed change between two period values.

    Attributes:
        direction: up / down / no_change.
        percentage: Absolute percentage change (never negative).
        baseline_available: False when the previous value was zero or missing,
            i.e. no_change means "not computable" rather than "flat".
    """

    direction: TrendDirection
    percentage: float
    baseline_available: bool = True


@dataclass(frozen=True)
class PeriodStats:
    conversation_count: float = 0.0
    customer_count: float = 0.0
    avg_duration_seconds: float = 0.0
    completion_rate: float = 0.0
    avg_sentiment: float = 0.0


@dataclass(frozen=True)
class TrendSummary:
    current_period: PeriodStats
    previous_period: PeriodStats
    changes: dict[str, Change]


# ── dashboards ───────────────────────────────────────────────────────────


@dataclass
class TrendDashboardData:
    summary: TrendSummary
    trends: list[dict] = field(default_factory=list)
    sector_trends: list[dict] = field(default_factory=list)
    language_trends: list[dict] = field(default_factory=list)
    anomalies: list[dict] = field(default_factory=list)
    forecast: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SessionMetrics:
    avg_session_duration: float = 0.0
    sessions_per_user: float = 0.0


@dataclass
class UsageStatistics:
    summary: list[dict] = field(default_factory=list)
    daily_active_users: list[dict] = field(default_factory=list)
    monthly_active_users: list[dict] = field(default_factory=list)
    new_users_by_day: list[dict] = field(default_factory=list)
    feature_usage: list[dict] = field(default_factory=list)
    hourly_usage: list[dict] = field(default_factory=list)
    language_usage: list[dict] = field(default_factory=list)
    sector_usage: list[dict] = field(default_factory=list)
    device_usage: list[dict] = field(default_factory=list)
    session_metrics: SessionMetrics = field(default_factory=SessionMetrics)

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class PerformanceDashboardData:
    stats: list[dict] = field(default_factory=list)
    time_series: list[dict] = field(default_factory=list)
    sectors: list[dict] = field(default_factory=list)
    languages: list[dict] = field(default_factory=list)
    longest_conversations: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)
