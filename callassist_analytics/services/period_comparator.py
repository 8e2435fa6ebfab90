"""Current-vs-previous period comparison.

This is the only place period deltas are computed; the trend dashboard's
primary and fallback paths both route through it.
"""

import math
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

import polars as pl

from callassist_analytics.models.dashboard import Change, PeriodStats, TrendSummary
from callassist_analytics.models.enums import TrendDirection

SUMMARY_METRICS: tuple[str, ...] = (
    "conversation_count",
    "customer_count",
    "avg_duration_seconds",
    "completion_rate",
    "avg_sentiment",
)


def average(values: Iterable[float | None] | None) -> float:
    """Arithmetic mean; None/falsy entries count as 0, empty input gives 0."""
    vals = list(values or [])
    if not vals:
        return 0.0
    return sum(v or 0 for v in vals) / len(vals)


def calculate_change(current: float | None, previous: float | None) -> Change:
    """Direction and absolute percentage change from *previous* to *current*.

    A zero or missing *previous* yields no_change / 0 with
    ``baseline_available=False`` instead of dividing by zero.
    """
    if not previous:
        return Change(TrendDirection.NO_CHANGE, 0.0, baseline_available=False)

    current = current or 0
    percentage = abs((current - previous) / previous * 100)
    if current > previous:
        direction = TrendDirection.UP
    elif current < previous:
        direction = TrendDirection.DOWN
    else:
        direction = TrendDirection.NO_CHANGE
    return Change(direction, percentage)


def _period_stats(points: Sequence[Mapping[str, Any]]) -> PeriodStats:
    return PeriodStats(**{m: average(p.get(m) for p in points) for m in SUMMARY_METRICS})


def _empty_summary() -> TrendSummary:
    flat = Change(TrendDirection.NO_CHANGE, 0.0, baseline_available=False)
    return TrendSummary(
        current_period=PeriodStats(),
        previous_period=PeriodStats(),
        changes={m: flat for m in SUMMARY_METRICS},
    )


def calculate_trend_summary(
    points: Iterable[Mapping[str, Any]] | pl.DataFrame | None,
) -> TrendSummary:
    """Split trend points into current/previous halves and compare their averages.

    Points are ordered newest first by ``dimension``; the current period is the
    first ceil(n/2) of them. Fewer than 2 points give an all-zero summary.
    """
    if isinstance(points, pl.DataFrame):
        records: list[Mapping[str, Any]] = points.to_dicts()
    else:
        records = list(points or [])

    if len(records) < 2:
        return _empty_summary()

    ordered = sorted(records, key=lambda p: p.get("dimension") or "", reverse=True)
    split = math.ceil(len(ordered) / 2)
    current = _period_stats(ordered[:split])
    previous = _period_stats(ordered[split:])

    return TrendSummary(
        current_period=current,
        previous_period=previous,
        changes={
            m: calculate_change(getattr(current, m), getattr(previous, m))
            for m in SUMMARY_METRICS
        },
    )


def calculate_overall_trend(
    periods: Sequence[Mapping[str, Any]],
    metric: str = "conversation_count",
) -> Change:
    """Compare the oldest and newest period of a newest-first series."""
    if len(periods) < 2:
        return Change(TrendDirection.NO_CHANGE, 0.0, baseline_available=False)
    return calculate_change(periods[0].get(metric), periods[-1].get(metric))
