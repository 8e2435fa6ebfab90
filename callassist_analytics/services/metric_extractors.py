"""Reshape metric rows (tagged by ``metric_type``) into dashboard series.

All extractors accept either a validated frame or raw backend rows, never
modify their input, and default missing numbers to 0.
"""

from collections.abc import Iterable, Mapping
from typing import Any

import polars as pl

from callassist_analytics.config import FEATURE_USAGE_LIMIT
from callassist_analytics.data.rows import rows_to_frame
from callassist_analytics.models.dashboard import SessionMetrics
from callassist_analytics.models.enums import UsageMetricType
from callassist_analytics.models.schemas import USAGE_STATS_DTYPES

MetricRows = Iterable[Mapping[str, Any]] | pl.DataFrame | None


def _usage_frame(rows: MetricRows) -> pl.DataFrame:
    return rows_to_frame(rows, USAGE_STATS_DTYPES, source="usage stats")


def extract_metric_data(rows: MetricRows, metric_type: str) -> list[dict]:
    """Time series ``{date, value, secondary_value}`` for one metric, oldest first."""
    df = _usage_frame(rows)
    return (
        df.filter(pl.col("metric_type") == str(metric_type))
        .select(
            pl.col("date_dimension").alias("date"),
            pl.col("metric_value").fill_null(0.0).alias("value"),
            pl.col("secondary_value").fill_null(0.0).alias("secondary_value"),
        )
        .sort("date", maintain_order=True, nulls_last=True)
        .to_dicts()
    )


def _dimension_frame(rows: MetricRows, metric_type: str) -> pl.DataFrame:
    df = _usage_frame(rows)
    return (
        df.filter(pl.col("metric_type") == str(metric_type))
        .select(
            pl.col("string_dimension").fill_null("Unknown").alias("name"),
            pl.col("metric_value").fill_null(0.0).alias("count"),
            pl.col("secondary_value").fill_null(0.0).alias("users"),
        )
        # maintain_order keeps ties in input order
        .sort("count", descending=True, maintain_order=True)
    )


def extract_dimension_usage(rows: MetricRows, metric_type: str) -> list[dict]:
    """Category breakdown ``{name, count, users}``, highest count first."""
    return _dimension_frame(rows, metric_type).to_dicts()


def extract_feature_usage(rows: MetricRows, limit: int = FEATURE_USAGE_LIMIT) -> list[dict]:
    """Top *limit* features by usage count."""
    return _dimension_frame(rows, UsageMetricType.FEATURE_USAGE).head(limit).to_dicts()


def extract_hourly_usage(rows: MetricRows) -> list[dict]:
    """Exactly 24 ``{hour, count}`` buckets (0-23).

    Hours absent from the input get 0, duplicate hours are summed and
    hours outside 0-23 are ignored.
    """
    df = _usage_frame(rows)
    counts = (
        df.filter(
            (pl.col("metric_type") == str(UsageMetricType.HOURLY_USAGE))
            & pl.col("hour_dimension").is_not_null()
        )
        .group_by("hour_dimension")
        .agg(pl.col("metric_value").fill_null(0.0).sum().alias("count"))
        .rename({"hour_dimension": "hour"})
    )
    hours = pl.DataFrame({"hour": pl.int_range(0, 24, eager=True).cast(pl.Int64)})
    return (
        hours.join(counts, on="hour", how="left")
        .with_columns(pl.col("count").fill_null(0.0))
        .sort("hour")
        .to_dicts()
    )


def extract_session_metrics(rows: MetricRows) -> SessionMetrics:
    """Average session duration and sessions per user, or zeros when absent."""
    df = _usage_frame(rows)
    match = df.filter(
        (pl.col("metric_type") == str(UsageMetricType.SESSION_METRICS))
        & (pl.col("string_dimension") == "avg_session_duration")
    ).head(1)
    if match.is_empty():
        return SessionMetrics()

    row = match.row(0, named=True)
    return SessionMetrics(
        avg_session_duration=row["metric_value"] or 0.0,
        sessions_per_user=row["secondary_value"] or 0.0,
    )
