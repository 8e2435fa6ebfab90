"""Row schemas for everything read back from the backend.

Column names match the backend tables and RPC result sets exactly.
Every remote row set is cast to one of these before any analysis runs.
"""

from typing import Any

import polars as pl

# Polars dtype classes (e.g. pl.Int64) are type *classes*, not instances.
# dict[str, Any] keeps type checkers quiet about that.
PolarsSchemaDict = dict[str, Any]

# ---- Usage statistics (get_usage_stats_cached) ----

USAGE_STATS_DTYPES: PolarsSchemaDict = {
    "metric_type": pl.Utf8,
    "date_dimension": pl.Utf8,
    "string_dimension": pl.Utf8,
    "hour_dimension": pl.Int64,
    "metric_value": pl.Float64,
    "secondary_value": pl.Float64,
}

# ---- Usage summary (get_usage_summary) ----

USAGE_SUMMARY_DTYPES: PolarsSchemaDict = {
    "metric_name": pl.Utf8,
    "metric_value": pl.Float64,
    "change_percentage": pl.Float64,
}

# ---- Trend points (get_trend_summary / get-cached-trends) ----

TREND_DTYPES: PolarsSchemaDict = {
    "dimension": pl.Utf8,
    "category": pl.Utf8,
    "conversation_count": pl.Int64,
    "customer_count": pl.Int64,
    "avg_duration_seconds": pl.Float64,
    "completion_rate": pl.Float64,
    "avg_sentiment": pl.Float64,
    "trend_direction": pl.Utf8,
    "change_percentage": pl.Float64,
    "is_anomaly": pl.Boolean,
    "forecast_7d": pl.Float64,
}

# ---- Sector / language trends (trend_insights_materialized) ----

CATEGORY_TREND_DTYPES: PolarsSchemaDict = {
    "category": pl.Utf8,
    "dimension": pl.Utf8,
    "conversation_count": pl.Int64,
    "customer_count": pl.Int64,
    "completion_rate": pl.Float64,
    "trend_direction": pl.Utf8,
    "change_percentage": pl.Float64,
}

# ---- Forecast (forecast_trend) ----

FORECAST_DTYPES: PolarsSchemaDict = {
    "forecast_date": pl.Utf8,
    "predicted_conversations": pl.Float64,
    "prediction_interval_low": pl.Float64,
    "prediction_interval_high": pl.Float64,
}

# ---- Anomalies (detect_trend_anomalies) ----

ANOMALY_DTYPES: PolarsSchemaDict = {
    "dimension": pl.Utf8,
    "metric_name": pl.Utf8,
    "actual_value": pl.Float64,
    "expected_value": pl.Float64,
    "z_score": pl.Float64,
    "deviation_percentage": pl.Float64,
}

# ---- Performance insights (performance_insights) ----

PERFORMANCE_INSIGHT_DTYPES: PolarsSchemaDict = {
    "metric_type": pl.Utf8,
    "dimension": pl.Utf8,
    "total_interactions": pl.Int64,
    "avg_ai_response_time": pl.Float64,
    "p95_ai_response_time": pl.Float64,
    "success_rate": pl.Float64,
    "avg_duration": pl.Float64,
    "avg_user_delay": pl.Float64,
    "avg_stt_latency": pl.Float64,
    "avg_tts_latency": pl.Float64,
    "sector_code": pl.Utf8,
    "language": pl.Utf8,
}

# ---- Performance stats (get_performance_stats) ----

PERFORMANCE_STAT_DTYPES: PolarsSchemaDict = {
    "metric_name": pl.Utf8,
    "current_value": pl.Float64,
    "previous_value": pl.Float64,
    "change_percentage": pl.Float64,
}

# ---- Longest conversations (performance_metrics joined with customers) ----
# customer_id / customer_name are flattened from the embedded "customers" object.

LONGEST_CONVERSATION_DTYPES: PolarsSchemaDict = {
    "id": pl.Utf8,
    "conversation_id": pl.Utf8,
    "customer_id": pl.Utf8,
    "customer_name": pl.Utf8,
    "total_duration_ms": pl.Int64,
    "success": pl.Boolean,
    "timestamp": pl.Utf8,
}
