"""Central configuration: backend endpoints, cache policy, remote function names."""

import os

# Backend-as-a-service (PostgREST + RPC + edge functions)
SUPABASE_URL = os.environ.get("SUPABASE_URL", "http://localhost:54321")
SUPABASE_ANON_KEY = os.environ.get("SUPABASE_ANON_KEY", "")
BACKEND_TIMEOUT = float(os.environ.get("BACKEND_TIMEOUT", "30.0"))  # transport-level only

REST_PATH = "/rest/v1"
FUNCTIONS_PATH = "/functions/v1"

# Analysis cache
CACHE_MAX_ENTRIES = int(os.environ.get("CACHE_MAX_ENTRIES", "100"))
CACHE_SWEEP_INTERVAL = 60.0  # seconds between expiry sweeps

# TTLs in seconds
DASHBOARD_CACHE_TTL = 5 * 60
FORECAST_CACHE_TTL = 30 * 60
ANOMALIES_CACHE_TTL = 30 * 60

# API-call timing: successful calls faster than this are not recorded
API_CALL_THRESHOLD_MS = 500

# Edge functions (primary paths)
TRENDS_EDGE_FUNCTION = "get-cached-trends"
USAGE_EDGE_FUNCTION = "get-cached-usage-stats"
USAGE_EVENT_EDGE_FUNCTION = "log-usage-event"

# Stored procedures
RPC_TREND_SUMMARY = "get_trend_summary"
RPC_FORECAST_TREND = "forecast_trend"
RPC_DETECT_ANOMALIES = "detect_trend_anomalies"
RPC_USAGE_SUMMARY = "get_usage_summary"
RPC_USAGE_STATS = "get_usage_stats_cached"
RPC_PERFORMANCE_STATS = "get_performance_stats"
RPC_LOG_PERFORMANCE_METRIC = "log_component_performance_metric"

# Tables / materialized views
TREND_INSIGHTS_TABLE = "trend_insights_materialized"
PERFORMANCE_INSIGHTS_TABLE = "performance_insights"
PERFORMANCE_METRICS_TABLE = "performance_metrics"

# Remote aggregation parameters
DEFAULT_TREND_LIMIT = 90
FORECAST_DAYS_AHEAD = 7
FORECAST_HISTORY_DAYS = 30
ANOMALY_DAYS = 30
ANOMALY_Z_THRESHOLD = 2.0
FEATURE_USAGE_LIMIT = 10
LONGEST_CONVERSATIONS_LIMIT = 5

# Tenant ids that look valid but are placeholders
PLACEHOLDER_ORGANIZATION_IDS: frozenset[str] = frozenset(
    {
        "00000000-0000-0000-0000-000000000000",
        "123e4567-e89b-12d3-a456-426614174000",
    }
)
RESERVED_ORGANIZATION_PREFIX = "0000"
