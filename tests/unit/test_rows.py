"""Tests for the row validation boundary."""

import polars as pl
import pytest

from callassist_analytics.data.rows import (
    PayloadError,
    require_keys,
    rows_to_frame,
    snake_case,
    snake_case_keys,
)
from callassist_analytics.models.schemas import TREND_DTYPES, USAGE_STATS_DTYPES


class TestRowsToFrame:
    def test_declared_columns_only(self):
        df = rows_to_frame([{"metric_type": "new_users", "unexpected": 1}], USAGE_STATS_DTYPES)
        assert df.columns == list(USAGE_STATS_DTYPES)
        assert df["date_dimension"].to_list() == [None]

    def test_dtypes_are_cast(self):
        df = rows_to_frame([{"hour_dimension": "7", "metric_value": 3}], USAGE_STATS_DTYPES)
        assert df.schema["hour_dimension"] == pl.Int64
        assert df.schema["metric_value"] == pl.Float64
        assert df["hour_dimension"].to_list() == [7]

    def test_empty_input(self):
        for rows in (None, []):
            df = rows_to_frame(rows, TREND_DTYPES)
            assert df.height == 0
            assert df.columns == list(TREND_DTYPES)

    def test_accepts_dataframe(self):
        df = rows_to_frame([{"metric_type": "new_users", "metric_value": 1.0}], USAGE_STATS_DTYPES)
        again = rows_to_frame(df, USAGE_STATS_DTYPES)
        assert again.equals(df)

    def test_uncoercible_value_raises(self):
        with pytest.raises(PayloadError, match="conversation_count"):
            rows_to_frame([{"conversation_count": "twelve"}], TREND_DTYPES, source="trends")

    def test_fractional_count_raises(self):
        rows = [{"conversation_count": 1}, {"conversation_count": 2.7}]
        with pytest.raises(PayloadError, match="conversation_count"):
            rows_to_frame(rows, TREND_DTYPES, source="trends")

    def test_whole_float_count_accepted(self):
        df = rows_to_frame([{"conversation_count": 3.0}, {"conversation_count": None}], TREND_DTYPES)
        assert df.schema["conversation_count"] == pl.Int64
        assert df["conversation_count"].to_list() == [3, None]

    def test_non_mapping_row_raises(self):
        with pytest.raises(PayloadError):
            rows_to_frame([1, 2], TREND_DTYPES)


class TestRequireKeys:
    def test_all_present(self):
        require_keys({"a": 1, "b": None}, ("a", "b"))

    def test_missing_key(self):
        with pytest.raises(PayloadError, match="b"):
            require_keys({"a": 1}, ("a", "b"))

    def test_not_a_mapping(self):
        with pytest.raises(PayloadError):
            require_keys([{"a": 1}], ("a",))


class TestSnakeCase:
    @pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("organizationId", "organization_id"),
            ("p95ResponseTime", "p95_response_time"),
            ("already_snake", "already_snake"),
        ],
    )
    def test_snake_case(self, name, expected):
        assert snake_case(name) == expected

    def test_nested_keys(self):
        payload = {"sectorTrends": [{"conversationCount": 1, "periods": [{"changePercentage": 2}]}]}
        assert snake_case_keys(payload) == {
            "sector_trends": [{"conversation_count": 1, "periods": [{"change_percentage": 2}]}]
        }

    def test_does_not_modify_input(self):
        payload = {"fooBar": {"bazQux": 1}}
        snake_case_keys(payload)
        assert payload == {"fooBar": {"bazQux": 1}}
