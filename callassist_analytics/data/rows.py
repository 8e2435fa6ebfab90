"""Validation boundary: turn loosely-typed backend rows into typed Polars frames."""

import re
from collections.abc import Iterable, Mapping
from typing import Any

import polars as pl
from loguru import logger

from callassist_analytics.models.schemas import PolarsSchemaDict

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


class PayloadError(ValueError):
    """A remote payload is missing required keys or holds uncoercible values."""


def rows_to_frame(
    rows: Iterable[Mapping[str, Any]] | pl.DataFrame | None,
    dtypes: PolarsSchemaDict,
    *,
    source: str = "rows",
) -> pl.DataFrame:
    """Cast remote rows to a frame holding exactly the declared columns.

    Missing keys become nulls, unknown keys are dropped. Values are cast
    strictly, so a string like "12" is coerced but "twelve" raises, and a
    float with a fractional part is rejected in an integer column.

    Raises:
        PayloadError: when a value cannot be cast or a row is not a mapping.
    """
    if isinstance(rows, pl.DataFrame):
        records: list[Mapping[str, Any]] = rows.to_dicts()
    else:
        records = list(rows or [])

    series: list[pl.Series] = []
    for col, dtype in dtypes.items():
        msg = f"{source}: column {col!r} cannot be read as {dtype}"
        try:
            raw = pl.Series(col, [row.get(col) for row in records], strict=False)
            fractional = dtype.is_integer() and raw.dtype.is_float() and (raw.drop_nulls() % 1 != 0).any()
            cast = raw.cast(dtype, strict=True)
        except (pl.exceptions.PolarsError, TypeError, ValueError, AttributeError) as exc:
            raise PayloadError(msg) from exc
        if fractional:
            raise PayloadError(f"{msg} (fractional value)")
        series.append(cast)

    df = pl.DataFrame(series)
    logger.debug("Validated {}: {} rows x {} cols", source, df.height, df.width)
    return df


def require_keys(payload: Any, keys: Iterable[str], *, source: str = "payload") -> None:
    """Raise PayloadError unless *payload* is a mapping holding every key."""
    if not isinstance(payload, Mapping):
        raise PayloadError(f"{source}: expected an object, got {type(payload).__name__}")
    missing = [k for k in keys if k not in payload]
    if missing:
        raise PayloadError(f"{source}: missing keys {', '.join(missing)}")


def snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", name).lower()


def snake_case_keys(obj: Any) -> Any:
    """Recursively rename camelCase mapping keys (edge-function JSON) to snake_case."""
    if isinstance(obj, Mapping):
        return {snake_case(str(k)): snake_case_keys(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [snake_case_keys(v) for v in obj]
    return obj
