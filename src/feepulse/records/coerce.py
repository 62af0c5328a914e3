"""Defensive coercion of raw record fields."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any

import pandas as pd

FALSE_TOKENS = {"false", "0", "no", "off", "n"}


def is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def safe_text(value: Any) -> str:
    if is_missing(value):
        return ""
    return str(value).strip()


def to_amount(value: Any) -> float:
    """Coerce a monetary field to a non-negative float; junk becomes 0."""
    if is_missing(value) or isinstance(value, bool):
        return 0.0
    if isinstance(value, str):
        value = value.replace(",", "").strip()
    number = pd.to_numeric(value, errors="coerce")
    if pd.isna(number):
        return 0.0
    number = float(number)
    if number != number or number in (float("inf"), float("-inf")) or number < 0:
        return 0.0
    return number


def to_datetime(value: Any) -> datetime | None:
    """Parse a timestamp-like value into a naive datetime, or None when invalid.

    Numbers are read as epoch milliseconds. Aware values are converted to UTC.
    """
    if is_missing(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        parsed = pd.to_datetime(value, unit="ms", errors="coerce")
    else:
        parsed = pd.to_datetime(value, errors="coerce")
    if pd.isna(parsed):
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.tz_convert("UTC").tz_localize(None)
    return parsed.to_pydatetime()


def to_date(value: Any) -> date | None:
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    parsed = to_datetime(value)
    return parsed.date() if parsed is not None else None


def to_naive(value: datetime) -> datetime:
    """Drop timezone info after converting to UTC so comparisons never mix kinds."""
    if value.tzinfo is None:
        return value
    return pd.Timestamp(value).tz_convert("UTC").tz_localize(None).to_pydatetime()


def to_bool(value: Any, default: bool = True) -> bool:
    if is_missing(value):
        return default
    if isinstance(value, str):
        return value.strip().lower() not in FALSE_TOKENS
    return bool(value)
