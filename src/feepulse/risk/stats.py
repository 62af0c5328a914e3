"""Institution-wide collection aggregates."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Iterable

import pandas as pd

from feepulse.records.coerce import to_amount
from feepulse.records.types import StudentRecord


@dataclass(frozen=True)
class AggregateStats:
    total_fees: float
    collected_fees: float
    pending_fees: float
    collection_rate_percent: float
    pending_percent: float

    @classmethod
    def from_totals(cls, total_fees: object, collected_fees: object) -> "AggregateStats":
        total = to_amount(total_fees)
        collected = to_amount(collected_fees)
        pending = max(0.0, total - collected)
        rate = collected / total * 100 if total > 0 else 0.0
        pending_pct = pending / total * 100 if total > 0 else 0.0
        return cls(
            total_fees=total,
            collected_fees=collected,
            pending_fees=pending,
            collection_rate_percent=rate,
            pending_percent=pending_pct,
        )


@dataclass(frozen=True)
class CollectionTrend:
    current_month_collected: float = 0.0
    last_month_collected: float = 0.0

    @property
    def is_growing(self) -> bool:
        return self.current_month_collected > self.last_month_collected


def aggregate_stats(students: Iterable[StudentRecord]) -> AggregateStats:
    total = 0.0
    collected = 0.0
    for student in students:
        total += to_amount(student.total_fees)
        collected += student.paid_amount
    return AggregateStats.from_totals(total, collected)


def monthly_collections(
    payments: pd.DataFrame, date_col: str = "date", amount_col: str = "amount"
) -> pd.Series:
    """Sum payments per calendar month, indexed by monthly Period."""
    if payments is None or payments.empty:
        return pd.Series(dtype=float)
    if date_col not in payments.columns:
        raise ValueError(f"date column '{date_col}' not found")
    if amount_col not in payments.columns:
        raise ValueError(f"amount column '{amount_col}' not found")

    df = payments[[date_col, amount_col]].copy()
    df[date_col] = pd.to_datetime(df[date_col], errors="coerce")
    df[amount_col] = pd.to_numeric(df[amount_col], errors="coerce").fillna(0.0).clip(lower=0.0)
    df = df.dropna(subset=[date_col])
    if df.empty:
        return pd.Series(dtype=float)
    return df.groupby(df[date_col].dt.to_period("M"))[amount_col].sum().sort_index()


def collection_trend(
    payments: pd.DataFrame, now: datetime | date, date_col: str = "date", amount_col: str = "amount"
) -> CollectionTrend:
    """Compare collections for the month containing now with the month before it."""
    monthly = monthly_collections(payments, date_col=date_col, amount_col=amount_col)
    current = pd.Period(pd.Timestamp(now), freq="M")
    previous = current - 1
    return CollectionTrend(
        current_month_collected=float(monthly.get(current, 0.0)),
        last_month_collected=float(monthly.get(previous, 0.0)),
    )
