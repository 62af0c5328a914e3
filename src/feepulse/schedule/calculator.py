"""Installment schedule generation for the supported fee plans."""

from __future__ import annotations

from datetime import date
from itertools import count
from typing import Iterator, Optional

from dateutil.relativedelta import relativedelta

from feepulse.records.types import CUSTOM_DATE, FeeFrequency, InstallmentDescriptor


def add_months(start: date, months: int) -> date:
    """Shift a date by whole months, clamping to the end of shorter months."""
    return start + relativedelta(months=months)


def months_between(start: date, end: date) -> int:
    """Count full calendar months from start to end (0 if end precedes start)."""
    if end < start:
        return 0
    months = (end.year - start.year) * 12 + (end.month - start.month)
    if add_months(start, months) > end:
        months -= 1
    return max(months, 0)


def installment_label(frequency: FeeFrequency, sequence: int, due_date: date) -> str:
    if frequency.kind == CUSTOM_DATE:
        return f"Full balance due {due_date:%d %b %Y}"
    if frequency.cadence_months == 1:
        return f"Month {sequence} ({due_date:%b %Y})"
    return f"Installment {sequence} ({due_date:%b %Y})"


def compute_schedule(
    enrollment_date: Optional[date],
    frequency: Optional[FeeFrequency],
    total_fees: float,
    custom_due_date: Optional[date] = None,
) -> Iterator[InstallmentDescriptor]:
    """Yield installments lazily; recurring plans never end.

    An empty iterator means the schedule cannot be determined (no plan, no
    enrollment date for a recurring plan, or no due date for a custom plan).
    """
    if frequency is None:
        return
    total = max(float(total_fees or 0.0), 0.0)

    if frequency.kind == CUSTOM_DATE:
        if custom_due_date is None:
            return
        amount = round(total, 2)
        yield InstallmentDescriptor(
            sequence=1,
            label=installment_label(frequency, 1, custom_due_date),
            due_date=custom_due_date,
            amount=amount,
            cumulative_amount=amount,
        )
        return

    if enrollment_date is None:
        return

    per_installment = total / frequency.divisor
    cadence = frequency.cadence_months
    for sequence in count(1):
        # Always offset from the enrollment date so month-end clamping never drifts.
        due_date = add_months(enrollment_date, sequence * cadence)
        yield InstallmentDescriptor(
            sequence=sequence,
            label=installment_label(frequency, sequence, due_date),
            due_date=due_date,
            amount=round(per_installment, 2),
            cumulative_amount=round(min(total, sequence * per_installment), 2),
        )
