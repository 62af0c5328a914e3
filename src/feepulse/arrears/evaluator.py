"""Arrears evaluation shared by the dashboard, the list views and the reminder job."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Iterable, List, Optional

from feepulse.errors import DataError
from feepulse.records.coerce import safe_text, to_amount, to_date
from feepulse.records.types import CUSTOM_DATE, ArrearsStatus, InstallmentDescriptor, StudentRecord
from feepulse.schedule.calculator import compute_schedule

logger = logging.getLogger(__name__)

CLEAR = "clear"
DUE = "due"
OVERDUE = "overdue"
UNDETERMINED = "undetermined"

TOLERANCE = 1e-6


def _today(now: datetime | date) -> date:
    if isinstance(now, datetime):
        return now.date()
    return now


def pending_amount(student: StudentRecord) -> float:
    """Outstanding balance, never negative."""
    total = to_amount(student.total_fees)
    paid = to_amount(student.fees_paid)
    return round(max(0.0, total - paid), 2)


def _check_schedule_inputs(student: StudentRecord) -> None:
    if student.frequency is None:
        raise DataError("unrecognised fee frequency", student.student_id)
    if student.frequency.kind == CUSTOM_DATE:
        if to_date(student.custom_due_date) is None:
            raise DataError("custom due date missing", student.student_id)
    elif to_date(student.enrollment_date) is None:
        raise DataError("enrollment date missing", student.student_id)


def _expected_after(student: StudentRecord, periods: int) -> float:
    """Unrounded amount expected once the given number of installments fall due."""
    total = to_amount(student.total_fees)
    return min(total, periods * total / student.frequency.divisor)


def _first_unmet(student: StudentRecord, paid: float) -> Optional[InstallmentDescriptor]:
    schedule = compute_schedule(
        to_date(student.enrollment_date),
        student.frequency,
        to_amount(student.total_fees),
        to_date(student.custom_due_date),
    )
    for installment in schedule:
        if paid + TOLERANCE < _expected_after(student, installment.sequence):
            return installment
        # The whole fee is scheduled after `divisor` installments.
        if installment.sequence >= student.frequency.divisor:
            return None
    return None


def _evaluate(student: StudentRecord, today: date) -> ArrearsStatus:
    pending = pending_amount(student)
    if pending <= 0:
        return ArrearsStatus(state=CLEAR, pending_amount=0.0)

    try:
        _check_schedule_inputs(student)
    except DataError as exc:
        logger.warning("Arrears undetermined for student %s: %s", exc.student_id or "?", exc.message)
        return ArrearsStatus(state=UNDETERMINED, pending_amount=pending, reason=exc.message)

    total = to_amount(student.total_fees)
    paid = student.paid_amount
    next_installment = _first_unmet(student, paid)

    if student.frequency.kind == CUSTOM_DATE:
        due_date = to_date(student.custom_due_date)
        overdue = today > due_date
        return ArrearsStatus(
            state=OVERDUE if overdue else DUE,
            pending_amount=pending,
            expected_paid=round(total, 2) if overdue else 0.0,
            elapsed_periods=1 if overdue else 0,
            next_installment=next_installment,
            reason=f"full balance was due on {due_date.isoformat()}" if overdue else "",
        )

    elapsed = 0
    schedule = compute_schedule(to_date(student.enrollment_date), student.frequency, total)
    for installment in schedule:
        if installment.due_date > today:
            break
        elapsed = installment.sequence
        # Once the full fee is expected, later periods cannot change the outcome.
        if elapsed >= student.frequency.divisor:
            break

    expected = _expected_after(student, elapsed)
    overdue = paid + TOLERANCE < expected
    logger.debug(
        "Student %s: elapsed=%s expected=%.2f paid=%.2f overdue=%s",
        student.student_id,
        elapsed,
        expected,
        paid,
        overdue,
    )
    return ArrearsStatus(
        state=OVERDUE if overdue else DUE,
        pending_amount=pending,
        expected_paid=round(expected, 2),
        elapsed_periods=elapsed,
        next_installment=next_installment,
        reason=f"paid {paid:.2f} of {expected:.2f} expected after {elapsed} period(s)" if overdue else "",
    )


def evaluate(student: StudentRecord, now: datetime | date) -> ArrearsStatus:
    """Classify a student as clear, due, overdue or undetermined as of now.

    A single bad record never raises; it degrades to undetermined.
    """
    try:
        return _evaluate(student, _today(now))
    except (ValueError, TypeError, OverflowError, AttributeError) as exc:
        logger.warning("Arrears evaluation failed for student %s: %s", safe_text(student.student_id), exc)
        return ArrearsStatus(state=UNDETERMINED, pending_amount=_safe_pending(student), reason=str(exc))


def _safe_pending(student: StudentRecord) -> float:
    try:
        return pending_amount(student)
    except (ValueError, TypeError):
        return 0.0


def is_overdue(student: StudentRecord, now: datetime | date) -> bool:
    return evaluate(student, now).is_overdue


def next_due_installment(student: StudentRecord, now: datetime | date) -> Optional[InstallmentDescriptor]:
    return evaluate(student, now).next_installment


def overdue_students(
    students: Iterable[StudentRecord], now: datetime | date, class_name: str | None = None
) -> List[StudentRecord]:
    """Students in arrears, optionally limited to one class."""
    wanted = safe_text(class_name).lower()
    result: List[StudentRecord] = []
    for student in students:
        if wanted and safe_text(student.class_name).lower() != wanted:
            continue
        if is_overdue(student, now):
            result.append(student)
    return result


def undetermined_students(students: Iterable[StudentRecord], now: datetime | date) -> List[StudentRecord]:
    """Students whose arrears cannot be computed from the data on file."""
    return [student for student in students if evaluate(student, now).is_undetermined]
