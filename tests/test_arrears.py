"""Tests for arrears evaluation."""

from __future__ import annotations

from datetime import date, datetime, timedelta

from feepulse.arrears.evaluator import (
    evaluate,
    is_overdue,
    next_due_installment,
    overdue_students,
    pending_amount,
    undetermined_students,
)
from feepulse.arrears.report import arrears_frame, summarize_arrears
from feepulse.records.types import FeeFrequency, StudentRecord

NOW = datetime(2026, 10, 17, 9, 0)


def _student(**kwargs) -> StudentRecord:
    defaults = {
        "student_id": "1",
        "name": "Aarav",
        "total_fees": 10000.0,
        "fees_paid": 0.0,
        "frequency": FeeFrequency.monthly(),
        "enrollment_date": (NOW - timedelta(days=45)).date(),
    }
    defaults.update(kwargs)
    return StudentRecord(**defaults)


def test_monthly_overdue_after_one_full_period() -> None:
    student = _student()
    status = evaluate(student, NOW)

    assert is_overdue(student, NOW) is True
    assert status.elapsed_periods == 1
    assert status.expected_paid == 1000


def test_monthly_not_overdue_before_first_period() -> None:
    student = _student(enrollment_date=(NOW - timedelta(days=20)).date())

    assert is_overdue(student, NOW) is False
    assert evaluate(student, NOW).state == "due"


def test_custom_date_plan() -> None:
    past = _student(frequency=FeeFrequency.custom_date(), enrollment_date=None, custom_due_date=(NOW - timedelta(days=5)).date())
    future = _student(frequency=FeeFrequency.custom_date(), enrollment_date=None, custom_due_date=(NOW + timedelta(days=5)).date())

    assert is_overdue(past, NOW) is True
    assert is_overdue(future, NOW) is False
    assert next_due_installment(future, NOW).amount == 10000


def test_fully_paid_is_never_overdue() -> None:
    plans = [
        FeeFrequency.monthly(),
        FeeFrequency.every(2),
        FeeFrequency.every(3),
        FeeFrequency.every(4),
        FeeFrequency.custom_date(),
    ]
    for plan in plans:
        student = _student(
            frequency=plan,
            fees_paid=10000.0,
            enrollment_date=date(2024, 1, 1),
            custom_due_date=date(2024, 6, 1),
        )
        for offset in (0, 30, 400, 2000):
            now = NOW + timedelta(days=offset)
            assert is_overdue(student, now) is False
            assert evaluate(student, now).state == "clear"
            assert next_due_installment(student, now) is None


def test_missing_enrollment_date_is_undetermined() -> None:
    for plan in (FeeFrequency.monthly(), FeeFrequency.every(2), FeeFrequency.every(4)):
        student = _student(frequency=plan, enrollment_date=None)
        status = evaluate(student, NOW)

        assert is_overdue(student, NOW) is False
        assert status.is_undetermined
        assert "enrollment date" in status.reason


def test_pending_amount_is_never_negative() -> None:
    assert pending_amount(_student(fees_paid=2500.0)) == 7500
    assert pending_amount(_student(fees_paid=12000.0)) == 0
    assert pending_amount(_student(total_fees="abc", fees_paid=None)) == 0


def test_installment_plan_expectation_and_next_due() -> None:
    student = _student(
        frequency=FeeFrequency.every(3), enrollment_date=date(2026, 1, 10), total_fees=12000.0, fees_paid=8000.0
    )
    on_track = evaluate(student, datetime(2026, 9, 1))

    assert on_track.state == "due"
    assert on_track.elapsed_periods == 2
    assert on_track.expected_paid == 8000
    assert on_track.next_installment.sequence == 3
    assert on_track.next_installment.due_date == date(2026, 10, 10)
    assert is_overdue(student, NOW) is True


def test_corrupt_records_degrade_instead_of_raising() -> None:
    bad_date = StudentRecord.from_mapping(
        {"student_id": "7", "totalFees": "5000", "feesPaid": "0", "admissionDate": "not a date"}
    )
    bad_plan = StudentRecord.from_mapping(
        {"student_id": "8", "totalFees": "5000", "feesCollectionFrequency": "Weekly", "admissionDate": "2026-01-01"}
    )
    bad_amounts = StudentRecord.from_mapping({"student_id": "9", "totalFees": "lots", "feesPaid": "-4"})

    assert evaluate(bad_date, NOW).is_undetermined
    assert evaluate(bad_plan, NOW).is_undetermined
    assert evaluate(bad_amounts, NOW).state == "clear"


def test_candidate_filters() -> None:
    students = [
        _student(student_id="1", class_name="Grade 5"),
        _student(student_id="2", class_name="Grade 6"),
        _student(student_id="3", class_name="Grade 5", fees_paid=10000.0),
        _student(student_id="4", class_name="Grade 5", enrollment_date=None),
    ]

    assert [s.student_id for s in overdue_students(students, NOW)] == ["1", "2"]
    assert [s.student_id for s in overdue_students(students, NOW, class_name="grade 5")] == ["1"]
    assert [s.student_id for s in undetermined_students(students, NOW)] == ["4"]


def test_arrears_frame_orders_overdue_first() -> None:
    students = [
        _student(student_id="paid", fees_paid=10000.0),
        _student(student_id="late"),
        _student(student_id="unknown", enrollment_date=None),
    ]
    frame = arrears_frame(students, NOW)
    summary = summarize_arrears(frame)

    assert list(frame["student_id"]) == ["late", "unknown", "paid"]
    assert frame.iloc[0]["next_due_date"] == "2026-10-02"
    assert summary["counts"] == {"overdue": 1, "due": 0, "clear": 1, "undetermined": 1}
    assert summary["overdue_pending"] == 10000
    assert summary["pending_total"] == 20000


def test_empty_report() -> None:
    frame = arrears_frame([], NOW)
    summary = summarize_arrears(frame)

    assert frame.empty
    assert summary["students"] == 0


def test_sub_cent_totals_still_evaluate_as_overdue() -> None:
    student = _student(enrollment_date=date(2024, 1, 1), total_fees=100.0049, fees_paid=99.999)
    status = evaluate(student, NOW)

    assert status.state == "overdue"
    assert status.elapsed_periods == 10
    assert status.next_installment.sequence == 10


def test_sub_cent_totals_with_installment_plan() -> None:
    student = _student(
        frequency=FeeFrequency.every(3), enrollment_date=date(2024, 1, 1), total_fees=100.0049, fees_paid=99.999
    )

    assert is_overdue(student, NOW) is True
    assert next_due_installment(student, NOW).sequence == 3
