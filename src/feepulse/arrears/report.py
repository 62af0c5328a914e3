"""Tabular arrears reports."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Dict, Iterable, List

import pandas as pd

from feepulse.arrears.evaluator import CLEAR, DUE, OVERDUE, UNDETERMINED, evaluate
from feepulse.records.types import StudentRecord

REPORT_COLUMNS = [
    "student_id",
    "name",
    "class_name",
    "frequency",
    "state",
    "total_fees",
    "fees_paid",
    "pending_amount",
    "expected_paid",
    "elapsed_periods",
    "next_due_date",
    "next_due_amount",
    "reason",
]


def arrears_frame(students: Iterable[StudentRecord], now: datetime | date) -> pd.DataFrame:
    """One row per student with the evaluated arrears state."""
    rows: List[Dict[str, Any]] = []
    for student in students:
        status = evaluate(student, now)
        nxt = status.next_installment
        rows.append(
            {
                "student_id": student.student_id,
                "name": student.name,
                "class_name": student.class_name,
                "frequency": str(student.frequency) if student.frequency is not None else "",
                "state": status.state,
                "total_fees": student.total_fees,
                "fees_paid": student.paid_amount,
                "pending_amount": status.pending_amount,
                "expected_paid": status.expected_paid,
                "elapsed_periods": status.elapsed_periods,
                "next_due_date": nxt.due_date.isoformat() if nxt is not None else "",
                "next_due_amount": nxt.amount if nxt is not None else 0.0,
                "reason": status.reason,
            }
        )
    frame = pd.DataFrame(rows, columns=REPORT_COLUMNS)
    order = {OVERDUE: 0, UNDETERMINED: 1, DUE: 2, CLEAR: 3}
    if not frame.empty:
        frame["_order"] = frame["state"].map(order)
        frame = frame.sort_values(by=["_order", "pending_amount"], ascending=[True, False]).drop(columns="_order")
    return frame.reset_index(drop=True)


def summarize_arrears(frame: pd.DataFrame) -> Dict[str, Any]:
    """Counts per state plus pending totals for the overdue and overall populations."""
    counts = {state: 0 for state in (OVERDUE, DUE, CLEAR, UNDETERMINED)}
    if frame.empty:
        return {"counts": counts, "pending_total": 0.0, "overdue_pending": 0.0, "students": 0}

    for state, value in frame["state"].value_counts().items():
        counts[str(state)] = int(value)
    overdue_mask = frame["state"] == OVERDUE
    return {
        "counts": counts,
        "pending_total": round(float(frame["pending_amount"].sum()), 2),
        "overdue_pending": round(float(frame.loc[overdue_mask, "pending_amount"].sum()), 2),
        "students": int(len(frame)),
    }
