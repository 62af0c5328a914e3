"""Guardian-facing fee reminder text."""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from feepulse.arrears.evaluator import pending_amount
from feepulse.records.coerce import safe_text, to_amount
from feepulse.records.types import StudentRecord

DEFAULT_GUARDIAN = "Parent"
DEFAULT_STUDENT = "your ward"
DEFAULT_INSTITUTION = "Our Institute"
DEFAULT_CURRENCY = "₹"


def _group_indian(integer_part: str) -> str:
    if len(integer_part) <= 3:
        return integer_part
    head, tail = integer_part[:-3], integer_part[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return ",".join(groups + [tail])


def format_amount(value: object, symbol: str = DEFAULT_CURRENCY) -> str:
    """Format money with Indian digit grouping, e.g. 125000 -> '₹1,25,000'."""
    amount = round(to_amount(value), 2)
    integer_part, _, fraction = f"{amount:.2f}".partition(".")
    text = _group_indian(integer_part)
    if fraction != "00":
        text = f"{text}.{fraction}"
    return f"{symbol}{text}"


def compose(
    student: StudentRecord,
    institution_name: str | None = None,
    now: Optional[datetime | date] = None,
    currency_symbol: str = DEFAULT_CURRENCY,
) -> str:
    """Render the reminder message; missing fields fall back to neutral defaults."""
    when = now or datetime.now()
    guardian = safe_text(getattr(student, "guardian_name", "")) or DEFAULT_GUARDIAN
    name = safe_text(getattr(student, "name", "")) or DEFAULT_STUDENT
    class_name = safe_text(getattr(student, "class_name", ""))
    who = f"{name} ({class_name})" if class_name else name
    institution = safe_text(institution_name) or DEFAULT_INSTITUTION
    try:
        amount = format_amount(pending_amount(student), currency_symbol or DEFAULT_CURRENCY)
    except (TypeError, ValueError):
        amount = format_amount(0, currency_symbol or DEFAULT_CURRENCY)

    return (
        f"Dear {guardian},\n\n"
        f"We hope this message finds you well. This is a gentle reminder that fees amounting to "
        f"{amount} for {who} are pending for {when:%B %Y}.\n\n"
        "We kindly request you to arrange the payment at your earliest convenience.\n\n"
        "If you have already made the payment, please ignore this message.\n\n"
        f"Best regards,\n{institution}"
    )
