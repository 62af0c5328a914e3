"""Fee engine data structures."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

from feepulse.records.coerce import safe_text, to_amount, to_bool, to_date, to_datetime

MONTHLY = "monthly"
INSTALLMENTS = "installments"
CUSTOM_DATE = "custom_date"

ALLOWED_INSTALLMENTS = (2, 3, 4)
TEACHING_MONTHS = 10

_INSTALLMENT_PATTERNS = [
    re.compile(r"^every\s+([234])\s+months?$"),
    re.compile(r"^([234])\s+installments?$"),
    re.compile(r"^installments?\s*\(\s*([234])\s*\)$"),
]
_CUSTOM_TOKENS = {"custom date", "customdate", "custom", "custom_date"}


@dataclass(frozen=True)
class FeeFrequency:
    kind: str
    installments: int = 0

    @classmethod
    def monthly(cls) -> "FeeFrequency":
        return cls(MONTHLY)

    @classmethod
    def every(cls, months: int) -> "FeeFrequency":
        if months not in ALLOWED_INSTALLMENTS:
            raise ValueError(f"installment plans support {ALLOWED_INSTALLMENTS}, got {months}")
        return cls(INSTALLMENTS, months)

    @classmethod
    def custom_date(cls) -> "FeeFrequency":
        return cls(CUSTOM_DATE)

    @property
    def is_recurring(self) -> bool:
        return self.kind in (MONTHLY, INSTALLMENTS)

    @property
    def cadence_months(self) -> int:
        """Months between successive installments (0 for a one-off custom date)."""
        if self.kind == MONTHLY:
            return 1
        if self.kind == INSTALLMENTS:
            return self.installments
        return 0

    @property
    def divisor(self) -> int:
        """How many parts the total fee is split into per installment."""
        if self.kind == MONTHLY:
            return TEACHING_MONTHS
        if self.kind == INSTALLMENTS:
            return self.installments
        return 1

    def __str__(self) -> str:
        if self.kind == MONTHLY:
            return "Monthly"
        if self.kind == INSTALLMENTS:
            return f"Every {self.installments} Month"
        return "Custom Date"


def parse_frequency(value: Any) -> Optional[FeeFrequency]:
    """Parse plan text such as 'Monthly', 'Every 3 Month' or 'Custom Date'.

    Missing text defaults to Monthly; unrecognised text returns None.
    """
    if isinstance(value, FeeFrequency):
        return value
    text = " ".join(safe_text(value).lower().split())
    if not text:
        return FeeFrequency.monthly()
    if text == "monthly":
        return FeeFrequency.monthly()
    if text in _CUSTOM_TOKENS:
        return FeeFrequency.custom_date()
    for pattern in _INSTALLMENT_PATTERNS:
        match = pattern.match(text)
        if match:
            return FeeFrequency.every(int(match.group(1)))
    return None


def _first(mapping: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in mapping and safe_text(mapping[key]):
            return mapping[key]
    return None


@dataclass
class StudentRecord:
    student_id: str
    name: str = ""
    father_name: str = ""
    mother_name: str = ""
    contact: str = ""
    class_name: str = ""
    total_fees: float = 0.0
    fees_paid: float = 0.0
    frequency: Optional[FeeFrequency] = field(default_factory=FeeFrequency.monthly)
    enrollment_date: Optional[date] = None
    custom_due_date: Optional[date] = None
    last_reminder_sent_at: Optional[datetime] = None
    reminder_enabled: bool = True

    @property
    def guardian_name(self) -> str:
        return safe_text(self.father_name) or safe_text(self.mother_name)

    @property
    def paid_amount(self) -> float:
        """Amount paid, clamped into [0, total_fees]."""
        total = to_amount(self.total_fees)
        return min(to_amount(self.fees_paid), total)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "StudentRecord":
        """Build a record from a raw document row, tolerating camelCase keys and junk values."""
        return cls(
            student_id=safe_text(_first(mapping, "student_id", "id", "studentId")),
            name=safe_text(_first(mapping, "name", "student_name", "studentName")),
            father_name=safe_text(_first(mapping, "father_name", "fatherName")),
            mother_name=safe_text(_first(mapping, "mother_name", "motherName")),
            contact=safe_text(_first(mapping, "contact", "mobile", "phoneNumber", "phone")),
            class_name=safe_text(_first(mapping, "class_name", "class", "className")),
            total_fees=to_amount(_first(mapping, "total_fees", "totalFees")),
            fees_paid=to_amount(_first(mapping, "fees_paid", "feesPaid")),
            frequency=parse_frequency(
                _first(mapping, "frequency", "fee_frequency", "feeFrequency", "feesCollectionFrequency")
            ),
            enrollment_date=to_date(
                _first(mapping, "enrollment_date", "enrollmentDate", "admission_date", "admissionDate")
            ),
            custom_due_date=to_date(_first(mapping, "custom_due_date", "customDueDate", "customDate")),
            last_reminder_sent_at=to_datetime(
                _first(mapping, "last_reminder_sent_at", "lastReminderSentAt", "lastReminderSent")
            ),
            reminder_enabled=to_bool(_first(mapping, "reminder_enabled", "reminderEnabled"), default=True),
        )


@dataclass(frozen=True)
class InstallmentDescriptor:
    sequence: int
    label: str
    due_date: date
    amount: float
    cumulative_amount: float


@dataclass
class ArrearsStatus:
    state: str
    pending_amount: float
    expected_paid: float = 0.0
    elapsed_periods: int = 0
    next_installment: Optional[InstallmentDescriptor] = None
    reason: str = ""

    @property
    def is_overdue(self) -> bool:
        return self.state == "overdue"

    @property
    def is_undetermined(self) -> bool:
        return self.state == "undetermined"


@dataclass
class DispatchResult:
    student_id: str
    status: str
    reason: str = ""
    phone: str | None = None
    message_id: str | None = None
    deep_link: str | None = None


@dataclass
class DispatchOutcome:
    sent: List[DispatchResult] = field(default_factory=list)
    skipped: List[DispatchResult] = field(default_factory=list)
    failed: List[DispatchResult] = field(default_factory=list)
    cancelled: bool = False

    def record(self, result: DispatchResult) -> None:
        getattr(self, result.status).append(result)

    @property
    def reminded_ids(self) -> List[str]:
        return [result.student_id for result in self.sent]

    @property
    def counts(self) -> Dict[str, int]:
        return {"sent": len(self.sent), "skipped": len(self.skipped), "failed": len(self.failed)}

    @property
    def skip_reasons(self) -> Dict[str, str]:
        return {result.student_id: result.reason for result in self.skipped}
