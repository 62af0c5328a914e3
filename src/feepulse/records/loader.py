"""Loading student exports and persisting reminder timestamps."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from typing import Dict, List, Protocol

import pandas as pd

from feepulse.records.coerce import safe_text
from feepulse.records.types import StudentRecord

PROJECT_ROOT = Path(__file__).resolve().parents[3]
REMINDER_COLUMN = "last_reminder_sent_at"
ID_COLUMNS = ("student_id", "id", "studentId")


def resolve_path(path: Path | str) -> Path:
    path = Path(path)
    if path.is_absolute():
        return path
    return PROJECT_ROOT / path


def normalize_id(x: object) -> str:
    s = safe_text(x)
    if s.endswith(".0") and s[:-2].isdigit():
        s = s[:-2]
    if s.isdigit():
        s2 = s.lstrip("0")
        return s2 if s2 != "" else "0"
    return s


def load_students_frame(path: Path | str) -> pd.DataFrame:
    path = resolve_path(path)
    if not path.exists():
        raise FileNotFoundError(f"Student export not found: {path}")
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    df.columns = [str(c).strip() for c in df.columns]
    if not any(c in df.columns for c in ID_COLUMNS):
        raise ValueError(f"no student id column found in {path}")
    return df


def load_students(path: Path | str) -> List[StudentRecord]:
    """Read a CSV export into records; bad cells are coerced, never fatal."""
    df = load_students_frame(path)
    return [StudentRecord.from_mapping(row) for row in df.to_dict(orient="records")]


def load_payments(path: Path | str) -> pd.DataFrame:
    path = resolve_path(path)
    if not path.exists():
        return pd.DataFrame(columns=["student_id", "date", "amount"])
    return pd.read_csv(path)


class ReminderStore(Protocol):
    def mark_reminded(self, student_id: str, sent_at: datetime) -> None:
        """Record the time the last reminder was sent to a student."""
        ...

    def flush(self) -> int:
        """Persist recorded timestamps; returns how many rows were written."""
        ...


class InMemoryReminderStore:
    def __init__(self) -> None:
        self.sent: Dict[str, datetime] = {}

    def mark_reminded(self, student_id: str, sent_at: datetime) -> None:
        self.sent[normalize_id(student_id)] = sent_at

    def flush(self) -> int:
        return len(self.sent)


class CsvReminderStore(InMemoryReminderStore):
    """Collect reminder timestamps and write them back to the student export on flush."""

    def __init__(self, path: Path | str) -> None:
        super().__init__()
        self.path = resolve_path(path)

    def flush(self) -> int:
        if not self.sent:
            return 0
        df = load_students_frame(self.path)
        id_col = next(c for c in ID_COLUMNS if c in df.columns)
        if REMINDER_COLUMN not in df.columns:
            df[REMINDER_COLUMN] = ""
        ids = df[id_col].map(normalize_id)
        updated = 0
        for student_id, sent_at in self.sent.items():
            mask = ids == student_id
            if mask.any():
                df.loc[mask, REMINDER_COLUMN] = sent_at.isoformat(timespec="seconds")
                updated += int(mask.sum())
        df.to_csv(self.path, index=False)
        self.sent.clear()
        return updated
