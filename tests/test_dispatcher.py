"""Tests for the bulk reminder dispatcher."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import List

import pandas as pd
import pytest

from feepulse.errors import ChannelError
from feepulse.records.loader import CsvReminderStore, InMemoryReminderStore, load_students
from feepulse.records.types import FeeFrequency, StudentRecord
from feepulse.reminders.channels import ChannelResponse, DeepLinkChannel
from feepulse.reminders.dispatcher import BulkDispatcher, build_dispatcher

NOW = datetime(2026, 10, 17, 9, 0)


@dataclass
class FakeChannel:
    fail_for: set = field(default_factory=set)
    raise_for: set = field(default_factory=set)
    calls: List[tuple] = field(default_factory=list)

    def send(self, phone: str, text: str) -> ChannelResponse:
        self.calls.append((phone, text))
        if phone in self.raise_for:
            raise ChannelError("gateway timeout")
        if phone in self.fail_for:
            return ChannelResponse(delivered=False, error="number not on WhatsApp")
        return ChannelResponse(delivered=True, id=f"msg-{len(self.calls)}")


def _student(student_id: str, contact: str = "9876543210", **kwargs) -> StudentRecord:
    return StudentRecord(
        student_id=student_id,
        name=f"Student {student_id}",
        father_name="Guardian",
        contact=contact,
        total_fees=kwargs.pop("total_fees", 10000.0),
        fees_paid=kwargs.pop("fees_paid", 0.0),
        frequency=FeeFrequency.monthly(),
        enrollment_date=(NOW - timedelta(days=60)).date(),
        **kwargs,
    )


def _dispatcher(channel, store=None, sleeps=None) -> BulkDispatcher:
    recorder = sleeps if sleeps is not None else []
    return BulkDispatcher(channel, store=store, institution_name="Green Valley", sleep=recorder.append)


def test_batch_skips_missing_contact_and_recent_reminder() -> None:
    channel = FakeChannel()
    store = InMemoryReminderStore()
    students = [
        _student("1", contact=""),
        _student("2", last_reminder_sent_at=NOW - timedelta(hours=2)),
        _student("3", contact="9123456789"),
    ]
    outcome = _dispatcher(channel, store).dispatch_all(students, NOW)

    assert outcome.counts == {"sent": 1, "skipped": 2, "failed": 0}
    assert outcome.skip_reasons == {"1": "missing_contact", "2": "recently_reminded"}
    assert len(channel.calls) == 1
    assert channel.calls[0][0] == "919123456789"
    assert "Dear Guardian" in channel.calls[0][1]
    assert outcome.reminded_ids == ["3"]
    assert store.sent == {"3": NOW}
    assert students[2].last_reminder_sent_at == NOW
    assert students[1].last_reminder_sent_at == NOW - timedelta(hours=2)


def test_each_skip_rule_has_its_own_reason() -> None:
    dispatcher = _dispatcher(FakeChannel())

    assert dispatcher.skip_reason(_student("a", fees_paid=10000.0), NOW) == "no_pending_amount"
    assert dispatcher.skip_reason(_student("b", reminder_enabled=False), NOW) == "reminders_disabled"
    assert dispatcher.skip_reason(_student("c", contact="12345"), NOW) == "invalid_contact"
    assert dispatcher.skip_reason(_student("d", last_reminder_sent_at=NOW - timedelta(hours=25)), NOW) is None


def test_failures_are_isolated_and_batch_continues() -> None:
    channel = FakeChannel(fail_for={"919000000001"}, raise_for={"919000000002"})
    sleeps: List[float] = []
    students = [
        _student("1", contact="9000000001"),
        _student("2", contact="9000000002"),
        _student("3", contact="9000000003"),
    ]
    outcome = _dispatcher(channel, sleeps=sleeps).dispatch_all(students, NOW)

    assert outcome.counts == {"sent": 1, "skipped": 0, "failed": 2}
    assert [r.student_id for r in outcome.failed] == ["1", "2"]
    assert outcome.failed[0].reason == "number not on WhatsApp"
    assert "gateway timeout" in outcome.failed[1].reason
    assert students[0].last_reminder_sent_at is None
    assert sleeps == [1.5, 1.5]


def test_unexpected_channel_exception_is_recorded() -> None:
    class BrokenChannel:
        def send(self, phone: str, text: str) -> ChannelResponse:
            raise RuntimeError("boom")

    outcome = _dispatcher(BrokenChannel()).dispatch_all([_student("1"), _student("2", contact="9123456789")], NOW)

    assert outcome.counts["failed"] == 2
    assert outcome.failed[0].reason == "boom"


def test_no_delay_before_first_send_or_for_skips() -> None:
    sleeps: List[float] = []
    students = [_student("1", contact=""), _student("2"), _student("3", fees_paid=10000.0)]
    _dispatcher(FakeChannel(), sleeps=sleeps).dispatch_all(students, NOW)

    assert sleeps == []


def test_repeat_run_same_day_sends_nothing_new() -> None:
    channel = FakeChannel()
    dispatcher = _dispatcher(channel)
    students = [_student("1"), _student("2", contact="9123456789")]

    first = dispatcher.dispatch_all(students, NOW)
    second = dispatcher.dispatch_all(students, NOW + timedelta(hours=6))

    assert first.counts["sent"] == 2
    assert second.counts == {"sent": 0, "skipped": 2, "failed": 0}
    assert len(channel.calls) == 2


def test_cancelled_batch_stops_between_candidates() -> None:
    cancel = threading.Event()
    cancel.set()
    channel = FakeChannel()
    outcome = _dispatcher(channel).dispatch_all([_student("1")], NOW, cancel=cancel)

    assert outcome.cancelled
    assert channel.calls == []


def test_dispatch_one_with_deep_link_channel() -> None:
    dispatcher = _dispatcher(DeepLinkChannel())
    result = dispatcher.dispatch_one(_student("1"), NOW)

    assert result.status == "sent"
    assert result.deep_link.startswith("https://wa.me/919876543210?text=Dear%20Guardian")


def test_build_dispatcher_reads_config() -> None:
    cfg = {
        "institution": {"name": "Sunrise Academy", "currency_symbol": "Rs."},
        "reminders": {"delay_seconds": 0, "suppression_hours": 12, "country_code": "91"},
    }
    dispatcher = build_dispatcher(cfg, FakeChannel())

    assert dispatcher.institution_name == "Sunrise Academy"
    assert dispatcher.delay_seconds == 0
    assert dispatcher.suppression_window == timedelta(hours=12)
    assert dispatcher.skip_reason(_student("1", last_reminder_sent_at=NOW - timedelta(hours=13)), NOW) is None


def _write_students(path, ids: List[str]) -> None:
    pd.DataFrame(
        {
            "student_id": ids,
            "name": [f"Student {i}" for i in ids],
            "contact": [f"98765432{i.zfill(2)}" for i in ids],
            "totalFees": ["10000"] * len(ids),
            "feesPaid": ["0"] * len(ids),
            "feesCollectionFrequency": ["Monthly"] * len(ids),
            "admissionDate": ["2026-08-01"] * len(ids),
        }
    ).to_csv(path, index=False)


def test_interrupted_batch_still_persists_sent_reminders(tmp_path) -> None:
    path = tmp_path / "students.csv"
    _write_students(path, ["1", "2", "3"])

    class InterruptedChannel:
        def __init__(self) -> None:
            self.calls = 0

        def send(self, phone: str, text: str) -> ChannelResponse:
            self.calls += 1
            if self.calls == 2:
                raise KeyboardInterrupt
            return ChannelResponse(delivered=True, id="m1")

    dispatcher = _dispatcher(InterruptedChannel(), store=CsvReminderStore(path))
    with pytest.raises(KeyboardInterrupt):
        dispatcher.dispatch_all(load_students(path), NOW)

    reloaded = load_students(path)
    assert reloaded[0].last_reminder_sent_at == NOW
    assert reloaded[1].last_reminder_sent_at is None
    assert _dispatcher(FakeChannel()).skip_reason(reloaded[0], NOW) == "recently_reminded"


def test_prepared_deep_links_suppress_repeat_preparation(tmp_path) -> None:
    path = tmp_path / "students.csv"
    _write_students(path, ["1", "2"])

    first = _dispatcher(DeepLinkChannel(), store=CsvReminderStore(path)).dispatch_all(load_students(path), NOW)
    second = _dispatcher(DeepLinkChannel(), store=CsvReminderStore(path)).dispatch_all(
        load_students(path), NOW + timedelta(hours=3)
    )

    assert first.counts["sent"] == 2
    assert second.counts == {"sent": 0, "skipped": 2, "failed": 0}
    assert set(second.skip_reasons.values()) == {"recently_reminded"}


def test_eligibility_is_checked_once_per_candidate() -> None:
    class CountingDispatcher(BulkDispatcher):
        def __init__(self, *args, **kwargs) -> None:
            super().__init__(*args, **kwargs)
            self.checks: List[str] = []

        def skip_reason(self, student: StudentRecord, now: datetime) -> str | None:
            self.checks.append(student.student_id)
            return super().skip_reason(student, now)

    dispatcher = CountingDispatcher(FakeChannel(), sleep=lambda seconds: None)
    outcome = dispatcher.dispatch_all([_student("1"), _student("2", contact=""), _student("3")], NOW)

    assert dispatcher.checks == ["1", "2", "3"]
    assert outcome.counts == {"sent": 2, "skipped": 1, "failed": 0}
