"""Rate-limited, sequential dispatch of fee reminders."""

from __future__ import annotations

import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, Optional

from feepulse.arrears.evaluator import pending_amount
from feepulse.errors import ChannelError, ValidationError
from feepulse.records.coerce import safe_text, to_bool, to_datetime, to_naive
from feepulse.records.loader import ReminderStore
from feepulse.records.types import DispatchOutcome, DispatchResult, StudentRecord
from feepulse.reminders.channels import Channel
from feepulse.reminders.composer import DEFAULT_CURRENCY, compose
from feepulse.reminders.phone import DEFAULT_COUNTRY_CODE, require_phone

logger = logging.getLogger(__name__)

SENT = "sent"
SKIPPED = "skipped"
FAILED = "failed"

NO_PENDING_AMOUNT = "no_pending_amount"
REMINDERS_DISABLED = "reminders_disabled"
MISSING_CONTACT = "missing_contact"
INVALID_CONTACT = "invalid_contact"
RECENTLY_REMINDED = "recently_reminded"


class BulkDispatcher:
    """Send reminders one student at a time with a fixed pause between sends."""

    def __init__(
        self,
        channel: Channel,
        store: Optional[ReminderStore] = None,
        institution_name: str | None = None,
        currency_symbol: str = DEFAULT_CURRENCY,
        delay_seconds: float = 1.5,
        suppression_hours: float = 24,
        country_code: str = DEFAULT_COUNTRY_CODE,
        sleep: Callable[[float], Any] = time.sleep,
    ) -> None:
        self.channel = channel
        self.store = store
        self.institution_name = institution_name
        self.currency_symbol = currency_symbol
        self.delay_seconds = delay_seconds
        self.suppression_window = timedelta(hours=suppression_hours)
        self.country_code = country_code
        self.sleep = sleep

    def skip_reason(self, student: StudentRecord, now: datetime) -> str | None:
        """Return why a student must not be reminded now, or None if eligible."""
        if pending_amount(student) <= 0:
            return NO_PENDING_AMOUNT
        if not to_bool(student.reminder_enabled, default=True):
            return REMINDERS_DISABLED
        if not safe_text(student.contact):
            return MISSING_CONTACT
        try:
            require_phone(student.contact, student.student_id, self.country_code)
        except ValidationError:
            return INVALID_CONTACT
        last_sent = to_datetime(student.last_reminder_sent_at)
        if last_sent is not None and to_naive(now) - last_sent <= self.suppression_window:
            return RECENTLY_REMINDED
        return None

    def dispatch_one(self, student: StudentRecord, now: datetime) -> DispatchResult:
        return self._dispatch(student, now, self.skip_reason(student, now))

    def _dispatch(self, student: StudentRecord, now: datetime, reason: str | None) -> DispatchResult:
        student_id = safe_text(student.student_id)
        if reason is not None:
            logger.debug("Skipping reminder for student %s: %s", student_id, reason)
            return DispatchResult(student_id=student_id, status=SKIPPED, reason=reason)

        phone = require_phone(student.contact, student_id, self.country_code)
        text = compose(student, self.institution_name, now=now, currency_symbol=self.currency_symbol)
        try:
            response = self.channel.send(phone, text)
        except ChannelError as exc:
            logger.warning("Reminder to student %s failed: %s", student_id, exc)
            return DispatchResult(student_id=student_id, status=FAILED, reason=str(exc), phone=phone)
        except Exception as exc:
            logger.exception("Unexpected channel error for student %s", student_id)
            return DispatchResult(student_id=student_id, status=FAILED, reason=str(exc), phone=phone)

        if not response.delivered:
            reason = response.error or "channel reported the message as undelivered"
            logger.warning("Reminder to student %s not delivered: %s", student_id, reason)
            return DispatchResult(student_id=student_id, status=FAILED, reason=reason, phone=phone)

        student.last_reminder_sent_at = now
        if self.store is not None:
            self.store.mark_reminded(student_id, now)
        logger.info("Reminder sent to student %s (%s)", student_id, phone)
        return DispatchResult(
            student_id=student_id,
            status=SENT,
            phone=phone,
            message_id=response.id,
            deep_link=response.deep_link,
        )

    def dispatch_all(
        self,
        candidates: Iterable[StudentRecord],
        now: datetime,
        cancel: Optional[threading.Event] = None,
    ) -> DispatchOutcome:
        """Process candidates in order; one failure never stops the batch.

        The store is flushed even when the batch is interrupted, so reminders
        already sent stay suppressed on the next run.
        """
        outcome = DispatchOutcome()
        attempted = 0
        try:
            for student in candidates:
                if cancel is not None and cancel.is_set():
                    logger.info("Reminder batch cancelled after %s attempt(s)", attempted)
                    outcome.cancelled = True
                    break

                reason = self.skip_reason(student, now)
                if reason is None and attempted > 0 and self.delay_seconds > 0:
                    self.sleep(self.delay_seconds)

                result = self._dispatch(student, now, reason)
                if result.status != SKIPPED:
                    attempted += 1
                outcome.record(result)
        finally:
            if self.store is not None:
                self.store.flush()

        logger.info(
            "Reminder batch finished: %s sent, %s skipped, %s failed",
            len(outcome.sent),
            len(outcome.skipped),
            len(outcome.failed),
        )
        return outcome


def build_dispatcher(
    cfg: Dict[str, Any], channel: Channel, store: Optional[ReminderStore] = None
) -> BulkDispatcher:
    reminders_cfg = cfg.get("reminders") or {}
    institution_cfg = cfg.get("institution") or {}
    return BulkDispatcher(
        channel=channel,
        store=store,
        institution_name=institution_cfg.get("name"),
        currency_symbol=institution_cfg.get("currency_symbol", DEFAULT_CURRENCY),
        delay_seconds=float(reminders_cfg.get("delay_seconds", 1.5)),
        suppression_hours=float(reminders_cfg.get("suppression_hours", 24)),
        country_code=str(reminders_cfg.get("country_code", DEFAULT_COUNTRY_CODE)),
    )
