"""Error taxonomy for the fee engine."""

from __future__ import annotations


class FeePulseError(Exception):
    """Base exception for fee engine errors."""

    def __init__(self, message: str, student_id: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.student_id = student_id


class ValidationError(FeePulseError, ValueError):
    """A single record carries a malformed phone number or date."""


class DataError(FeePulseError, ValueError):
    """A record lacks the data needed to evaluate its schedule."""


class ChannelError(FeePulseError, RuntimeError):
    """The messaging channel failed to deliver a reminder."""
