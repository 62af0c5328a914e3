"""Mobile number normalisation for messaging channels."""

from __future__ import annotations

import re
from typing import Any

from feepulse.errors import ValidationError
from feepulse.records.coerce import safe_text

DEFAULT_COUNTRY_CODE = "91"
LOCAL_MOBILE = re.compile(r"^[6-9]\d{9}$")


def digits_only(value: Any) -> str:
    text = safe_text(value)
    if text.endswith(".0") and text[:-2].isdigit():
        text = text[:-2]
    return re.sub(r"\D", "", text)


def normalize_phone(value: Any, country_code: str = DEFAULT_COUNTRY_CODE) -> str | None:
    """Return the number as country code + 10 digits, or None when it is not a mobile number."""
    digits = digits_only(value)
    if LOCAL_MOBILE.match(digits):
        return f"{country_code}{digits}"
    if len(digits) == len(country_code) + 10 and digits.startswith(country_code):
        return digits
    return None


def require_phone(value: Any, student_id: str | None = None, country_code: str = DEFAULT_COUNTRY_CODE) -> str:
    phone = normalize_phone(value, country_code)
    if phone is None:
        raise ValidationError(f"invalid mobile number: {safe_text(value)!r}", student_id)
    return phone
