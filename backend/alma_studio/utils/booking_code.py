"""Human-readable booking codes: ``{PREFIX}-{4 timestamp chars}{4 random chars}``."""

import re
import secrets
import time
from typing import Optional

from ..core.config import settings
from ..core.constants import BOOKING_CODE_RANDOM_CHARS, BOOKING_CODE_TIMESTAMP_CHARS

BASE36_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding requires a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def generate_booking_code(prefix: Optional[str] = None, now_ms: Optional[int] = None) -> str:
    """
    Build a booking code from the millisecond clock and a random suffix.

    Uniqueness is practical, not guaranteed: no lookup is performed and the
    unique index on ``bookings.booking_code`` is the final arbiter.
    """
    prefix = (prefix or settings.booking_code_prefix).upper()
    millis = now_ms if now_ms is not None else int(time.time() * 1000)
    timestamp_part = to_base36(millis)[-BOOKING_CODE_TIMESTAMP_CHARS:].rjust(
        BOOKING_CODE_TIMESTAMP_CHARS, "0"
    )
    random_part = "".join(
        secrets.choice(BASE36_ALPHABET) for _ in range(BOOKING_CODE_RANDOM_CHARS)
    )
    return f"{prefix}-{timestamp_part}{random_part}"


def booking_code_pattern(prefix: Optional[str] = None) -> "re.Pattern[str]":
    prefix = (prefix or settings.booking_code_prefix).upper()
    length = BOOKING_CODE_TIMESTAMP_CHARS + BOOKING_CODE_RANDOM_CHARS
    return re.compile(rf"^{re.escape(prefix)}-[0-9A-Z]{{{length}}}$")
