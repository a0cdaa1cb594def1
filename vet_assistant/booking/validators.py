"""Shape checks for the answers collected during a booking."""

from __future__ import annotations

import re

OWNER_NAME_MIN_LENGTH = 2
PET_NAME_MIN_LENGTH = 1
PHONE_MIN_DIGITS = 10

_NON_DIGIT_RE = re.compile(r"\D")


def is_valid_name(value: str, min_length: int = OWNER_NAME_MIN_LENGTH) -> bool:
    return len(value.strip()) >= min_length


def is_valid_phone(value: str) -> bool:
    """Accept any formatting as long as at least ten digits are present."""
    return len(_NON_DIGIT_RE.sub("", value)) >= PHONE_MIN_DIGITS
