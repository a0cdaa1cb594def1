"""Natural-language date/time parsing for the booking dialogue.

Users type things like "January 20, 2026 at 3:00 PM", "Jan 20 3pm" or
"2026-01-20 15:00".  :func:`parse_datetime` tries a fixed cascade of
strategies and returns the first one that works:

  1. the input with the word "at" removed and whitespace collapsed
  2. the raw input
  3. a structured ``<Month> <Day>[,] [<Year>] <H>:<MM> [AM|PM]`` match
  4. the normalised input with the current year appended

Nothing raises: an unparseable string yields ``None``.  Whether a parsed
moment is acceptable (e.g. not in the past) is for the caller to decide.

The accepted set is whatever ``dateutil`` accepts, quirks included:
input with no recognisable token at all (e.g. ``"\\x00"``) comes back as
today at midnight, which the past-date rule then turns away, and a
POSIX-style ``"UTC+3"`` means three hours *behind* UTC.  Offsets of a day
or more are rejected.
"""

from __future__ import annotations

import calendar
import logging
import re
from datetime import UTC, datetime, tzinfo

from dateutil import parser as dateparser

logger = logging.getLogger(__name__)

_AT_WORD_RE = re.compile(r"\bat\b", re.IGNORECASE)
_WHITESPACE_RE = re.compile(r"\s+")
_MONTH_DAY_TIME_RE = re.compile(
    r"^(\w+)\s+(\d{1,2}),?\s*(\d{4})?\s*(\d{1,2}):(\d{2})\s*(AM|PM)?$",
    re.IGNORECASE,
)

_MONTHS: dict[str, int] = {}
for _number in range(1, 13):
    _MONTHS[calendar.month_name[_number].lower()] = _number
    _MONTHS[calendar.month_abbr[_number].lower()] = _number
_MONTHS["sept"] = 9


def normalize(text: str) -> str:
    """Drop the standalone word "at" and collapse runs of whitespace."""
    return _WHITESPACE_RE.sub(" ", _AT_WORD_RE.sub(" ", text)).strip()


def _generic_parse(text: str, default: datetime) -> datetime | None:
    if not text:
        return None
    try:
        parsed = dateparser.parse(text, default=default)
        # An out-of-range offset ("+25:00") is only rejected once it is used.
        parsed.utcoffset()
    except (ValueError, OverflowError):
        logger.debug("dateutil rejected %r", text)
        return None
    return parsed


def _to_24_hour(hour: int, meridiem: str | None) -> int:
    if not meridiem:
        return hour
    if meridiem.upper() == "PM" and hour != 12:
        return hour + 12
    if meridiem.upper() == "AM" and hour == 12:
        return 0
    return hour


def _structured_parse(text: str, current_year: int) -> datetime | None:
    match = _MONTH_DAY_TIME_RE.match(text)
    if not match:
        return None
    month_name, day, year, hour, minute, meridiem = match.groups()
    month = _MONTHS.get(month_name.lower())
    if month is None:
        return None
    try:
        return datetime(
            int(year) if year else current_year,
            month,
            int(day),
            _to_24_hour(int(hour), meridiem),
            int(minute),
        )
    except ValueError:
        return None


def parse_datetime(
    text: str,
    *,
    now: datetime | None = None,
    tz: tzinfo = UTC,
) -> datetime | None:
    """Turn loosely formatted date/time text into an aware ``datetime``.

    Naive results are interpreted in *tz*.  Fields the text leaves out are
    taken from today's date at midnight (in *tz*).  Returns ``None`` when
    no strategy recognises the input.
    """
    now = now.astimezone(tz) if now is not None else datetime.now(tz)
    default = now.replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None)
    normalized = normalize(text)
    if not normalized:
        return None

    parsed = (
        _generic_parse(normalized, default)
        or _generic_parse(text.strip(), default)
        or _structured_parse(normalized, now.year)
        or _generic_parse(f"{normalized} {now.year}", default)
    )
    if parsed is None:
        logger.debug("Could not parse date/time from %r", text)
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def format_datetime(value: datetime) -> str:
    """Render a moment as e.g. ``Tue 20 Jan 2026 at 15:00``."""
    return value.strftime("%a %d %b %Y at %H:%M")
