"""Schedule command extraction.

Pattern-based detection of reminder requests such as
"remind me to call mom at 3pm tomorrow". Matching is deterministic
substring and regex matching, not NLP: anything that does not clear the
thresholds falls through to the completion API as a normal chat message.
"""

import logging
import re
from datetime import date, datetime, time, timedelta
from typing import NamedTuple

from ..errors import ParseAmbiguousError
from .models import ScheduleCommand

logger = logging.getLogger(__name__)

_MONTHS = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)

# Leftmost match wins; at the same position the first alternative wins.
_DATE_PATTERN = re.compile(
    r"\b(?:"
    r"(?P<relative>today|tomorrow)"
    r"|(?P<month>" + "|".join(_MONTHS) + r")\s+(?P<month_day>\d{1,2})(?:st|nd|rd|th)?"
    r"|(?P<num_month>\d{1,2})[/-](?P<num_day>\d{1,2})(?:[/-](?P<num_year>\d{4}|\d{2}))?"
    r")\b",
    re.IGNORECASE,
)

_TIME_PATTERN = re.compile(
    r"(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?(?:\s?(?P<meridiem>[ap]m))?",
    re.IGNORECASE,
)

_COMMAND_PHRASES = re.compile(
    r"remind me (?:to|about)\s+|add to schedule\s+|schedule\s+",
    re.IGNORECASE,
)

_PREPOSITIONS = re.compile(r"\b(?:on|at|by)\b\s*", re.IGNORECASE)

_MIN_TITLE_LENGTH = 3  # Titles this short or shorter are rejected
_SHORT_TITLE_LENGTH = 5  # Titles shorter than this get the "Reminder: " form
_SHORT_TITLE_PREFIX = "Reminder: "


class _Span(NamedTuple):
    start: int
    end: int


def is_schedule_intent(text: str) -> bool:
    """Check whether text looks like a schedule or reminder request.

    Args:
        text: Raw user input

    Returns:
        True if the text contains "remind me", "add to schedule", or
        "schedule" together with "new" or "add" (case-insensitive)
    """
    lower = text.lower()
    return (
        "remind me" in lower
        or "add to schedule" in lower
        or ("schedule" in lower and ("new" in lower or "add" in lower))
    )


def extract_schedule_command(text: str, now: datetime | None = None) -> ScheduleCommand | None:
    """Extract a schedule command from free text.

    Extraction fails closed: ambiguous input and any error raised while
    parsing yield None, and the caller treats the text as a chat message.

    Args:
        text: Raw user input
        now: Reference time for relative dates (default: current local time)

    Returns:
        ScheduleCommand with title, description and due time, or None
    """
    if not is_schedule_intent(text):
        return None

    try:
        return _parse(text, now or datetime.now())
    except ParseAmbiguousError as e:
        logger.debug("Not a local command (%s): %r", e, text)
    except Exception:
        logger.debug("Failed to parse schedule command: %r", text, exc_info=True)
    return None


def _parse(text: str, now: datetime) -> ScheduleCommand:
    spans: list[_Span] = []

    resolved_date = None
    date_match = _DATE_PATTERN.search(text)
    if date_match:
        resolved_date = _resolve_date(date_match, now.date())
        spans.append(_Span(*date_match.span()))

    # Digits inside the date expression must not be read as a time
    masked = _blank_spans(text, spans)
    resolved_time = None
    for time_match in _TIME_PATTERN.finditer(masked):
        try:
            resolved_time = _resolve_time(time_match)
        except ValueError:
            # A quantity such as "30 eggs" is not a clock reading
            continue
        spans.append(_Span(*time_match.span()))
        break

    if resolved_date is None and resolved_time is None:
        raise ParseAmbiguousError("no date or time found")

    title = _derive_title(text, spans)
    if len(title) <= _MIN_TITLE_LENGTH:
        raise ParseAmbiguousError(f"title too short: {title!r}")
    if len(title) < _SHORT_TITLE_LENGTH:
        title = _SHORT_TITLE_PREFIX + text.strip()

    due = datetime.combine(
        resolved_date if resolved_date is not None else now.date(),
        resolved_time if resolved_time is not None else now.time(),
    )

    return ScheduleCommand(
        title=title,
        description=text if text != title else "",
        date_time=due,
        source_text=text,
        date_found=resolved_date is not None,
        time_found=resolved_time is not None,
    )


def _resolve_date(match: re.Match, today: date) -> date:
    """Turn a date match into a calendar date.

    Dates given without a year that already passed roll over to next year.
    Raises ValueError for impossible dates.
    """
    relative = match.group("relative")
    if relative:
        offset = 1 if relative.lower() == "tomorrow" else 0
        return today + timedelta(days=offset)

    month_name = match.group("month")
    if month_name:
        month = _MONTHS.index(month_name.lower()) + 1
        day = int(match.group("month_day"))
        return _with_rollover(today, month, day)

    month = int(match.group("num_month"))
    day = int(match.group("num_day"))
    year_str = match.group("num_year")
    if year_str is None:
        return _with_rollover(today, month, day)
    year = int(year_str)
    if len(year_str) == 2:
        year += 2000
    return date(year, month, day)


def _with_rollover(today: date, month: int, day: int) -> date:
    candidate = date(today.year, month, day)
    if candidate < today:
        candidate = date(today.year + 1, month, day)
    return candidate


def _resolve_time(match: re.Match) -> time:
    """Turn a time match into a wall-clock time using 12h -> 24h rules.

    Raises ValueError for out-of-range hours or minutes.
    """
    hour = int(match.group("hour"))
    minute = int(match.group("minute") or 0)
    meridiem = (match.group("meridiem") or "").lower()

    if meridiem == "pm" and hour < 12:
        hour += 12
    elif meridiem == "am" and hour == 12:
        hour = 0

    return time(hour, minute, 0)


def _blank_spans(text: str, spans: list[_Span]) -> str:
    for start, end in spans:
        text = text[:start] + " " * (end - start) + text[end:]
    return text


def _derive_title(text: str, spans: list[_Span]) -> str:
    stripped = text
    for start, end in sorted(spans, reverse=True):
        stripped = stripped[:start] + " " + stripped[end:]
    stripped = _collapse(stripped)
    stripped = _PREPOSITIONS.sub("", stripped)
    stripped = _COMMAND_PHRASES.sub("", stripped)
    return _collapse(stripped)


def _collapse(text: str) -> str:
    return " ".join(text.split())
