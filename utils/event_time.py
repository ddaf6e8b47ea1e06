"""
Event date/time classification.

Every consumer that needs to know whether an event is upcoming or past
(event listing routes, gallery eligibility, operator scripts) goes through
this module. Nothing here reads the wall clock except ``system_clock``;
callers pass ``now`` explicitly.
"""
import math
import re
from datetime import date, datetime, time as dt_time, timedelta
from typing import Callable, Literal, Optional, Tuple, Union

from constants import EVENT_STATUS_CANCELLED

EventTimeStatus = Literal["upcoming", "today", "past", "cancelled"]
Clock = Callable[[], datetime]
DateLike = Union[date, datetime, str]

_MERIDIEM_RE = re.compile(r"\b([ap])\.?m\b", re.IGNORECASE)
_CLOCK_RE = re.compile(r"^\s*(\d{1,2})(?:\s*:\s*(\d{1,2}))?")


def system_clock() -> datetime:
    """Current local wall-clock time (naive)."""
    return datetime.now()


def parse_event_time(time_str: Optional[str]) -> Tuple[int, int]:
    """
    Parse a free-text clock string into (hour, minute).

    Accepts 12-hour strings with an AM/PM marker ("2:30 PM", "2 pm") and
    24-hour strings ("14:30"). A missing time means the start of the day.
    Anything that cannot be read degrades to (0, 0) instead of raising.
    """
    if not time_str:
        return 0, 0

    text = str(time_str).strip()
    match = _CLOCK_RE.match(text)
    if not match:
        return 0, 0

    hour = int(match.group(1))
    minute = int(match.group(2)) if match.group(2) is not None else 0
    if minute > 59:
        minute = 0

    meridiem = _MERIDIEM_RE.search(text[match.end():])
    if meridiem:
        period = meridiem.group(1).upper()
        if period == "A" and hour == 12:
            hour = 0
        elif period == "P" and hour != 12:
            hour += 12

    if hour > 23:
        return 0, 0
    return hour, minute


def _calendar_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()


def _naive(now: datetime) -> datetime:
    # Aware instants are compared in local time, like the stored event times
    if now.tzinfo is not None:
        return now.astimezone().replace(tzinfo=None)
    return now


def event_instant(event_date: DateLike, event_time: Optional[str] = None) -> datetime:
    """Combine an event's calendar date with its clock time."""
    hour, minute = parse_event_time(event_time)
    return datetime.combine(_calendar_date(event_date), dt_time(hour, minute))


def is_upcoming(event_date: DateLike, event_time: Optional[str], now: datetime) -> bool:
    return event_instant(event_date, event_time) > _naive(now)


def is_past(event_date: DateLike, event_time: Optional[str], now: datetime) -> bool:
    # Exact complement of is_upcoming: the starting instant itself counts as past
    return event_instant(event_date, event_time) <= _naive(now)


def event_status(
    event_date: DateLike,
    event_time: Optional[str],
    status: Optional[str],
    now: datetime,
) -> EventTimeStatus:
    """
    Derive the display status of an event.

    Cancelled events are always "cancelled". Otherwise an event whose start
    is at or before ``now`` is "past"; one starting later on the same
    calendar day is "today"; anything else is "upcoming".
    """
    if status == EVENT_STATUS_CANCELLED:
        return "cancelled"

    instant = event_instant(event_date, event_time)
    now = _naive(now)
    if instant <= now:
        return "past"
    if instant.date() == now.date():
        return "today"
    return "upcoming"


def days_until_event(event_date: DateLike, event_time: Optional[str], now: datetime) -> int:
    """Whole days until the event starts, rounded up; zero or negative once started."""
    delta = event_instant(event_date, event_time) - _naive(now)
    return math.ceil(delta / timedelta(days=1))


def is_event_upcoming(event, now: datetime) -> bool:
    return is_upcoming(event.date, event.time, now)


def is_event_past(event, now: datetime) -> bool:
    return is_past(event.date, event.time, now)


def classify_event(event, now: datetime) -> EventTimeStatus:
    return event_status(event.date, event.time, getattr(event, "status", None), now)
