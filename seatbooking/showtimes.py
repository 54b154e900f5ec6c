"""
Bookable dates and show timings.

Everything here is a pure function of its inputs; the reference time is
always passed in by the caller.
"""

from datetime import date, datetime, time, timedelta

from .exceptions import BusinessLogicError


TIMINGS = ("10:30 AM", "2:00 PM", "6:30 PM", "9:30 PM", "11:00 PM")
SHOW_DAYS = 7


def parse_timing(label):
    """Parse a 12-hour label such as ``"6:30 PM"`` into a ``time``."""
    try:
        clock, meridian = label.strip().split(" ")
        hour, minute = (int(part) for part in clock.split(":"))
    except (AttributeError, ValueError):
        raise BusinessLogicError(f'Invalid show timing: {label!r}')

    meridian = meridian.upper()
    if meridian not in ("AM", "PM") or not 1 <= hour <= 12 or not 0 <= minute <= 59:
        raise BusinessLogicError(f'Invalid show timing: {label!r}')

    if meridian == "PM" and hour != 12:
        hour += 12
    if meridian == "AM" and hour == 12:
        hour = 0
    return time(hour, minute)


def to_date(value):
    """Coerce an ISO string, ``datetime`` or ``date`` to a ``date``."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise BusinessLogicError(f'Invalid date: {value!r}')


def showtime_instant(show_date, timing):
    return datetime.combine(to_date(show_date), parse_timing(timing))


def show_dates(reference, release_date=None):
    """Return the 7 bookable ISO dates starting at max(today, release date)."""
    first_day = reference.date()
    if release_date:
        first_day = max(first_day, to_date(release_date))
    return [(first_day + timedelta(days=offset)).isoformat() for offset in range(SHOW_DAYS)]


def available_timings(show_date, reference):
    """
    Timings still open for booking on ``show_date``.

    On the reference day only timings strictly after the reference time are
    kept. If none are left the first canonical timing is offered so the
    timing picker is never empty.
    """
    if to_date(show_date) != reference.date():
        return list(TIMINGS)

    upcoming = [
        timing for timing in TIMINGS
        if showtime_instant(show_date, timing) > reference
    ]
    return upcoming or [TIMINGS[0]]
