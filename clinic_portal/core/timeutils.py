"""Parsing and formatting of appointment times."""

from datetime import date, datetime, time, timedelta

SLOT_LENGTH = timedelta(minutes=30)

_TIME_FORMATS = (
    "%H:%M:%S",
    "%H:%M",
    "%I:%M %p",
    "%I:%M%p",
    "%I:%M:%S %p",
    "%I %p",
    "%I%p",
)


def normalize_time(value: str | time) -> time:
    """
    Normalize a 12-hour or 24-hour time of day to a canonical ``time``.

    Accepts values such as ``"14:30"``, ``"14:30:00"`` and ``"2:30 PM"``.

    Raises:
        ValueError: If the value cannot be parsed
    """
    if isinstance(value, time):
        return value.replace(microsecond=0, tzinfo=None)

    cleaned = " ".join(value.strip().upper().split())
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(cleaned, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Unrecognised time format: {value!r}")


def parse_working_hours(value: str | None) -> tuple[time, time] | None:
    """
    Parse an ``"HH:MM-HH:MM"`` working hours window.

    A start between grid points is rounded up to the next hour or half
    hour, so every slot of the window is bookable.

    Returns None for empty, malformed or inverted windows.
    """
    if not value or "-" not in value:
        return None

    start_str, _, end_str = value.partition("-")
    try:
        start = normalize_time(start_str)
        end = normalize_time(end_str)
    except ValueError:
        return None

    start = round_up_to_slot_grid(start)
    if start >= end:
        return None
    return start, end


def round_up_to_slot_grid(value: time) -> time:
    """Next time on the 30-minute booking grid, or the value itself when aligned."""
    if is_on_slot_grid(value):
        return value
    minutes = (value.hour * 60 + value.minute) // 30 * 30 + 30
    if minutes >= 24 * 60:
        return time.max
    return time(minutes // 60, minutes % 60)


def is_on_slot_grid(value: time) -> bool:
    """Check a time is aligned to the 30-minute booking grid."""
    return value.second == 0 and value.microsecond == 0 and value.minute % 30 == 0


def canonical_time(value: time) -> str:
    """24-hour ``HH:MM:SS`` representation used for exact matching."""
    return value.strftime("%H:%M:%S")


def display_time(value: time) -> str:
    """12-hour display form, e.g. ``9:30 AM``."""
    return value.strftime("%I:%M %p").lstrip("0")


def display_date(value: date) -> str:
    """Long display form, e.g. ``October 19, 2026``."""
    return f"{value:%B} {value.day}, {value.year}"


def combine(day: date, at: time) -> datetime:
    """Scheduled datetime of an appointment."""
    return datetime.combine(day, at)
