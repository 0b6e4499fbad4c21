"""Clinic wall-clock helpers."""

from collections.abc import Callable
from datetime import datetime
from zoneinfo import ZoneInfo

from clinic_portal.config import settings

Clock = Callable[[], datetime]


def clinic_now() -> datetime:
    """
    Current wall-clock time at the clinic.

    Returned naive, in the same frame as appointment dates and times.
    """
    return datetime.now(ZoneInfo(settings.clinic_timezone)).replace(tzinfo=None, microsecond=0)


def get_clock() -> Clock:
    """Dependency returning the clock used by the booking core."""
    return clinic_now
