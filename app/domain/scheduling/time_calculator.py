"""Time parsing and interval arithmetic for scheduling

All timestamps are naive datetimes in the salon's local time, the same
way the booking form sends them ("YYYY-MM-DD" + "HH:MM").
"""

import logging
from datetime import date, datetime, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

from ...config import CALENDAR_TIMEZONE

logger = logging.getLogger(__name__)

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

DEFAULT_OPEN_TIME = "09:00"
DEFAULT_CLOSE_TIME = "17:00"


def salon_now() -> datetime:
    """Current wall-clock time in the salon's zone, naive like stored timestamps"""
    return datetime.now(ZoneInfo(CALENDAR_TIMEZONE)).replace(tzinfo=None)


def weekday_name(day: date) -> str:
    """Schedule key for a calendar date"""
    return WEEKDAYS[day.weekday()]


def parse_hhmm(value: str) -> time:
    return datetime.strptime(value.strip(), "%H:%M").time()


def combine(day: date, hhmm: str) -> datetime:
    return datetime.combine(day, parse_hhmm(hhmm))


def parse_booking_timestamp(day: str, hhmm: str) -> datetime:
    """Build the single appointment timestamp from the form's date and time"""
    return datetime.combine(datetime.strptime(day, "%Y-%m-%d").date(), parse_hhmm(hhmm))


def overlaps(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    """Half-open interval intersection: [start_a, end_a) and [start_b, end_b)"""
    return start_a < end_b and end_a > start_b


def day_hours(schedule: Optional[dict], day: date) -> Optional[tuple[datetime, datetime]]:
    """
    Opening interval for a date, or None when the vendor is closed.

    Reads stored schedules leniently: entries written by older clients use
    "open"/"close" instead of "start"/"end", and open days without times
    fall back to 09:00-17:00. A missing schedule means closed.
    """
    if not schedule:
        return None

    entry = schedule.get(weekday_name(day))
    if not entry or not entry.get("isOpen"):
        return None

    start = entry.get("start") or entry.get("open") or DEFAULT_OPEN_TIME
    end = entry.get("end") or entry.get("close") or DEFAULT_CLOSE_TIME

    try:
        opens_at = combine(day, start)
        closes_at = combine(day, end)
    except (ValueError, AttributeError):
        logger.warning(f"⚠️ Unreadable schedule entry for {weekday_name(day)}: {entry}")
        return None

    if closes_at <= opens_at:
        logger.warning(f"⚠️ Schedule entry for {weekday_name(day)} closes before it opens: {entry}")
        return None

    return opens_at, closes_at


def appointment_end(start: datetime, duration_minutes: Optional[int], default_minutes: int) -> datetime:
    return start + timedelta(minutes=duration_minutes or default_minutes)
