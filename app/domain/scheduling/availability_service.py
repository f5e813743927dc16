"""Availability service - bookable start times for a vendor on a date"""

import logging
from collections.abc import Callable, Iterable
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...config import (
    DEFAULT_APPOINTMENT_DURATION_MINUTES,
    MAX_BOOKING_DURATION_MINUTES,
    SLOT_INTERVAL_MINUTES,
)
from ...models import Appointment, User
from .errors import ValidationError, VendorNotFoundError
from .repository import AppointmentRepository
from .schemas import WeeklySchedule
from .time_calculator import appointment_end, day_hours, overlaps, salon_now

logger = logging.getLogger(__name__)


def compute_slots(
    schedule: Optional[dict],
    day: date,
    duration_minutes: int,
    appointments: Iterable[Appointment],
    now: datetime,
    interval_minutes: int = SLOT_INTERVAL_MINUTES,
    default_duration_minutes: int = DEFAULT_APPOINTMENT_DURATION_MINUTES,
) -> list[dict]:
    """
    Candidate start times across the opening interval of `day`.

    Every candidate in [open, close) is returned, stepping by
    `interval_minutes`. A candidate is unavailable when the service would run
    past closing, when it overlaps an active appointment, or when it starts at
    or before `now`. Closed days (and vendors without a schedule) yield [].
    """
    hours = day_hours(schedule, day)
    if hours is None:
        return []

    opens_at, closes_at = hours
    busy = [
        (a.scheduled_at, appointment_end(a.scheduled_at, a.duration_minutes, default_duration_minutes))
        for a in appointments
        if a.status in ("pending", "confirmed")
    ]

    slots = []
    step = timedelta(minutes=interval_minutes)
    length = timedelta(minutes=duration_minutes)
    current = opens_at

    while current < closes_at:
        slot_end = current + length
        available = (
            slot_end <= closes_at
            and current > now
            and not any(overlaps(current, slot_end, b_start, b_end) for b_start, b_end in busy)
        )
        slots.append({"time": current.strftime("%H:%M"), "available": available})
        current += step

    return slots


def check_duration(duration_minutes) -> int:
    if (
        isinstance(duration_minutes, bool)
        or not isinstance(duration_minutes, int)
        or duration_minutes <= 0
    ):
        raise ValidationError(f"Invalid duration {duration_minutes!r}: must be a positive integer")
    if duration_minutes > MAX_BOOKING_DURATION_MINUTES:
        raise ValidationError(
            f"Invalid duration {duration_minutes}: maximum is {MAX_BOOKING_DURATION_MINUTES} minutes"
        )
    return duration_minutes


class AvailabilityService:
    """Service layer for slot availability"""

    def __init__(self, db: Session, clock: Callable[[], datetime] = salon_now):
        self.db = db
        self.repo = AppointmentRepository()
        self.clock = clock

    def get_vendor(self, vendor_id: int) -> User:
        vendor = self.repo.get_vendor(self.db, vendor_id)
        if not vendor:
            raise VendorNotFoundError(vendor_id)
        return vendor

    def get_vendor_by_slug(self, slug: str) -> User:
        vendor = self.repo.get_vendor_by_slug(self.db, slug)
        if not vendor:
            raise VendorNotFoundError(slug)
        return vendor

    def get_availability(self, vendor_id: int, day: date, duration_minutes: int) -> list[dict]:
        """Slots for a vendor's day, re-reading bookings on every call"""
        check_duration(duration_minutes)
        vendor = self.get_vendor(vendor_id)
        return self.slots_for_vendor(vendor, day, duration_minutes)

    def slots_for_vendor(self, vendor: User, day: date, duration_minutes: int) -> list[dict]:
        if not vendor.schedule:
            logger.info(f"ℹ️ Vendor {vendor.id} has no schedule configured - treating as closed")
            return []

        appointments = self.repo.get_active_for_day(self.db, vendor.id, day)
        slots = compute_slots(vendor.schedule, day, duration_minutes, appointments, self.clock())
        logger.debug(
            f"📅 Availability for vendor {vendor.id} on {day}: "
            f"{sum(1 for s in slots if s['available'])}/{len(slots)} open"
        )
        return slots

    # Vendor hours

    def get_schedule(self, vendor: User) -> Optional[dict]:
        return vendor.schedule

    def update_schedule(self, vendor: User, schedule: WeeklySchedule) -> dict:
        """Replace the vendor's weekly hours with an already-validated schedule"""
        vendor.schedule = schedule.model_dump()
        self.db.commit()
        self.db.refresh(vendor)
        logger.info(f"✅ Schedule updated for vendor {vendor.id}")
        return vendor.schedule
