"""Booking service - appointment creation with the collision guard"""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...config import CALENDAR_SYNC_TIMEOUT_SECONDS, DEFAULT_APPOINTMENT_DURATION_MINUTES
from ...models import Appointment
from ...services.notification_service import notify_vendor_new_booking
from .errors import CollisionError, ValidationError, VendorNotFoundError
from .integration_service import CalendarSync, run_calendar_sync
from .repository import AppointmentRepository
from .schemas import AppointmentStatus, BookingCreate
from .time_calculator import (
    appointment_end,
    day_hours,
    overlaps,
    parse_booking_timestamp,
    salon_now,
)

logger = logging.getLogger(__name__)

ACTIVE_SLOT_INDEX = "uq_appointments_active_slot"
# Postgres names the index; SQLite only lists its columns
SLOT_CONFLICT_MARKERS = (ACTIVE_SLOT_INDEX, "appointments.vendor_id, appointments.scheduled_at")


def _is_slot_conflict(error: IntegrityError) -> bool:
    message = str(error.orig)
    return any(marker in message for marker in SLOT_CONFLICT_MARKERS)


class BookingService:
    """Service layer for creating appointments"""

    def __init__(
        self,
        db: Session,
        clock: Callable[[], datetime] = salon_now,
        calendar_sync: Optional[CalendarSync] = None,
        sync_timeout: float = CALENDAR_SYNC_TIMEOUT_SECONDS,
    ):
        self.db = db
        self.repo = AppointmentRepository()
        self.clock = clock
        self.calendar_sync = calendar_sync
        self.sync_timeout = sync_timeout

    async def create_booking(self, data: BookingCreate, customer_id: int) -> dict:
        """
        Create a pending appointment for the authenticated customer.

        The past-time check, the schedule check, the collision check and the
        insert happen in one transaction with the vendor row locked. The
        partial unique index on active (vendor_id, scheduled_at) rejects any
        writer that slips past the check. Notification, phone backfill and
        calendar sync run after the commit and never fail the booking.

        Raises:
            ValidationError: Past timestamp, closed day, outside opening hours,
                or a payload customer id that is not the caller
            VendorNotFoundError: Unknown vendor
            CollisionError: The slot is held by an active appointment
        """
        if data.customerId is not None and data.customerId != customer_id:
            raise ValidationError(
                f"Payload customer {data.customerId} does not match caller {customer_id}",
                "You can only book appointments for yourself.",
            )

        scheduled_at = parse_booking_timestamp(data.date, data.time)
        if scheduled_at <= self.clock():
            raise ValidationError("past appointment", "Cannot book appointments in the past.")

        logger.info(
            f"📅 Booking request: vendor {data.vendorId}, customer {customer_id}, "
            f"{scheduled_at.isoformat()} ({data.duration} min)"
        )

        try:
            appointment = self._insert_pending(data, customer_id, scheduled_at)
        except IntegrityError as e:
            self.db.rollback()
            if _is_slot_conflict(e):
                logger.warning(
                    f"⚠️ Concurrent booking lost the race for vendor {data.vendorId} at {scheduled_at}"
                )
                raise CollisionError() from e
            raise
        except Exception:
            self.db.rollback()
            raise

        logger.info(f"✅ Appointment {appointment.id} created (pending)")

        await self._backfill_customer_phone(customer_id, data.customerPhone)
        try:
            await notify_vendor_new_booking(self.db, appointment)
        except Exception as e:
            logger.error(f"❌ New-booking notification failed for {appointment.id}: {e}")

        sync = await run_calendar_sync(
            self.db, appointment, sync=self.calendar_sync, timeout=self.sync_timeout
        )

        return {
            "success": True,
            "id": appointment.id,
            "status": AppointmentStatus.PENDING,
            "sync": sync,
        }

    def _insert_pending(self, data: BookingCreate, customer_id: int, scheduled_at: datetime) -> Appointment:
        vendor = self.repo.lock_vendor(self.db, data.vendorId)
        if not vendor:
            raise VendorNotFoundError(data.vendorId)

        ends_at = scheduled_at + timedelta(minutes=data.duration)
        hours = day_hours(vendor.schedule, scheduled_at.date())
        if hours is None:
            raise ValidationError("closed day", "The salon is closed on this day.")
        opens_at, closes_at = hours
        if scheduled_at < opens_at or ends_at > closes_at:
            raise ValidationError(
                "outside business hours",
                f"Please choose a time between {opens_at:%H:%M} and {closes_at:%H:%M}.",
            )

        # Exact-timestamp guard, then overlap guard against the rest of the day
        if self.repo.find_active_at(self.db, vendor.id, scheduled_at):
            raise CollisionError()
        for existing in self.repo.get_active_for_day(self.db, vendor.id, scheduled_at.date()):
            existing_end = appointment_end(
                existing.scheduled_at, existing.duration_minutes, DEFAULT_APPOINTMENT_DURATION_MINUTES
            )
            if overlaps(scheduled_at, ends_at, existing.scheduled_at, existing_end):
                raise CollisionError("slot overlaps an existing appointment")

        appointment = self.repo.add_appointment(
            self.db,
            vendor_id=vendor.id,
            customer_id=customer_id,
            customer_name=data.customerName,
            customer_phone=data.customerPhone,
            customer_email=data.customerEmail,
            service_id=data.serviceId,
            service_name=data.serviceName,
            services=[item.model_dump() for item in data.services] if data.services else None,
            duration_minutes=data.duration,
            price=data.price,
            scheduled_at=scheduled_at,
            # Server decides the initial status regardless of payload
            status=AppointmentStatus.PENDING.value,
            notification_read=False,
        )
        self.db.commit()
        self.db.refresh(appointment)
        return appointment

    async def _backfill_customer_phone(self, customer_id: int, phone: str) -> None:
        """Remember the phone number on the customer's profile"""
        try:
            customer = self.repo.get_user(self.db, customer_id)
            if customer and customer.phone_number != phone:
                customer.phone_number = phone
                self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.warning(f"⚠️ Failed to update phone number for user {customer_id}: {e}")

    def list_customer_bookings(self, customer_id: int) -> list[Appointment]:
        """All of a customer's appointments across vendors, latest first"""
        return self.repo.get_customer_appointments(self.db, customer_id)
