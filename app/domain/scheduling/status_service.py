"""Appointment status service - accept, decline, complete and cancel"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...config import CALENDAR_SYNC_TIMEOUT_SECONDS
from ...models import Appointment
from ...services.notification_service import (
    notify_cancellation,
    notify_customer_confirmed,
    notify_customer_declined,
)
from .errors import AppointmentAccessError, AppointmentNotFoundError
from .integration_service import CalendarSync, run_calendar_sync
from .repository import AppointmentRepository
from .schemas import AppointmentStatus
from .state_machine import CUSTOMER, VENDOR, resolve_cancelled_by, validate_transition

logger = logging.getLogger(__name__)


class AppointmentStatusService:
    """Service layer for the appointment lifecycle"""

    def __init__(
        self,
        db: Session,
        calendar_sync: Optional[CalendarSync] = None,
        sync_timeout: float = CALENDAR_SYNC_TIMEOUT_SECONDS,
    ):
        self.db = db
        self.repo = AppointmentRepository()
        self.calendar_sync = calendar_sync
        self.sync_timeout = sync_timeout

    def get_appointment(self, appointment_id: str, vendor_id: int) -> Appointment:
        appointment = self.repo.get_appointment(self.db, appointment_id, vendor_id)
        if not appointment:
            raise AppointmentNotFoundError(appointment_id)
        return appointment

    async def update_status(
        self,
        appointment_id: str,
        vendor_id: int,
        new_status: AppointmentStatus,
        caller_id: Optional[int] = None,
    ) -> dict:
        """
        Move an appointment to `new_status` and run that transition's side effects.

        caller_id is the authenticated user performing the change. Without it,
        non-cancel transitions are treated as the vendor's and a cancellation
        still goes through with neutral notifications to both parties.

        The new status is committed before any notification or calendar sync.
        Acceptance returns the sync outcome under "sync".

        Raises:
            AppointmentNotFoundError: No such appointment for this vendor
            AppointmentAccessError: Caller is not a party to the appointment
            InvalidStateTransition: Terminal status or disallowed edge
        """
        new_status = AppointmentStatus(new_status)
        appointment = self.get_appointment(appointment_id, vendor_id)

        if caller_id is not None and caller_id not in (vendor_id, appointment.customer_id):
            raise AppointmentAccessError(appointment_id)

        if new_status == AppointmentStatus.CANCELLED:
            actor = resolve_cancelled_by(caller_id, vendor_id)
        else:
            actor = CUSTOMER if caller_id not in (None, vendor_id) else VENDOR

        previous = appointment.status
        validate_transition(previous, new_status, actor)

        appointment.status = new_status.value
        self.db.commit()
        self.db.refresh(appointment)
        logger.info(
            f"✅ Appointment {appointment.id} transitioned: {previous} → {new_status.value} "
            f"(by {actor or 'unknown caller'})"
        )

        result = {"success": True, "id": appointment.id, "status": new_status}

        try:
            if new_status == AppointmentStatus.CONFIRMED:
                await notify_customer_confirmed(self.db, appointment)
            elif new_status == AppointmentStatus.DECLINED:
                await notify_customer_declined(self.db, appointment)
            elif new_status == AppointmentStatus.CANCELLED:
                await notify_cancellation(self.db, appointment, actor)
        except Exception as e:
            logger.error(f"❌ Status notification failed for {appointment.id}: {e}")

        if new_status == AppointmentStatus.CONFIRMED:
            result["sync"] = await run_calendar_sync(
                self.db, appointment, sync=self.calendar_sync, timeout=self.sync_timeout
            )

        return result

    async def cancel_for_customer(self, appointment_id: str, customer_id: int) -> dict:
        """Customer-initiated cancellation from the bookings page"""
        appointment = self.repo.get_appointment_for_customer(self.db, appointment_id, customer_id)
        if not appointment:
            raise AppointmentNotFoundError(appointment_id)
        return await self.update_status(
            appointment_id, appointment.vendor_id, AppointmentStatus.CANCELLED, caller_id=customer_id
        )

    # Vendor dashboard

    def list_vendor_appointments(
        self, vendor_id: int, status: Optional[AppointmentStatus] = None
    ) -> list[Appointment]:
        return self.repo.get_vendor_appointments(
            self.db, vendor_id, status.value if status else None
        )

    def unread_pending(self, vendor_id: int) -> list[Appointment]:
        """New booking requests the vendor has not seen yet"""
        return self.repo.get_unread_pending(self.db, vendor_id)

    def mark_read(self, appointment_id: str, vendor_id: int) -> Appointment:
        appointment = self.get_appointment(appointment_id, vendor_id)
        appointment.notification_read = True
        self.db.commit()
        self.db.refresh(appointment)
        return appointment

    def mark_all_read(self, vendor_id: int) -> int:
        return self.repo.mark_all_read(self.db, vendor_id)
