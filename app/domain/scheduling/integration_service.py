"""Timeout-bounded calendar sync for booking and acceptance flows"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Optional

from sqlalchemy.orm import Session

from ...config import CALENDAR_SYNC_TIMEOUT_SECONDS
from ...models import Appointment
from ...services.google_calendar_service import sync_appointment_to_calendar
from .errors import SyncError

logger = logging.getLogger(__name__)

CalendarSync = Callable[[Session, Appointment], Awaitable[str]]


async def run_calendar_sync(
    db: Session,
    appointment: Appointment,
    sync: Optional[CalendarSync] = None,
    timeout: float = CALENDAR_SYNC_TIMEOUT_SECONDS,
) -> dict:
    """
    Attempt to mirror an appointment into the vendor's calendar.

    The sync is abandoned after `timeout` seconds. Never raises: the outcome
    comes back as {"success": bool, "error": str | None, "eventId": str | None}.
    The appointment must already be committed before this is called.
    """
    sync = sync or sync_appointment_to_calendar
    try:
        event_id = await asyncio.wait_for(sync(db, appointment), timeout=timeout)
        return {"success": True, "error": None, "eventId": event_id}
    except asyncio.TimeoutError:
        error = "Calendar sync timed out"
    except SyncError as e:
        error = str(e)
    except Exception as e:
        error = f"Failed to sync to calendar: {e}"

    # Discard anything the sync left half-written
    db.rollback()
    logger.warning(f"⚠️ Non-fatal: calendar sync skipped for appointment {appointment.id}: {error}")
    return {"success": False, "error": error, "eventId": None}
