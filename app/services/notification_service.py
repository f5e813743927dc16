"""
In-app Notification Service
Writes notifications into a user's inbox for appointment lifecycle events.
Delivery is best-effort: failures are logged and reported, never raised.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..models import Appointment, Notification
from ..utils.sanitization import sanitize_string

logger = logging.getLogger(__name__)

NOTIFICATION_TYPES = {"info", "success", "warning", "error"}

# Frontend routes the notifications link to
CUSTOMER_BOOKINGS_LINK = "/my-bookings"
VENDOR_BOOKINGS_LINK = "/dashboard/bookings"


class NotificationDeliveryError(Exception):
    """Raised inside this module only; callers receive a result dict"""


async def send_notification(
    db: Session,
    user_id: Optional[int],
    title: str,
    message: str,
    type: str = "info",
    link: Optional[str] = None,
) -> dict:
    """
    Add a notification to a user's inbox.

    Returns:
        {"success": True} or {"success": False, "error": "..."}
    """
    try:
        if not user_id:
            raise NotificationDeliveryError("User ID is required")
        if type not in NOTIFICATION_TYPES:
            raise NotificationDeliveryError(f"Unknown notification type: {type}")

        db.add(
            Notification(user_id=user_id, title=title, message=message, type=type, link=link)
        )
        db.commit()
        logger.info(f"🔔 Notification '{title}' sent to user {user_id}")
        return {"success": True}
    except Exception as e:
        # Only the notification write is rolled back; the caller's work is already committed
        db.rollback()
        logger.error(f"❌ Failed to send notification '{title}' to user {user_id}: {e}")
        return {"success": False, "error": str(e)}


def _when(appointment: Appointment) -> str:
    return appointment.scheduled_at.strftime("%a, %b %d at %I:%M %p")


async def notify_vendor_new_booking(db: Session, appointment: Appointment) -> dict:
    return await send_notification(
        db,
        appointment.vendor_id,
        title="New appointment request",
        message=(
            f"{sanitize_string(appointment.customer_name)} requested "
            f"{sanitize_string(appointment.service_name)} on {_when(appointment)}."
        ),
        type="info",
        link=VENDOR_BOOKINGS_LINK,
    )


async def notify_customer_confirmed(db: Session, appointment: Appointment) -> dict:
    return await send_notification(
        db,
        appointment.customer_id,
        title="Booking confirmed",
        message=f"Your {sanitize_string(appointment.service_name)} on {_when(appointment)} is confirmed.",
        type="success",
        link=CUSTOMER_BOOKINGS_LINK,
    )


async def notify_customer_declined(db: Session, appointment: Appointment) -> dict:
    return await send_notification(
        db,
        appointment.customer_id,
        title="Booking declined",
        message=(
            f"Your request for {sanitize_string(appointment.service_name)} on {_when(appointment)} "
            "could not be accepted. Please pick another time."
        ),
        type="warning",
        link=CUSTOMER_BOOKINGS_LINK,
    )


async def notify_cancellation(
    db: Session, appointment: Appointment, cancelled_by: Optional[str]
) -> list[dict]:
    """
    Tell the other party about a cancellation.

    cancelled_by is "vendor", "customer" or None. When the caller could not
    be identified both parties get a neutral message.
    """
    service = sanitize_string(appointment.service_name)
    when = _when(appointment)

    if cancelled_by == "vendor":
        return [
            await send_notification(
                db,
                appointment.customer_id,
                title="Booking cancelled by salon",
                message=f"The salon cancelled your {service} on {when}.",
                type="warning",
                link=CUSTOMER_BOOKINGS_LINK,
            )
        ]

    if cancelled_by == "customer":
        return [
            await send_notification(
                db,
                appointment.vendor_id,
                title="Booking cancelled by customer",
                message=f"{sanitize_string(appointment.customer_name)} cancelled {service} on {when}.",
                type="warning",
                link=VENDOR_BOOKINGS_LINK,
            )
        ]

    logger.warning(
        f"⚠️ Could not attribute cancellation of appointment {appointment.id}; notifying both parties"
    )
    return [
        await send_notification(
            db,
            appointment.customer_id,
            title="Booking cancelled",
            message=f"Your {service} on {when} was cancelled.",
            type="warning",
            link=CUSTOMER_BOOKINGS_LINK,
        ),
        await send_notification(
            db,
            appointment.vendor_id,
            title="Booking cancelled",
            message=f"{service} with {sanitize_string(appointment.customer_name)} on {when} was cancelled.",
            type="warning",
            link=VENDOR_BOOKINGS_LINK,
        ),
    ]
