"""Scheduling domain errors

Errors that decide whether an appointment is persisted derive from
SchedulingError and propagate to the caller. Calendar errors stay inside
the integration service and are reported as a soft sync result.
"""


class SchedulingError(Exception):
    """Base class for errors surfaced to the API caller"""

    status_code = 400
    code = "scheduling_error"

    def __init__(self, message: str, detail: str = None):
        super().__init__(message)
        self.message = message
        # User-facing text; defaults to the internal message
        self.detail = detail or message


class ValidationError(SchedulingError):
    """Malformed or temporally invalid booking input"""

    status_code = 400
    code = "validation_error"


class CollisionError(SchedulingError):
    """The requested slot is already held by an active appointment"""

    status_code = 409
    code = "slot_taken"

    def __init__(self, message: str = "slot taken"):
        super().__init__(message, "This time slot was just taken. Please try another time.")


class InvalidStateTransition(SchedulingError):
    status_code = 409
    code = "invalid_state_transition"

    def __init__(self, current: str, requested: str, reason: str = None):
        message = f"Cannot change appointment status from '{current}' to '{requested}'"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, "This appointment can no longer be updated.")
        self.current = current
        self.requested = requested


class AppointmentNotFoundError(SchedulingError):
    status_code = 404
    code = "appointment_not_found"

    def __init__(self, appointment_id: str):
        super().__init__(f"Appointment {appointment_id} not found", "Appointment not found")


class VendorNotFoundError(SchedulingError):
    status_code = 404
    code = "vendor_not_found"

    def __init__(self, vendor_ref):
        super().__init__(f"Vendor {vendor_ref} not found", "Vendor not found")


class AppointmentAccessError(SchedulingError):
    """Caller is neither the vendor nor the customer of the appointment"""

    status_code = 403
    code = "forbidden"

    def __init__(self, appointment_id: str):
        super().__init__(
            f"Caller is not a party to appointment {appointment_id}",
            "You do not have access to this appointment",
        )


# External calendar errors. Never propagated through booking or acceptance.


class SyncError(Exception):
    """Generic external calendar failure"""


class CalendarNotConnectedError(SyncError):
    def __init__(self):
        super().__init__("Calendar not connected")


class CalendarAuthExpiredError(SyncError):
    def __init__(self):
        super().__init__("Google Calendar auth expired. Please reconnect.")
