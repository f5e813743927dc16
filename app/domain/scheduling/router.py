"""Scheduling router - FastAPI endpoints for availability, bookings and appointment status"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_current_vendor
from ...config import (
    BOOKING_RATE_LIMIT,
    BOOKING_RATE_WINDOW_SECONDS,
    DEFAULT_APPOINTMENT_DURATION_MINUTES,
    MAX_BOOKING_DURATION_MINUTES,
)
from ...database import get_db
from ...models import User
from ...rate_limiter import create_rate_limiter
from .availability_service import AvailabilityService
from .booking_service import BookingService
from .schemas import (
    AppointmentResponse,
    AppointmentStatus,
    BookingCreate,
    BookingResponse,
    Slot,
    StatusUpdate,
    StatusUpdateResponse,
    WeeklySchedule,
)
from .status_service import AppointmentStatusService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/scheduling", tags=["Scheduling"])

booking_rate_limit = create_rate_limiter(
    limit=BOOKING_RATE_LIMIT, window_seconds=BOOKING_RATE_WINDOW_SECONDS, key_prefix="booking"
)


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db)


def get_booking_service(db: Session = Depends(get_db)) -> BookingService:
    """Dependency injection for BookingService"""
    return BookingService(db)


def get_status_service(db: Session = Depends(get_db)) -> AppointmentStatusService:
    """Dependency injection for AppointmentStatusService"""
    return AppointmentStatusService(db)


DurationQuery = Query(DEFAULT_APPOINTMENT_DURATION_MINUTES, gt=0, le=MAX_BOOKING_DURATION_MINUTES)


# ============================================================================
# PUBLIC AVAILABILITY
# ============================================================================


@router.get("/availability/{vendor_id}", response_model=list[Slot])
async def get_availability(
    vendor_id: int,
    day: date = Query(..., alias="date"),
    duration: int = DurationQuery,
    service: AvailabilityService = Depends(get_availability_service),
):
    """Bookable start times for a vendor on a date"""
    return service.get_availability(vendor_id, day, duration)


@router.get("/availability/by-slug/{slug}", response_model=list[Slot])
async def get_availability_by_slug(
    slug: str,
    day: date = Query(..., alias="date"),
    duration: int = DurationQuery,
    service: AvailabilityService = Depends(get_availability_service),
):
    """Same as get_availability, addressed by the salon's public booking slug"""
    vendor = service.get_vendor_by_slug(slug)
    return service.get_availability(vendor.id, day, duration)


# ============================================================================
# CUSTOMER BOOKINGS
# ============================================================================


@router.post("/bookings", response_model=BookingResponse, status_code=201)
async def create_booking(
    data: BookingCreate,
    _: None = Depends(booking_rate_limit),
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    """Request an appointment; it starts out pending until the salon responds"""
    return await service.create_booking(data, current_user.id)


@router.get("/my-bookings", response_model=list[AppointmentResponse])
async def get_my_bookings(
    current_user: User = Depends(get_current_user),
    service: BookingService = Depends(get_booking_service),
):
    appointments = service.list_customer_bookings(current_user.id)
    return [AppointmentResponse.from_model(a) for a in appointments]


@router.post("/appointments/{appointment_id}/cancel", response_model=StatusUpdateResponse)
async def cancel_my_appointment(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
    service: AppointmentStatusService = Depends(get_status_service),
):
    """Customer cancels one of their own pending or confirmed appointments"""
    return await service.cancel_for_customer(appointment_id, current_user.id)


# ============================================================================
# VENDOR SCHEDULE
# ============================================================================


@router.get("/schedule")
async def get_schedule(
    current_user: User = Depends(get_current_vendor),
    service: AvailabilityService = Depends(get_availability_service),
):
    """The caller's weekly hours, or null when none are configured yet"""
    return service.get_schedule(current_user)


@router.put("/schedule", response_model=WeeklySchedule)
async def update_schedule(
    data: WeeklySchedule,
    current_user: User = Depends(get_current_vendor),
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.update_schedule(current_user, data)


# ============================================================================
# VENDOR APPOINTMENTS
# ============================================================================


@router.get("/vendor/appointments", response_model=list[AppointmentResponse])
async def get_vendor_appointments(
    status: Optional[AppointmentStatus] = Query(None),
    current_user: User = Depends(get_current_vendor),
    service: AppointmentStatusService = Depends(get_status_service),
):
    appointments = service.list_vendor_appointments(current_user.id, status)
    return [AppointmentResponse.from_model(a) for a in appointments]


@router.get("/vendor/appointments/unread", response_model=list[AppointmentResponse])
async def get_unread_appointments(
    current_user: User = Depends(get_current_vendor),
    service: AppointmentStatusService = Depends(get_status_service),
):
    """Pending requests the vendor has not opened yet"""
    return [AppointmentResponse.from_model(a) for a in service.unread_pending(current_user.id)]


@router.post("/vendor/appointments/read-all")
async def mark_all_appointments_read(
    current_user: User = Depends(get_current_vendor),
    service: AppointmentStatusService = Depends(get_status_service),
):
    count = service.mark_all_read(current_user.id)
    return {"success": True, "updated": count}


@router.post("/vendor/appointments/{appointment_id}/read", response_model=AppointmentResponse)
async def mark_appointment_read(
    appointment_id: str,
    current_user: User = Depends(get_current_vendor),
    service: AppointmentStatusService = Depends(get_status_service),
):
    return AppointmentResponse.from_model(service.mark_read(appointment_id, current_user.id))


@router.patch("/vendor/appointments/{appointment_id}/status", response_model=StatusUpdateResponse)
async def update_appointment_status(
    appointment_id: str,
    data: StatusUpdate,
    current_user: User = Depends(get_current_vendor),
    service: AppointmentStatusService = Depends(get_status_service),
):
    """Accept, decline, complete or cancel an appointment as the salon"""
    return await service.update_status(
        appointment_id, current_user.id, data.status, caller_id=current_user.id
    )
