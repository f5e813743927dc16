"""Scheduling domain schemas - Pydantic models for validation"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ...config import MAX_BOOKING_DURATION_MINUTES
from ...shared.validators import validate_email, validate_iso_date, validate_phone, validate_time_hhmm
from ...utils.sanitization import clean_display_text


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    DECLINED = "declined"


# ============================================================================
# SCHEDULE
# ============================================================================


class DaySchedule(BaseModel):
    """Opening hours for one weekday"""

    isOpen: bool = False
    start: str = "09:00"
    end: str = "17:00"

    @field_validator("start", "end")
    @classmethod
    def validate_time(cls, v):
        return validate_time_hhmm(v)

    @model_validator(mode="after")
    def check_interval(self):
        # "HH:MM" strings compare in clock order
        if self.isOpen and not self.start < self.end:
            raise ValueError(f"Opening time {self.start} must be before closing time {self.end}")
        return self


class WeeklySchedule(BaseModel):
    """A vendor's recurring week, keyed by English day name"""

    model_config = ConfigDict(extra="forbid")

    monday: DaySchedule
    tuesday: DaySchedule
    wednesday: DaySchedule
    thursday: DaySchedule
    friday: DaySchedule
    saturday: DaySchedule
    sunday: DaySchedule


# ============================================================================
# AVAILABILITY
# ============================================================================


class Slot(BaseModel):
    time: str  # HH:MM
    available: bool


# ============================================================================
# BOOKING
# ============================================================================


class ServiceItem(BaseModel):
    """One service inside a bundle booking"""

    id: str
    name: str
    price: float = Field(ge=0)
    duration: int = Field(gt=0)


class BookingCreate(BaseModel):
    """Booking form payload"""

    vendorId: int
    customerId: Optional[int] = None  # Must match the authenticated caller when given
    customerEmail: Optional[str] = None
    customerName: str
    customerPhone: str
    serviceId: str
    serviceName: Optional[str] = None
    duration: int = Field(gt=0, le=MAX_BOOKING_DURATION_MINUTES)
    date: str  # YYYY-MM-DD
    time: str  # HH:MM
    price: float = Field(ge=0)
    services: Optional[list[ServiceItem]] = None
    # Accepted for compatibility with older clients, never trusted
    status: Optional[str] = None

    @field_validator("customerName", "serviceId")
    @classmethod
    def validate_required_text(cls, v):
        v = clean_display_text(v)
        if not v:
            raise ValueError("Field is required")
        return v

    @field_validator("serviceName")
    @classmethod
    def validate_service_name(cls, v):
        return clean_display_text(v, max_length=500) or None

    @field_validator("customerPhone")
    @classmethod
    def validate_customer_phone(cls, v):
        if not v or not v.strip():
            raise ValueError("Phone number is required")
        return validate_phone(v)

    @field_validator("customerEmail")
    @classmethod
    def validate_customer_email(cls, v):
        if v:
            return validate_email(v)
        return None

    @field_validator("date")
    @classmethod
    def validate_date(cls, v):
        validate_iso_date(v)
        return v.strip()

    @field_validator("time")
    @classmethod
    def validate_time(cls, v):
        return validate_time_hhmm(v)

    @model_validator(mode="after")
    def fill_bundle_name(self):
        if not self.serviceName and self.services:
            self.serviceName = " + ".join(item.name for item in self.services)
        if not self.serviceName:
            raise ValueError("serviceName is required")
        return self


class SyncResult(BaseModel):
    success: bool
    error: Optional[str] = None
    eventId: Optional[str] = None


class BookingResponse(BaseModel):
    success: bool
    id: str
    status: AppointmentStatus
    sync: Optional[SyncResult] = None


# ============================================================================
# STATUS
# ============================================================================


class StatusUpdate(BaseModel):
    status: AppointmentStatus


class StatusUpdateResponse(BaseModel):
    success: bool
    id: str
    status: AppointmentStatus
    sync: Optional[SyncResult] = None


class AppointmentResponse(BaseModel):
    """Schema for appointment response"""

    id: str
    vendorId: int
    customerId: int
    customerName: str
    customerPhone: str
    customerEmail: Optional[str] = None
    serviceId: str
    serviceName: str
    services: Optional[list[ServiceItem]] = None
    duration: Optional[int] = None
    price: float
    date: datetime
    status: AppointmentStatus
    createdAt: Optional[datetime] = None
    googleEventId: Optional[str] = None
    syncedToCalendar: bool = False
    notificationRead: bool = False

    @classmethod
    def from_model(cls, appointment) -> "AppointmentResponse":
        return cls(
            id=appointment.id,
            vendorId=appointment.vendor_id,
            customerId=appointment.customer_id,
            customerName=appointment.customer_name,
            customerPhone=appointment.customer_phone,
            customerEmail=appointment.customer_email,
            serviceId=appointment.service_id,
            serviceName=appointment.service_name,
            services=appointment.services,
            duration=appointment.duration_minutes,
            price=appointment.price,
            date=appointment.scheduled_at,
            status=appointment.status,
            createdAt=appointment.created_at,
            googleEventId=appointment.google_event_id,
            syncedToCalendar=bool(appointment.synced_to_calendar),
            notificationRead=bool(appointment.notification_read),
        )
