import uuid

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base

# Statuses that still occupy calendar time
ACTIVE_STATUSES = ("pending", "confirmed")


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=True)
    phone_number = Column(String(50), nullable=True)  # Backfilled from the latest booking
    role = Column(String(20), default="customer", nullable=False)  # vendor, customer, admin
    # Vendor storefront
    business_name = Column(String(255), nullable=True)
    slug = Column(String(100), unique=True, index=True, nullable=True)
    # Weekly opening hours: {"monday": {"isOpen": true, "start": "09:00", "end": "17:00"}, ...}
    # NULL means the vendor has not configured hours yet (treated as closed)
    schedule = Column(JSON, nullable=True)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    appointments = relationship(
        "Appointment",
        back_populates="vendor",
        foreign_keys="Appointment.vendor_id",
        cascade="all, delete-orphan",
    )
    notifications = relationship(
        "Notification", back_populates="user", cascade="all, delete-orphan"
    )


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        # At most one active appointment per vendor per exact start time.
        Index(
            "uq_appointments_active_slot",
            "vendor_id",
            "scheduled_at",
            unique=True,
            postgresql_where=text("status IN ('pending', 'confirmed')"),
            sqlite_where=text("status IN ('pending', 'confirmed')"),
        ),
        Index("ix_appointments_vendor_day", "vendor_id", "scheduled_at"),
    )

    id = Column(String(36), primary_key=True, default=generate_public_id)
    vendor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(50), nullable=False)
    customer_email = Column(String(255), nullable=True)

    service_id = Column(String(100), nullable=False)  # Service id or "bundle"
    service_name = Column(String(500), nullable=False)  # "A + B" for bundles
    services = Column(JSON, nullable=True)  # [{"id", "name", "price", "duration"}]
    duration_minutes = Column(Integer, nullable=True)
    price = Column(Float, nullable=False, default=0)

    scheduled_at = Column(DateTime, nullable=False)
    status = Column(String(20), nullable=False, default="pending")
    # pending, confirmed, completed, cancelled, declined

    # Google Calendar sync
    google_event_id = Column(String(500), nullable=True, index=True)
    synced_to_calendar = Column(Boolean, default=False, nullable=False)
    last_synced_at = Column(DateTime, nullable=True)

    # Vendor dashboard "new booking" bell
    notification_read = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    vendor = relationship("User", back_populates="appointments", foreign_keys=[vendor_id])
    customer = relationship("User", foreign_keys=[customer_id])


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    type = Column(String(20), default="info", nullable=False)  # info, success, warning, error
    read = Column(Boolean, default=False, nullable=False)
    link = Column(String(500), nullable=True)
    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="notifications")
