"""
Google Calendar Integration Models
"""
from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


class GoogleCalendarIntegration(Base):
    """A vendor's connected calendar; confirmed appointments are mirrored into it"""

    __tablename__ = "google_calendar_integrations"

    id = Column(Integer, primary_key=True, index=True)
    vendor_id = Column(Integer, ForeignKey("users.id"), nullable=False, unique=True)

    # Fernet-encrypted; Google only issues a refresh token on first consent
    access_token = Column(Text, nullable=False)
    refresh_token = Column(Text, nullable=True)
    token_expires_at = Column(DateTime, nullable=True)  # NULL: use the access token until Google rejects it

    google_user_email = Column(String(255), nullable=True)
    google_calendar_id = Column(String(500), nullable=False, default="primary")

    auto_sync_enabled = Column(Boolean, default=True, nullable=False)
    # Length of the calendar event, independent of the booked service duration
    default_appointment_duration = Column(Integer, default=60, nullable=False)
    # Set when Google rejects the stored credentials; cleared by saving new tokens
    needs_reconnect = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    vendor = relationship("User")
