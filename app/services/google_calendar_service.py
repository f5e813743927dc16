"""
Google Calendar Service
Pushes confirmed appointments into a vendor's connected Google Calendar
"""
import base64
import hashlib
import logging
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import quote

import httpx
from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy.orm import Session

from ..config import CALENDAR_TIMEZONE, GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, SECRET_KEY
from ..domain.scheduling.errors import CalendarAuthExpiredError, CalendarNotConnectedError, SyncError
from ..models import Appointment
from ..models_google_calendar import GoogleCalendarIntegration

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"  # noqa: S105 - OAuth endpoint URL
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
HTTP_TIMEOUT_SECONDS = 10.0


def _cipher() -> Fernet:
    # Fernet needs 32 url-safe base64 bytes; derive them from SECRET_KEY
    key = base64.urlsafe_b64encode(hashlib.sha256(SECRET_KEY.encode()).digest())
    return Fernet(key)


def encrypt_token(token: str) -> str:
    return _cipher().encrypt(token.encode()).decode()


def decrypt_token(token: str) -> str:
    return _cipher().decrypt(token.encode()).decode()


def _http_client() -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=HTTP_TIMEOUT_SECONDS)


def get_integration(db: Session, vendor_id: int) -> Optional[GoogleCalendarIntegration]:
    return (
        db.query(GoogleCalendarIntegration)
        .filter(GoogleCalendarIntegration.vendor_id == vendor_id)
        .first()
    )


async def get_valid_access_token(integration: GoogleCalendarIntegration, db: Session) -> str:
    """
    Get a valid access token, refreshing if necessary

    Raises:
        CalendarAuthExpiredError: The refresh token is missing or revoked
        SyncError: Stored tokens are unreadable or Google could not be reached
    """
    try:
        access_token = decrypt_token(integration.access_token)
    except InvalidToken as e:
        raise SyncError("Stored calendar credentials are unreadable") from e

    # Check if token is expired or about to expire (within 5 minutes)
    expires_at = integration.token_expires_at
    if expires_at is None or expires_at > datetime.utcnow() + timedelta(minutes=5):
        return access_token

    logger.info("🔄 Google Calendar token expired, refreshing...")
    if not integration.refresh_token:
        raise CalendarAuthExpiredError()
    if not GOOGLE_CLIENT_ID or not GOOGLE_CLIENT_SECRET:
        raise SyncError("Google Calendar not configured")

    try:
        refresh_token = decrypt_token(integration.refresh_token)
    except InvalidToken as e:
        raise SyncError("Stored calendar credentials are unreadable") from e

    try:
        async with _http_client() as client:
            response = await client.post(
                GOOGLE_TOKEN_URL,
                data={
                    "client_id": GOOGLE_CLIENT_ID,
                    "client_secret": GOOGLE_CLIENT_SECRET,
                    "refresh_token": refresh_token,
                    "grant_type": "refresh_token",
                },
            )
    except httpx.HTTPError as e:
        raise SyncError(f"Token refresh failed: {e}") from e

    if response.status_code != 200:
        logger.error(f"❌ Token refresh failed: {response.text}")
        if response.status_code in (400, 401) and "invalid_grant" in response.text:
            raise CalendarAuthExpiredError()
        raise SyncError(f"Token refresh failed with HTTP {response.status_code}")

    tokens = response.json()
    new_access_token = tokens.get("access_token")
    if not new_access_token:
        raise SyncError("No access token in refresh response")

    integration.access_token = encrypt_token(new_access_token)
    integration.token_expires_at = datetime.utcnow() + timedelta(
        seconds=tokens.get("expires_in", 3600)
    )
    db.commit()

    logger.info("✅ Google Calendar token refreshed successfully")
    return new_access_token


def build_event(appointment: Appointment, duration_minutes: int = 60) -> dict:
    """Calendar event body for an appointment"""
    start = appointment.scheduled_at
    end = start + timedelta(minutes=duration_minutes)
    return {
        "summary": f"Appointment with {appointment.customer_name}",
        "description": (
            f"Service: {appointment.service_name}\n"
            f"Price: ${appointment.price:.2f}\n"
            f"Phone: {appointment.customer_phone}"
        ),
        "start": {"dateTime": start.isoformat(), "timeZone": CALENDAR_TIMEZONE},
        "end": {"dateTime": end.isoformat(), "timeZone": CALENDAR_TIMEZONE},
    }


async def insert_event(integration: GoogleCalendarIntegration, access_token: str, event: dict) -> str:
    """
    Create an event and return its Google id

    Raises:
        CalendarAuthExpiredError: Google rejected the credentials (HTTP 401)
        SyncError: Any other failure
    """
    calendar_id = quote(integration.google_calendar_id or "primary", safe="@")
    try:
        async with _http_client() as client:
            response = await client.post(
                f"{GOOGLE_CALENDAR_API}/calendars/{calendar_id}/events",
                headers={"Authorization": f"Bearer {access_token}"},
                json=event,
            )
    except httpx.HTTPError as e:
        raise SyncError(f"Failed to reach Google Calendar: {e}") from e

    if response.status_code == 401:
        raise CalendarAuthExpiredError()
    if response.status_code not in (200, 201):
        logger.error(f"❌ Failed to create calendar event: {response.text}")
        raise SyncError(f"Failed to create calendar event (HTTP {response.status_code})")

    event_id = response.json().get("id")
    if not event_id:
        raise SyncError("Calendar response did not include an event id")
    return event_id


async def sync_appointment_to_calendar(db: Session, appointment: Appointment) -> str:
    """
    Mirror an appointment into its vendor's Google Calendar and record the event id

    Raises:
        CalendarNotConnectedError, CalendarAuthExpiredError, SyncError
    """
    integration = get_integration(db, appointment.vendor_id)
    if not integration or not integration.auto_sync_enabled:
        raise CalendarNotConnectedError()

    try:
        access_token = await get_valid_access_token(integration, db)
        event = build_event(appointment, integration.default_appointment_duration or 60)
        event_id = await insert_event(integration, access_token, event)
    except CalendarAuthExpiredError:
        integration.needs_reconnect = True
        db.commit()
        logger.warning(f"⚠️ Google Calendar needs reconnecting for vendor {appointment.vendor_id}")
        raise

    appointment.google_event_id = event_id
    appointment.synced_to_calendar = True
    appointment.last_synced_at = datetime.utcnow()
    integration.needs_reconnect = False
    db.commit()

    logger.info(f"✅ Google Calendar event created: {event_id} for appointment {appointment.id}")
    return event_id
