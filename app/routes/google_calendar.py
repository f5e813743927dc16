"""
Google Calendar Integration Routes
Stores the vendor's OAuth tokens and reports connection status.
The OAuth consent flow itself runs in the frontend.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..auth import get_current_vendor
from ..database import get_db
from ..models import User
from ..models_google_calendar import GoogleCalendarIntegration
from ..services.google_calendar_service import encrypt_token, get_integration

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/google-calendar", tags=["google-calendar"])


class CalendarTokens(BaseModel):
    accessToken: str = Field(min_length=1)
    refreshToken: Optional[str] = None
    expiresIn: Optional[int] = Field(None, gt=0)  # seconds
    email: Optional[str] = None
    calendarId: Optional[str] = None


class CalendarSettings(BaseModel):
    autoSyncEnabled: Optional[bool] = None
    defaultAppointmentDuration: Optional[int] = Field(None, gt=0, le=720)


def _status(integration: Optional[GoogleCalendarIntegration]) -> dict:
    if not integration:
        return {
            "connected": False,
            "user_email": None,
            "calendar_id": None,
            "auto_sync_enabled": None,
            "needs_reconnect": False,
        }
    return {
        "connected": True,
        "user_email": integration.google_user_email,
        "calendar_id": integration.google_calendar_id,
        "auto_sync_enabled": integration.auto_sync_enabled,
        "needs_reconnect": integration.needs_reconnect,
    }


@router.get("/status")
async def get_google_calendar_status(
    current_user: User = Depends(get_current_vendor), db: Session = Depends(get_db)
):
    """Get Google Calendar connection status"""
    return _status(get_integration(db, current_user.id))


@router.post("/tokens")
async def save_google_calendar_tokens(
    data: CalendarTokens,
    current_user: User = Depends(get_current_vendor),
    db: Session = Depends(get_db),
):
    """Save (encrypted) tokens obtained by the frontend OAuth flow"""
    token_expires_at = (
        datetime.utcnow() + timedelta(seconds=data.expiresIn) if data.expiresIn else None
    )

    integration = get_integration(db, current_user.id)
    if integration:
        integration.access_token = encrypt_token(data.accessToken)
        # Google only returns a refresh token on first consent; keep the old one otherwise
        if data.refreshToken:
            integration.refresh_token = encrypt_token(data.refreshToken)
        integration.token_expires_at = token_expires_at
        integration.google_user_email = data.email or integration.google_user_email
        integration.google_calendar_id = data.calendarId or integration.google_calendar_id
        integration.needs_reconnect = False
    else:
        integration = GoogleCalendarIntegration(
            vendor_id=current_user.id,
            access_token=encrypt_token(data.accessToken),
            refresh_token=encrypt_token(data.refreshToken) if data.refreshToken else None,
            token_expires_at=token_expires_at,
            google_user_email=data.email,
            google_calendar_id=data.calendarId or "primary",
            auto_sync_enabled=True,
        )
        db.add(integration)

    try:
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"❌ Failed to save Google Calendar tokens for user {current_user.id}: {e}")
        raise HTTPException(status_code=500, detail="Failed to connect Google Calendar") from e

    db.refresh(integration)
    logger.info(f"✅ Google Calendar connected for user: {current_user.id}")
    return {"success": True, **_status(integration)}


@router.patch("/settings")
async def update_google_calendar_settings(
    data: CalendarSettings,
    current_user: User = Depends(get_current_vendor),
    db: Session = Depends(get_db),
):
    integration = get_integration(db, current_user.id)
    if not integration:
        raise HTTPException(status_code=404, detail="Google Calendar not connected")

    if data.autoSyncEnabled is not None:
        integration.auto_sync_enabled = data.autoSyncEnabled
    if data.defaultAppointmentDuration is not None:
        integration.default_appointment_duration = data.defaultAppointmentDuration
    db.commit()
    db.refresh(integration)
    return _status(integration)


@router.post("/disconnect")
async def disconnect_google_calendar(
    current_user: User = Depends(get_current_vendor), db: Session = Depends(get_db)
):
    """Disconnect Google Calendar integration"""
    integration = get_integration(db, current_user.id)
    if not integration:
        raise HTTPException(status_code=404, detail="Google Calendar not connected")

    db.delete(integration)
    db.commit()

    logger.info(f"✅ Google Calendar disconnected for user: {current_user.id}")
    return {"success": True, "message": "Google Calendar disconnected"}
