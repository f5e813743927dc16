"""Tests for booking creation and the collision guard."""

import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy.exc import IntegrityError

from app.domain.scheduling import booking_service as booking_module
from app.domain.scheduling import time_calculator
from app.domain.scheduling.booking_service import BookingService
from app.domain.scheduling.errors import (
    CalendarAuthExpiredError,
    CollisionError,
    ValidationError,
    VendorNotFoundError,
)
from app.domain.scheduling.repository import AppointmentRepository
from app.domain.scheduling.schemas import BookingCreate
from app.models import Appointment, Notification, User
from tests.conftest import NOW, add_appointment, booking_payload, sync_ok


def booking(vendor, **overrides) -> BookingCreate:
    return BookingCreate(**booking_payload(vendor, **overrides))


def service_for(db, clock=NOW, sync=sync_ok, timeout=1.0) -> BookingService:
    return BookingService(db, clock=lambda: clock, calendar_sync=sync, sync_timeout=timeout)


def active_count(db, vendor):
    return (
        db.query(Appointment)
        .filter(Appointment.vendor_id == vendor.id, Appointment.status.in_(["pending", "confirmed"]))
        .count()
    )


class TestCreateBooking:
    @pytest.mark.asyncio
    async def test_creates_pending_appointment(self, db, vendor, customer):
        result = await service_for(db).create_booking(booking(vendor), customer.id)

        assert result["success"] is True
        assert result["status"] == "pending"
        assert result["sync"] == {"success": True, "error": None, "eventId": "evt-123"}

        appointment = db.query(Appointment).filter(Appointment.id == result["id"]).one()
        assert appointment.status == "pending"
        assert appointment.scheduled_at == datetime(2030, 1, 7, 10, 0)
        assert appointment.customer_id == customer.id
        assert appointment.customer_phone == "+15551234567"
        assert appointment.duration_minutes == 30
        assert appointment.notification_read is False

    @pytest.mark.asyncio
    async def test_notifies_vendor(self, db, vendor, customer):
        await service_for(db).create_booking(booking(vendor), customer.id)
        notifications = db.query(Notification).filter(Notification.user_id == vendor.id).all()
        assert len(notifications) == 1
        assert notifications[0].title == "New appointment request"
        assert "Haircut" in notifications[0].message

    @pytest.mark.asyncio
    async def test_backfills_customer_phone(self, db, vendor, customer):
        await service_for(db).create_booking(booking(vendor), customer.id)
        db.refresh(customer)
        assert customer.phone_number == "+15551234567"

    @pytest.mark.asyncio
    async def test_payload_status_ignored(self, db, vendor, customer):
        result = await service_for(db).create_booking(booking(vendor, status="confirmed"), customer.id)
        assert db.get(Appointment, result["id"]).status == "pending"

    @pytest.mark.asyncio
    async def test_bundle_booking(self, db, vendor, customer):
        data = booking(
            vendor,
            serviceId="bundle",
            serviceName=None,
            duration=90,
            price=120,
            services=[
                {"id": "cut", "name": "Haircut", "price": 40, "duration": 30},
                {"id": "color", "name": "Color", "price": 80, "duration": 60},
            ],
        )
        result = await service_for(db).create_booking(data, customer.id)
        appointment = db.get(Appointment, result["id"])
        assert appointment.service_name == "Haircut + Color"
        assert [s["id"] for s in appointment.services] == ["cut", "color"]

    @pytest.mark.asyncio
    async def test_customer_id_must_match_caller(self, db, vendor, customer, other_customer):
        with pytest.raises(ValidationError):
            await service_for(db).create_booking(
                booking(vendor, customerId=other_customer.id), customer.id
            )
        assert active_count(db, vendor) == 0

    @pytest.mark.asyncio
    async def test_unknown_vendor(self, db, vendor, customer):
        with pytest.raises(VendorNotFoundError):
            await service_for(db).create_booking(booking(vendor, vendorId=999), customer.id)


class TestPastBookings:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("time", ["09:00", "09:30", "10:00"])
    async def test_past_or_current_time_rejected(self, db, vendor, customer, time):
        clock = datetime(2030, 1, 7, 10, 0)
        with pytest.raises(ValidationError) as exc_info:
            await service_for(db, clock=clock).create_booking(booking(vendor, time=time), customer.id)
        assert exc_info.value.message == "past appointment"
        assert active_count(db, vendor) == 0

    @pytest.mark.asyncio
    async def test_past_date_rejected(self, db, vendor, customer):
        with pytest.raises(ValidationError):
            await service_for(db).create_booking(booking(vendor, date="2030-01-06"), customer.id)

    @pytest.mark.asyncio
    async def test_salon_zone_decides_what_is_past(self, db, vendor, customer, monkeypatch):
        monkeypatch.setattr(time_calculator, "CALENDAR_TIMEZONE", "Asia/Kolkata")
        hour_ago = time_calculator.salon_now() - timedelta(hours=1)
        payload = booking(vendor, date=hour_ago.strftime("%Y-%m-%d"), time=hour_ago.strftime("%H:%M"))

        with pytest.raises(ValidationError) as exc_info:
            await BookingService(db, calendar_sync=sync_ok).create_booking(payload, customer.id)
        assert exc_info.value.message == "past appointment"
        assert active_count(db, vendor) == 0


class TestScheduleRevalidation:
    @pytest.mark.asyncio
    async def test_closed_day(self, db, vendor, customer):
        with pytest.raises(ValidationError) as exc_info:
            await service_for(db).create_booking(booking(vendor, date="2030-01-13"), customer.id)
        assert exc_info.value.message == "closed day"

    @pytest.mark.asyncio
    async def test_vendor_without_schedule(self, db, vendor, customer):
        vendor.schedule = None
        db.commit()
        with pytest.raises(ValidationError):
            await service_for(db).create_booking(booking(vendor), customer.id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("time,duration", [("08:30", 30), ("16:30", 60), ("17:00", 30)])
    async def test_outside_business_hours(self, db, vendor, customer, time, duration):
        with pytest.raises(ValidationError) as exc_info:
            await service_for(db).create_booking(
                booking(vendor, time=time, duration=duration), customer.id
            )
        assert exc_info.value.message == "outside business hours"

    @pytest.mark.asyncio
    async def test_last_slot_of_day(self, db, vendor, customer):
        result = await service_for(db).create_booking(
            booking(vendor, time="16:00", duration=60), customer.id
        )
        assert result["success"] is True


class TestCollisionGuard:
    @pytest.mark.asyncio
    async def test_second_booking_for_same_slot_rejected(self, db, vendor, customer, other_customer):
        """Scenario C"""
        service = service_for(db)
        first = await service.create_booking(booking(vendor), customer.id)
        assert first["success"] is True

        with pytest.raises(CollisionError) as exc_info:
            await service.create_booking(booking(vendor, customerName="Ben"), other_customer.id)
        assert exc_info.value.detail == "This time slot was just taken. Please try another time."
        assert active_count(db, vendor) == 1
        assert db.get(Appointment, first["id"]).customer_id == customer.id

    @pytest.mark.asyncio
    async def test_confirmed_slot_is_taken(self, db, vendor, customer, other_customer):
        add_appointment(db, vendor, customer, datetime(2030, 1, 7, 10, 0), status="confirmed")
        with pytest.raises(CollisionError):
            await service_for(db).create_booking(booking(vendor), other_customer.id)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["cancelled", "declined", "completed"])
    async def test_inactive_slot_can_be_rebooked(self, db, vendor, customer, other_customer, status):
        add_appointment(db, vendor, customer, datetime(2030, 1, 7, 10, 0), status=status)
        result = await service_for(db).create_booking(booking(vendor), other_customer.id)
        assert result["success"] is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("time", ["10:30", "09:30"])
    async def test_overlapping_booking_rejected(self, db, vendor, customer, other_customer, time):
        add_appointment(db, vendor, customer, datetime(2030, 1, 7, 10, 0), duration=60)
        with pytest.raises(CollisionError):
            await service_for(db).create_booking(
                booking(vendor, time=time, duration=60), other_customer.id
            )

    @pytest.mark.asyncio
    async def test_adjacent_booking_allowed(self, db, vendor, customer, other_customer):
        add_appointment(db, vendor, customer, datetime(2030, 1, 7, 10, 0), duration=60)
        result = await service_for(db).create_booking(
            booking(vendor, time="11:00", duration=30), other_customer.id
        )
        assert result["success"] is True

    @pytest.mark.asyncio
    async def test_unique_index_rejects_writer_that_skipped_the_check(
        self, db, vendor, customer, other_customer, monkeypatch
    ):
        add_appointment(db, vendor, customer, datetime(2030, 1, 7, 10, 0), duration=30)
        # Simulate a writer whose read happened before the first insert committed
        monkeypatch.setattr(AppointmentRepository, "find_active_at", staticmethod(lambda *a: None))
        monkeypatch.setattr(AppointmentRepository, "get_active_for_day", staticmethod(lambda *a: []))

        with pytest.raises(CollisionError):
            await service_for(db).create_booking(booking(vendor), other_customer.id)
        assert active_count(db, vendor) == 1

    @pytest.mark.asyncio
    async def test_gathered_requests_for_same_slot_yield_one_appointment(
        self, db, vendor, customer, other_customer
    ):
        service = service_for(db)
        results = await asyncio.gather(
            service.create_booking(booking(vendor), customer.id),
            service.create_booking(booking(vendor, customerName="Ben"), other_customer.id),
            return_exceptions=True,
        )
        successes = [r for r in results if isinstance(r, dict)]
        collisions = [r for r in results if isinstance(r, CollisionError)]
        assert len(successes) == 1
        assert len(collisions) == 1
        assert active_count(db, vendor) == 1

    @pytest.mark.parametrize(
        "message, expected",
        [
            ('duplicate key value violates unique constraint "uq_appointments_active_slot"', True),
            ("UNIQUE constraint failed: appointments.vendor_id, appointments.scheduled_at", True),
            ("UNIQUE constraint failed: appointments.id", False),
            ('duplicate key value violates unique constraint "appointments_pkey"', False),
        ],
    )
    def test_only_the_active_slot_index_is_a_collision(self, message, expected):
        error = IntegrityError("INSERT INTO appointments", {}, Exception(message))
        assert booking_module._is_slot_conflict(error) is expected

    @pytest.mark.asyncio
    async def test_primary_key_clash_is_not_reported_as_slot_taken(self, db, vendor, customer, monkeypatch):
        def clash(*args):
            raise IntegrityError(
                "INSERT INTO appointments", {}, Exception("UNIQUE constraint failed: appointments.id")
            )

        monkeypatch.setattr(BookingService, "_insert_pending", clash)
        with pytest.raises(IntegrityError):
            await service_for(db).create_booking(booking(vendor), customer.id)


class TestSideEffectIsolation:
    @pytest.mark.asyncio
    async def test_notification_failure_does_not_fail_booking(self, db, vendor, customer, monkeypatch):
        async def broken_notify(db, appointment):
            raise RuntimeError("inbox down")

        monkeypatch.setattr(booking_module, "notify_vendor_new_booking", broken_notify)
        result = await service_for(db).create_booking(booking(vendor), customer.id)
        assert result["success"] is True
        assert active_count(db, vendor) == 1

    @pytest.mark.asyncio
    async def test_phone_backfill_failure_does_not_fail_booking(self, db, vendor, customer, monkeypatch):
        def broken_get_user(*args):
            raise RuntimeError("users table locked")

        monkeypatch.setattr(AppointmentRepository, "get_user", staticmethod(broken_get_user))
        result = await service_for(db).create_booking(booking(vendor), customer.id)
        assert result["success"] is True
        assert db.get(User, customer.id).phone_number == "+15550000000"

    @pytest.mark.asyncio
    async def test_sync_timeout_keeps_booking(self, db, vendor, customer):
        async def slow_sync(db, appointment):
            await asyncio.sleep(5)
            return "too-late"

        result = await service_for(db, sync=slow_sync, timeout=0.05).create_booking(
            booking(vendor), customer.id
        )
        assert result["success"] is True
        assert result["sync"] == {"success": False, "error": "Calendar sync timed out", "eventId": None}
        assert db.get(Appointment, result["id"]).status == "pending"

    @pytest.mark.asyncio
    async def test_sync_auth_expired_reported(self, db, vendor, customer):
        async def expired_sync(db, appointment):
            raise CalendarAuthExpiredError()

        result = await service_for(db, sync=expired_sync).create_booking(booking(vendor), customer.id)
        assert result["success"] is True
        assert result["sync"]["success"] is False
        assert result["sync"]["error"] == "Google Calendar auth expired. Please reconnect."

    @pytest.mark.asyncio
    async def test_unexpected_sync_error_reported(self, db, vendor, customer):
        async def crashing_sync(db, appointment):
            raise KeyError("id")

        result = await service_for(db, sync=crashing_sync).create_booking(booking(vendor), customer.id)
        assert result["sync"]["success"] is False
        assert result["sync"]["error"].startswith("Failed to sync to calendar")

    @pytest.mark.asyncio
    async def test_default_sync_without_connected_calendar(self, db, vendor, customer):
        service = BookingService(db, clock=lambda: NOW)
        result = await service.create_booking(booking(vendor), customer.id)
        assert result["success"] is True
        assert result["sync"] == {"success": False, "error": "Calendar not connected", "eventId": None}


@pytest.mark.asyncio
async def test_customer_bookings_latest_first(db, vendor, customer, other_customer):
    early = add_appointment(db, vendor, customer, datetime(2030, 1, 7, 9, 0))
    late = add_appointment(db, vendor, customer, datetime(2030, 1, 8, 9, 0), status="cancelled")
    add_appointment(db, vendor, other_customer, datetime(2030, 1, 9, 9, 0))

    bookings = BookingService(db).list_customer_bookings(customer.id)
    assert [b.id for b in bookings] == [late.id, early.id]
