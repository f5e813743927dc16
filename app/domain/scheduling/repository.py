"""Appointment repository - Database operations for scheduling"""

from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models import ACTIVE_STATUSES, Appointment, User


class AppointmentRepository:
    """Repository for appointment database operations"""

    # Vendors

    @staticmethod
    def get_vendor(db: Session, vendor_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == vendor_id).first()

    @staticmethod
    def get_vendor_by_slug(db: Session, slug: str) -> Optional[User]:
        return db.query(User).filter(User.slug == slug).first()

    @staticmethod
    def lock_vendor(db: Session, vendor_id: int) -> Optional[User]:
        """
        Load the vendor row with SELECT ... FOR UPDATE.

        Concurrent bookings for the same vendor queue up behind this lock
        until the inserting transaction commits. SQLite ignores FOR UPDATE.
        """
        return db.query(User).filter(User.id == vendor_id).with_for_update().first()

    @staticmethod
    def get_user(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    # Appointments

    @staticmethod
    def get_appointment(db: Session, appointment_id: str, vendor_id: int) -> Optional[Appointment]:
        """Appointments are scoped under their vendor"""
        return (
            db.query(Appointment)
            .filter(Appointment.id == appointment_id, Appointment.vendor_id == vendor_id)
            .first()
        )

    @staticmethod
    def get_appointment_for_customer(
        db: Session, appointment_id: str, customer_id: int
    ) -> Optional[Appointment]:
        return (
            db.query(Appointment)
            .filter(Appointment.id == appointment_id, Appointment.customer_id == customer_id)
            .first()
        )

    @staticmethod
    def find_active_at(db: Session, vendor_id: int, scheduled_at: datetime) -> Optional[Appointment]:
        """Active appointment holding the exact timestamp, if any"""
        return (
            db.query(Appointment)
            .filter(
                Appointment.vendor_id == vendor_id,
                Appointment.scheduled_at == scheduled_at,
                Appointment.status.in_(ACTIVE_STATUSES),
            )
            .first()
        )

    @staticmethod
    def get_active_for_day(db: Session, vendor_id: int, day: date) -> list[Appointment]:
        start_of_day = datetime.combine(day, datetime.min.time())
        end_of_day = start_of_day + timedelta(days=1)
        return (
            db.query(Appointment)
            .filter(
                Appointment.vendor_id == vendor_id,
                Appointment.scheduled_at >= start_of_day,
                Appointment.scheduled_at < end_of_day,
                Appointment.status.in_(ACTIVE_STATUSES),
            )
            .order_by(Appointment.scheduled_at.asc())
            .all()
        )

    @staticmethod
    def add_appointment(db: Session, **appointment_data) -> Appointment:
        """Stage a new appointment; the caller owns the commit"""
        appointment = Appointment(**appointment_data)
        db.add(appointment)
        db.flush()
        return appointment

    @staticmethod
    def get_customer_appointments(db: Session, customer_id: int) -> list[Appointment]:
        return (
            db.query(Appointment)
            .filter(Appointment.customer_id == customer_id)
            .order_by(Appointment.scheduled_at.desc())
            .all()
        )

    @staticmethod
    def get_vendor_appointments(
        db: Session, vendor_id: int, status: Optional[str] = None
    ) -> list[Appointment]:
        query = db.query(Appointment).filter(Appointment.vendor_id == vendor_id)
        if status:
            query = query.filter(Appointment.status == status)
        return query.order_by(Appointment.scheduled_at.asc()).all()

    @staticmethod
    def get_unread_pending(db: Session, vendor_id: int) -> list[Appointment]:
        return (
            db.query(Appointment)
            .filter(
                Appointment.vendor_id == vendor_id,
                Appointment.status == "pending",
                Appointment.notification_read.is_(False),
            )
            .order_by(Appointment.created_at.desc())
            .all()
        )

    @staticmethod
    def mark_all_read(db: Session, vendor_id: int) -> int:
        count = (
            db.query(Appointment)
            .filter(
                Appointment.vendor_id == vendor_id,
                Appointment.status == "pending",
                Appointment.notification_read.is_(False),
            )
            .update({Appointment.notification_read: True}, synchronize_session=False)
        )
        db.commit()
        return count
