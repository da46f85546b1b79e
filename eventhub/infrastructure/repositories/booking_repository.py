# eventhub/infrastructure/repositories/booking_repository.py

from datetime import datetime

from sqlalchemy.orm import Session
from sqlalchemy import func, select, update

from eventhub.infrastructure.db.models import Booking, Event
from eventhub.domain.enums import PaymentStatus
from eventhub.domain.exceptions import ConcurrentModificationError
from eventhub.domain.state_machine import BookingStatus


class BookingRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(
        self,
        booking_id: str,
    ) -> Booking | None:

        stmt = select(Booking).where(Booking.id == booking_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_checkout_session_id(
        self,
        session_id: str,
    ) -> Booking | None:

        stmt = select(Booking).where(Booking.checkout_session_id == session_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def create_booking(
        self,
        user_id: str,
        event_id: str,
        tickets_booked: int,
        total_price: int,
        status: BookingStatus,
        payment_status: PaymentStatus = PaymentStatus.NONE,
        booked_by_id: str | None = None,
        reservation_expires_at: datetime | None = None,
    ) -> Booking:

        booking = Booking(
            user_id=user_id,
            event_id=event_id,
            tickets_booked=tickets_booked,
            total_price=total_price,
            status=status,
            payment_status=payment_status,
            booked_by_id=booked_by_id,
            reservation_expires_at=reservation_expires_at,
        )

        self.db.add(booking)
        self.db.flush()
        return booking

    def compare_and_set_status(
        self,
        booking: Booking,
        expected: BookingStatus,
        new_status: BookingStatus,
        **values,
    ) -> Booking:
        """
        Moves the booking to new_status only if it is still in expected.

        Two requests racing on the same booking both read `expected`; only
        the first UPDATE matches, the second sees zero rows and fails.
        """
        stmt = (
            update(Booking)
            .where(Booking.id == booking.id)
            .where(Booking.status == expected)
            .values(status=new_status, **values)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)

        if result.rowcount == 0:
            raise ConcurrentModificationError("Booking was modified by another request. Please retry.")

        self.db.refresh(booking)
        return booking

    def set_fields(self, booking: Booking, **values) -> Booking:
        stmt = (
            update(Booking)
            .where(Booking.id == booking.id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        self.db.execute(stmt)
        self.db.refresh(booking)
        return booking

    def list_for_user(self, user_id: str) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_page(
        self,
        offset: int,
        limit: int,
        event_ids: list[str] | None = None,
    ) -> tuple[list[Booking], int]:
        stmt = select(Booking)
        count_stmt = select(func.count()).select_from(Booking)
        if event_ids is not None:
            stmt = stmt.where(Booking.event_id.in_(event_ids))
            count_stmt = count_stmt.where(Booking.event_id.in_(event_ids))

        stmt = stmt.order_by(Booking.created_at.desc()).offset(offset).limit(limit)
        bookings = list(self.db.execute(stmt).scalars().all())
        total = self.db.execute(count_stmt).scalar_one()
        return bookings, total

    def list_for_organizer(self, organizer_id: str) -> list[Booking]:
        stmt = (
            select(Booking)
            .join(Event, Event.id == Booking.event_id)
            .where(Event.organizer_id == organizer_id)
            .order_by(Booking.created_at.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def list_for_attendee_and_organizer(
        self,
        attendee_id: str,
        organizer_id: str,
    ) -> list[Booking]:
        stmt = (
            select(Booking)
            .join(Event, Event.id == Booking.event_id)
            .where(Booking.user_id == attendee_id)
            .where(Event.organizer_id == organizer_id)
            .order_by(Booking.created_at.desc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def count_holding_for_event(self, event_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(Booking)
            .where(Booking.event_id == event_id)
            .where(Booking.status.in_([BookingStatus.PENDING, BookingStatus.CONFIRMED]))
        )
        return self.db.execute(stmt).scalar_one()

    def list_expired_reservations(self, now: datetime) -> list[Booking]:
        stmt = (
            select(Booking)
            .where(Booking.status == BookingStatus.PENDING)
            .where(Booking.reservation_expires_at.is_not(None))
            .where(Booking.reservation_expires_at < now)
            .order_by(Booking.reservation_expires_at)
        )
        return list(self.db.execute(stmt).scalars().all())

    def delete_for_event(self, event_id: str) -> None:
        for booking in self.db.execute(
            select(Booking).where(Booking.event_id == event_id)
        ).scalars():
            self.db.delete(booking)

    def count_holding_for_user(self, user_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(Booking)
            .where(Booking.user_id == user_id)
            .where(Booking.status.in_([BookingStatus.PENDING, BookingStatus.CONFIRMED]))
        )
        return self.db.execute(stmt).scalar_one()

    def delete_for_user(self, user_id: str) -> None:
        self.db.execute(
            update(Booking)
            .where(Booking.booked_by_id == user_id)
            .values(booked_by_id=None)
            .execution_options(synchronize_session=False)
        )
        for booking in self.db.execute(
            select(Booking).where(Booking.user_id == user_id)
        ).scalars():
            self.db.delete(booking)
