from datetime import datetime, timedelta, timezone
import logging
import math
from uuid import uuid4

from sqlalchemy.orm import Session

from eventhub.domain.enums import BOOKABLE_EVENT_STATUSES, PaymentStatus, UserRole
from eventhub.domain.exceptions import (
    ConcurrentModificationError,
    ConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from eventhub.domain.state_machine import BookingStateMachine, BookingStatus
from eventhub.infrastructure import settings
from eventhub.infrastructure.db.models import Booking, Event, User
from eventhub.infrastructure.payments.razorpay_gateway import RazorpayGateway, to_minor_units
from eventhub.infrastructure.repositories.booking_repository import BookingRepository
from eventhub.infrastructure.repositories.event_repository import EventRepository
from eventhub.infrastructure.repositories.outbox_repository import OutboxRepository
from eventhub.infrastructure.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

DEFAULT_PAGE_LIMIT = 20


def paginate(page: int, limit: int) -> tuple[int, int, int]:
    page = max(page, 1)
    limit = max(limit, 1)
    return page, limit, (page - 1) * limit


def page_envelope(items: list, total: int, page: int, limit: int) -> dict:
    return {
        "count": len(items),
        "pagination": {
            "total": total,
            "pages": math.ceil(total / limit),
            "page": page,
        },
        "data": items,
    }


def validate_ticket_count(tickets: int) -> None:
    if isinstance(tickets, bool) or not isinstance(tickets, int) or tickets <= 0:
        raise ValidationError("Number of tickets must be a positive integer")


def ensure_bookable(event: Event) -> None:
    if event.status not in BOOKABLE_EVENT_STATUSES:
        raise ValidationError("This event is not open for booking")


class BookingService:
    """Application service coordinating booking workflow."""

    def __init__(self, db: Session, gateway: RazorpayGateway | None = None):
        self.db = db
        self.gateway = gateway
        self.booking_repository = BookingRepository(db)
        self.event_repository = EventRepository(db)
        self.user_repository = UserRepository(db)
        self.outbox = OutboxRepository(db)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_self_booking(
        self,
        user: User,
        event_id: str,
        tickets: int,
    ) -> Booking:
        validate_ticket_count(tickets)
        event = self.event_repository.get_or_raise(event_id)
        ensure_bookable(event)
        if event.ticket_price > 0:
            raise ValidationError(
                "This event requires payment. Use the checkout endpoint."
            )

        return self._create_confirmed(event, user, tickets, booked_by=None)

    def create_booking_for_user(
        self,
        actor: User,
        event_id: str,
        user_email: str,
        tickets: int,
    ) -> Booking:
        validate_ticket_count(tickets)
        event = self.event_repository.get_or_raise(event_id)
        if actor.role == UserRole.ORGANIZER and event.organizer_id != actor.id:
            raise PermissionDeniedError("You can only create bookings for your own events")

        target = self.user_repository.get_by_email(user_email)
        if not target:
            raise NotFoundError("User with this email not found")

        return self._create_confirmed(event, target, tickets, booked_by=actor)

    def _create_confirmed(
        self,
        event: Event,
        user: User,
        tickets: int,
        booked_by: User | None,
    ) -> Booking:
        event = self.event_repository.reserve(event.id, tickets)
        booking = self.booking_repository.create_booking(
            user_id=user.id,
            event_id=event.id,
            tickets_booked=tickets,
            total_price=event.ticket_price * tickets,
            status=BookingStatus.CONFIRMED,
            booked_by_id=booked_by.id if booked_by else None,
        )
        self.record(booking, "BOOKING_CONFIRMED")
        logger.info(
            "Booking confirmed. booking_id=%s event_id=%s tickets=%s",
            booking.id,
            event.id,
            tickets,
        )
        return booking

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_my_bookings(self, user: User) -> list[Booking]:
        return self.booking_repository.list_for_user(user.id)

    def get_booking(self, user: User, booking_id: str) -> Booking:
        booking = self._get_or_raise(booking_id)
        if (
            booking.user_id != user.id
            and user.role != UserRole.SYSTEM_ADMIN
            and booking.event.organizer_id != user.id
        ):
            raise PermissionDeniedError("You are not authorized to view this booking")
        return booking

    def list_all_bookings(self, page: int, limit: int) -> dict:
        page, limit, offset = paginate(page, limit)
        bookings, total = self.booking_repository.list_page(offset, limit)
        return page_envelope(bookings, total, page, limit)

    def list_event_bookings(
        self,
        actor: User,
        event_id: str,
        page: int,
        limit: int,
    ) -> dict:
        event = self.event_repository.get_or_raise(event_id)
        if actor.role != UserRole.SYSTEM_ADMIN and event.organizer_id != actor.id:
            raise PermissionDeniedError(
                "Access denied. Only admins and organizers can view bookings."
            )
        page, limit, offset = paginate(page, limit)
        bookings, total = self.booking_repository.list_page(offset, limit, event_ids=[event.id])
        return page_envelope(bookings, total, page, limit)

    def list_organizer_bookings(self, actor: User, page: int, limit: int) -> dict:
        if actor.role == UserRole.SYSTEM_ADMIN:
            return self.list_all_bookings(page, limit)

        bookings = self.booking_repository.list_for_organizer(actor.id)
        return {"count": len(bookings), "pagination": None, "data": bookings}

    def list_organizer_attendee_bookings(self, actor: User, attendee_id: str) -> dict:
        bookings = self.booking_repository.list_for_attendee_and_organizer(
            attendee_id=attendee_id,
            organizer_id=actor.id,
        )
        attendee = bookings[0].user if bookings else None
        return {
            "count": len(bookings),
            "data": {"attendee": attendee, "bookings": bookings},
        }

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def cancel_booking(self, user: User, booking_id: str) -> Booking:
        booking = self._get_or_raise(booking_id)
        if booking.user_id != user.id and user.role != UserRole.SYSTEM_ADMIN:
            raise PermissionDeniedError("You are not authorized to cancel this booking")
        if not BookingStateMachine.is_holding(booking.status):
            raise ConflictError(f"Cannot cancel booking in status {booking.status.value}.")

        if booking.payment_status == PaymentStatus.PAID:
            return self.refund_booking(booking, reason="CANCELED_BY_USER")

        from_status = booking.status
        self.transition(
            booking,
            BookingStatus.CANCELED,
            payment_status=PaymentStatus.NONE,
        )
        self.record(booking, "BOOKING_CANCELED")

        if from_status == BookingStatus.PENDING and booking.checkout_session_id:
            # The payment link would otherwise stay payable.
            self._require_gateway().cancel_checkout(booking.checkout_session_id)
        return booking

    def refund_booking(self, booking: Booking, reason: str) -> Booking:
        """
        Refund a paid booking through the gateway and give its tickets back.

        The status change is claimed first and the gateway is called last:
        a booking another request already moved is never refunded, and a
        gateway failure rolls the claimed change back with the transaction.
        """
        gateway = self._require_gateway()
        if not booking.payment_id:
            raise ConflictError("Booking has no captured payment to refund")

        self.transition(
            booking,
            BookingStatus.REFUNDED,
            payment_status=PaymentStatus.REFUNDED,
        )
        self.record(booking, "BOOKING_REFUNDED", reason=reason)
        gateway.refund(booking.payment_id, to_minor_units(booking.total_price))
        return booking

    def update_booking_status(self, booking_id: str, status: str) -> Booking:
        try:
            to_status = BookingStatus(status)
        except ValueError as exc:
            allowed = ", ".join(item.value for item in BookingStatus)
            raise ValidationError(
                f"Invalid status value. Must be one of: {allowed}"
            ) from exc

        booking = self._get_or_raise(booking_id)
        if booking.status == to_status:
            return booking

        values = {}
        if to_status == BookingStatus.PENDING:
            # Every Pending booking carries a deadline the expiry sweep honours.
            values["reservation_expires_at"] = datetime.now(timezone.utc) + timedelta(
                minutes=settings.checkout_expiry_minutes()
            )

        from_status = booking.status
        self.transition(booking, to_status, **values)
        self.record(
            booking,
            "BOOKING_STATUS_CHANGED",
            from_status=from_status.value,
        )
        return booking

    def expire_stale_reservations(self, now: datetime | None = None) -> list[Booking]:
        now = now or datetime.now(timezone.utc)
        expired = []
        for booking in self.booking_repository.list_expired_reservations(now):
            try:
                self.transition(
                    booking,
                    BookingStatus.CANCELED,
                    payment_status=PaymentStatus.NONE,
                )
            except ConcurrentModificationError:
                # A webhook settled it between the scan and the update.
                logger.info("Reservation settled concurrently. booking_id=%s", booking.id)
                continue
            self.record(booking, "BOOKING_EXPIRED")
            expired.append(booking)

        if expired:
            logger.info("Expired %s stale reservations.", len(expired))
        return expired

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_or_raise(self, booking_id: str) -> Booking:
        booking = self.booking_repository.get_by_id(booking_id)
        if not booking:
            raise NotFoundError("Booking not found")
        return booking

    def _require_gateway(self) -> RazorpayGateway:
        if not self.gateway:
            raise ConflictError("Payments are not available")
        return self.gateway

    def transition(
        self,
        booking: Booking,
        to_status: BookingStatus,
        **values,
    ) -> None:
        from_status = booking.status
        BookingStateMachine.validate_transition(from_status, to_status)

        if BookingStateMachine.reserves_inventory(from_status, to_status):
            self.event_repository.reserve(booking.event_id, booking.tickets_booked)

        self.booking_repository.compare_and_set_status(
            booking,
            expected=from_status,
            new_status=to_status,
            **values,
        )

        if BookingStateMachine.releases_inventory(from_status, to_status):
            self.event_repository.release(booking.event_id, booking.tickets_booked)

        logger.info(
            "Booking transitioned. booking_id=%s %s -> %s",
            booking.id,
            from_status.value,
            to_status.value,
        )

    def record(
        self,
        booking: Booking,
        event_type: str,
        dedupe_key: str | None = None,
        **extra,
    ) -> None:
        payload = {
            "booking_id": booking.id,
            "event_id": booking.event_id,
            "user_id": booking.user_id,
            "tickets_booked": booking.tickets_booked,
            "total_price": booking.total_price,
            "status": booking.status.value,
            "payment_status": booking.payment_status.value,
        }
        payload.update(extra)
        self.outbox.add_event(
            aggregate_type="booking",
            aggregate_id=booking.id,
            event_type=event_type,
            payload=payload,
            dedupe_key=dedupe_key or f"booking:{booking.id}:{event_type.lower()}:{uuid4().hex}",
        )
