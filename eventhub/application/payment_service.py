from datetime import datetime, timedelta, timezone
import hashlib
import json
import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from eventhub.application.booking_service import (
    BookingService,
    ensure_bookable,
    validate_ticket_count,
)
from eventhub.domain.enums import PaymentStatus, UserRole
from eventhub.domain.exceptions import (
    ConflictError,
    InsufficientInventoryError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from eventhub.domain.state_machine import BookingStatus
from eventhub.infrastructure import settings
from eventhub.infrastructure.db.models import Booking, PaymentWebhookEvent, User
from eventhub.infrastructure.payments.razorpay_gateway import RazorpayGateway, to_minor_units

logger = logging.getLogger(__name__)

LINK_PAID = "payment_link.paid"
LINK_EXPIRED = "payment_link.expired"
LINK_CANCELLED = "payment_link.cancelled"


def _hash_payload(raw_body: bytes) -> str:
    return hashlib.sha256(raw_body).hexdigest()


class PaymentService:
    """
    Hosted checkout for paid events and reconciliation of its webhooks.

    Opening a checkout reserves tickets immediately under a Pending
    booking. The webhook later confirms it, or the link expires and the
    tickets go back to the pool.
    """

    def __init__(self, db: Session, gateway: RazorpayGateway):
        self.db = db
        self.gateway = gateway
        self.bookings = BookingService(db, gateway=gateway)

    def create_checkout_session(self, user: User, event_id: str, tickets: int) -> dict:
        validate_ticket_count(tickets)
        event = self.bookings.event_repository.get_or_raise(event_id)
        ensure_bookable(event)
        if event.ticket_price <= 0:
            raise ValidationError("This event is free. Book it directly instead.")

        event = self.bookings.event_repository.reserve(event.id, tickets)
        expires_at = datetime.now(timezone.utc) + timedelta(
            minutes=settings.checkout_expiry_minutes()
        )
        booking = self.bookings.booking_repository.create_booking(
            user_id=user.id,
            event_id=event.id,
            tickets_booked=tickets,
            total_price=event.ticket_price * tickets,
            status=BookingStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            reservation_expires_at=expires_at,
        )

        # A gateway failure propagates and the request transaction rolls
        # the reservation back with it.
        session = self.gateway.create_checkout(
            booking_id=booking.id,
            amount_minor=to_minor_units(booking.total_price),
            currency=settings.payment_currency(),
            description=f"{tickets} ticket(s) for {event.title}",
            expire_by=int(expires_at.timestamp()),
            notes={
                "booking_id": booking.id,
                "event_id": event.id,
                "user_id": user.id,
            },
            callback_url=f"{settings.frontend_url()}/booking-success",
        )
        self.bookings.booking_repository.set_fields(booking, checkout_session_id=session.id)

        logger.info(
            "Checkout opened. booking_id=%s session_id=%s amount=%s",
            booking.id,
            session.id,
            booking.total_price,
        )
        return {"url": session.url, "session_id": session.id, "booking_id": booking.id}

    def get_session_status(self, user: User, session_id: str | None) -> dict:
        if not session_id:
            raise ValidationError("Session ID is required")

        booking = self.bookings.booking_repository.get_by_checkout_session_id(session_id)
        if not booking:
            raise NotFoundError("Checkout session not found")
        if booking.user_id != user.id and user.role != UserRole.SYSTEM_ADMIN:
            raise PermissionDeniedError("You are not authorized to view this session")

        session = self.gateway.fetch_checkout(session_id)
        return {
            "status": session.status,
            "payment_status": session.payment_status,
            "booking": booking,
        }

    # ------------------------------------------------------------------
    # Webhook
    # ------------------------------------------------------------------

    def handle_webhook(
        self,
        raw_body: bytes,
        signature: str | None,
        event_id_header: str | None,
    ) -> dict:
        self.gateway.verify_webhook(raw_body, signature)

        try:
            event = json.loads(raw_body)
        except ValueError as exc:
            raise ValidationError("Webhook body is not valid JSON") from exc

        event_type = event.get("event", "")
        payload = event.get("payload", {})
        link = payload.get("payment_link", {}).get("entity", {})
        payment = payload.get("payment", {}).get("entity", {})

        provider_event_id = event_id_header or _hash_payload(raw_body)
        if self._already_processed(provider_event_id):
            logger.warning("Replayed webhook ignored. event_id=%s", provider_event_id)
            return {"received": True}

        booking = self._find_booking(link)
        self._record_delivery(provider_event_id, event_type, booking, raw_body)

        if booking is None:
            if event_type in (LINK_PAID, LINK_EXPIRED, LINK_CANCELLED):
                logger.warning(
                    "Webhook for unknown booking. event=%s link_id=%s",
                    event_type,
                    link.get("id"),
                )
            if event_type == LINK_PAID:
                self._refund_orphaned_payment(link, payment)
            return {"received": True}

        if event_type == LINK_PAID:
            self._on_paid(booking, payment.get("id"), provider_event_id)
        elif event_type in (LINK_EXPIRED, LINK_CANCELLED):
            self._on_expired(booking, provider_event_id)
        else:
            logger.info("Unhandled webhook event ignored. event=%s", event_type)

        return {"received": True}

    def _on_paid(self, booking: Booking, payment_id: str | None, delivery_id: str) -> None:
        if booking.status == BookingStatus.PENDING:
            self.bookings.transition(
                booking,
                BookingStatus.CONFIRMED,
                payment_status=PaymentStatus.PAID,
                payment_id=payment_id,
            )
            self.bookings.record(
                booking,
                "BOOKING_CONFIRMED",
                dedupe_key=f"booking:{booking.id}:confirmed:{delivery_id}",
                payment_id=payment_id,
            )
            return

        if booking.status == BookingStatus.CANCELED:
            self._settle_late_payment(booking, payment_id, delivery_id)
            return

        logger.info(
            "Payment webhook for settled booking ignored. booking_id=%s status=%s",
            booking.id,
            booking.status.value,
        )

    def _settle_late_payment(
        self,
        booking: Booking,
        payment_id: str | None,
        delivery_id: str,
    ) -> None:
        """
        The reservation expired before the money arrived. Take the
        tickets back if they are still free, otherwise refund.
        """
        try:
            self.bookings.transition(
                booking,
                BookingStatus.CONFIRMED,
                payment_status=PaymentStatus.PAID,
                payment_id=payment_id,
            )
        except InsufficientInventoryError:
            logger.warning(
                "Late payment could not be honoured, refunding. booking_id=%s",
                booking.id,
            )
            self.bookings.booking_repository.set_fields(
                booking,
                payment_id=payment_id,
                payment_status=PaymentStatus.PAID,
            )
            self.bookings.refund_booking(booking, reason="SOLD_OUT_AFTER_EXPIRY")
            return

        self.bookings.record(
            booking,
            "BOOKING_CONFIRMED",
            dedupe_key=f"booking:{booking.id}:confirmed:{delivery_id}",
            payment_id=payment_id,
            late_payment=True,
        )

    def _refund_orphaned_payment(self, link: dict, payment: dict) -> None:
        # Only links this service opened carry a booking id in their notes.
        notes = link.get("notes") or {}
        payment_id = payment.get("id")
        if not notes.get("booking_id") or not payment_id:
            return

        logger.warning(
            "Refunding payment for deleted booking. booking_id=%s payment_id=%s",
            notes["booking_id"],
            payment_id,
        )
        self.gateway.refund(payment_id)

    def _on_expired(self, booking: Booking, delivery_id: str) -> None:
        if booking.status != BookingStatus.PENDING:
            return

        self.bookings.transition(
            booking,
            BookingStatus.CANCELED,
            payment_status=PaymentStatus.NONE,
        )
        self.bookings.record(
            booking,
            "BOOKING_EXPIRED",
            dedupe_key=f"booking:{booking.id}:expired:{delivery_id}",
        )

    def _find_booking(self, link: dict) -> Booking | None:
        link_id = link.get("id")
        if link_id:
            booking = self.bookings.booking_repository.get_by_checkout_session_id(link_id)
            if booking:
                return booking
        reference_id = link.get("reference_id")
        if reference_id:
            return self.bookings.booking_repository.get_by_id(reference_id)
        return None

    def _already_processed(self, provider_event_id: str) -> bool:
        stmt = (
            select(PaymentWebhookEvent.id)
            .where(PaymentWebhookEvent.provider == self.gateway.provider)
            .where(PaymentWebhookEvent.provider_event_id == provider_event_id)
        )
        return self.db.execute(stmt).first() is not None

    def _record_delivery(
        self,
        provider_event_id: str,
        event_type: str,
        booking: Booking | None,
        raw_body: bytes,
    ) -> None:
        self.db.add(
            PaymentWebhookEvent(
                provider=self.gateway.provider,
                provider_event_id=provider_event_id,
                event_type=event_type,
                booking_id=booking.id if booking else None,
                payload_hash=_hash_payload(raw_body),
                status="PROCESSED" if booking else "IGNORED",
            )
        )
        try:
            self.db.flush()
        except IntegrityError as exc:
            raise ConflictError("Duplicate webhook delivery detected.") from exc
