import hashlib
import hmac
import json
import os
from datetime import datetime, timedelta, timezone

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["RAZORPAY_KEY_ID"] = "rzp_test_key"
os.environ["RAZORPAY_KEY_SECRET"] = "rzp_test_secret"
os.environ["RAZORPAY_WEBHOOK_SECRET"] = "whsec_test"

import pytest
from fastapi.testclient import TestClient

from eventhub.api.dependencies import get_payment_gateway
from eventhub.domain.enums import EventStatus, UserRole
from eventhub.domain.exceptions import PaymentGatewayError
from eventhub.infrastructure.db.models import Base, Event, User
from eventhub.infrastructure.db.session import SessionLocal, engine
from eventhub.infrastructure.payments.razorpay_gateway import CheckoutSession, RazorpayGateway
from eventhub.infrastructure.security import create_access_token, hash_password
from eventhub.main import app

WEBHOOK_SECRET = os.environ["RAZORPAY_WEBHOOK_SECRET"]
TEST_PASSWORD = "password123"


class FakeGateway(RazorpayGateway):
    """Records calls instead of talking to Razorpay; signatures are checked for real."""

    def __init__(self):
        self.links = {}
        self.refunds = []
        self.fail_checkout = False

    def create_checkout(self, booking_id, amount_minor, currency, description, expire_by, notes, callback_url):
        if self.fail_checkout:
            raise PaymentGatewayError("Failed to create checkout session")
        link_id = f"plink_{len(self.links) + 1}"
        self.links[link_id] = {
            "booking_id": booking_id,
            "amount": amount_minor,
            "currency": currency,
            "expire_by": expire_by,
            "notes": notes,
            "callback_url": callback_url,
            "status": "created",
        }
        return CheckoutSession(
            id=link_id,
            url=f"https://rzp.io/i/{link_id}",
            status="created",
            payment_status="unpaid",
        )

    def fetch_checkout(self, session_id):
        link = self.links[session_id]
        return CheckoutSession(
            id=session_id,
            url=f"https://rzp.io/i/{session_id}",
            status=link["status"],
            payment_status="paid" if link["status"] == "paid" else "unpaid",
        )

    def cancel_checkout(self, session_id):
        if self.links[session_id]["status"] == "paid":
            raise PaymentGatewayError("Failed to cancel checkout session")
        self.links[session_id]["status"] = "cancelled"

    def refund(self, payment_id, amount_minor=None):
        self.refunds.append((payment_id, amount_minor))
        return f"rfnd_{len(self.refunds)}"


@pytest.fixture(autouse=True)
def reset_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def client(gateway):
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_user():
    def _make_user(role=UserRole.STANDARD_USER, email=None, name="Test User"):
        session = SessionLocal()
        try:
            user = User(
                name=name,
                email=email or f"{role.name.lower()}-{os.urandom(4).hex()}@example.com",
                password_hash=hash_password(TEST_PASSWORD),
                role=role,
            )
            session.add(user)
            session.commit()
            token, _ = create_access_token(user.id, role.value)
            return {
                "id": user.id,
                "email": user.email,
                "headers": {"Authorization": f"Bearer {token}"},
            }
        finally:
            session.close()

    return _make_user


@pytest.fixture
def attendee(make_user):
    return make_user(UserRole.STANDARD_USER, email="attendee@example.com", name="Attendee")


@pytest.fixture
def organizer(make_user):
    return make_user(UserRole.ORGANIZER, email="organizer@example.com", name="Organizer")


@pytest.fixture
def admin(make_user):
    return make_user(UserRole.SYSTEM_ADMIN, email="admin@example.com", name="Admin")


@pytest.fixture
def make_event(organizer):
    def _make_event(
        total_tickets=10,
        ticket_price=0,
        status=EventStatus.APPROVED,
        organizer_id=None,
        days_from_now=7,
        **fields,
    ):
        session = SessionLocal()
        try:
            event = Event(
                title=fields.pop("title", "Test Event"),
                description=fields.pop("description", "An event for tests"),
                date_time=datetime.now(timezone.utc) + timedelta(days=days_from_now),
                location=fields.pop("location", "Mumbai"),
                category=fields.pop("category", "Music"),
                ticket_price=ticket_price,
                total_tickets=total_tickets,
                remaining_tickets=total_tickets,
                organizer_id=organizer_id or organizer["id"],
                status=status,
                **fields,
            )
            session.add(event)
            session.commit()
            return event.id
        finally:
            session.close()

    return _make_event


@pytest.fixture
def remaining_tickets():
    def _remaining(event_id):
        session = SessionLocal()
        try:
            return session.get(Event, event_id).remaining_tickets
        finally:
            session.close()

    return _remaining


@pytest.fixture
def send_webhook(client):
    def _send(
        event_type,
        link_id,
        payment_id="pay_test_1",
        event_id="evt_1",
        secret=WEBHOOK_SECRET,
        notes=None,
    ):
        link = {"id": link_id, "status": event_type.split(".")[-1], "notes": notes or {}}
        body = json.dumps(
            {
                "entity": "event",
                "event": event_type,
                "payload": {
                    "payment_link": {"entity": link},
                    "payment": {"entity": {"id": payment_id}},
                },
            }
        ).encode("utf-8")
        signature = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
        headers = {"Content-Type": "application/json", "X-Razorpay-Signature": signature}
        if event_id:
            headers["X-Razorpay-Event-Id"] = event_id
        return client.post("/api/payments/webhook", content=body, headers=headers)

    return _send
