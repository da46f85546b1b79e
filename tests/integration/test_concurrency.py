from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

from eventhub.application.booking_service import BookingService
from eventhub.domain.enums import EventStatus, UserRole
from eventhub.domain.exceptions import ConflictError, InsufficientInventoryError
from eventhub.domain.state_machine import BookingStatus
from eventhub.infrastructure.db.models import Base, Booking, Event, User
from eventhub.infrastructure.db.session import build_engine

CAPACITY = 10
USERS = 20
WORKERS = 8


@pytest.fixture
def file_sessions(tmp_path):
    # Separate connections per thread need a database that outlives one connection.
    engine = build_engine(f"sqlite:///{tmp_path / 'eventhub.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False)
    engine.dispose()


def _seed(sessions):
    with sessions() as session:
        organizer = User(
            name="Organizer",
            email="organizer@example.com",
            password_hash="x",
            role=UserRole.ORGANIZER,
        )
        session.add(organizer)
        session.flush()
        event = Event(
            title="Crowded Gig",
            description="Everyone wants in",
            date_time=datetime.now(timezone.utc) + timedelta(days=7),
            location="Mumbai",
            category="Music",
            ticket_price=0,
            total_tickets=CAPACITY,
            remaining_tickets=CAPACITY,
            organizer_id=organizer.id,
            status=EventStatus.APPROVED,
        )
        users = [
            User(name=f"User {i}", email=f"user{i}@example.com", password_hash="x")
            for i in range(USERS)
        ]
        session.add_all([event, *users])
        session.commit()
        return event.id, [user.id for user in users]


def _book(sessions, event_id, user_id, tickets):
    with sessions() as session:
        user = session.get(User, user_id)
        try:
            booking = BookingService(session).create_self_booking(user, event_id, tickets)
        except InsufficientInventoryError:
            session.rollback()
            return None
        booking_id = booking.id
        session.commit()
        return booking_id


def _cancel(sessions, booking_id, user_id):
    with sessions() as session:
        user = session.get(User, user_id)
        try:
            BookingService(session).cancel_booking(user, booking_id)
        except ConflictError:
            session.rollback()
            return False
        session.commit()
        return True


def _inventory(sessions, event_id):
    with sessions() as session:
        remaining = session.get(Event, event_id).remaining_tickets
        held = session.execute(
            select(func.coalesce(func.sum(Booking.tickets_booked), 0))
            .where(Booking.event_id == event_id)
            .where(Booking.status.in_([BookingStatus.PENDING, BookingStatus.CONFIRMED]))
        ).scalar_one()
        return remaining, held


# ---------------------
# CONCURRENT BOOKINGS
# ---------------------

def test_concurrent_bookings_never_oversell(file_sessions):
    event_id, user_ids = _seed(file_sessions)

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        results = list(pool.map(lambda uid: _book(file_sessions, event_id, uid, 1), user_ids))

    booked = [booking_id for booking_id in results if booking_id]
    remaining, held = _inventory(file_sessions, event_id)
    assert len(booked) == CAPACITY
    assert remaining == 0
    assert held == CAPACITY


def test_concurrent_cancellations_release_once(file_sessions):
    event_id, user_ids = _seed(file_sessions)
    owners = {}
    for user_id in user_ids[:5]:
        owners[_book(file_sessions, event_id, user_id, 2)] = user_id
    assert _inventory(file_sessions, event_id) == (0, CAPACITY)

    # Every booking is cancelled by four racing requests.
    attempts = [(booking_id, user_id) for booking_id, user_id in owners.items()] * 4
    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        results = list(pool.map(lambda args: _cancel(file_sessions, *args), attempts))

    assert results.count(True) == len(owners)
    assert _inventory(file_sessions, event_id) == (CAPACITY, 0)


def test_mixed_traffic_keeps_inventory_consistent(file_sessions):
    event_id, user_ids = _seed(file_sessions)
    first_wave = {}
    for user_id in user_ids[:4]:
        first_wave[_book(file_sessions, event_id, user_id, 2)] = user_id

    def work(index):
        if index < len(first_wave):
            booking_id, user_id = list(first_wave.items())[index]
            return _cancel(file_sessions, booking_id, user_id)
        return _book(file_sessions, event_id, user_ids[index], 1)

    with ThreadPoolExecutor(max_workers=WORKERS) as pool:
        list(pool.map(work, range(USERS)))

    remaining, held = _inventory(file_sessions, event_id)
    assert remaining >= 0
    assert remaining == CAPACITY - held
