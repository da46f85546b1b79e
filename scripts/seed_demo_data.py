from datetime import datetime, timedelta, timezone

from sqlalchemy import select

from eventhub.domain.enums import EventStatus, UserRole
from eventhub.infrastructure.db.models import Base, Event, User
from eventhub.infrastructure.db.session import SessionLocal, engine
from eventhub.infrastructure.security import hash_password

DEMO_PASSWORD = "password123"


def _dt(days_from_now: int, hour: int, minute: int) -> datetime:
    ist = timezone(timedelta(hours=5, minutes=30))
    now_ist = datetime.now(ist)
    target = now_ist + timedelta(days=days_from_now)
    return target.replace(hour=hour, minute=minute, second=0, microsecond=0).astimezone(timezone.utc)


def seed_users(db) -> dict[str, User]:
    user_defs = [
        ("Admin", "admin@eventhub.local", UserRole.SYSTEM_ADMIN),
        ("Olivia Organizer", "organizer@eventhub.local", UserRole.ORGANIZER),
        ("Sam Attendee", "attendee@eventhub.local", UserRole.STANDARD_USER),
    ]

    users = {}
    for name, email, role in user_defs:
        user = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if not user:
            user = User(
                name=name,
                email=email,
                password_hash=hash_password(DEMO_PASSWORD),
                role=role,
            )
            db.add(user)
            db.flush()
        users[role] = user
    return users


def seed_events(db, organizer: User) -> None:
    event_defs = [
        {
            "title": "Sunidhi Chauhan Live Concert",
            "description": "An evening of Bollywood hits performed live.",
            "category": "Music",
            "date_time": _dt(days_from_now=10, hour=19, minute=30),
            "location": "Indira Gandhi Arena, New Delhi",
            "city": "New Delhi",
            "country": "India",
            "ticket_price": 1800,
            "total_tickets": 400,
            "featured": True,
        },
        {
            "title": "Holi Festival 2026",
            "description": "Colours, music and food at the stadium grounds.",
            "category": "Festival",
            "date_time": _dt(days_from_now=15, hour=11, minute=0),
            "location": "Jawaharlal Nehru Stadium Grounds, Delhi",
            "city": "Delhi",
            "country": "India",
            "ticket_price": 1200,
            "total_tickets": 700,
        },
        {
            "title": "Python Community Meetup",
            "description": "Lightning talks and networking. Entry is free.",
            "category": "Technology",
            "date_time": _dt(days_from_now=5, hour=18, minute=0),
            "location": "Online",
            "is_online": True,
            "online_link": "https://meet.example.com/python-meetup",
            "ticket_price": 0,
            "total_tickets": 150,
        },
    ]

    for item in event_defs:
        existing = db.execute(
            select(Event).where(Event.title == item["title"])
        ).scalar_one_or_none()
        if existing:
            # Ticket counts stay as they are; bookings may already hold some.
            existing.date_time = item["date_time"]
            existing.location = item["location"]
            existing.status = EventStatus.APPROVED
            continue

        db.add(
            Event(
                **item,
                organizer_id=organizer.id,
                remaining_tickets=item["total_tickets"],
                status=EventStatus.APPROVED,
            )
        )


def main() -> None:
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        users = seed_users(db)
        seed_events(db, users[UserRole.ORGANIZER])
        db.commit()
        print(f"Seed complete: admin, organizer and attendee users (password {DEMO_PASSWORD!r}) and 3 events.")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


if __name__ == "__main__":
    main()
