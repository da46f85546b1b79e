from datetime import datetime, timezone
import logging

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from eventhub.application.booking_service import page_envelope, paginate
from eventhub.domain.enums import BOOKABLE_EVENT_STATUSES, EventStatus, UserRole
from eventhub.domain.exceptions import ConflictError, PermissionDeniedError, ValidationError
from eventhub.infrastructure.db.models import Event, User
from eventhub.infrastructure.repositories.booking_repository import BookingRepository
from eventhub.infrastructure.repositories.event_repository import EventRepository

logger = logging.getLogger(__name__)

DEFAULT_EVENT_PAGE_LIMIT = 10
SIMILAR_EVENTS_LIMIT = 3

# Fields an owner may not write through update_event.
_PROTECTED_FIELDS = {"id", "remaining_tickets", "organizer_id", "status", "created_at", "updated_at"}

_PUBLIC_SORTS = {
    "date": [Event.date_time.asc()],
    "date-desc": [Event.date_time.desc()],
    "price": [Event.ticket_price.asc()],
    "price-desc": [Event.ticket_price.desc()],
    "title": [Event.title.asc()],
    "popularity": [(Event.total_tickets - Event.remaining_tickets).desc(), Event.date_time.asc()],
}

_ORGANIZER_SORTS = {
    "date-asc": [Event.date_time.asc()],
    "date-desc": [Event.date_time.desc()],
    "title-asc": [Event.title.asc()],
    "title-desc": [Event.title.desc()],
    "price-asc": [Event.ticket_price.asc()],
    "price-desc": [Event.ticket_price.desc()],
    "created-desc": [Event.created_at.desc()],
}


def _contains(column, text: str):
    return func.lower(column).contains(text.strip().lower(), autoescape=True)


def _split_categories(raw: str) -> list[str]:
    return [item.strip().lower() for item in raw.split(",") if item.strip()]


class EventService:
    """Event catalogue: public listings, organizer views and CRUD."""

    def __init__(self, db: Session):
        self.db = db
        self.event_repository = EventRepository(db)
        self.booking_repository = BookingRepository(db)

    # ------------------------------------------------------------------
    # Public listings
    # ------------------------------------------------------------------

    @staticmethod
    def _public_query():
        return (
            select(Event)
            .where(Event.status.in_(BOOKABLE_EVENT_STATUSES))
            .where(Event.is_public.is_(True))
        )

    def _page(self, stmt, order_by: list, page: int, limit: int) -> dict:
        page, limit, offset = paginate(page, limit)
        total = self.db.execute(
            select(func.count()).select_from(stmt.subquery())
        ).scalar_one()
        events = list(
            self.db.execute(stmt.order_by(*order_by).offset(offset).limit(limit)).scalars().all()
        )
        return page_envelope(events, total, page, limit)

    def list_events(
        self,
        search: str | None = None,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        location: str | None = None,
        category: str | None = None,
        min_price: int | None = None,
        max_price: int | None = None,
        organizer: str | None = None,
        featured: bool | None = None,
        has_tickets: bool | None = None,
        sort: str = "date",
        page: int = 1,
        limit: int = DEFAULT_EVENT_PAGE_LIMIT,
    ) -> dict:
        stmt = self._public_query()
        if search:
            stmt = stmt.where(or_(_contains(Event.title, search), _contains(Event.description, search)))
        if start_date:
            stmt = stmt.where(Event.date_time >= start_date)
        if end_date:
            stmt = stmt.where(Event.date_time <= end_date)
        if location:
            stmt = stmt.where(_contains(Event.location, location))
        if category:
            stmt = stmt.where(func.lower(Event.category).in_(_split_categories(category)))
        if min_price is not None:
            stmt = stmt.where(Event.ticket_price >= min_price)
        if max_price is not None:
            stmt = stmt.where(Event.ticket_price <= max_price)
        if organizer:
            stmt = stmt.where(Event.organizer_id == organizer)
        if featured is not None:
            stmt = stmt.where(Event.featured.is_(featured))
        if has_tickets:
            stmt = stmt.where(Event.remaining_tickets > 0)

        order_by = _PUBLIC_SORTS.get(sort, _PUBLIC_SORTS["date"])
        return self._page(stmt, order_by, page, limit)

    def get_event(self, event_id: str) -> Event:
        return self.event_repository.get_or_raise(event_id)

    def search_events(self, title: str | None) -> list[Event]:
        if not title or not title.strip():
            raise ValidationError("Search query is required")
        stmt = self._public_query().where(_contains(Event.title, title)).order_by(Event.date_time)
        return list(self.db.execute(stmt).scalars().all())

    def events_by_category(self, category: str) -> list[Event]:
        stmt = self._public_query().where(_contains(Event.category, category)).order_by(Event.date_time)
        return list(self.db.execute(stmt).scalars().all())

    def events_by_location(self, location: str) -> list[Event]:
        stmt = self._public_query().where(_contains(Event.location, location)).order_by(Event.date_time)
        return list(self.db.execute(stmt).scalars().all())

    def upcoming_events(self, now: datetime | None = None) -> list[Event]:
        now = now or datetime.now(timezone.utc)
        stmt = self._public_query().where(Event.date_time >= now).order_by(Event.date_time)
        return list(self.db.execute(stmt).scalars().all())

    def events_by_organizer(self, organizer_id: str) -> list[Event]:
        stmt = self._public_query().where(Event.organizer_id == organizer_id).order_by(Event.date_time)
        return list(self.db.execute(stmt).scalars().all())

    def similar_events(self, event_id: str) -> list[Event]:
        event = self.event_repository.get_or_raise(event_id)
        stmt = (
            self._public_query()
            .where(Event.id != event.id)
            .where(func.lower(Event.category) == event.category.lower())
            .order_by(Event.date_time)
            .limit(SIMILAR_EVENTS_LIMIT)
        )
        return list(self.db.execute(stmt).scalars().all())

    # ------------------------------------------------------------------
    # Organizer view
    # ------------------------------------------------------------------

    def organizer_events(
        self,
        actor: User,
        start_date: datetime | None = None,
        end_date: datetime | None = None,
        category: str | None = None,
        location: str | None = None,
        search: str | None = None,
        status: str | None = None,
        sort: str = "created-desc",
        page: int = 1,
        limit: int = DEFAULT_EVENT_PAGE_LIMIT,
        all_events: bool = False,
    ) -> dict:
        stmt = select(Event).where(Event.organizer_id == actor.id)
        if start_date:
            stmt = stmt.where(Event.date_time >= start_date)
        if end_date:
            stmt = stmt.where(Event.date_time <= end_date)
        if category:
            stmt = stmt.where(func.lower(Event.category).in_(_split_categories(category)))
        if location:
            stmt = stmt.where(_contains(Event.location, location))
        if search:
            stmt = stmt.where(or_(_contains(Event.title, search), _contains(Event.description, search)))
        if status == "available":
            stmt = stmt.where(Event.remaining_tickets > 0)
        elif status == "sold-out":
            stmt = stmt.where(Event.remaining_tickets == 0)

        order_by = _ORGANIZER_SORTS.get(sort, _ORGANIZER_SORTS["created-desc"])
        if all_events:
            events = list(self.db.execute(stmt.order_by(*order_by)).scalars().all())
            return {"count": len(events), "pagination": None, "data": events}
        return self._page(stmt, order_by, page, limit)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_event(self, actor: User, data: dict) -> Event:
        total = data["total_tickets"]
        event = Event(
            **{key: value for key, value in data.items() if key not in _PROTECTED_FIELDS},
            organizer_id=actor.id,
            remaining_tickets=total,
            status=EventStatus.PENDING,
        )
        self.db.add(event)
        self.db.flush()
        logger.info("Event created. event_id=%s organizer_id=%s", event.id, actor.id)
        return event

    def update_event(self, actor: User, event_id: str, data: dict) -> Event:
        event = self.event_repository.get_or_raise(event_id)
        self._ensure_can_manage(actor, event)

        new_total = data.pop("total_tickets", None)
        if new_total is not None and new_total != event.total_tickets:
            event = self.event_repository.resize(event.id, new_total)

        for key, value in data.items():
            if key in _PROTECTED_FIELDS:
                continue
            setattr(event, key, value)
        self.db.flush()
        return event

    def delete_event(self, actor: User, event_id: str) -> None:
        event = self.event_repository.get_or_raise(event_id)
        self._ensure_can_manage(actor, event)

        if self.booking_repository.count_holding_for_event(event.id) > 0:
            raise ConflictError("Cannot delete an event with active bookings")

        self.booking_repository.delete_for_event(event.id)
        self.db.delete(event)
        self.db.flush()
        logger.info("Event deleted. event_id=%s by=%s", event_id, actor.id)

    def approve_event(self, event_id: str) -> Event:
        return self._set_status(event_id, EventStatus.APPROVED)

    def reject_event(self, event_id: str) -> Event:
        return self._set_status(event_id, EventStatus.REJECTED)

    def _set_status(self, event_id: str, status: EventStatus) -> Event:
        event = self.event_repository.get_or_raise(event_id)
        event.status = status
        self.db.flush()
        logger.info("Event status changed. event_id=%s status=%s", event.id, status.value)
        return event

    @staticmethod
    def _ensure_can_manage(actor: User, event: Event) -> None:
        if actor.role != UserRole.SYSTEM_ADMIN and event.organizer_id != actor.id:
            raise PermissionDeniedError("You are not authorized to modify this event")
