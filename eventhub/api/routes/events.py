from datetime import datetime

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from eventhub.api.dependencies import (
    get_db,
    require_admin,
    require_organizer_or_admin,
)
from eventhub.api.schemas.schemas import (
    BookingPage,
    EventCreate,
    EventList,
    EventPage,
    EventResponse,
    EventUpdate,
    MessageResponse,
)
from eventhub.application.booking_service import DEFAULT_PAGE_LIMIT, BookingService
from eventhub.application.event_service import DEFAULT_EVENT_PAGE_LIMIT, EventService
from eventhub.infrastructure.db.models import User

router = APIRouter(prefix="/events", tags=["events"])


def _event_list(events: list) -> EventList:
    return EventList(
        count=len(events),
        data=[EventResponse.model_validate(event) for event in events],
    )


@router.get("", response_model=EventPage)
def list_events(
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
    db: Session = Depends(get_db),
):
    result = EventService(db).list_events(
        search=search,
        start_date=start_date,
        end_date=end_date,
        location=location,
        category=category,
        min_price=min_price,
        max_price=max_price,
        organizer=organizer,
        featured=featured,
        has_tickets=has_tickets,
        sort=sort,
        page=page,
        limit=limit,
    )
    return EventPage.model_validate(result, from_attributes=True)


@router.get("/search", response_model=EventList)
def search_events(title: str | None = None, db: Session = Depends(get_db)):
    return _event_list(EventService(db).search_events(title))


@router.get("/category/{category}", response_model=EventList)
def events_by_category(category: str, db: Session = Depends(get_db)):
    return _event_list(EventService(db).events_by_category(category))


@router.get("/location/{location}", response_model=EventList)
def events_by_location(location: str, db: Session = Depends(get_db)):
    return _event_list(EventService(db).events_by_location(location))


@router.get("/upcoming", response_model=EventList)
def upcoming_events(db: Session = Depends(get_db)):
    return _event_list(EventService(db).upcoming_events())


@router.get("/organizer", response_model=EventPage)
def organizer_events(
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    category: str | None = None,
    location: str | None = None,
    search: str | None = None,
    status_filter: str | None = Query(default=None, alias="status"),
    sort: str = "created-desc",
    page: int = 1,
    limit: int = DEFAULT_EVENT_PAGE_LIMIT,
    all_events: bool = Query(default=False, alias="all"),
    user: User = Depends(require_organizer_or_admin),
    db: Session = Depends(get_db),
):
    result = EventService(db).organizer_events(
        user,
        start_date=start_date,
        end_date=end_date,
        category=category,
        location=location,
        search=search,
        status=status_filter,
        sort=sort,
        page=page,
        limit=limit,
        all_events=all_events,
    )
    return EventPage.model_validate(result, from_attributes=True)


@router.get("/organizer/{organizer_id}", response_model=EventList)
def events_by_organizer(organizer_id: str, db: Session = Depends(get_db)):
    return _event_list(EventService(db).events_by_organizer(organizer_id))


@router.get("/similar/{event_id}", response_model=EventList)
def similar_events(event_id: str, db: Session = Depends(get_db)):
    return _event_list(EventService(db).similar_events(event_id))


@router.get("/{event_id}", response_model=EventResponse)
def get_event(event_id: str, db: Session = Depends(get_db)):
    return EventResponse.model_validate(EventService(db).get_event(event_id))


@router.get("/{event_id}/bookings", response_model=BookingPage)
def event_bookings(
    event_id: str,
    page: int = 1,
    limit: int = DEFAULT_PAGE_LIMIT,
    user: User = Depends(require_organizer_or_admin),
    db: Session = Depends(get_db),
):
    result = BookingService(db).list_event_bookings(user, event_id, page, limit)
    return BookingPage.model_validate(result, from_attributes=True)


@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
def create_event(
    request: EventCreate,
    user: User = Depends(require_organizer_or_admin),
    db: Session = Depends(get_db),
):
    event = EventService(db).create_event(user, request.model_dump())
    return EventResponse.model_validate(event)


@router.put("/{event_id}", response_model=EventResponse)
def update_event(
    event_id: str,
    request: EventUpdate,
    user: User = Depends(require_organizer_or_admin),
    db: Session = Depends(get_db),
):
    data = request.model_dump(exclude_unset=True, exclude_none=True)
    event = EventService(db).update_event(user, event_id, data)
    return EventResponse.model_validate(event)


@router.delete("/{event_id}", response_model=MessageResponse)
def delete_event(
    event_id: str,
    user: User = Depends(require_organizer_or_admin),
    db: Session = Depends(get_db),
):
    EventService(db).delete_event(user, event_id)
    return MessageResponse(message="Event deleted")


@router.put("/{event_id}/approve", response_model=EventResponse)
def approve_event(event_id: str, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    return EventResponse.model_validate(EventService(db).approve_event(event_id))


@router.put("/{event_id}/reject", response_model=EventResponse)
def reject_event(event_id: str, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    return EventResponse.model_validate(EventService(db).reject_event(event_id))
