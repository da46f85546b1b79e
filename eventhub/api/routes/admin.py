import json

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from eventhub.api.dependencies import get_db, require_admin
from eventhub.api.schemas.schemas import ExpireReservationsResponse, OutboxEventResponse
from eventhub.application.booking_service import BookingService
from eventhub.infrastructure.db.models import OutboxEvent
from eventhub.infrastructure.repositories.outbox_repository import OutboxRepository

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


def _outbox_response(item: OutboxEvent) -> OutboxEventResponse:
    return OutboxEventResponse(
        id=item.id,
        aggregate_type=item.aggregate_type,
        aggregate_id=item.aggregate_id,
        event_type=item.event_type,
        payload=json.loads(item.payload),
        status=item.status,
        attempts=item.attempts,
        created_at=item.created_at.isoformat(),
        published_at=item.published_at.isoformat() if item.published_at else None,
    )


@router.post("/reservations/expire", response_model=ExpireReservationsResponse)
def expire_reservations(db: Session = Depends(get_db)):
    expired = BookingService(db).expire_stale_reservations()
    return ExpireReservationsResponse(
        expired=len(expired),
        booking_ids=[booking.id for booking in expired],
    )


@router.get("/outbox/events", response_model=list[OutboxEventResponse])
def list_outbox_events(
    status_filter: str = "PENDING",
    limit: int = 50,
    db: Session = Depends(get_db),
):
    safe_limit = max(1, min(limit, 200))
    events = OutboxRepository(db).list_by_status(status_filter, safe_limit)
    return [_outbox_response(item) for item in events]


@router.post("/outbox/events/{event_id}/mark-published", response_model=OutboxEventResponse)
def mark_outbox_event_published(event_id: str, db: Session = Depends(get_db)):
    outbox = OutboxRepository(db)
    item = outbox.get_by_id(event_id)
    if not item:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Outbox event not found",
        )
    return _outbox_response(outbox.mark_published(item))
