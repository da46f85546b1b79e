# eventhub/infrastructure/repositories/event_repository.py

import logging

from sqlalchemy.orm import Session
from sqlalchemy import func, select, update

from eventhub.infrastructure.db.models import Event
from eventhub.domain.exceptions import (
    ConflictError,
    InsufficientInventoryError,
    NotFoundError,
)

logger = logging.getLogger(__name__)


class EventRepository:
    """
    Event rows and their ticket inventory.

    Inventory changes are single conditional UPDATE statements so the
    database arbitrates concurrent bookings: a request either moves the
    counter within its bounds or changes nothing.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, event_id: str) -> Event | None:
        stmt = select(Event).where(Event.id == event_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_or_raise(self, event_id: str) -> Event:
        event = self.get_by_id(event_id)
        if not event:
            raise NotFoundError("Event not found")
        return event

    def reserve(self, event_id: str, quantity: int) -> Event:
        stmt = (
            update(Event)
            .where(Event.id == event_id)
            .where(Event.remaining_tickets >= quantity)
            .values(remaining_tickets=Event.remaining_tickets - quantity)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)

        if result.rowcount == 0:
            if not self.get_by_id(event_id):
                raise NotFoundError("Event not found")
            raise InsufficientInventoryError()

        return self._reload(event_id)

    def release(self, event_id: str, quantity: int) -> Event | None:
        stmt = (
            update(Event)
            .where(Event.id == event_id)
            .where(Event.remaining_tickets + quantity <= Event.total_tickets)
            .values(remaining_tickets=Event.remaining_tickets + quantity)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)

        if result.rowcount == 0:
            if not self.get_by_id(event_id):
                return None
            logger.error(
                "Refusing to release tickets past capacity. event_id=%s quantity=%s",
                event_id,
                quantity,
            )
            raise ConflictError("Ticket inventory is inconsistent for this event")

        return self._reload(event_id)

    def resize(self, event_id: str, new_total: int) -> Event:
        """
        Moves total and remaining by the same delta so sold tickets stay sold.
        """
        delta = new_total - Event.total_tickets
        stmt = (
            update(Event)
            .where(Event.id == event_id)
            .where(Event.remaining_tickets + delta >= 0)
            .values(
                total_tickets=new_total,
                remaining_tickets=Event.remaining_tickets + delta,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)

        if result.rowcount == 0:
            self.get_or_raise(event_id)
            raise ConflictError("Total tickets cannot be lower than tickets already sold")

        return self._reload(event_id)

    def _reload(self, event_id: str) -> Event:
        stmt = (
            select(Event)
            .where(Event.id == event_id)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one()

    def count_for_organizer(self, organizer_id: str) -> int:
        stmt = select(func.count()).select_from(Event).where(Event.organizer_id == organizer_id)
        return self.db.execute(stmt).scalar_one()
