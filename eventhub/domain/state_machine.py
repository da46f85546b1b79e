# eventhub/domain/state_machine.py

from enum import Enum
from typing import Dict, Set

from eventhub.domain.exceptions import InvalidStateTransitionError


class BookingStatus(str, Enum):
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    CANCELED = "Canceled"
    REFUNDED = "Refunded"


class BookingStateMachine:
    """
    Central lifecycle controller for booking transitions.

    Pending and Confirmed bookings hold tickets out of the event's
    remaining pool; Canceled and Refunded bookings do not. Whoever
    applies a transition that crosses that line must release or
    re-reserve the booking's tickets in the same transaction.
    """

    _ALLOWED_TRANSITIONS: Dict[BookingStatus, Set[BookingStatus]] = {
        BookingStatus.PENDING: {
            BookingStatus.CONFIRMED,
            BookingStatus.CANCELED,
        },
        BookingStatus.CONFIRMED: {
            BookingStatus.CANCELED,
            BookingStatus.REFUNDED,
        },
        BookingStatus.CANCELED: {
            BookingStatus.PENDING,
            BookingStatus.CONFIRMED,
            BookingStatus.REFUNDED,
        },
        BookingStatus.REFUNDED: {
            BookingStatus.PENDING,
            BookingStatus.CONFIRMED,
        },
    }

    _HOLDING: Set[BookingStatus] = {
        BookingStatus.PENDING,
        BookingStatus.CONFIRMED,
    }

    @classmethod
    def can_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> bool:
        """
        Returns True if transition is allowed.
        """
        cls._ensure_valid_status(from_status)
        cls._ensure_valid_status(to_status)

        return to_status in cls._ALLOWED_TRANSITIONS.get(from_status, set())

    @classmethod
    def validate_transition(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> None:
        """
        Raises InvalidStateTransitionError if transition is illegal.
        """
        if not cls.can_transition(from_status, to_status):
            raise InvalidStateTransitionError(
                from_state=from_status.value,
                to_state=to_status.value,
            )

    @classmethod
    def is_holding(cls, status: BookingStatus) -> bool:
        """
        Returns True if a booking in this state holds tickets.
        """
        cls._ensure_valid_status(status)
        return status in cls._HOLDING

    @classmethod
    def releases_inventory(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> bool:
        return cls.is_holding(from_status) and not cls.is_holding(to_status)

    @classmethod
    def reserves_inventory(
        cls,
        from_status: BookingStatus,
        to_status: BookingStatus,
    ) -> bool:
        return not cls.is_holding(from_status) and cls.is_holding(to_status)

    @classmethod
    def get_allowed_transitions(
        cls, status: BookingStatus
    ) -> Set[BookingStatus]:
        """
        Returns allowed next states from current state.
        """
        cls._ensure_valid_status(status)
        return cls._ALLOWED_TRANSITIONS.get(status, set())

    @staticmethod
    def _ensure_valid_status(status: BookingStatus) -> None:
        if not isinstance(status, BookingStatus):
            raise TypeError(
                f"Expected BookingStatus, got {type(status)}"
            )
