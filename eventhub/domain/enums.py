from enum import Enum


class UserRole(str, Enum):
    STANDARD_USER = "Standard User"
    ORGANIZER = "Organizer"
    SYSTEM_ADMIN = "System Admin"


class EventStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PUBLISHED = "published"


BOOKABLE_EVENT_STATUSES = frozenset({EventStatus.APPROVED, EventStatus.PUBLISHED})


class PaymentStatus(str, Enum):
    NONE = "none"
    PENDING = "pending"
    PAID = "paid"
    REFUNDED = "refunded"


class RefundPolicy(str, Enum):
    FLEXIBLE = "flexible"
    MODERATE = "moderate"
    STRICT = "strict"
