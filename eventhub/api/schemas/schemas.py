from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from eventhub.domain.enums import EventStatus, PaymentStatus, RefundPolicy, UserRole
from eventhub.domain.state_machine import BookingStatus


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class MessageResponse(BaseModel):
    message: str


class Pagination(BaseModel):
    total: int
    pages: int
    page: int


# ----------------------------------------------------------------------
# Users & auth
# ----------------------------------------------------------------------


class RegisterRequest(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(min_length=8)


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: str


class UserSummary(ORMModel):
    id: str
    name: str
    email: str


class UserResponse(ORMModel):
    id: str
    name: str
    email: str
    role: UserRole
    profile_picture: str
    created_at: datetime


class AuthResponse(BaseModel):
    token: str
    expires_at: datetime
    user: UserResponse


class ProfileUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = None


class PasswordChangeRequest(BaseModel):
    current_password: str
    new_password: str


class AdminUserUpdateRequest(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=100)
    email: EmailStr | None = None
    role: UserRole | None = None


class RoleUpdateRequest(BaseModel):
    role: UserRole


# ----------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------


class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str
    date_time: datetime
    location: str
    address: str = ""
    city: str = ""
    state: str = ""
    country: str = ""
    is_online: bool = False
    online_link: str = ""
    category: str
    tags: list[str] = Field(default_factory=list)
    image: str = ""
    ticket_price: int = Field(ge=0)
    total_tickets: int = Field(ge=0)
    refund_policy: RefundPolicy = RefundPolicy.FLEXIBLE
    additional_info: str = ""
    is_public: bool = True
    featured: bool = False


class EventUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = None
    date_time: datetime | None = None
    location: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    country: str | None = None
    is_online: bool | None = None
    online_link: str | None = None
    category: str | None = None
    tags: list[str] | None = None
    image: str | None = None
    ticket_price: int | None = Field(default=None, ge=0)
    total_tickets: int | None = Field(default=None, ge=0)
    refund_policy: RefundPolicy | None = None
    additional_info: str | None = None
    is_public: bool | None = None
    featured: bool | None = None


class EventResponse(ORMModel):
    id: str
    title: str
    description: str
    date_time: datetime
    location: str
    address: str
    city: str
    state: str
    country: str
    is_online: bool
    online_link: str
    category: str
    tags: list[str]
    image: str
    ticket_price: int
    total_tickets: int
    remaining_tickets: int
    organizer_id: str
    organizer: UserSummary | None = None
    status: EventStatus
    refund_policy: RefundPolicy
    additional_info: str
    is_public: bool
    featured: bool
    created_at: datetime


class EventSummary(ORMModel):
    id: str
    title: str
    date_time: datetime
    location: str
    image: str
    ticket_price: int
    status: EventStatus


class EventList(BaseModel):
    count: int
    data: list[EventResponse]


class EventPage(BaseModel):
    count: int
    pagination: Pagination | None
    data: list[EventResponse]


# ----------------------------------------------------------------------
# Bookings
# ----------------------------------------------------------------------


class BookingCreateRequest(BaseModel):
    tickets: int = 1


class AdminBookingRequest(BaseModel):
    event_id: str
    user_email: EmailStr
    tickets: int = 1


class BookingStatusUpdateRequest(BaseModel):
    status: str


class BookingResponse(ORMModel):
    id: str
    user_id: str
    event_id: str
    booked_by_id: str | None
    tickets_booked: int
    total_price: int
    status: BookingStatus
    payment_status: PaymentStatus
    checkout_session_id: str | None
    reservation_expires_at: datetime | None
    created_at: datetime
    event: EventSummary | None = None
    user: UserSummary | None = None


class BookingList(BaseModel):
    count: int
    data: list[BookingResponse]


class BookingPage(BaseModel):
    count: int
    pagination: Pagination | None
    data: list[BookingResponse]


class AttendeeBookings(BaseModel):
    attendee: UserSummary | None
    bookings: list[BookingResponse]


class AttendeeBookingsResponse(BaseModel):
    count: int
    data: AttendeeBookings


class ExpireReservationsResponse(BaseModel):
    expired: int
    booking_ids: list[str]


# ----------------------------------------------------------------------
# Payments
# ----------------------------------------------------------------------


class CheckoutRequest(BaseModel):
    event_id: str
    tickets: int = 1


class CheckoutResponse(BaseModel):
    url: str
    session_id: str
    booking_id: str


class SessionStatusResponse(BaseModel):
    status: str
    payment_status: str
    booking: BookingResponse | None


class WebhookAck(BaseModel):
    received: bool


# ----------------------------------------------------------------------
# Outbox
# ----------------------------------------------------------------------


class OutboxEventResponse(BaseModel):
    id: str
    aggregate_type: str
    aggregate_id: str
    event_type: str
    payload: dict
    status: str
    attempts: int
    created_at: str
    published_at: str | None = None
