from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from eventhub.api.dependencies import (
    get_current_user,
    get_db,
    get_payment_gateway,
    require_admin,
    require_organizer_or_admin,
)
from eventhub.api.schemas.schemas import (
    AdminBookingRequest,
    AttendeeBookingsResponse,
    BookingCreateRequest,
    BookingList,
    BookingPage,
    BookingResponse,
    BookingStatusUpdateRequest,
)
from eventhub.application.booking_service import DEFAULT_PAGE_LIMIT, BookingService
from eventhub.infrastructure.db.models import User
from eventhub.infrastructure.payments.razorpay_gateway import RazorpayGateway

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post(
    "/events/{event_id}",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_booking(
    event_id: str,
    request: BookingCreateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    booking = BookingService(db).create_self_booking(user, event_id, request.tickets)
    return BookingResponse.model_validate(booking)


@router.get("/me", response_model=BookingList)
def my_bookings(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    bookings = BookingService(db).list_my_bookings(user)
    return BookingList(
        count=len(bookings),
        data=[BookingResponse.model_validate(booking) for booking in bookings],
    )


@router.post("/admin", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
def create_booking_for_user(
    request: AdminBookingRequest,
    user: User = Depends(require_organizer_or_admin),
    db: Session = Depends(get_db),
):
    booking = BookingService(db).create_booking_for_user(
        actor=user,
        event_id=request.event_id,
        user_email=request.user_email,
        tickets=request.tickets,
    )
    return BookingResponse.model_validate(booking)


@router.get("/admin/all", response_model=BookingPage)
def all_bookings(
    page: int = 1,
    limit: int = DEFAULT_PAGE_LIMIT,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    result = BookingService(db).list_all_bookings(page, limit)
    return BookingPage.model_validate(result, from_attributes=True)


@router.get("/organizer", response_model=BookingPage)
def organizer_bookings(
    page: int = 1,
    limit: int = DEFAULT_PAGE_LIMIT,
    user: User = Depends(require_organizer_or_admin),
    db: Session = Depends(get_db),
):
    result = BookingService(db).list_organizer_bookings(user, page, limit)
    return BookingPage.model_validate(result, from_attributes=True)


@router.get("/organizer/attendee/{attendee_id}", response_model=AttendeeBookingsResponse)
def organizer_attendee_bookings(
    attendee_id: str,
    user: User = Depends(require_organizer_or_admin),
    db: Session = Depends(get_db),
):
    result = BookingService(db).list_organizer_attendee_bookings(user, attendee_id)
    return AttendeeBookingsResponse.model_validate(result, from_attributes=True)


@router.put("/{booking_id}/status", response_model=BookingResponse)
def update_booking_status(
    booking_id: str,
    request: BookingStatusUpdateRequest,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    booking = BookingService(db).update_booking_status(booking_id, request.status)
    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}", response_model=BookingResponse)
def get_booking(
    booking_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return BookingResponse.model_validate(BookingService(db).get_booking(user, booking_id))


@router.delete("/{booking_id}", response_model=BookingResponse)
def cancel_booking(
    booking_id: str,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    booking = BookingService(db, gateway=gateway).cancel_booking(user, booking_id)
    return BookingResponse.model_validate(booking)
