from fastapi import APIRouter, Depends, Header, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from eventhub.api.dependencies import get_current_user, get_db, get_payment_gateway
from eventhub.api.schemas.schemas import (
    BookingResponse,
    CheckoutRequest,
    CheckoutResponse,
    SessionStatusResponse,
    WebhookAck,
)
from eventhub.application.payment_service import PaymentService
from eventhub.infrastructure.db.models import User
from eventhub.infrastructure.payments.razorpay_gateway import RazorpayGateway

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/create-checkout-session", response_model=CheckoutResponse)
def create_checkout_session(
    request: CheckoutRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    result = PaymentService(db, gateway).create_checkout_session(
        user,
        request.event_id,
        request.tickets,
    )
    return CheckoutResponse(**result)


@router.get("/session-status", response_model=SessionStatusResponse)
def session_status(
    session_id: str | None = None,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    result = PaymentService(db, gateway).get_session_status(user, session_id)
    booking = result["booking"]
    return SessionStatusResponse(
        status=result["status"],
        payment_status=result["payment_status"],
        booking=BookingResponse.model_validate(booking) if booking else None,
    )


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    x_razorpay_signature: str | None = Header(default=None),
    x_razorpay_event_id: str | None = Header(default=None),
    db: Session = Depends(get_db),
    gateway: RazorpayGateway = Depends(get_payment_gateway),
):
    # The signature covers the exact bytes Razorpay sent.
    raw_body = await request.body()
    # The service does blocking database work; keep it off the event loop.
    result = await run_in_threadpool(
        PaymentService(db, gateway).handle_webhook,
        raw_body,
        x_razorpay_signature,
        x_razorpay_event_id,
    )
    return WebhookAck(**result)
