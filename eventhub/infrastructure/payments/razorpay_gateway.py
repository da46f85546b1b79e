# eventhub/infrastructure/payments/razorpay_gateway.py

from dataclasses import dataclass
import logging

import razorpay

from eventhub.domain.exceptions import PaymentGatewayError, WebhookVerificationError
from eventhub.infrastructure import settings

logger = logging.getLogger(__name__)

MINOR_UNITS_PER_UNIT = 100


def to_minor_units(amount: int) -> int:
    return amount * MINOR_UNITS_PER_UNIT


_GATEWAY_ERRORS = (
    razorpay.errors.BadRequestError,
    razorpay.errors.GatewayError,
    razorpay.errors.ServerError,
)


@dataclass
class CheckoutSession:
    id: str
    url: str
    status: str
    payment_status: str


class RazorpayGateway:
    """
    Hosted checkout backed by Razorpay payment links.

    A payment link is created per pending booking with the booking id as
    its reference; Razorpay reports completion or expiry through the
    payment_link.* webhooks.
    """

    provider = "RAZORPAY"

    def _client(self) -> razorpay.Client:
        return razorpay.Client(
            auth=(settings.razorpay_key_id(), settings.razorpay_key_secret())
        )

    def create_checkout(
        self,
        booking_id: str,
        amount_minor: int,
        currency: str,
        description: str,
        expire_by: int,
        notes: dict,
        callback_url: str,
    ) -> CheckoutSession:
        try:
            link = self._client().payment_link.create(
                {
                    "amount": amount_minor,
                    "currency": currency,
                    "accept_partial": False,
                    "description": description,
                    "reference_id": booking_id,
                    "expire_by": expire_by,
                    "notes": notes,
                    "callback_url": callback_url,
                    "callback_method": "get",
                }
            )
        except _GATEWAY_ERRORS as exc:
            logger.warning("Payment link creation failed. booking_id=%s error=%s", booking_id, exc)
            raise PaymentGatewayError("Failed to create checkout session") from exc

        return self._to_session(link)

    def fetch_checkout(self, session_id: str) -> CheckoutSession:
        try:
            link = self._client().payment_link.fetch(session_id)
        except _GATEWAY_ERRORS as exc:
            raise PaymentGatewayError("Failed to fetch session status") from exc
        return self._to_session(link)

    def cancel_checkout(self, session_id: str) -> None:
        try:
            self._client().payment_link.cancel(session_id)
        except _GATEWAY_ERRORS as exc:
            # Fails when the link was paid in the meantime; the caller rolls back.
            logger.warning("Payment link cancel failed. session_id=%s error=%s", session_id, exc)
            raise PaymentGatewayError("Failed to cancel checkout session") from exc

    def refund(self, payment_id: str, amount_minor: int | None = None) -> str:
        """Refund amount_minor of a captured payment, or all of it when omitted."""
        data = {"amount": amount_minor} if amount_minor is not None else {}
        try:
            refund = self._client().payment.refund(payment_id, data)
        except _GATEWAY_ERRORS as exc:
            logger.warning("Refund failed. payment_id=%s error=%s", payment_id, exc)
            raise PaymentGatewayError("Refund could not be issued") from exc
        return refund.get("id", "")

    def verify_webhook(self, body: bytes, signature: str | None) -> None:
        if not signature:
            raise WebhookVerificationError("Missing webhook signature")
        secret = settings.razorpay_webhook_secret()
        # Signature checks need no API credentials.
        client = razorpay.Client(auth=("", ""))
        try:
            client.utility.verify_webhook_signature(body.decode("utf-8"), signature, secret)
        except (razorpay.errors.SignatureVerificationError, UnicodeDecodeError) as exc:
            raise WebhookVerificationError("Webhook signature verification failed") from exc

    @staticmethod
    def _to_session(link: dict) -> CheckoutSession:
        status = link.get("status", "created")
        return CheckoutSession(
            id=link["id"],
            url=link.get("short_url", ""),
            status=status,
            payment_status="paid" if status == "paid" else "unpaid",
        )
