class EventHubError(Exception):
    """
    Base exception for all domain-level errors
    inside the EventHub ticketing backend.
    """


class InvalidStateTransitionError(EventHubError):
    """
    Raised when an illegal booking state transition is attempted.
    """

    def __init__(self, from_state: str, to_state: str):
        self.from_state = from_state
        self.to_state = to_state

        message = (
            f"Illegal state transition attempted: "
            f"{from_state} -> {to_state}"
        )
        super().__init__(message)


class InsufficientInventoryError(EventHubError):
    """Raised when not enough tickets are available."""

    def __init__(self, message: str = "Not enough tickets available."):
        super().__init__(message)


class NotFoundError(EventHubError):
    """Raised when a requested record does not exist."""


class PermissionDeniedError(EventHubError):
    """Raised when the caller may not act on a record."""


class AuthenticationError(EventHubError):
    """Raised when credentials or tokens are missing or invalid."""


class ValidationError(EventHubError):
    """Raised when input is well-formed but semantically invalid."""


class ConflictError(EventHubError):
    """Raised when a concurrent change or duplicate prevents the operation."""


class PaymentGatewayError(EventHubError):
    """Raised when the payment provider rejects or fails a call."""


class WebhookVerificationError(EventHubError):
    """Raised when a webhook signature does not match its payload."""


class ConfigurationError(EventHubError):
    """Raised when a required setting or secret is missing."""


class ConcurrentModificationError(ConflictError):
    """Raised when a compare-and-set update lost a race with another request."""
