import logging
import os
import time

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from eventhub.api.routes.routes import router
from eventhub.domain.exceptions import (
    AuthenticationError,
    ConfigurationError,
    ConflictError,
    EventHubError,
    InsufficientInventoryError,
    InvalidStateTransitionError,
    NotFoundError,
    PaymentGatewayError,
    PermissionDeniedError,
    ValidationError,
    WebhookVerificationError,
)
from eventhub.infrastructure import settings
from eventhub.infrastructure.db.session import engine
from eventhub.infrastructure.db.models import Base

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="EventHub API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(router)

# First match wins, so subclasses come before their bases.
_ERROR_STATUS = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (AuthenticationError, status.HTTP_401_UNAUTHORIZED),
    (InsufficientInventoryError, status.HTTP_400_BAD_REQUEST),
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (WebhookVerificationError, status.HTTP_400_BAD_REQUEST),
    (InvalidStateTransitionError, status.HTTP_409_CONFLICT),
    (ConflictError, status.HTTP_409_CONFLICT),
    (PaymentGatewayError, status.HTTP_502_BAD_GATEWAY),
    (ConfigurationError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)


@app.exception_handler(EventHubError)
async def eventhub_error_handler(request: Request, exc: EventHubError) -> JSONResponse:
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, mapped_status in _ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code = mapped_status
            break

    if status_code >= 500:
        logger.error("Request failed. path=%s error=%s", request.url.path, exc)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=status_code, content={"detail": str(exc)}, headers=headers)


def _wait_for_db() -> None:
    # Handles the common case where API starts before Postgres is ready.
    max_retries = int(os.getenv("DB_CONNECT_MAX_RETRIES", "30"))
    retry_delay_seconds = float(os.getenv("DB_CONNECT_RETRY_DELAY", "1.5"))

    for attempt in range(1, max_retries + 1):
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            logger.info("Database is reachable.")
            return
        except OperationalError:
            if attempt == max_retries:
                logger.exception(
                    "Database not reachable after %s attempts. Check DATABASE_URL.",
                    max_retries,
                )
                raise
            logger.warning(
                "Database not ready (attempt %s/%s). Retrying in %.1f seconds...",
                attempt,
                max_retries,
                retry_delay_seconds,
            )
            time.sleep(retry_delay_seconds)


@app.on_event("startup")
def on_startup() -> None:
    _wait_for_db()
    Base.metadata.create_all(bind=engine)
