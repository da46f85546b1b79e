"""Release tickets held by checkouts whose payment window has closed.

Meant to run from cron every few minutes alongside the API.
"""

import logging
import os

from eventhub.application.booking_service import BookingService
from eventhub.infrastructure.db.session import get_db_session

logger = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(level=os.getenv("LOG_LEVEL", "INFO").upper())
    with get_db_session() as db:
        expired = BookingService(db).expire_stale_reservations()
        logger.info("Expiry sweep finished. expired=%s", len(expired))


if __name__ == "__main__":
    main()
