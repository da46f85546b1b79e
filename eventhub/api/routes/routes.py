from fastapi import APIRouter

from eventhub.api.routes import admin, auth, bookings, events, payments, users

router = APIRouter(prefix="/api")


@router.get("/health")
def health():
    return {"message": "EventHub API is running"}


router.include_router(auth.router)
router.include_router(users.router)
router.include_router(events.router)
router.include_router(bookings.router)
router.include_router(payments.router)
router.include_router(admin.router)
