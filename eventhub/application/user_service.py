import logging

from sqlalchemy.orm import Session

from eventhub.application.auth_service import validate_password
from eventhub.domain.enums import UserRole
from eventhub.domain.exceptions import ConflictError, ValidationError
from eventhub.infrastructure import security
from eventhub.infrastructure.db.models import User
from eventhub.infrastructure.repositories.booking_repository import BookingRepository
from eventhub.infrastructure.repositories.event_repository import EventRepository
from eventhub.infrastructure.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)


class UserService:

    def __init__(self, db: Session):
        self.db = db
        self.users = UserRepository(db)
        self.bookings = BookingRepository(db)
        self.events = EventRepository(db)

    def update_profile(self, user: User, name: str | None, email: str | None) -> User:
        return self._apply(user, name=name, email=email)

    def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not security.verify_password(current_password, user.password_hash):
            raise ValidationError("Current password is incorrect")
        validate_password(new_password)
        user.password_hash = security.hash_password(new_password)
        self.db.flush()

    def delete_account(self, user: User) -> None:
        self._delete(user)

    # ------------------------------------------------------------------
    # Admin
    # ------------------------------------------------------------------

    def list_users(self) -> list[User]:
        return self.users.list_users()

    def get_user(self, user_id: str) -> User:
        return self.users.get_or_raise(user_id)

    def update_user(
        self,
        user_id: str,
        name: str | None = None,
        email: str | None = None,
        role: UserRole | None = None,
    ) -> User:
        user = self.users.get_or_raise(user_id)
        return self._apply(user, name=name, email=email, role=role)

    def update_role(self, user_id: str, role: UserRole) -> User:
        user = self.users.get_or_raise(user_id)
        return self._apply(user, role=role)

    def delete_user(self, user_id: str) -> None:
        self._delete(self.users.get_or_raise(user_id))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _apply(
        self,
        user: User,
        name: str | None = None,
        email: str | None = None,
        role: UserRole | None = None,
    ) -> User:
        if name is not None:
            user.name = name.strip()
        if email is not None:
            email = email.strip().lower()
            existing = self.users.get_by_email(email)
            if existing and existing.id != user.id:
                raise ValidationError("Email is already in use")
            user.email = email
        if role is not None:
            user.role = role
            logger.info("User role changed. user_id=%s role=%s", user.id, role.value)
        self.users.flush()
        return user

    def _delete(self, user: User) -> None:
        if self.bookings.count_holding_for_user(user.id) > 0:
            raise ConflictError("Cancel active bookings before deleting this account")
        if self.events.count_for_organizer(user.id) > 0:
            raise ConflictError("Delete owned events before deleting this account")

        self.bookings.delete_for_user(user.id)
        self.db.delete(user)
        self.db.flush()
        logger.info("User deleted. user_id=%s", user.id)
