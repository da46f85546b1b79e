# eventhub/infrastructure/repositories/user_repository.py

from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy import delete, select

from eventhub.infrastructure.db.models import BlacklistedToken, User
from eventhub.domain.enums import UserRole
from eventhub.domain.exceptions import ConflictError, NotFoundError


class UserRepository:

    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, user_id: str) -> User | None:
        stmt = select(User).where(User.id == user_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def get_or_raise(self, user_id: str) -> User:
        user = self.get_by_id(user_id)
        if not user:
            raise NotFoundError("User not found")
        return user

    def get_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email == email.strip().lower())
        return self.db.execute(stmt).scalar_one_or_none()

    def get_by_reset_token(self, token_hash: str, now: datetime) -> User | None:
        stmt = (
            select(User)
            .where(User.reset_password_token == token_hash)
            .where(User.reset_password_expires_at > now)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def create_user(
        self,
        name: str,
        email: str,
        password_hash: str,
        role: UserRole = UserRole.STANDARD_USER,
    ) -> User:
        user = User(
            name=name.strip(),
            email=email.strip().lower(),
            password_hash=password_hash,
            role=role,
        )
        self.db.add(user)
        self.flush()
        return user

    def flush(self) -> None:
        # Two requests can both pass the email lookup; the unique index decides.
        try:
            self.db.flush()
        except IntegrityError as exc:
            raise ConflictError("Unable to save user details. Please retry.") from exc

    def list_users(self) -> list[User]:
        stmt = select(User).order_by(User.created_at)
        return list(self.db.execute(stmt).scalars().all())

    def is_token_blacklisted(self, jti: str) -> bool:
        stmt = select(BlacklistedToken.id).where(BlacklistedToken.jti == jti)
        return self.db.execute(stmt).first() is not None

    def blacklist_token(self, jti: str, expires_at: datetime) -> None:
        if self.is_token_blacklisted(jti):
            return
        self.db.add(BlacklistedToken(jti=jti, expires_at=expires_at))

    def purge_expired_tokens(self, now: datetime) -> None:
        self.db.execute(delete(BlacklistedToken).where(BlacklistedToken.expires_at <= now))
