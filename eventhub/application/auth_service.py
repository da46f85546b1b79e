from datetime import datetime, timedelta, timezone
import logging

from sqlalchemy.orm import Session

from eventhub.domain.enums import UserRole
from eventhub.domain.exceptions import AuthenticationError, ValidationError
from eventhub.infrastructure import security, settings
from eventhub.infrastructure.db.models import User
from eventhub.infrastructure.repositories.outbox_repository import OutboxRepository
from eventhub.infrastructure.repositories.user_repository import UserRepository

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8
FORGOT_PASSWORD_MESSAGE = "If an account exists for that email, a reset link has been sent."


def validate_password(password: str) -> None:
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if len(password.encode("utf-8")) > security.BCRYPT_MAX_BYTES:
        raise ValidationError(f"Password must be at most {security.BCRYPT_MAX_BYTES} bytes")


class AuthService:
    """Registration, login/logout and password reset."""

    def __init__(self, db: Session):
        self.db = db
        self.users = UserRepository(db)
        self.outbox = OutboxRepository(db)

    def register(self, name: str, email: str, password: str) -> dict:
        validate_password(password)
        if self.users.get_by_email(email):
            # Do not reveal which addresses have accounts.
            raise ValidationError("Unable to register with the provided details")

        user = self.users.create_user(
            name=name,
            email=email,
            password_hash=security.hash_password(password),
            role=UserRole.STANDARD_USER,
        )
        logger.info("User registered. user_id=%s", user.id)
        return self._session_for(user)

    def login(self, email: str, password: str) -> dict:
        user = self.users.get_by_email(email)
        if not user or not security.verify_password(password, user.password_hash):
            raise AuthenticationError("Invalid credentials")
        return self._session_for(user)

    def logout(self, claims: dict) -> None:
        now = datetime.now(timezone.utc)
        expires_at = datetime.fromtimestamp(claims["exp"], tz=timezone.utc)
        self.users.purge_expired_tokens(now)
        self.users.blacklist_token(claims["jti"], expires_at)
        logger.info("User logged out. user_id=%s", claims.get("sub"))

    def forgot_password(self, email: str) -> str:
        user = self.users.get_by_email(email)
        if not user:
            return FORGOT_PASSWORD_MESSAGE

        raw_token, token_hash = security.generate_reset_token()
        user.reset_password_token = token_hash
        user.reset_password_expires_at = datetime.now(timezone.utc) + timedelta(
            minutes=settings.password_reset_expiry_minutes()
        )
        self.outbox.add_event(
            aggregate_type="user",
            aggregate_id=user.id,
            event_type="PASSWORD_RESET_REQUESTED",
            payload={
                "user_id": user.id,
                "email": user.email,
                "name": user.name,
                "reset_url": f"{settings.frontend_url()}/reset-password/{raw_token}",
            },
            dedupe_key=f"user:{user.id}:password_reset:{token_hash}",
        )
        logger.info("Password reset requested. user_id=%s", user.id)
        return FORGOT_PASSWORD_MESSAGE

    def reset_password(self, token: str, password: str) -> None:
        user = self.users.get_by_reset_token(
            security.hash_reset_token(token),
            datetime.now(timezone.utc),
        )
        if not user:
            raise ValidationError("Invalid or expired reset token")
        validate_password(password)

        user.password_hash = security.hash_password(password)
        user.reset_password_token = None
        user.reset_password_expires_at = None
        self.db.flush()
        logger.info("Password reset completed. user_id=%s", user.id)

    def authenticate(self, token: str) -> tuple[User, dict]:
        claims = security.decode_access_token(token)
        if self.users.is_token_blacklisted(claims["jti"]):
            raise AuthenticationError("Token has been revoked")
        user = self.users.get_by_id(claims["sub"])
        if not user:
            raise AuthenticationError("User no longer exists")
        return user, claims

    @staticmethod
    def _session_for(user: User) -> dict:
        token, expires_at = security.create_access_token(user.id, user.role.value)
        return {"token": token, "expires_at": expires_at, "user": user}
