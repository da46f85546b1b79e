from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from eventhub.application.auth_service import AuthService
from eventhub.domain.enums import UserRole
from eventhub.infrastructure.db.models import User
from eventhub.infrastructure.db.session import SessionLocal
from eventhub.infrastructure.payments.razorpay_gateway import RazorpayGateway

bearer_scheme = HTTPBearer(auto_error=False)


def get_db():
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_payment_gateway() -> RazorpayGateway:
    return RazorpayGateway()


def get_auth_context(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> tuple[User, dict]:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authorized, no token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return AuthService(db).authenticate(credentials.credentials)


def get_current_user(context: tuple[User, dict] = Depends(get_auth_context)) -> User:
    return context[0]


def require_roles(*roles: UserRole):
    def dependency(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"User role {user.role.value} is not authorized to access this route",
            )
        return user

    return dependency


require_admin = require_roles(UserRole.SYSTEM_ADMIN)
require_organizer_or_admin = require_roles(UserRole.ORGANIZER, UserRole.SYSTEM_ADMIN)
