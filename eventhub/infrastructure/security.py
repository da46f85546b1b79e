# eventhub/infrastructure/security.py

from datetime import datetime, timedelta, timezone
import hashlib
import secrets
from uuid import uuid4

import bcrypt
import jwt

from eventhub.domain.exceptions import AuthenticationError
from eventhub.infrastructure import settings

JWT_ALGORITHM = "HS256"
BCRYPT_ROUNDS = 10
# bcrypt only looks at the first 72 bytes and newer releases refuse longer input.
BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    encoded = password.encode("utf-8")
    if len(encoded) > BCRYPT_MAX_BYTES:
        return False
    return bcrypt.checkpw(encoded, password_hash.encode("utf-8"))


def create_access_token(user_id: str, role: str) -> tuple[str, datetime]:
    """
    Returns the signed token and its expiry.
    """
    now = datetime.now(timezone.utc)
    expires_at = now + timedelta(minutes=settings.jwt_expires_minutes())
    claims = {
        "sub": user_id,
        "role": role,
        "iat": now,
        "exp": expires_at,
        "jti": uuid4().hex,
    }
    token = jwt.encode(claims, settings.jwt_secret(), algorithm=JWT_ALGORITHM)
    return token, expires_at


def decode_access_token(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            settings.jwt_secret(),
            algorithms=[JWT_ALGORITHM],
            options={"require": ["sub", "exp", "jti"]},
        )
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("Token expired") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError("Invalid token") from exc


def generate_reset_token() -> tuple[str, str]:
    """
    Returns (raw token for the user, sha256 digest to store).
    """
    raw = secrets.token_hex(20)
    return raw, hash_reset_token(raw)


def hash_reset_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()
