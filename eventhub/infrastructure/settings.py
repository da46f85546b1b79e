# eventhub/infrastructure/settings.py
#
# Values are read from the environment on every call so that a .env file,
# a container env or a test fixture can change them without re-imports.

import os

from dotenv import load_dotenv

from eventhub.domain.exceptions import ConfigurationError

load_dotenv()


def _required(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise ConfigurationError(f"{name} is not configured.")
    return value


def jwt_secret() -> str:
    return _required("JWT_SECRET")


def jwt_expires_minutes() -> int:
    return int(os.getenv("JWT_EXPIRES_MINUTES", "1440"))


def razorpay_key_id() -> str:
    return _required("RAZORPAY_KEY_ID")


def razorpay_key_secret() -> str:
    return _required("RAZORPAY_KEY_SECRET")


def razorpay_webhook_secret() -> str:
    return _required("RAZORPAY_WEBHOOK_SECRET")


def payment_currency() -> str:
    return os.getenv("PAYMENT_CURRENCY", "INR")


def checkout_expiry_minutes() -> int:
    # Razorpay refuses payment links that expire less than 15 minutes out.
    return max(16, int(os.getenv("CHECKOUT_EXPIRY_MINUTES", "30")))


def password_reset_expiry_minutes() -> int:
    return int(os.getenv("PASSWORD_RESET_EXPIRY_MINUTES", "10"))


def frontend_url() -> str:
    return os.getenv("FRONTEND_URL", "http://localhost:5173").rstrip("/")


def cors_origins() -> list[str]:
    raw = os.getenv("CORS_ORIGINS", "http://localhost:5173")
    return [origin.strip() for origin in raw.split(",") if origin.strip()]
