import os

from dotenv import load_dotenv


load_dotenv()


def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None, default: list[str]) -> list[str]:
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./clinic.db")

CORS_ORIGINS = _get_list(os.getenv("CORS_ORIGINS"), ["http://localhost:3000"])

API_HOST = os.getenv("API_HOST", "127.0.0.1")
API_PORT = int(os.getenv("API_PORT", "8000"))

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

CLINIC_TIMEZONE = os.getenv("CLINIC_TIMEZONE", "America/Sao_Paulo")

BUSINESS_OPEN_HOUR = int(os.getenv("BUSINESS_OPEN_HOUR", "7"))
BUSINESS_CLOSE_HOUR = int(os.getenv("BUSINESS_CLOSE_HOUR", "18"))
APPOINTMENT_BUFFER_MINUTES = int(os.getenv("APPOINTMENT_BUFFER_MINUTES", "15"))
APPOINTMENT_SLOT_MINUTES = int(os.getenv("APPOINTMENT_SLOT_MINUTES", "15"))
MIN_APPOINTMENT_MINUTES = int(os.getenv("MIN_APPOINTMENT_MINUTES", "15"))
# Scheduling cap; the stored record itself accepts up to 480 minutes.
MAX_APPOINTMENT_MINUTES = int(os.getenv("MAX_APPOINTMENT_MINUTES", "180"))


def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if not 0 <= BUSINESS_OPEN_HOUR < BUSINESS_CLOSE_HOUR <= 24:
        raise RuntimeError("BUSINESS_OPEN_HOUR must be earlier than BUSINESS_CLOSE_HOUR.")
