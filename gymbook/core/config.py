import os



def _get_bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _get_list(value: str | None) -> list[str]:
    if not value:
        return []
    return [item.strip() for item in value.split(",") if item.strip()]

APP_ENV = os.getenv("APP_ENV", "development")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SQL_ECHO = _get_bool(os.getenv("SQL_ECHO"), default=False)

CORS_ORIGINS = ["http://localhost:5173", *_get_list(os.getenv("CORS_ORIGINS"))]

JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_EXPIRES_MINUTES = int(os.getenv("JWT_EXPIRES_MINUTES", "60"))

# Upper bound on waiting for another request holding the same slot.
SLOT_LOCK_TIMEOUT_SECONDS = float(os.getenv("SLOT_LOCK_TIMEOUT_SECONDS", "5"))

DEFAULT_ACCESS_OPENS_HOURS = int(os.getenv("DEFAULT_ACCESS_OPENS_HOURS", "24"))
DEFAULT_SLOT_CATEGORY = os.getenv("DEFAULT_SLOT_CATEGORY", "early")

REMINDER_WINDOW_START_MINUTES = int(os.getenv("REMINDER_WINDOW_START_MINUTES", "90"))
REMINDER_WINDOW_END_MINUTES = int(os.getenv("REMINDER_WINDOW_END_MINUTES", "150"))

def validate_runtime_config() -> None:
    if APP_ENV.lower() == "production" and JWT_SECRET_KEY == "change-me":
        raise RuntimeError("JWT_SECRET_KEY must be set in production.")
    if REMINDER_WINDOW_START_MINUTES >= REMINDER_WINDOW_END_MINUTES:
        raise RuntimeError("REMINDER_WINDOW_START_MINUTES must be lower than REMINDER_WINDOW_END_MINUTES.")
