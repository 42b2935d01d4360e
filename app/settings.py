"""Runtime configuration read from environment variables."""

import os
from dataclasses import dataclass, field
from typing import List

CONFLICT_MODES = ("partial", "overlap")


class ImproperlyConfigured(Exception):
    pass


def get_env(var_name: str, default=None, required: bool = False):
    value = os.environ.get(var_name, default)
    if required and value in (None, ""):
        raise ImproperlyConfigured(f"Missing required environment variable: {var_name}")
    return value


def get_bool_env(var_name: str, default: bool = False) -> bool:
    value = get_env(var_name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./spotbnb.db"
    jwt_secret: str = "dev-secret-change-me"
    jwt_expires_in: int = 604800  # one week
    session_cookie_secure: bool = False
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"
    # "partial" flags a booking only when an existing start or end date falls
    # inside the requested range; "overlap" is a full interval intersection.
    booking_conflict_mode: str = "partial"
    # Answer duplicate reviews and signups with 500 instead of 409.
    legacy_status_codes: bool = False


def load_settings() -> Settings:
    conflict_mode = get_env("BOOKING_CONFLICT_MODE", "partial").strip().lower()
    if conflict_mode not in CONFLICT_MODES:
        raise ImproperlyConfigured(
            f"BOOKING_CONFLICT_MODE must be one of {', '.join(CONFLICT_MODES)}, got {conflict_mode!r}"
        )
    origins = get_env("CORS_ORIGINS", "*")
    return Settings(
        database_url=get_env("DATABASE_URL", Settings.database_url),
        jwt_secret=get_env("JWT_SECRET", Settings.jwt_secret),
        jwt_expires_in=int(get_env("JWT_EXPIRES_IN", Settings.jwt_expires_in)),
        session_cookie_secure=get_bool_env("SESSION_COOKIE_SECURE"),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        log_level=get_env("LOG_LEVEL", Settings.log_level).upper(),
        booking_conflict_mode=conflict_mode,
        legacy_status_codes=get_bool_env("LEGACY_STATUS_CODES"),
    )


settings = load_settings()


# Dependency so tests can swap in their own Settings
def get_settings() -> Settings:
    return settings
