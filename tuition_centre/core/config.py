from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Literal

logger = logging.getLogger(__name__)

AppEnv = Literal["dev", "test", "prod"]
LogLevel = Literal["debug", "info", "warning", "error"]

DEFAULT_TOKEN_TTL = timedelta(hours=24)

# Only used outside prod; prod refuses to start without JWT_SECRET.
_DEV_JWT_SECRET = "dev-only-insecure-secret-change-me-0123456789"
_MIN_PROD_SECRET_LEN = 32

_DURATION_RE = re.compile(r"^(\d+)\s*([smhd]?)$")
_DURATION_UNITS = {"": "seconds", "s": "seconds", "m": "minutes", "h": "hours", "d": "days"}


def _getenv(name: str, default: str) -> str:
    return os.environ.get(name, default).strip()


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off", ""):
        return False
    raise ValueError(f"{name} must be a boolean (got {raw!r})")


def parse_duration(raw: str) -> timedelta | None:
    """Parse "90", "45s", "30m", "24h" or "1d". Returns None when unparseable."""
    match = _DURATION_RE.match(raw.strip().lower())
    if match is None:
        return None
    amount = int(match.group(1))
    if amount <= 0:
        return None
    return timedelta(**{_DURATION_UNITS[match.group(2)]: amount})


@dataclass(frozen=True)
class Settings:
    app_env: AppEnv
    log_level: LogLevel
    port: int
    database_url: str | None
    jwt_secret: str
    log_json: bool = False
    jwt_expires_in: timedelta = DEFAULT_TOKEN_TTL
    allowed_origins: tuple[str, ...] = ("http://localhost:3000",)
    # None keeps argon2-cffi's own defaults (~tens of ms per hash).
    password_time_cost: int | None = None
    password_memory_cost: int | None = None

    @property
    def is_dev(self) -> bool:
        return self.app_env == "dev"

    @property
    def is_test(self) -> bool:
        return self.app_env == "test"

    @property
    def is_prod(self) -> bool:
        return self.app_env == "prod"


def _optional_int(name: str) -> int | None:
    raw = _getenv(name, "")
    if not raw:
        return None
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer (got {raw!r})") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive (got {raw!r})")
    return value


def load_settings() -> Settings:
    app_env_raw = _getenv("APP_ENV", "dev").lower()
    log_level_raw = _getenv("LOG_LEVEL", "info").lower()
    port_raw = _getenv("PORT", "8000")

    if app_env_raw not in ("dev", "test", "prod"):
        raise ValueError(f"APP_ENV must be dev|test|prod (got {app_env_raw!r})")

    if log_level_raw not in ("debug", "info", "warning", "error"):
        raise ValueError(
            f"LOG_LEVEL must be debug|info|warning|error (got {log_level_raw!r})"
        )

    try:
        port = int(port_raw)
    except ValueError:
        raise ValueError(f"PORT must be an integer (got {port_raw!r})") from None

    log_json = _parse_bool("LOG_JSON", _getenv("LOG_JSON", "false"))
    database_url = _getenv("DATABASE_URL", "") or None

    jwt_secret = _getenv("JWT_SECRET", "")
    if app_env_raw == "prod" and len(jwt_secret) < _MIN_PROD_SECRET_LEN:
        raise ValueError(
            f"JWT_SECRET must be at least {_MIN_PROD_SECRET_LEN} characters in prod"
        )
    jwt_secret = jwt_secret or _DEV_JWT_SECRET

    expires_raw = _getenv("JWT_EXPIRES_IN", "")
    jwt_expires_in = parse_duration(expires_raw) if expires_raw else None
    if jwt_expires_in is None:
        if expires_raw:
            logger.warning(
                "Invalid JWT_EXPIRES_IN=%r, falling back to %s",
                expires_raw,
                DEFAULT_TOKEN_TTL,
            )
        jwt_expires_in = DEFAULT_TOKEN_TTL

    origins_raw = _getenv("ALLOWED_ORIGINS", "http://localhost:3000")
    allowed_origins = tuple(o.strip() for o in origins_raw.split(",") if o.strip())

    return Settings(  # type: ignore[arg-type]
        app_env=app_env_raw,
        log_level=log_level_raw,
        log_json=log_json,
        port=port,
        database_url=database_url,
        jwt_secret=jwt_secret,
        jwt_expires_in=jwt_expires_in,
        allowed_origins=allowed_origins,
        password_time_cost=_optional_int("PASSWORD_HASH_TIME_COST"),
        password_memory_cost=_optional_int("PASSWORD_HASH_MEMORY_COST"),
    )
