"""Service configuration.

Values are read from environment variables once at startup (a local ``.env``
file is loaded first if present) and passed explicitly to the components that
need them.

Recognised environment variables:
- JWT_SECRET: HMAC secret for signing tokens (empty disables auth)
- JWT_EXPIRES_IN: token lifetime, e.g. "7d", "12h", "7 days", "3600"
- PORT: HTTP listen port
- CORS_ORIGIN: comma-separated list of allowed browser origins
- DATABASE_URL: SQLAlchemy async database URL
- BCRYPT_ROUNDS: bcrypt work factor
- LOG_LEVEL: root log level
"""

import os
import re
from datetime import timedelta

from dotenv import load_dotenv

DEFAULT_JWT_EXPIRES_IN = "7d"
DEFAULT_PORT = 4000
DEFAULT_CORS_ORIGIN = "http://localhost:3000"
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./account_api.db"
DEFAULT_BCRYPT_ROUNDS = 10

_DURATION_REGEX = re.compile(r"^(-?\d+(?:\.\d+)?)\s*([a-z]*)$", re.IGNORECASE)

_UNIT_SECONDS = {
    "ms": 0.001,
    "msec": 0.001,
    "msecs": 0.001,
    "millisecond": 0.001,
    "milliseconds": 0.001,
    "s": 1,
    "sec": 1,
    "secs": 1,
    "second": 1,
    "seconds": 1,
    "m": 60,
    "min": 60,
    "mins": 60,
    "minute": 60,
    "minutes": 60,
    "h": 3600,
    "hr": 3600,
    "hrs": 3600,
    "hour": 3600,
    "hours": 3600,
    "d": 86400,
    "day": 86400,
    "days": 86400,
    "w": 604800,
    "week": 604800,
    "weeks": 604800,
    "y": 31557600,
    "yr": 31557600,
    "yrs": 31557600,
    "year": 31557600,
    "years": 31557600,
}


class ConfigurationError(Exception):
    """Raised when a configuration value is present but unusable."""

    pass


def parse_duration(value: str) -> timedelta:
    """Parse a human-readable duration into a timedelta.

    A bare number is read as milliseconds. Otherwise a number followed by a unit
    (``ms``, ``s``, ``m``, ``h``, ``d``, ``w``, ``y`` or their long forms),
    with or without a space in between.

    Raises:
        ConfigurationError: If the value cannot be parsed or is not positive.
    """
    match = _DURATION_REGEX.match(value.strip())
    if match is None:
        raise ConfigurationError(f"Invalid duration: {value!r}")

    amount, unit = match.groups()
    unit = unit.lower() or "ms"
    if unit not in _UNIT_SECONDS:
        raise ConfigurationError(f"Unknown duration unit {unit!r} in {value!r}")

    seconds = float(amount) * _UNIT_SECONDS[unit]
    if seconds <= 0:
        raise ConfigurationError(f"Duration must be positive: {value!r}")
    return timedelta(seconds=seconds)


def parse_origins(value: str) -> list[str]:
    """Split a comma-separated origin list, dropping blanks."""
    return [origin.strip() for origin in value.split(",") if origin.strip()]


def _int_env(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from e


class Settings:
    """Process-wide configuration, immutable after startup.

    Build one with :meth:`from_env` in production, or construct it directly
    in tests to inject a secret and database URL.
    """

    def __init__(
        self,
        jwt_secret: str = "",
        jwt_expires_in: timedelta | str = DEFAULT_JWT_EXPIRES_IN,
        port: int = DEFAULT_PORT,
        cors_origins: list[str] | None = None,
        database_url: str = DEFAULT_DATABASE_URL,
        bcrypt_rounds: int = DEFAULT_BCRYPT_ROUNDS,
        log_level: str = "INFO",
    ):
        if isinstance(jwt_expires_in, str):
            jwt_expires_in = parse_duration(jwt_expires_in)
        if not 4 <= bcrypt_rounds <= 31:
            raise ConfigurationError(
                f"BCRYPT_ROUNDS must be between 4 and 31, got {bcrypt_rounds}"
            )

        self.jwt_secret = jwt_secret
        self.jwt_expires_in = jwt_expires_in
        self.port = port
        self.cors_origins = (
            cors_origins if cors_origins is not None else [DEFAULT_CORS_ORIGIN]
        )
        self.database_url = database_url
        self.bcrypt_rounds = bcrypt_rounds
        self.log_level = log_level.upper()

    @classmethod
    def from_env(cls, dotenv: bool = True) -> "Settings":
        """Load settings from the process environment."""
        if dotenv:
            load_dotenv()

        cors_raw = os.getenv("CORS_ORIGIN", "")
        return cls(
            jwt_secret=os.getenv("JWT_SECRET", ""),
            jwt_expires_in=os.getenv("JWT_EXPIRES_IN") or DEFAULT_JWT_EXPIRES_IN,
            port=_int_env("PORT", DEFAULT_PORT),
            cors_origins=parse_origins(cors_raw) or None,
            database_url=os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL,
            bcrypt_rounds=_int_env("BCRYPT_ROUNDS", DEFAULT_BCRYPT_ROUNDS),
            log_level=os.getenv("LOG_LEVEL") or "INFO",
        )

    def __repr__(self) -> str:
        # Never render the secret itself
        return (
            f"Settings(jwt_secret={'set' if self.jwt_secret else 'unset'}, "
            f"jwt_expires_in={self.jwt_expires_in}, port={self.port}, "
            f"cors_origins={self.cors_origins})"
        )
