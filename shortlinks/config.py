import os
import re
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path

from croniter import croniter
from dotenv import load_dotenv

ENV_PATH = Path(__file__).parent.parent / ".env"

DEFAULT_RETENTION_PERIOD = "2w"
DEFAULT_RETENTION_CHECK_PERIOD = "0 0 * * *"

_DURATION_RE = re.compile(r"^(\d+)([YMwdhHms])$")
_DURATION_UNITS = {
    "Y": timedelta(days=365),
    "M": timedelta(days=30),
    "w": timedelta(weeks=1),
    "d": timedelta(days=1),
    "h": timedelta(hours=1),
    "H": timedelta(hours=1),
    "m": timedelta(minutes=1),
    "s": timedelta(seconds=1),
}


def parse_duration(literal: str) -> timedelta:
    """Parse a period such as ``2w``, ``36h`` or ``1Y`` (Y=365d, M=30d)."""
    match = _DURATION_RE.match((literal or "").strip())
    if not match:
        raise ValueError(f"Invalid period: {literal!r}")
    amount, suffix = match.groups()
    return int(amount) * _DURATION_UNITS[suffix]


def format_duration(period: timedelta) -> str:
    seconds = int(period.total_seconds())
    for suffix in ("w", "d", "h", "m"):
        unit = int(_DURATION_UNITS[suffix].total_seconds())
        if seconds and seconds % unit == 0:
            return f"{seconds // unit}{suffix}"
    return f"{seconds}s"


def _env_bool(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    raise RuntimeError(f"{name} must be a boolean, got {raw!r}")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from None
    if value < 0:
        raise RuntimeError(f"{name} must not be negative")
    return value


@dataclass(frozen=True)
class IpRecordingConfig:
    retention_period: timedelta = parse_duration(DEFAULT_RETENTION_PERIOD)
    retention_check_period: str = DEFAULT_RETENTION_CHECK_PERIOD

    def __post_init__(self):
        if self.retention_period <= timedelta(0):
            raise ValueError("retention period must be positive")
        if not croniter.is_valid(self.retention_check_period):
            raise ValueError(f"Invalid cron expression: {self.retention_check_period!r}")


@dataclass(frozen=True)
class TokenConfig:
    master_token: str
    creation_requires_auth: bool = False

    def __post_init__(self):
        if not self.master_token:
            raise ValueError("master token must not be empty")


@dataclass(frozen=True)
class Settings:
    """Service-wide settings, built once at startup and passed around explicitly."""

    database_url: str = "sqlite:///./shortlinks_dev.db"
    environment: str = "dev"
    host: str = "0.0.0.0"
    port: int = 8000
    max_strikes: int = 30
    ip_recording: IpRecordingConfig | None = None
    tokens: TokenConfig | None = None
    log_level: str = "INFO"

    @property
    def record_ips(self) -> bool:
        return self.ip_recording is not None

    @property
    def tokens_enabled(self) -> bool:
        return self.tokens is not None

    @property
    def master_token(self) -> str | None:
        return self.tokens.master_token if self.tokens else None

    @property
    def creation_requires_auth(self) -> bool:
        return bool(self.tokens and self.tokens.creation_requires_auth)


def load_settings() -> Settings:
    load_dotenv(ENV_PATH)

    environment = os.getenv("ENVIRONMENT", "dev")

    # Dev: SQLite (zero config), Prod: whatever DATABASE_URL points at
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        if environment == "prod":
            raise RuntimeError("DATABASE_URL must be set in production")
        db_path = Path(__file__).parent.parent / "shortlinks_dev.db"
        database_url = f"sqlite:///{db_path}"

    ip_recording = None
    if _env_bool("RECORD_IPS"):
        try:
            ip_recording = IpRecordingConfig(
                retention_period=parse_duration(
                    os.getenv("IP_RETENTION_PERIOD", DEFAULT_RETENTION_PERIOD)
                ),
                retention_check_period=os.getenv(
                    "IP_RETENTION_CHECK_PERIOD", DEFAULT_RETENTION_CHECK_PERIOD
                ),
            )
        except ValueError as e:
            raise RuntimeError(f"Invalid IP recording settings: {e}") from e

    tokens = None
    if _env_bool("TOKENS_ENABLED"):
        master_token = (os.getenv("MASTER_TOKEN") or "").strip()
        if not master_token:
            raise RuntimeError("MASTER_TOKEN is required if the token system is enabled")
        tokens = TokenConfig(
            master_token=master_token,
            creation_requires_auth=_env_bool("LINK_CREATION_REQUIRES_AUTH"),
        )

    return Settings(
        database_url=database_url,
        environment=environment,
        host=os.getenv("HOST", "0.0.0.0"),
        port=_env_int("PORT", 8000),
        max_strikes=_env_int("MAX_STRIKES", 30),
        ip_recording=ip_recording,
        tokens=tokens,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
    )
