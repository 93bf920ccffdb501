"""
Application Configuration
"""

import re
from datetime import timedelta
from typing import Any, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings

# Unit-suffixed durations: "30m", "24h", "1h30m", "250ms"
_DURATION_PART_RE = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")
_DURATION_RE = re.compile(f"(?:{_DURATION_PART_RE.pattern})+")
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(value: Any) -> Any:
    """
    Convert a unit-suffixed duration string into a timedelta.

    Anything that is not in that form is returned unchanged so pydantic's own
    timedelta parsing (seconds, ISO 8601, HH:MM:SS) still applies.
    """
    if not isinstance(value, str):
        return value
    text = value.strip()
    sign = -1 if text.startswith("-") else 1
    body = text.lstrip("+-")
    if not body or not _DURATION_RE.fullmatch(body):
        return value
    seconds = sum(float(number) * _DURATION_UNITS[unit] for number, unit in _DURATION_PART_RE.findall(body))
    return timedelta(seconds=sign * seconds)


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # Environment
    environment: str = "development"
    log_level: str = "INFO"

    # HTTP listener
    host: str = "0.0.0.0"
    port: int = 8080
    idle_timeout: timedelta = timedelta(seconds=60)
    max_body_bytes: int = 1 << 20  # 1 MiB PUT body cap

    # Secret lifecycle
    placeholder_ttl: timedelta = timedelta(minutes=30)  # reserved-empty codes
    message_ttl: timedelta = timedelta(hours=24)  # populated secrets
    code_length: int = 8
    code_max_attempts: int = 20

    # Redis (unset = in-process MemoryStore)
    redis_url: Optional[str] = None
    redis_pool_size: int = 10
    redis_connect_timeout: float = 5.0
    redis_socket_timeout: float = 5.0

    # CORS allow-list, comma separated ("*" allows any origin)
    cors_allow_origins: str = ""

    # Admission control (0 = disabled)
    rate_limit_rps: int = 0
    rate_burst: int = 0

    # Circuit Breaker Configuration
    circuit_breaker_fail_max: int = 5  # Consecutive failures before opening circuit
    circuit_breaker_reset_timeout: int = 60  # Seconds before auto-recovery attempt

    # Sentry Error Tracking
    sentry_dsn: Optional[str] = None
    sentry_environment: Optional[str] = None  # Defaults to environment setting

    @field_validator("idle_timeout", "placeholder_ttl", "message_ttl", mode="before")
    @classmethod
    def _parse_duration(cls, value):
        return parse_duration(value)

    class Config:
        env_file = ".env"
        case_sensitive = False
        frozen = True

    @property
    def allowed_origins(self) -> List[str]:
        """CORS origins parsed from the comma separated env value."""
        return [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]


settings = Settings()
