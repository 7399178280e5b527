"""Project-level configuration and path helpers."""

import os
from dataclasses import dataclass
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
LOGS_DIR = PROJECT_ROOT / "04_logs"
DEFAULT_LOG_PATH = LOGS_DIR / "bustop.log"

DEFAULT_POLL_INTERVAL = 1.0
DEFAULT_CALL_TIMEOUT = 5.0
DEFAULT_BUFFER_CAPACITY = 1024


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


@dataclass
class MonitorConfig:
    """Session configuration shared by all monitoring components."""

    poll_interval: float = DEFAULT_POLL_INTERVAL  # seconds between ranking polls
    call_timeout: float = DEFAULT_CALL_TIMEOUT  # bound on a single remote call
    buffer_capacity: int = DEFAULT_BUFFER_CAPACITY  # samples kept per series
    service: str | None = None  # initial selection
    method: str | None = None
    api_host: str = "localhost"
    api_port: int = 8000

    def __post_init__(self) -> None:
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if self.call_timeout <= 0:
            raise ValueError("call_timeout must be positive")
        if self.buffer_capacity <= 0:
            raise ValueError("buffer_capacity must be positive")

    @classmethod
    def from_env(cls) -> "MonitorConfig":
        """Build configuration from BUSTOP_* and API_* environment variables."""
        return cls(
            poll_interval=_env_float("BUSTOP_POLL_INTERVAL", DEFAULT_POLL_INTERVAL),
            call_timeout=_env_float("BUSTOP_CALL_TIMEOUT", DEFAULT_CALL_TIMEOUT),
            buffer_capacity=_env_int("BUSTOP_BUFFER_CAPACITY", DEFAULT_BUFFER_CAPACITY),
            service=os.getenv("BUSTOP_SERVICE") or None,
            method=os.getenv("BUSTOP_METHOD") or None,
            api_host=os.getenv("API_HOST", "localhost"),
            api_port=_env_int("API_PORT", 8000),
        )
