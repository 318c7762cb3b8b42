"""Server configuration read from VB_* environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from .constants import LAYOUT_TIMEOUT_SECONDS, SESSION_TTL_SECONDS


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError as e:
        raise ValueError(f"Invalid value for {name}: {raw!r}") from e
    if value <= 0:
        raise ValueError(f"{name} must be positive, got {raw!r}")
    return value


def _env_list(name: str, default: list[str]) -> list[str]:
    raw = os.getenv(name)
    if raw is None:
        return default
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class BoardConfig:
    """Configuration for the whiteboard server."""
    data_dir: Path = field(default_factory=lambda: Path.home() / ".voiceboard/boards")
    save_interval: int = 30
    session_ttl: int = SESSION_TTL_SECONDS
    layout_timeout: float = LAYOUT_TIMEOUT_SECONDS
    elk_url: str = ""
    log_level: str = "INFO"
    host: str = "127.0.0.1"
    port: int = 8080
    cors_origins: list[str] = field(default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"])

    @classmethod
    def from_env(cls) -> "BoardConfig":
        """Build from the environment; raises ValueError on malformed numbers."""
        defaults = cls()
        return cls(
            data_dir=Path(os.getenv("VB_DATA_DIR", str(defaults.data_dir))).expanduser(),
            save_interval=_env_number("VB_SAVE_INTERVAL", defaults.save_interval, int),
            session_ttl=_env_number("VB_SESSION_TTL", defaults.session_ttl, int),
            layout_timeout=_env_number("VB_LAYOUT_TIMEOUT", defaults.layout_timeout, float),
            elk_url=os.getenv("VB_ELK_URL", defaults.elk_url).strip(),
            log_level=os.getenv("VB_LOG_LEVEL", defaults.log_level).upper(),
            host=os.getenv("VB_HTTP_HOST", defaults.host),
            port=_env_number("VB_HTTP_PORT", defaults.port, int),
            cors_origins=_env_list("VB_CORS_ORIGINS", defaults.cors_origins),
        )
