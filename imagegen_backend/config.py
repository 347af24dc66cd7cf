"""
Image Generation Backend - Configuration
Environment-based settings for the server and the provider client
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from .errors import ConfigurationError

DEFAULT_API_BASE_URL = "https://api.replicate.com/v1"
DEFAULT_CORS_ORIGINS = ("http://localhost:3000", "http://localhost:3001")


@dataclass(frozen=True)
class Settings:
    """Process-wide configuration. Built once at startup and passed down."""

    api_token: str
    api_base_url: str = DEFAULT_API_BASE_URL
    cors_origins: Tuple[str, ...] = DEFAULT_CORS_ORIGINS
    upload_dir: str = "uploads"
    host: str = "0.0.0.0"
    port: int = 4000
    poll_interval: float = 1.0
    log_level: str = "INFO"


def parse_origins(value: Optional[str]) -> Tuple[str, ...]:
    if not value:
        return DEFAULT_CORS_ORIGINS
    origins = tuple(origin.strip() for origin in value.split(",") if origin.strip())
    return origins or DEFAULT_CORS_ORIGINS


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build settings from environment variables.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        Populated Settings

    Raises:
        ConfigurationError: If REPLICATE_API_TOKEN is missing or blank,
            or a numeric variable cannot be parsed
    """
    env = os.environ if environ is None else environ

    token = (env.get("REPLICATE_API_TOKEN") or "").strip()
    if not token:
        raise ConfigurationError("REPLICATE_API_TOKEN is not set in the environment")

    try:
        port = int(env.get("PORT", "4000"))
        poll_interval = float(env.get("REPLICATE_POLL_INTERVAL", "1.0"))
    except ValueError as e:
        raise ConfigurationError(f"Invalid numeric setting: {e}") from e

    return Settings(
        api_token=token,
        api_base_url=env.get("REPLICATE_API_BASE", DEFAULT_API_BASE_URL).rstrip("/"),
        cors_origins=parse_origins(env.get("CORS_ORIGINS")),
        upload_dir=env.get("UPLOAD_DIR", "uploads"),
        host=env.get("HOST", "0.0.0.0"),
        port=port,
        poll_interval=poll_interval,
        log_level=env.get("LOG_LEVEL", "INFO").upper(),
    )
