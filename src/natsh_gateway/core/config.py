"""
Configuration settings for the gateway service.

Only the application assembly reads these; the gateway itself is configured
through constructor arguments.
"""
import os
import tomllib
from pathlib import Path
from typing import List, Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


def get_version() -> str:
    """
    Get the service version from pyproject.toml.
    Falls back to environment variable SERVICE_VERSION if pyproject.toml is not found.
    """
    env_version = os.getenv("SERVICE_VERSION")
    if env_version:
        return env_version

    # src/natsh_gateway/core/config.py -> project root
    pyproject_path = Path(__file__).parent.parent.parent.parent / "pyproject.toml"

    try:
        with open(pyproject_path, "rb") as f:
            return tomllib.load(f).get("project", {}).get("version", "0.0.0")
    except (FileNotFoundError, tomllib.TOMLDecodeError):
        return "0.0.0"


class Settings(BaseSettings):
    """
    Gateway configuration loaded from environment variables.

    Defaults are meant for local development against a NATS server on
    localhost.
    """
    model_config = SettingsConfigDict(
        env_prefix="",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Service settings
    service_name: str = "natsh-gateway"
    service_version: str = get_version()
    service_host: str = "0.0.0.0"
    service_port: int = 8080
    debug: bool = False

    # Adapter configuration
    bus_adapter: Literal["nats", "memory"] = "nats"

    # NATS settings
    nats_url: str = "nats://localhost:4222"
    nats_reconnect_time_wait: int = 2  # seconds
    nats_max_reconnect_attempts: int = -1  # -1 = infinite

    # Gateway settings
    gateway_prefix: str = "/bus"
    header_prefix: str = "Natsh-"
    default_timeout_ms: int = 5000

    # Stream settings
    stream_queue_size: int = 10
    stream_ping_interval: int = 15  # seconds

    # Empty list disables the CORS middleware; streams always allow any origin
    cors_origins: List[str] = []


# Global settings instance
settings = Settings()
