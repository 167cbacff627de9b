"""Load balancer settings using Pydantic Settings."""

import json
from typing import Annotated

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from .backends import normalize_address
from .errors import ConfigError


class Settings(BaseSettings):
    """Configuration loaded from LB_* environment variables, overridable by the CLI."""

    model_config = SettingsConfigDict(
        env_prefix="LB_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    backends: Annotated[list[str], NoDecode]

    host: str = "0.0.0.0"
    port: int = Field(default=8080, ge=1, le=65535)

    # Health probing
    health_interval: float = Field(default=0.005, gt=0)
    probe_timeout: float = Field(default=1.0, gt=0)

    # Proxied requests
    request_timeout: float = Field(default=30.0, gt=0)

    # Logging
    log_level: str = "INFO"
    log_format: str = "console"

    @field_validator("backends", mode="before")
    @classmethod
    def parse_backends(cls, v):
        """Parse backend addresses from a JSON list, a comma-separated string or a list."""
        if isinstance(v, str):
            try:
                v = json.loads(v)
            except json.JSONDecodeError:
                v = [url.strip() for url in v.split(",") if url.strip()]
        return v

    @field_validator("backends")
    @classmethod
    def check_backends(cls, v: list[str]) -> list[str]:
        if not v:
            raise ConfigError("at least one backend address is required")
        return [normalize_address(url) for url in v]

    @field_validator("log_format")
    @classmethod
    def check_log_format(cls, v: str) -> str:
        v = v.lower()
        if v not in ("console", "json"):
            raise ValueError("log_format must be 'console' or 'json'")
        return v
