"""Configuration for hostmon."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, field_validator

from hostmon.errors import ConfigError

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class BindAddress(BaseModel):
    """Host and port the metrics endpoint listens on."""

    host: str = Field(..., min_length=1)
    port: int = Field(..., ge=1, le=65535)

    @classmethod
    def parse(cls, value: str) -> "BindAddress":
        """Parse ``host:port``. The last colon separates the port."""
        host, sep, port = value.rpartition(":")
        if not sep or not host or not port.isdigit():
            raise ConfigError(f"expected HOST:PORT, got {value!r}")
        try:
            return cls(host=host.strip("[]"), port=int(port))
        except ValidationError as exc:
            raise ConfigError(f"invalid bind address {value!r}: {exc}") from exc

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"


class MonitorConfig(BaseModel):
    """Runtime settings supplied by the command line."""

    interval: int = Field(1, gt=0, description="Seconds between sampling ticks.")
    metrics: Optional[BindAddress] = Field(None, description="Serve /metrics on this address when set.")
    top_n: int = Field(10, gt=0, description="Rows in the top processes listing.")
    plain: bool = Field(False, description="Print plain-text reports instead of the dashboard.")
    log_level: str = Field("INFO", description="Root log level.")
    log_file: Optional[Path] = Field(None, description="Optional rotating log file.")
    max_consecutive_failures: Optional[int] = Field(
        None,
        gt=0,
        description="Stop sampling after this many failed ticks in a row.",
    )

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        value = value.upper()
        if value not in LOG_LEVELS:
            raise ValueError(f"log level must be one of {', '.join(LOG_LEVELS)}")
        return value


def build_config(**values) -> MonitorConfig:
    """Validate settings, converting pydantic errors to ConfigError."""
    try:
        return MonitorConfig(**values)
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc
