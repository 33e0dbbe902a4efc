from enum import Enum
from functools import lru_cache
from pathlib import Path

from pydantic import SecretStr, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

SERVICE_NAME = "cloudevents-gateway"
VERSION = "0.1.0"


class ConfigurationError(Exception):
    """Raised when the gateway cannot be configured at startup."""


class AuthMode(str, Enum):
    """How source tokens are bound to event sources."""
    PER_SOURCE = "per_source"
    # Legacy: any registered token is accepted for any source.
    FLAT = "flat"


class PayloadMode(str, Enum):
    """What the forwarded event carries as its payload."""
    ENVELOPE = "envelope"
    DATA = "data"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    ENV: str = "dev"
    PORT: int = 8080
    LOG_JSON: bool = True
    LOG_LEVEL: str = "INFO"
    # Upstream events API
    API_ADDRESS: str
    API_TOKEN: SecretStr
    API_IGNORE_CERT_WARNINGS: bool = False
    API_TIMEOUT: float = 30.0
    # Source authentication
    SOURCE_TOKENS_PATH: Path
    AUTH_MODE: AuthMode = AuthMode.PER_SOURCE
    PAYLOAD_MODE: PayloadMode = PayloadMode.ENVELOPE
    # TLS
    TLS_ENABLED: bool = False
    TLS_CERT_PATH: Path | None = None
    TLS_KEY_PATH: Path | None = None
    # Abuse protection handshake
    HANDSHAKE_CALLBACK_DELAY: float = 10.0

    @model_validator(mode="after")
    def check_tls_paths(self) -> "Settings":
        if self.TLS_ENABLED and not (self.TLS_CERT_PATH and self.TLS_KEY_PATH):
            raise ValueError("TLS_CERT_PATH and TLS_KEY_PATH are required when TLS_ENABLED is true")
        return self


def load_settings(**overrides) -> Settings:
    """
    Load settings from the environment.

    Raises:
        ConfigurationError: If a required setting is missing or invalid
    """
    try:
        return Settings(**overrides)
    except ValidationError as e:
        raise ConfigurationError(f"invalid configuration: {e}") from e


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
