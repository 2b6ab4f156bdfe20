import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ValidationError, field_validator

from .errors import ConfigError

DEFAULT_UPSTREAM_ENDPOINT = "https://integrate.api.nvidia.com/v1/chat/completions"
DEFAULT_PROXY_URL = "http://127.0.0.1:8000/api/chat"

# Request shaping, passed through verbatim to the upstream API
PRIMARY_MODEL = "meta/llama-4-maverick-17b-128e-instruct"
PRIMARY_TEMPERATURE = 1.0
PRIMARY_TOP_P = 1.0
PRIMARY_MAX_TOKENS = 512

FALLBACK_MODEL = "meta/llama-3.1-8b-instruct"
FALLBACK_TEMPERATURE = 0.5
FALLBACK_TOP_P = 0.7
FALLBACK_MAX_TOKENS = 256


class Settings(BaseModel):
    """Process configuration shared read-only by the proxy and the chat client."""

    api_key: Optional[str] = None
    upstream_endpoint: str = DEFAULT_UPSTREAM_ENDPOINT
    upstream_timeout: float = 12.0

    proxy_url: str = DEFAULT_PROXY_URL
    client_timeout: float = 15.0
    chat_model: str = PRIMARY_MODEL
    fallback_model: str = FALLBACK_MODEL

    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]

    model_config = {"frozen": True}

    @field_validator("api_key")
    @classmethod
    def _blank_key_is_missing(cls, v):
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("upstream_timeout", "client_timeout")
    @classmethod
    def _positive_timeout(cls, v):
        if v <= 0:
            raise ValueError("timeout must be positive")
        return v

    @field_validator("port")
    @classmethod
    def _valid_port(cls, v):
        if not 0 < v < 65536:
            raise ValueError("port must be between 1 and 65535")
        return v

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, v):
        return v.upper()

    @property
    def has_credential(self) -> bool:
        return self.api_key is not None

    def require_api_key(self) -> str:
        if self.api_key is None:
            raise ConfigError("NVIDIA_API_KEY is not configured")
        return self.api_key

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None, environ=None) -> "Settings":
        """
        Load and validate settings from the environment.

        A .env file (default: ./.env) is loaded first without overriding
        variables that are already set. Pass ``environ`` to read from a
        mapping instead of os.environ.
        """
        if environ is None:
            load_dotenv(env_file or Path.cwd() / ".env")
            environ = os.environ

        values = {
            "api_key": environ.get("NVIDIA_API_KEY"),
            "upstream_endpoint": environ.get("UPSTREAM_ENDPOINT"),
            "upstream_timeout": environ.get("UPSTREAM_TIMEOUT"),
            "proxy_url": environ.get("CHAT_PROXY_URL"),
            "client_timeout": environ.get("CHAT_CLIENT_TIMEOUT"),
            "chat_model": environ.get("CHAT_MODEL"),
            "fallback_model": environ.get("FALLBACK_MODEL"),
            "host": environ.get("HOST"),
            "port": environ.get("PORT"),
            "log_level": environ.get("LOG_LEVEL"),
        }
        origins = environ.get("CORS_ORIGINS")
        if origins:
            values["cors_origins"] = [o.strip() for o in origins.split(",") if o.strip()]

        try:
            return cls(**{k: v for k, v in values.items() if v is not None})
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e
