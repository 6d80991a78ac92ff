from functools import lru_cache
from typing import Optional
from urllib.parse import urlparse

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


@lru_cache
def get_settings() -> "Settings":
    """Returns a singleton instance of the client settings."""
    return Settings()


class Settings(BaseSettings):
    """
    Configuration for the policy upload client.
    Uses Pydantic-Settings for environment variable parsing from .env.
    """

    APP_NAME: str = "policyfeed"
    VERSION: str = "0.1.0"
    DEBUG: bool = False

    API_KEY: Optional[str] = None
    POLICY_API_ENDPOINT: Optional[str] = None

    # When set, progress lines go through the structured logger instead of stderr.
    LOG_LEVEL: Optional[str] = None

    HTTP_TIMEOUT_SECONDS: float = 30.0
    HTTP_MAX_RETRIES: int = 3
    HTTP_RETRY_BACKOFF_SECONDS: float = 0.5

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True,
        extra="ignore",
    )

    @model_validator(mode="after")
    def validate_all_config(self) -> "Settings":
        self._validate_endpoint()
        self._validate_http_config()
        return self

    def _validate_endpoint(self) -> None:
        if self.POLICY_API_ENDPOINT is None:
            return
        endpoint = self.POLICY_API_ENDPOINT.strip()
        parsed = urlparse(endpoint)
        if parsed.scheme not in {"http", "https"} or not parsed.netloc:
            raise ValueError(
                f"POLICY_API_ENDPOINT must be an http(s) URL (current: {endpoint!r})."
            )
        self.POLICY_API_ENDPOINT = endpoint.rstrip("/")

    def _validate_http_config(self) -> None:
        if self.HTTP_TIMEOUT_SECONDS <= 0:
            raise ValueError("HTTP_TIMEOUT_SECONDS must be > 0.")
        if self.HTTP_MAX_RETRIES < 1:
            raise ValueError("HTTP_MAX_RETRIES must be >= 1.")
        if self.HTTP_RETRY_BACKOFF_SECONDS < 0:
            raise ValueError("HTTP_RETRY_BACKOFF_SECONDS must be >= 0.")

    @property
    def is_logging(self) -> bool:
        """True when a log level is configured and output should be structured."""
        return bool(self.LOG_LEVEL and self.LOG_LEVEL.strip())
