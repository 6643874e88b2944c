# eventhub/config.py

"""
Client configuration, loaded from environment variables (prefix EVENTHUB_)
or a local .env file. Built once and injected into EventStreamClient.
"""

from enum import Enum

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import DEFAULT_SOURCE


DEFAULT_ORIGIN = "http://localhost:8080"


class UpdateMode(str, Enum):
    STREAM = "stream"
    POLL = "poll"


class ClientSettings(BaseSettings):
    # Empty means same origin as the injected HTTP client
    api_url: str = ""
    update_mode: UpdateMode = UpdateMode.STREAM

    poll_interval: float = Field(3.0, gt=0)
    notification_ttl: float = Field(3.0, gt=0)
    reconnect_delay: float = Field(3.0, ge=0)
    request_timeout: float = Field(10.0, gt=0)

    default_source: str = DEFAULT_SOURCE

    model_config = SettingsConfigDict(
        env_prefix="EVENTHUB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @property
    def base_url(self) -> str:
        return self.api_url.rstrip("/")
