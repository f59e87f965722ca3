"""Client configuration using environment variables."""

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import AliasChoices, AnyHttpUrl, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

# Resolve the project root once so that `.env` is discovered regardless of CWD
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


class Settings(BaseSettings):
    """Load configuration from environment variables and `.env`."""

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_base_url: AnyHttpUrl = Field(
        default_factory=lambda: AnyHttpUrl("https://divination.uubb.top"),
        validation_alias=AliasChoices(
            "DIVINATION_API_BASE_URL", "API_BASE_URL", "api_base_url"
        ),
    )
    chat_endpoint: str = Field(
        default="/api/chat/v1",
        validation_alias=AliasChoices("DIVINATION_CHAT_ENDPOINT", "chat_endpoint"),
    )
    access_token: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices(
            "DIVINATION_ACCESS_TOKEN", "ACCESS_TOKEN", "access_token"
        ),
    )
    request_timeout: float = Field(
        default=120.0,
        validation_alias=AliasChoices("DIVINATION_TIMEOUT", "timeout", "request_timeout"),
        ge=1,
    )
    connect_timeout: float = Field(
        default=10.0,
        validation_alias=AliasChoices("DIVINATION_CONNECT_TIMEOUT", "connect_timeout"),
        gt=0,
    )
    render_delay: float = Field(
        default=0.05,
        ge=0,
        validation_alias=AliasChoices("DIVINATION_RENDER_DELAY", "render_delay"),
        description="Pause after echoing the user message so a UI can render it.",
    )
    ui_language: str = Field(
        default="en",
        validation_alias=AliasChoices("DIVINATION_LANGUAGE", "ui_language"),
    )
    default_mode: str = Field(
        default="chat",
        validation_alias=AliasChoices("DIVINATION_DEFAULT_MODE", "default_mode"),
    )
    http2: bool = Field(
        default=True,
        validation_alias=AliasChoices("DIVINATION_HTTP2", "http2"),
    )
    session_cache_path: Path = Field(
        default_factory=lambda: Path.home() / ".cache" / "divination-chat" / "session_id",
        validation_alias=AliasChoices(
            "DIVINATION_SESSION_CACHE", "session_cache_path"
        ),
    )

    @property
    def chat_url(self) -> str:
        """Return the absolute chat endpoint URL without a trailing slash."""

        base = str(self.api_base_url).rstrip("/")
        return f"{base}/{self.chat_endpoint.strip('/')}"

    @property
    def resume_url(self) -> str:
        return f"{self.chat_url}/resume"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached `Settings` instance."""

    return Settings()  # pyright: ignore[reportCallIssue]


__all__ = ["Settings", "get_settings"]
