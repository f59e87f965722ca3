"""Boundaries to the credential and locale collaborators."""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Optional, Protocol, Union

from .config import Settings
from .schemas.chat import LanguageCode

logger = logging.getLogger(__name__)


class AuthProvider(Protocol):
    def get_token(self) -> Union[Optional[str], Awaitable[Optional[str]]]:
        ...

    def handle_auth_error(self, status_code: int, detail: Any) -> None:
        ...


class LocaleProvider(Protocol):
    def get_language(self) -> str:
        ...


class SettingsAuthProvider:
    """Serve the bearer token configured in `Settings`."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self.auth_failures = 0

    def get_token(self) -> Optional[str]:
        token = self._settings.access_token
        if token is None:
            return None
        return token.get_secret_value() or None

    def handle_auth_error(self, status_code: int, detail: Any) -> None:
        self.auth_failures += 1
        logger.warning(
            "Authentication rejected (%s): %s. Refresh DIVINATION_ACCESS_TOKEN and retry.",
            status_code,
            detail,
        )


class StaticLocaleProvider:
    def __init__(self, language: str = "en"):
        self.language = language

    def get_language(self) -> str:
        return self.language


async def resolve_token(provider: AuthProvider) -> Optional[str]:
    """Fetch a token from a provider that may be sync or async."""

    token = provider.get_token()
    if inspect.isawaitable(token):
        token = await token
    return token or None


def resolve_language(provider: Optional[LocaleProvider]) -> LanguageCode:
    """Map a UI locale tag onto the protocol's language code."""

    if provider is None:
        return "en_US"
    try:
        current = provider.get_language()
    except Exception as exc:
        logger.warning("Locale provider failed, defaulting to en_US: %s", exc)
        return "en_US"
    if isinstance(current, str) and current.lower().startswith("zh"):
        return "zh_CN"
    return "en_US"


__all__ = [
    "AuthProvider",
    "LocaleProvider",
    "SettingsAuthProvider",
    "StaticLocaleProvider",
    "resolve_language",
    "resolve_token",
]
