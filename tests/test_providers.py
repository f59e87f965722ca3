import pytest
from pydantic import SecretStr

from divination_chat.config import Settings
from divination_chat.providers import (
    SettingsAuthProvider,
    StaticLocaleProvider,
    resolve_language,
    resolve_token,
)


class AsyncAuth:
    def __init__(self, token):
        self.token = token

    async def get_token(self):
        return self.token

    def handle_auth_error(self, status_code, detail):
        pass


class BrokenLocale:
    def get_language(self) -> str:
        raise RuntimeError("no locale")


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.mark.parametrize(
    ("language", "expected"),
    [("zh", "zh_CN"), ("zh-TW", "zh_CN"), ("ZH_cn", "zh_CN"), ("en", "en_US"), ("fr", "en_US")],
)
def test_resolve_language(language: str, expected: str) -> None:
    assert resolve_language(StaticLocaleProvider(language)) == expected


def test_resolve_language_fallbacks() -> None:
    assert resolve_language(None) == "en_US"
    assert resolve_language(BrokenLocale()) == "en_US"


@pytest.mark.anyio
async def test_resolve_token_sync_and_async() -> None:
    settings = Settings(access_token=SecretStr("abc"), _env_file=None)  # type: ignore[call-arg]
    assert await resolve_token(SettingsAuthProvider(settings)) == "abc"
    assert await resolve_token(AsyncAuth("xyz")) == "xyz"
    assert await resolve_token(AsyncAuth("")) is None


def test_settings_auth_provider_counts_failures() -> None:
    settings = Settings(access_token=None, _env_file=None)  # type: ignore[call-arg]
    provider = SettingsAuthProvider(settings)
    assert provider.get_token() is None
    provider.handle_auth_error(401, "expired")
    assert provider.auth_failures == 1
