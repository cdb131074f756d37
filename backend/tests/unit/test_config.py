from __future__ import annotations

from hrdirectory.core.config import Settings


def test_credentials_absent_without_token():
    assert Settings(DIRECTORY_API_TOKEN="").credentials() is None


def test_credentials_built_from_settings():
    credentials = Settings(
        DIRECTORY_API_URL="https://directory.example.com/v1/",
        DIRECTORY_API_TOKEN="secret-token",
        DIRECTORY_AUTH_SCHEME="Bearer",
    ).credentials()

    assert credentials.authorization == "Bearer secret-token"
    assert credentials.url("people") == "https://directory.example.com/v1/people"
    assert "secret-token" not in repr(credentials)


def test_defaults():
    settings = Settings()

    assert settings.CACHE_TTL_HOURS == 24.0
    assert settings.CACHE_REFRESH_POLICY == "eager"
    assert settings.DIRECTORY_AUTH_SCHEME == "Basic"
