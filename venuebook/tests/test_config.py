from __future__ import annotations

import pytest

from venuebook.config import load_settings
from venuebook.domain import DEFAULT_MAX_DAYS_AHEAD

_OPTIONAL = ("API_TOKEN", "MAX_DAYS_CEILING", "FEED_RETRY_ATTEMPTS", "HTTP_TIMEOUT_SECONDS")


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _OPTIONAL:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("API_BASE_URL", "https://api.example.test/api/")
    monkeypatch.setenv("LOCATION_ID", "3")


def test_load_settings_defaults() -> None:
    settings = load_settings(dotenv_path=None)

    assert settings.api_base_url == "https://api.example.test/api"
    assert settings.location_id == 3
    assert settings.api_token is None
    assert settings.max_days_ceiling == DEFAULT_MAX_DAYS_AHEAD
    assert settings.feed_retry_attempts == 3
    assert settings.http_timeout_seconds == 20.0


def test_load_settings_reads_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("API_TOKEN", "secret")
    monkeypatch.setenv("MAX_DAYS_CEILING", "365")
    monkeypatch.setenv("FEED_RETRY_ATTEMPTS", "1")
    monkeypatch.setenv("HTTP_TIMEOUT_SECONDS", "5.5")

    settings = load_settings(dotenv_path=None)

    assert settings.api_token == "secret"
    assert settings.max_days_ceiling == 365
    assert settings.feed_retry_attempts == 1
    assert settings.http_timeout_seconds == 5.5


def test_load_settings_requires_base_url(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("API_BASE_URL")

    with pytest.raises(RuntimeError, match=r"API_BASE_URL"):
        load_settings(dotenv_path=None)


def test_load_settings_rejects_non_integer_location(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LOCATION_ID", "main")

    with pytest.raises(RuntimeError, match=r"Invalid LOCATION_ID"):
        load_settings(dotenv_path=None)


@pytest.mark.parametrize("name", ["MAX_DAYS_CEILING", "FEED_RETRY_ATTEMPTS"])
def test_load_settings_rejects_zero_counts(monkeypatch: pytest.MonkeyPatch, name: str) -> None:
    monkeypatch.setenv(name, "0")

    with pytest.raises(RuntimeError, match=rf"{name} must be >= 1"):
        load_settings(dotenv_path=None)


def test_load_settings_rejects_bad_timeout(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HTTP_TIMEOUT_SECONDS", "soon")

    with pytest.raises(RuntimeError, match=r"Invalid HTTP_TIMEOUT_SECONDS"):
        load_settings(dotenv_path=None)


def test_load_settings_does_not_override_existing_env_with_dotenv(monkeypatch: pytest.MonkeyPatch, tmp_path) -> None:
    dotenv = tmp_path / ".env"
    dotenv.write_text("LOCATION_ID=999\n")

    settings = load_settings(dotenv_path=str(dotenv))

    assert settings.location_id == 3
