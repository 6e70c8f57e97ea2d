from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

from venuebook.domain import DEFAULT_MAX_DAYS_AHEAD


def _parse_positive_int(name: str, raw: str) -> int:
    try:
        value = int(raw)
    except ValueError as e:
        raise RuntimeError(f"Invalid {name} value: {raw!r}. Expected integer.") from e
    if value < 1:
        raise RuntimeError(f"{name} must be >= 1")
    return value


@dataclass(frozen=True)
class Settings:
    api_base_url: str
    location_id: int

    api_token: str | None = None

    # Horizon used when neither the package nor the location sets booking_window_days.
    max_days_ceiling: int = DEFAULT_MAX_DAYS_AHEAD

    # How many times we try to (re)open the live slot feed before reporting slots as unknown.
    feed_retry_attempts: int = 3

    http_timeout_seconds: float = 20.0


def _require(name: str) -> str:
    value = os.getenv(name)
    if not value:
        raise RuntimeError(f"Missing required environment variable: {name}")
    return value


def load_settings(dotenv_path: str | None = None) -> Settings:
    # Prefer .env in repo root; dotenv_path allows overriding in tests.
    load_dotenv(dotenv_path=dotenv_path, override=False)

    raw_location = _require("LOCATION_ID")
    try:
        location_id = int(raw_location)
    except ValueError as e:
        raise RuntimeError(f"Invalid LOCATION_ID value: {raw_location!r}. Expected integer.") from e

    max_days_ceiling = _parse_positive_int("MAX_DAYS_CEILING", os.getenv("MAX_DAYS_CEILING", str(DEFAULT_MAX_DAYS_AHEAD)))
    feed_retry_attempts = _parse_positive_int("FEED_RETRY_ATTEMPTS", os.getenv("FEED_RETRY_ATTEMPTS", "3"))

    raw_timeout = os.getenv("HTTP_TIMEOUT_SECONDS", "20")
    try:
        http_timeout_seconds = float(raw_timeout)
    except ValueError as e:
        raise RuntimeError(f"Invalid HTTP_TIMEOUT_SECONDS value: {raw_timeout!r}") from e
    if http_timeout_seconds <= 0:
        raise RuntimeError("HTTP_TIMEOUT_SECONDS must be > 0")

    return Settings(
        api_base_url=_require("API_BASE_URL").rstrip("/"),
        location_id=location_id,
        api_token=os.getenv("API_TOKEN") or None,
        max_days_ceiling=max_days_ceiling,
        feed_retry_attempts=feed_retry_attempts,
        http_timeout_seconds=http_timeout_seconds,
    )
