from __future__ import annotations

import json
import logging
import threading
from typing import Any, Iterable, Iterator, Mapping

import httpx
from tenacity import RetryCallState, retry, stop_after_attempt, stop_when_event_set, wait_exponential

from venuebook.config import Settings
from venuebook.domain import ExceptionRecord, FeedError, PackageSchedule, SlotKey, SourceError
from venuebook.live_slots import ErrorHandler, MessageHandler
from venuebook.records import parse_exception_records, parse_package

logger = logging.getLogger(__name__)


class ApiClient:
    """Package and day-off sources. Responses are wrapped as {"success": ..., "data": ...}."""

    def __init__(
        self,
        *,
        base_url: str,
        token: str | None = None,
        timeout_seconds: float = 20.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> ApiClient:
        return cls(
            base_url=settings.api_base_url,
            token=settings.api_token,
            timeout_seconds=settings.http_timeout_seconds,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    def _get(self, path: str) -> Any:
        try:
            with httpx.Client(
                base_url=self._base_url,
                headers=self._headers(),
                timeout=self._timeout_seconds,
                transport=self._transport,
            ) as client:
                r = client.get(path)
                r.raise_for_status()
                data = r.json()
        except (httpx.HTTPError, ValueError) as e:
            raise SourceError(f"GET {path} failed ({type(e).__name__}: {e})") from e

        if not isinstance(data, dict) or not data.get("success", False):
            raise SourceError(f"GET {path} returned an error: {data}")
        return data.get("data")

    def fetch_package(self, package_id: int) -> PackageSchedule:
        raw = self._get(f"/packages/{package_id}")
        if not isinstance(raw, Mapping):
            raise SourceError(f"Package {package_id}: unexpected payload {raw!r}")
        try:
            return parse_package(raw)
        except (KeyError, TypeError, ValueError) as e:
            raise SourceError(f"Package {package_id}: malformed record ({type(e).__name__}: {e})") from e

    def fetch_day_offs(self, location_id: int) -> list[ExceptionRecord]:
        raw = self._get(f"/day-offs/location/{location_id}")
        if isinstance(raw, Mapping):
            raw = raw.get("day_offs", [])
        if not isinstance(raw, list):
            raise SourceError(f"Day offs for location {location_id}: unexpected payload {raw!r}")
        return parse_exception_records(raw)


def _short_exc(retry_state: RetryCallState) -> str | None:
    if retry_state.outcome is None or not retry_state.outcome.failed:
        return None
    exc = retry_state.outcome.exception()
    if exc is None:
        return None
    msg = str(exc).strip()
    return f"{type(exc).__name__}: {msg}" if msg else type(exc).__name__


def _log_before_attempt(retry_state: RetryCallState) -> None:
    logger.info("Slot feed attempt %s: connecting", retry_state.attempt_number)


def _log_after_attempt(retry_state: RetryCallState) -> None:
    if retry_state.outcome is not None and retry_state.outcome.failed:
        reason = _short_exc(retry_state)
        if reason:
            logger.warning("Slot feed attempt %s: failed (%s)", retry_state.attempt_number, reason)
        else:
            logger.warning("Slot feed attempt %s: failed", retry_state.attempt_number)


def _log_before_sleep(retry_state: RetryCallState) -> None:
    sleep_seconds = getattr(retry_state.next_action, "sleep", None)
    if sleep_seconds is None:
        logger.info("Reconnecting slot feed...")
        return
    logger.info("Reconnecting slot feed in %.0f s (attempt %s)", sleep_seconds, retry_state.attempt_number + 1)


def iter_sse_data(lines: Iterable[str]) -> Iterator[str]:
    """Yield the data of each server-sent event from an iterator of text lines."""
    buffer: list[str] = []
    for line in lines:
        if line == "":
            if buffer:
                yield "\n".join(buffer)
                buffer = []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if field == "data":
            buffer.append(value[1:] if value.startswith(" ") else value)
    if buffer:
        yield "\n".join(buffer)


class SseSubscription:
    """One live connection to the slot feed, read on a daemon thread."""

    def __init__(
        self,
        *,
        url: str,
        params: dict[str, str],
        key: SlotKey,
        on_message: MessageHandler,
        on_error: ErrorHandler,
        retry_attempts: int,
        timeout_seconds: float,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.key = key
        self._url = url
        self._params = params
        self._on_message = on_message
        self._on_error = on_error
        self._retry_attempts = retry_attempts
        self._timeout = httpx.Timeout(timeout_seconds, read=None)
        self._transport = transport

        self._stopped = threading.Event()
        self._response: httpx.Response | None = None
        self._thread = threading.Thread(target=self._run, name=f"slot-feed-{key.package_id}-{key.date}", daemon=True)

    @property
    def closed(self) -> bool:
        return self._stopped.is_set()

    def start(self) -> SseSubscription:
        self._thread.start()
        return self

    def close(self) -> None:
        # No join: the reader may be waiting on the stream's lock while we hold it.
        self._stopped.set()
        response = self._response
        if response is not None:
            try:
                response.close()
            except Exception:
                logger.debug("Failed to close feed response", exc_info=True)

    def _listen(self) -> None:
        if self._stopped.is_set():
            return

        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            with client.stream("GET", self._url, params=self._params, headers={"Accept": "text/event-stream"}) as response:
                self._response = response
                response.raise_for_status()

                for data in iter_sse_data(response.iter_lines()):
                    if self._stopped.is_set():
                        return
                    try:
                        payload = json.loads(data)
                    except ValueError:
                        logger.warning("Ignoring unparsable feed event: %r", data[:200])
                        continue
                    self._on_message(self.key, payload)

        if not self._stopped.is_set():
            raise FeedError("Slot feed stream ended")

    def _run(self) -> None:
        decorated = retry(
            stop=stop_after_attempt(self._retry_attempts) | stop_when_event_set(self._stopped),
            wait=wait_exponential(multiplier=1, min=1, max=8),
            before=_log_before_attempt,
            after=_log_after_attempt,
            before_sleep=_log_before_sleep,
            reraise=True,
        )(self._listen)

        try:
            decorated()
        except Exception as e:
            if self._stopped.is_set():
                return
            self._on_error(self.key, e)


class SseSlotFeed:
    """Live slot feed over server-sent events.

    The token goes into the query string: event streams cannot carry custom headers
    on the browser side, and the backend expects it there.
    """

    def __init__(
        self,
        *,
        base_url: str,
        token: str | None = None,
        retry_attempts: int = 3,
        timeout_seconds: float = 20.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._retry_attempts = retry_attempts
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> SseSlotFeed:
        return cls(
            base_url=settings.api_base_url,
            token=settings.api_token,
            retry_attempts=settings.feed_retry_attempts,
            timeout_seconds=settings.http_timeout_seconds,
        )

    def build_url(self, key: SlotKey) -> str:
        return f"{self._base_url}/package-time-slots/available-slots/{key.package_id}/{key.date.isoformat()}"

    def subscribe(self, key: SlotKey, on_message: MessageHandler, on_error: ErrorHandler) -> SseSubscription:
        params = {"token": self._token} if self._token else {}
        return SseSubscription(
            url=self.build_url(key),
            params=params,
            key=key,
            on_message=on_message,
            on_error=on_error,
            retry_attempts=self._retry_attempts,
            timeout_seconds=self._timeout_seconds,
            transport=self._transport,
        ).start()
