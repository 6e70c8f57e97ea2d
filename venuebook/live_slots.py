"""Live slot stream: one feed subscription per (package, date) at a time.

Every push replaces the candidate slots and re-runs the slot filter. Pushes
tagged with a key other than the current one, or delivered after the
subscription was closed, are dropped.
"""

from __future__ import annotations

import datetime as dt
import logging
import threading
from typing import Any, Callable, Iterable, Mapping, Protocol

from venuebook.domain import ExceptionInstance, SlotKey, SlotUpdate, TimeSlot
from venuebook.records import parse_slots_payload
from venuebook.slot_filter import filter_slots

logger = logging.getLogger(__name__)

MessageHandler = Callable[[SlotKey, Mapping[str, Any]], None]
ErrorHandler = Callable[[SlotKey, Exception], None]
UpdateCallback = Callable[[SlotUpdate], None]


class Subscription(Protocol):
    def close(self) -> None: ...


class SlotFeed(Protocol):
    """Push transport keyed by (package, date). Messages look like {"available_slots": [...]}."""

    def subscribe(self, key: SlotKey, on_message: MessageHandler, on_error: ErrorHandler) -> Subscription: ...


class LiveSlotStream:
    def __init__(
        self,
        feed: SlotFeed,
        *,
        exceptions: Iterable[ExceptionInstance] = (),
        min_notice_hours: float = 0.0,
        clock: Callable[[], dt.datetime] = dt.datetime.now,
    ) -> None:
        self._feed = feed
        self._exceptions = tuple(exceptions)
        self._min_notice_hours = min_notice_hours
        self._clock = clock

        # Reentrant: a listener may re-key the stream from inside its callback.
        self._lock = threading.RLock()
        self._callbacks: list[UpdateCallback] = []

        self._key: SlotKey | None = None
        self._subscription: Subscription | None = None
        self._generation = 0
        self._candidates: tuple[TimeSlot, ...] | None = None
        self._slots: tuple[TimeSlot, ...] | None = None

    @property
    def key(self) -> SlotKey | None:
        return self._key

    @property
    def candidates(self) -> tuple[TimeSlot, ...] | None:
        return self._candidates

    @property
    def slots(self) -> tuple[TimeSlot, ...] | None:
        """Filtered slots for the current key; None until a push arrives or after a feed failure."""
        return self._slots

    def on_update(self, callback: UpdateCallback) -> None:
        with self._lock:
            self._callbacks.append(callback)

    def connect(
        self,
        key: SlotKey,
        *,
        exceptions: Iterable[ExceptionInstance] | None = None,
        min_notice_hours: float | None = None,
    ) -> None:
        """Switch to `key`. The previous subscription is closed before the new one opens."""
        with self._lock:
            self._close_locked()

            if exceptions is not None:
                self._exceptions = tuple(exceptions)
            if min_notice_hours is not None:
                self._min_notice_hours = min_notice_hours

            self._generation += 1
            generation = self._generation
            self._key = key

            logger.info("Opening slot feed for package=%s date=%s", key.package_id, key.date.isoformat())
            self._subscription = self._feed.subscribe(
                key,
                lambda k, payload: self._handle_message(generation, k, payload),
                lambda k, exc: self._handle_error(generation, k, exc),
            )

    def close(self) -> None:
        with self._lock:
            self._close_locked()

    def refilter(self) -> None:
        """Re-apply the filter to the last candidates, e.g. once the lead time has moved on."""
        with self._lock:
            if self._key is None or self._candidates is None:
                return
            self._apply_locked(self._key, self._candidates)

    def _close_locked(self) -> None:
        subscription = self._subscription
        key = self._key

        # Invalidate first so nothing from the old subscription is applied, even mid-close.
        self._generation += 1
        self._subscription = None
        self._key = None
        self._candidates = None
        self._slots = None

        if subscription is None:
            return

        logger.info("Closing slot feed for package=%s date=%s", key.package_id, key.date.isoformat())
        try:
            subscription.close()
        except Exception as e:
            logger.warning("Failed to close slot feed cleanly (%s: %s)", type(e).__name__, e)

    def _is_current(self, generation: int, key: SlotKey) -> bool:
        return generation == self._generation and key == self._key

    def _handle_message(self, generation: int, key: SlotKey, payload: Mapping[str, Any]) -> None:
        with self._lock:
            if not self._is_current(generation, key):
                logger.debug("Ignoring stale push for package=%s date=%s", key.package_id, key.date.isoformat())
                return

            if not isinstance(payload, Mapping):
                logger.warning("Ignoring malformed slot push: %r", payload)
                return

            self._apply_locked(key, tuple(parse_slots_payload(payload)))

    def _handle_error(self, generation: int, key: SlotKey, exc: Exception) -> None:
        with self._lock:
            if not self._is_current(generation, key):
                return

            logger.warning(
                "Slot feed failed for package=%s date=%s (%s: %s)",
                key.package_id,
                key.date.isoformat(),
                type(exc).__name__,
                exc,
            )
            self._candidates = None
            self._slots = None
            self._notify_locked(SlotUpdate(key=key, slots=None))

    def _apply_locked(self, key: SlotKey, candidates: tuple[TimeSlot, ...]) -> None:
        self._candidates = candidates
        self._slots = tuple(
            filter_slots(
                candidates,
                key.date,
                self._exceptions,
                key.package_id,
                self._min_notice_hours,
                self._clock(),
            )
        )
        logger.debug("Slots for %s: candidates=%d bookable=%d", key, len(candidates), len(self._slots))
        self._notify_locked(SlotUpdate(key=key, slots=self._slots))

    def _notify_locked(self, update: SlotUpdate) -> None:
        generation = self._generation
        for callback in list(self._callbacks):
            # A callback may have re-keyed or closed the stream.
            if generation != self._generation:
                return
            try:
                callback(update)
            except Exception:
                logger.warning("Slot update listener failed", exc_info=True)
