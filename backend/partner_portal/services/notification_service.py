# Overview: Realtime notification pipeline for mounted partner views (dedup, alert, debounced refetch).

"""
Notification Pipeline

Turns the row store's change feed into "refresh the list" and "a new order
arrived" signals for one mounted partner view.

INVARIANTS:
- seen_ids only grows during a mount. It is seeded from the initial fetch and
  unioned with every refetch result; stale ids of deleted rows are harmless.
- The alert fires at most once per new row id (duplicate INSERT deliveries are
  absorbed by seen_ids). UPDATE and DELETE never alert.
- Any burst of events inside the debounce window collapses into ONE refetch.
- The refetch re-reads the row store; event payloads are never trusted for
  state, so out-of-order or duplicated delivery still converges.
- Alert playback and background refetch failures are logged, never raised.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Any, Callable, Iterable, Optional, Protocol

from ..rowstore import EVENT_INSERT, ChangeEvent

logger = logging.getLogger(__name__)


class NotificationPlaybackFailure(Exception):
    """Alert could not be played (audio locked, asset missing). Always swallowed."""


# ---------------------------------------------------------------------------
# Timers
# ---------------------------------------------------------------------------

class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    """Runs callbacks on daemon threading.Timer threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(max(0.0, delay), callback)
        timer.daemon = True
        timer.start()
        return timer


# ---------------------------------------------------------------------------
# Audible alert
# ---------------------------------------------------------------------------

class SoundAlert:
    """
    New-order sound for one partner's browser.

    Browsers refuse autoplay until the user has interacted with the page, so
    playback is refused until unlock() is called from a user gesture. Played
    alerts are queued as instructions the browser drains with its snapshot.
    """

    def __init__(self, sound_url: Optional[str], *, max_queued: int = 50) -> None:
        self.sound_url = sound_url
        self.unlocked = False
        self._queue: deque = deque(maxlen=max_queued)
        self._lock = threading.Lock()

    def unlock(self) -> None:
        self.unlocked = True

    def play(self, row: dict) -> None:
        if not self.sound_url:
            raise NotificationPlaybackFailure("no alert sound configured")
        if not self.unlocked:
            raise NotificationPlaybackFailure("audio not unlocked by a user gesture yet")
        with self._lock:
            self._queue.append({"type": "sound", "url": self.sound_url, "row_id": str(row.get("id"))})

    def toast(self, title: str, description: str, *, kind: str = "success") -> None:
        with self._lock:
            self._queue.append({"type": "toast", "kind": kind, "title": title, "description": description})

    def drain(self) -> list[dict]:
        with self._lock:
            items = list(self._queue)
            self._queue.clear()
        return items


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class NotificationPipeline:
    """
    Per-mount dedup + alert + debounced refetch.

    Args:
        refetch: Re-reads the view's current list; returns the rows
        alert: Called with the new row; may raise (swallowed)
        scheduler: Timer source (ThreadingScheduler by default)
        debounce_seconds: Quiet period before a refetch fires
        poll_interval_seconds: Fallback refetch cadence; 0/None disables
    """

    def __init__(
        self,
        refetch: Callable[[], Iterable[dict]],
        *,
        alert: Optional[Callable[[dict], Any]] = None,
        scheduler: Optional[Scheduler] = None,
        debounce_seconds: float = 0.15,
        poll_interval_seconds: Optional[float] = None,
    ) -> None:
        self._refetch = refetch
        self._alert = alert
        self._scheduler = scheduler or ThreadingScheduler()
        self.debounce_seconds = debounce_seconds
        self.poll_interval_seconds = poll_interval_seconds or 0

        self.seen_ids: set[str] = set()
        self.alerts_played = 0
        self.refetch_count = 0

        self._lock = threading.Lock()
        self._debounce_handle: Optional[TimerHandle] = None
        self._poll_handle: Optional[TimerHandle] = None
        self._closed = False

    # -- seen set ----------------------------------------------------------

    def prime(self, rows: Iterable[dict]) -> None:
        """Seed from the initial list fetch; existing rows never alert."""
        with self._lock:
            self.seen_ids.update(str(r["id"]) for r in rows if r.get("id") is not None)

    # -- events ------------------------------------------------------------

    def on_change_event(self, change: ChangeEvent) -> None:
        if self._closed:
            return
        row = change.row or {}
        row_id = row.get("id")

        if change.event_type == EVENT_INSERT and row_id is not None:
            key = str(row_id)
            with self._lock:
                is_new = key not in self.seen_ids
                if is_new:
                    self.seen_ids.add(key)
            if is_new:
                self._play_alert(row)

        self.schedule_refetch()

    def _play_alert(self, row: dict) -> None:
        if self._alert is None:
            return
        try:
            self._alert(row)
            self.alerts_played += 1
        except NotificationPlaybackFailure as exc:
            logger.debug("Alert for row %s not played: %s", row.get("id"), exc)
        except Exception:
            logger.exception("Alert playback failed for row %s", row.get("id"))

    # -- refetch -----------------------------------------------------------

    def schedule_refetch(self) -> None:
        """(Re)arm the debounce timer; the last call inside the window wins."""
        with self._lock:
            if self._closed:
                return
            if self._debounce_handle is not None:
                self._debounce_handle.cancel()
            self._debounce_handle = self._scheduler.call_later(self.debounce_seconds, self._fire)

    def _fire(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._debounce_handle = None
        self.refetch_now()

    def refetch_now(self) -> None:
        """Immediate refetch; errors are logged and the previous list is kept."""
        try:
            rows = list(self._refetch() or [])
        except Exception:
            logger.exception("Background refetch failed")
            return
        self.refetch_count += 1
        self.prime(rows)

    # -- polling fallback --------------------------------------------------

    def start_polling(self) -> None:
        if self.poll_interval_seconds and self.poll_interval_seconds > 0:
            with self._lock:
                if self._closed or self._poll_handle is not None:
                    return
                self._poll_handle = self._scheduler.call_later(self.poll_interval_seconds, self._poll_tick)

    def _poll_tick(self) -> None:
        with self._lock:
            self._poll_handle = None
            if self._closed:
                return
        self.schedule_refetch()
        self.start_polling()

    # -- teardown ----------------------------------------------------------

    def close(self) -> None:
        with self._lock:
            self._closed = True
            for handle in (self._debounce_handle, self._poll_handle):
                if handle is not None:
                    handle.cancel()
            self._debounce_handle = None
            self._poll_handle = None

    @property
    def closed(self) -> bool:
        return self._closed
