# Overview: Mounted partner views (list state + realtime subscription + alert queue) and their registry.

"""
A ViewSession is the server-side half of one open partner screen
(table orders, pickup orders, store orders, bookings, payments).

LIFECYCLE:
- mount(): first page is fetched, its ids prime the pipeline's seen set, the
  change feed subscription opens, polling fallback starts.
- While mounted: INSERTs for unseen rows queue one alert; every change
  schedules a debounced refetch; transitions go through the controller with
  this session as the ViewContext.
- close(): subscription released, timers cancelled. A closed session is
  removed from the registry and never touched again.
- A view only ever scopes to locations its partner owns; asking for another
  location is a ValidationError before anything is fetched or subscribed.
- Idle expiry: a view not read for idle_timeout_seconds closes itself on its
  next background refetch and is swept from the registry on the next open/get.

Background refetches run on timer threads and push their own app context.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections import OrderedDict
from typing import Optional

from ..rowstore import RowStoreClient, Subscription
from ..time_utils import to_utc_z, utcnow
from ..validation import ValidationError
from .notification_service import NotificationPipeline, Scheduler, SoundAlert
from .order_controller import (
    ListQuery,
    OrderLifecycleController,
    Page,
    PersistenceFailure,
    TransitionOutcome,
    ViewContext,
)

logger = logging.getLogger(__name__)

UNCHANGED = object()


class ViewNotFound(LookupError):
    """Unknown view id, or a view owned by another partner."""


class ViewSession(ViewContext):
    def __init__(
        self,
        app,
        controller: OrderLifecycleController,
        *,
        owner_user_id: str,
        query: Optional[ListQuery] = None,
        scheduler: Optional[Scheduler] = None,
        debounce_seconds: float = 0.15,
        poll_interval_seconds: Optional[float] = None,
        sound_url: Optional[str] = None,
        idle_timeout_seconds: Optional[float] = None,
        clock=time.monotonic,
    ) -> None:
        super().__init__()
        self.id = uuid.uuid4().hex
        self.app = app
        self.controller = controller
        self.owner_user_id = owner_user_id
        self.query = query or ListQuery()
        self.page = self.query.page
        self.created_at = utcnow()
        self.last_refetched_at = None
        self.idle_timeout_seconds = idle_timeout_seconds
        self._clock = clock
        self.last_accessed = clock()

        self.alert = SoundAlert(sound_url)
        self.pipeline = NotificationPipeline(
            self._refetch_rows,
            alert=self._alert_new_row,
            scheduler=scheduler,
            debounce_seconds=debounce_seconds,
            poll_interval_seconds=poll_interval_seconds,
        )
        self.subscription: Optional[Subscription] = None

    @property
    def flow(self):
        return self.controller.flow

    def _alert_new_row(self, row: dict) -> None:
        self.alert.play(row)
        label = row.get(self.flow.label_field) or row.get("id")
        self.alert.toast("New order received", f"{self.flow.label}: {label}")

    # -- mount / unmount ---------------------------------------------------

    def mount(self) -> "ViewSession":
        self._check_location(self.query.location_id)
        page = self.controller.list_rows(self.query)
        self._apply_page(page)
        self.pipeline.prime(page.rows)
        self._subscribe()
        self.pipeline.start_polling()
        logger.info(
            "Mounted %s view %s for partner %s (%d rows)",
            self.flow.name, self.id, self.owner_user_id, page.total,
        )
        return self

    def _check_location(self, location_id) -> None:
        if location_id is not None and not self.controller.owns_location(location_id):
            raise ValidationError(f"location_id {location_id} is not one of your locations")

    def _subscribe(self) -> None:
        if self.subscription is not None:
            self.subscription.unsubscribe()
        location_field = self.flow.location_field
        client: RowStoreClient = self.controller.client
        if self.query.location_id is not None:
            self.subscription = client.subscribe(
                self.flow.table,
                self.pipeline.on_change_event,
                eq={location_field: self.query.location_id},
            )
        else:
            self.subscription = client.subscribe(
                self.flow.table,
                self.pipeline.on_change_event,
                in_={location_field: list(self.controller.location_ids)},
            )

    def close(self) -> None:
        if self.subscription is not None:
            self.subscription.unsubscribe()
            self.subscription = None
        self.pipeline.close()
        logger.info("Closed %s view %s", self.flow.name, self.id)

    @property
    def closed(self) -> bool:
        return self.pipeline.closed

    def touch(self) -> None:
        self.last_accessed = self._clock()

    def idle_expired(self) -> bool:
        if not self.idle_timeout_seconds or self.idle_timeout_seconds <= 0:
            return False
        return self._clock() - self.last_accessed > self.idle_timeout_seconds

    # -- list state --------------------------------------------------------

    def _apply_page(self, page: Page) -> None:
        self.replace_rows(page.rows, page.total)
        self.page = page.page
        self.last_refetched_at = utcnow()

    def _refetch_rows(self) -> list[dict]:
        if self.idle_expired():
            logger.info("Closing idle %s view %s for partner %s", self.flow.name, self.id, self.owner_user_id)
            self.close()
            return list(self.rows)
        with self.app.app_context():
            page = self.controller.list_rows(self.query)
        self._apply_page(page)
        return page.rows

    def refetch(self) -> None:
        """Immediate refetch from the request thread."""
        self.pipeline.refetch_now()

    def schedule_refetch(self) -> None:
        self.pipeline.schedule_refetch()

    def update_filters(
        self,
        *,
        status: Optional[str] = None,
        search: Optional[str] = None,
        page: Optional[int] = None,
        location_id=UNCHANGED,
    ) -> None:
        """
        Replace the list query and refetch right away.

        Omitted arguments keep their current value. location_id=None means
        "all locations"; a changed location re-opens the change feed
        subscription with the new scope.
        """
        location_changed = location_id is not UNCHANGED and location_id != self.query.location_id
        if location_changed:
            self._check_location(location_id)
        new_query = ListQuery(
            status=self.query.status if status is None else status,
            search=self.query.search if search is None else search,
            page=self.query.page if page is None else page,
            location_id=location_id if location_changed else self.query.location_id,
        )
        result = self.controller.list_rows(new_query)
        self.query = new_query
        self._apply_page(result)
        self.pipeline.prime(result.rows)
        if location_changed:
            self._subscribe()

    # -- actions -----------------------------------------------------------

    def transition(self, row_id, status: str, *, cancel_reason: Optional[str] = None) -> TransitionOutcome:
        try:
            outcome = self.controller.transition(row_id, status, cancel_reason=cancel_reason, context=self)
        except PersistenceFailure as exc:
            self.alert.toast("Update failed", exc.message, kind="error")
            raise

        label = outcome.row.get(self.flow.label_field) or outcome.row.get("id")
        self.alert.toast(f"{self.flow.label} updated", f"{label} is now {outcome.decision.to_status}")
        return outcome

    def unlock_audio(self) -> None:
        self.alert.unlock()

    def snapshot(self, *, drain: bool = True) -> dict:
        """
        Serializable view state.

        Queued sound/toast instructions are handed over once: drain=True
        empties the queue.
        """
        with self._state_lock:
            rows = list(self.rows)
            total = self.total
            saving = sorted(self.saving_ids)
        page_size = self.controller.page_size
        return {
            "id": self.id,
            "flow": self.flow.name,
            "query": self.query.to_dict(),
            "rows": rows,
            "total": total,
            "page": self.page,
            "page_size": page_size,
            "pages": (total + page_size - 1) // page_size,
            "saving_ids": saving,
            "audio_unlocked": self.alert.unlocked,
            "alerts_played": self.pipeline.alerts_played,
            "refetch_count": self.pipeline.refetch_count,
            "last_refetched_at": to_utc_z(self.last_refetched_at),
            "notifications": self.alert.drain() if drain else [],
            "closed": self.closed,
        }


class ViewRegistry:
    """
    Open views for this process, keyed by view id.

    Each partner may hold at most max_views_per_partner views; opening one more
    closes that partner's oldest view. Views idle past VIEW_IDLE_TIMEOUT_SECONDS
    are closed and dropped on the next open/get (and close themselves on their
    next background refetch).
    """

    def __init__(
        self,
        *,
        scheduler: Optional[Scheduler] = None,
        max_views_per_partner: int = 20,
        clock=time.monotonic,
    ) -> None:
        self.scheduler = scheduler
        self.max_views_per_partner = max_views_per_partner
        self.clock = clock
        self._views: "OrderedDict[str, ViewSession]" = OrderedDict()
        self._lock = threading.Lock()

    def open(
        self,
        app,
        controller: OrderLifecycleController,
        *,
        owner_user_id: str,
        query: Optional[ListQuery] = None,
    ) -> ViewSession:
        session = ViewSession(
            app,
            controller,
            owner_user_id=owner_user_id,
            query=query,
            scheduler=self.scheduler,
            debounce_seconds=app.config.get("REFETCH_DEBOUNCE_SECONDS", 0.15),
            poll_interval_seconds=app.config.get("POLL_INTERVAL_SECONDS"),
            sound_url=app.config.get("ALERT_SOUND_URL"),
            idle_timeout_seconds=app.config.get("VIEW_IDLE_TIMEOUT_SECONDS"),
            clock=self.clock,
        )
        session.mount()

        evicted = []
        with self._lock:
            self._views[session.id] = session
            owned = [v for v in self._views.values() if v.owner_user_id == owner_user_id]
            while len(owned) > self.max_views_per_partner:
                oldest = owned.pop(0)
                self._views.pop(oldest.id, None)
                evicted.append(oldest)
        for view in evicted:
            view.close()
        return session

    def get(self, view_id: str, owner_user_id: str) -> ViewSession:
        with self._lock:
            view = self._views.get(view_id)
        if view is None or view.owner_user_id != owner_user_id:
            raise ViewNotFound(f"View {view_id} not found")
        if view.closed or view.idle_expired():
            self._sweep()
            raise ViewNotFound(f"View {view_id} not found")
        view.touch()
        return view

    def _sweep(self) -> None:
        with self._lock:
            stale = [v for v in self._views.values() if v.closed or v.idle_expired()]
            for view in stale:
                self._views.pop(view.id, None)
        for view in stale:
            view.close()

    def close(self, view_id: str, owner_user_id: str) -> None:
        view = self.get(view_id, owner_user_id)
        with self._lock:
            self._views.pop(view_id, None)
        view.close()

    def close_all(self) -> None:
        with self._lock:
            views = list(self._views.values())
            self._views.clear()
        for view in views:
            view.close()

    def __len__(self) -> int:
        with self._lock:
            return len(self._views)
