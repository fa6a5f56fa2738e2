# Overview: In-process realtime change feed (postgres_changes equivalent).

"""
Change feed invariants

- Events are published only after the writing transaction commits.
- A rolled-back transaction publishes nothing.
- Delivery is synchronous on the committing thread; subscribers must be quick
  (the notification pipeline only re-arms a timer).
- A failing subscriber is logged and skipped; it never fails the writer or
  starves other subscribers.
- No ordering or exactly-once promise beyond that: consumers treat events as
  "something changed, refetch".
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import Any, Sequence

from flask import current_app, has_app_context
from sqlalchemy import event, inspect as sa_inspect
from sqlalchemy.orm import Session

from .base import (
    EVENT_DELETE,
    EVENT_INSERT,
    EVENT_UPDATE,
    ChangeCallback,
    ChangeEvent,
    Subscription,
)

logger = logging.getLogger(__name__)


def _matches(row: dict[str, Any], eq: dict[str, Any] | None, in_: dict[str, Sequence[Any]] | None) -> bool:
    for column, value in (eq or {}).items():
        if str(row.get(column)) != str(value):
            return False
    for column, values in (in_ or {}).items():
        if str(row.get(column)) not in {str(v) for v in values}:
            return False
    return True


class ChangeFeed:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._subscribers: dict[str, dict[str, tuple[ChangeCallback, dict | None, dict | None]]] = {}

    def subscribe(
        self,
        table: str,
        callback: ChangeCallback,
        *,
        eq: dict[str, Any] | None = None,
        in_: dict[str, Sequence[Any]] | None = None,
    ) -> Subscription:
        key = uuid.uuid4().hex
        with self._lock:
            self._subscribers.setdefault(table, {})[key] = (callback, eq, in_)

        def _remove() -> None:
            with self._lock:
                self._subscribers.get(table, {}).pop(key, None)

        return Subscription(_remove)

    def subscriber_count(self, table: str) -> int:
        with self._lock:
            return len(self._subscribers.get(table, {}))

    def publish(self, change: ChangeEvent) -> None:
        with self._lock:
            targets = list(self._subscribers.get(change.table, {}).values())

        for callback, eq, in_ in targets:
            if not _matches(change.row, eq, in_):
                continue
            try:
                callback(change)
            except Exception:
                logger.exception("Change feed subscriber failed for %s %s", change.table, change.event_type)


# ---------------------------------------------------------------------------
# ORM bridge: writes made through models (customer surfaces, CLI seeding)
# reach the feed the same way row store writes do.
# ---------------------------------------------------------------------------

_PENDING_KEY = "partner_portal.pending_changes"


def _loaded_columns(obj) -> dict[str, Any]:
    state = sa_inspect(obj)
    loaded = state.dict
    return {attr.key: loaded[attr.key] for attr in state.mapper.column_attrs if attr.key in loaded}


def _collect_changes(session: Session, flush_context) -> None:
    pending = session.info.setdefault(_PENDING_KEY, [])
    for obj in session.new:
        pending.append(ChangeEvent(EVENT_INSERT, obj.__table__.name, _loaded_columns(obj)))
    for obj in session.dirty:
        if session.is_modified(obj, include_collections=False):
            pending.append(ChangeEvent(EVENT_UPDATE, obj.__table__.name, _loaded_columns(obj)))
    for obj in session.deleted:
        pending.append(ChangeEvent(EVENT_DELETE, obj.__table__.name, _loaded_columns(obj)))


def _publish_pending(session: Session) -> None:
    pending = session.info.pop(_PENDING_KEY, [])
    if not pending or not has_app_context():
        return
    feed = current_app.extensions.get("change_feed")
    if feed is None:
        return
    for change in pending:
        feed.publish(change)


def _discard_pending(session: Session, previous_transaction) -> None:
    session.info.pop(_PENDING_KEY, None)


def install_orm_hooks(session_cls=Session) -> None:
    """Idempotent: safe to call from every create_app()."""
    if not event.contains(session_cls, "after_flush", _collect_changes):
        event.listen(session_cls, "after_flush", _collect_changes)
        event.listen(session_cls, "after_commit", _publish_pending)
        event.listen(session_cls, "after_soft_rollback", _discard_pending)
