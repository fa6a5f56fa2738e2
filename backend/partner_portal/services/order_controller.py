# Overview: Service-layer view controller composing status machine, row store and inventory side effects.

"""
Order/Booking Lifecycle Controller

One controller instance serves one partner acting on one flow. It owns no
long-lived state: list state, the in-flight ("saving") markers and the
notification pipeline belong to a ViewContext that the caller passes in
(see view_service.ViewSession), so two mounted views never interfere.

ACTION SEQUENCE (transition):
1. Refuse if the same row is already being saved in this view.
2. Load the row (scoped to the partner's locations) and ask the status machine.
3. Apply the patch optimistically to the view's local rows.
4. Persist. On failure revert the local patch and raise PersistenceFailure.
5. If the edge decrements inventory, run the applier AFTER the status commit;
   its failures are logged, never raised.
6. Ask the view to refetch (debounced) so it converges on persisted state.

Concurrency: last write wins across partner sessions; no version check.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from ..rowstore import Filters, OrderBy, RowStoreClient, RowStoreError
from ..time_utils import utcnow
from ..validation import ConflictError, ValidationError, normalize_order_row
from .inventory_service import InventoryResult, apply_order_decrement
from .location_service import partner_location_ids
from .status_machine import (
    FlowDefinition,
    TransitionDecision,
    allowed_transitions,
    build_transition_patch,
    decide,
    is_unread,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10


class RowNotFound(LookupError):
    """Row does not exist or belongs to another partner's location."""


class ActionInProgress(ConflictError):
    """A request for this row is already in flight in this view."""


class PersistenceFailure(Exception):
    """The backend rejected or failed a user-initiated write."""

    def __init__(self, message: str, row_id=None) -> None:
        super().__init__(message)
        self.message = message
        self.row_id = row_id


@dataclass
class ListQuery:
    status: Optional[str] = None
    search: Optional[str] = None
    page: int = 1
    location_id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "q": self.search,
            "page": self.page,
            "location_id": self.location_id,
        }


@dataclass
class Page:
    rows: list[dict]
    total: int
    page: int
    page_size: int

    @property
    def pages(self) -> int:
        if self.page_size <= 0:
            return 0
        return (self.total + self.page_size - 1) // self.page_size

    def to_dict(self) -> dict:
        return {
            "rows": self.rows,
            "total": self.total,
            "page": self.page,
            "page_size": self.page_size,
            "pages": self.pages,
        }


@dataclass
class TransitionOutcome:
    row: dict
    decision: TransitionDecision
    patch: dict
    inventory: Optional[InventoryResult] = None


class ViewContext:
    """
    Per-mount UI state: local rows, in-flight markers.

    Lives exactly as long as one mounted view; never shared, never persisted.
    """

    def __init__(self) -> None:
        self.rows: list[dict] = []
        self.total = 0
        self.saving_ids: set[str] = set()
        self._state_lock = threading.RLock()

    def begin_saving(self, row_id: str) -> None:
        with self._state_lock:
            if row_id in self.saving_ids:
                raise ActionInProgress(f"Row {row_id} is already being saved")
            self.saving_ids.add(row_id)

    def end_saving(self, row_id: str) -> None:
        with self._state_lock:
            self.saving_ids.discard(row_id)

    def is_saving(self, row_id: str) -> bool:
        with self._state_lock:
            return row_id in self.saving_ids

    def replace_rows(self, rows: list[dict], total: int) -> None:
        with self._state_lock:
            self.rows = rows
            self.total = total

    def patch_local(self, row_id: str, patch: dict, present: Callable[[dict], dict]) -> Optional[dict]:
        """Apply patch to the local copy; returns the previous copy for revert."""
        with self._state_lock:
            for index, row in enumerate(self.rows):
                if str(row.get("id")) == row_id:
                    self.rows[index] = present({**row, **patch})
                    return row
        return None

    def restore_local(self, row_id: str, previous: Optional[dict]) -> None:
        if previous is None:
            return
        with self._state_lock:
            for index, row in enumerate(self.rows):
                if str(row.get("id")) == row_id:
                    self.rows[index] = previous
                    return

    def schedule_refetch(self) -> None:
        """Overridden by mounted views; plain contexts have nothing to refresh."""


class OrderLifecycleController:
    def __init__(
        self,
        client: RowStoreClient,
        flow: FlowDefinition,
        location_ids: Sequence,
        *,
        actor_user_id: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        low_stock_threshold: int = 5,
        inventory_applier: Callable[..., InventoryResult] = apply_order_decrement,
        clock: Callable = utcnow,
    ) -> None:
        self.client = client
        self.flow = flow
        self.location_ids = list(location_ids)
        self.actor_user_id = actor_user_id
        self.page_size = max(1, int(page_size))
        self.low_stock_threshold = low_stock_threshold
        self._inventory_applier = inventory_applier
        self._clock = clock

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------

    def owns_location(self, location_id) -> bool:
        return str(location_id) in {str(i) for i in self.location_ids}

    def present(self, row: dict) -> dict:
        out = normalize_order_row(row)
        current = out.get(self.flow.status_field)
        out["allowed_actions"] = allowed_transitions(self.flow, current)
        out["unread"] = is_unread(self.flow, out)
        return out

    def _status_filter(self, filters: Filters, status: Optional[str]) -> None:
        status = (status or "").strip()
        if not status or status.lower() == "all":
            return
        if status.lower() == "open":
            filters.in_[self.flow.status_field] = list(self.flow.open_states)
            return
        if status not in self.flow.states:
            raise ValidationError(
                f"Invalid status filter '{status}'. Must be one of: all, open, {', '.join(self.flow.states)}"
            )
        filters.eq[self.flow.status_field] = status

    def list_rows(self, query: Optional[ListQuery] = None) -> Page:
        """
        One page of the flow's rows for the partner's locations.

        Raises:
            ValidationError: bad status filter or page
            RowStoreError: backend read failed
        """
        query = query or ListQuery()
        page = int(query.page or 1)
        if page < 1:
            raise ValidationError("page must be >= 1")

        filters = Filters()
        if query.location_id is not None:
            if not self.owns_location(query.location_id):
                return Page([], 0, page, self.page_size)
            filters.eq[self.flow.location_field] = query.location_id
        else:
            if not self.location_ids:
                return Page([], 0, page, self.page_size)
            filters.in_[self.flow.location_field] = list(self.location_ids)

        self._status_filter(filters, query.status)

        if query.search and query.search.strip():
            filters.ilike_any = (self.flow.search_fields, query.search.strip())

        start = (page - 1) * self.page_size
        filters.range = (start, start + self.page_size - 1)

        result = self.client.select(
            self.flow.table,
            filters=filters,
            order_by=[OrderBy(column) for column in self.flow.order_by],
            count=True,
        )
        rows = [self.present(r) for r in result.rows]
        return Page(rows, int(result.count or 0), page, self.page_size)

    def get_row(self, row_id) -> dict:
        """
        Raises:
            RowNotFound: missing, or outside the partner's locations
        """
        row = self.client.select_one(self.flow.table, {"id": str(row_id)})
        if row is None or not self.owns_location(row.get(self.flow.location_field)):
            raise RowNotFound(f"{self.flow.label}: row {row_id} not found")
        return row

    def summary(self) -> dict:
        """Per-status counts and the unread badge for the partner's locations."""
        counts = {state: 0 for state in self.flow.states}
        unread = 0
        total = 0
        if self.location_ids:
            rows = self.client.select(
                self.flow.table,
                columns=("id", self.flow.status_field, self.flow.read_field),
                filters=Filters(in_={self.flow.location_field: list(self.location_ids)}),
            ).rows
            for row in rows:
                status = str(row.get(self.flow.status_field))
                counts[status] = counts.get(status, 0) + 1
                if is_unread(self.flow, row):
                    unread += 1
            total = len(rows)

        return {
            "flow": self.flow.name,
            "total": total,
            "counts": counts,
            "open": sum(counts.get(s, 0) for s in self.flow.open_states),
            "unread": unread,
        }

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------

    def transition(
        self,
        row_id,
        requested: str,
        *,
        cancel_reason: Optional[str] = None,
        context: Optional[ViewContext] = None,
    ) -> TransitionOutcome:
        """
        Apply a partner-requested status change.

        Raises:
            ActionInProgress: same row already saving in this view
            RowNotFound: row missing or not the partner's
            InvalidTransition: edge not in the flow graph
            PersistenceFailure: backend rejected the write (local patch reverted)
        """
        key = str(row_id)
        if context is not None:
            context.begin_saving(key)

        try:
            row = self.get_row(row_id)
            decision = decide(self.flow, row.get(self.flow.status_field), requested)
            patch = build_transition_patch(decision, row, self._clock(), cancel_reason=cancel_reason)

            previous = context.patch_local(key, patch, self.present) if context is not None else None

            try:
                updated = self.client.update(self.flow.table, patch, {"id": row["id"]})
            except RowStoreError as exc:
                if context is not None:
                    context.restore_local(key, previous)
                raise PersistenceFailure(f"Failed to update {self.flow.label.lower()} {key}: {exc.message}", row_id=key) from exc

            if not updated:
                if context is not None:
                    context.restore_local(key, previous)
                raise PersistenceFailure(f"Failed to update {self.flow.label.lower()} {key}: no row was written", row_id=key)

            saved = updated[0]
            inventory = None
            if decision.requires_inventory_decrement:
                inventory = self._apply_inventory(saved)
        finally:
            if context is not None:
                context.end_saving(key)

        if context is not None:
            context.schedule_refetch()

        return TransitionOutcome(row=self.present(saved), decision=decision, patch=patch, inventory=inventory)

    def _apply_inventory(self, order: dict) -> Optional[InventoryResult]:
        label = order.get(self.flow.label_field) or order.get("id")
        try:
            return self._inventory_applier(
                self.client,
                order,
                store_id=order.get(self.flow.location_field),
                actor_user_id=self.actor_user_id,
                reason=f"Order collected: {label}",
                default_low_stock_threshold=self.low_stock_threshold,
            )
        except Exception:
            logger.exception("Inventory side effect failed for order %s", order.get("id"))
            return None


def controller_for_partner(
    client: RowStoreClient,
    flow: FlowDefinition,
    partner_user_id: str,
    **kwargs,
) -> OrderLifecycleController:
    """Controller scoped to every location the partner can act on for this flow."""
    location_ids = partner_location_ids(client, partner_user_id, flow.location_kind)
    return OrderLifecycleController(
        client,
        flow,
        location_ids,
        actor_user_id=partner_user_id,
        **kwargs,
    )


def controller_for_app(app, flow: FlowDefinition, partner_user_id: str) -> OrderLifecycleController:
    """Partner controller wired to the app's row store and list/inventory settings."""
    return controller_for_partner(
        app.extensions["row_store"],
        flow,
        partner_user_id,
        page_size=app.config.get("PAGE_SIZE", DEFAULT_PAGE_SIZE),
        low_stock_threshold=app.config.get("DEFAULT_LOW_STOCK_THRESHOLD", 5),
    )
