# Overview: Service-layer stock side effects of fulfilled store orders.

"""
Inventory side-effect invariants (authoritative)

- Runs AFTER the order's fulfilment status is committed. It is a best-effort
  follow-up, never a precondition: nothing here can undo or block the transition.
- Each order line is handled independently (no cross-line transaction). A failed
  line is recorded and the next line proceeds.
- stock_qty never goes below zero (clamped).
- stock_status derives from stock_qty vs low_stock_threshold; is_available is
  False exactly when out_of_stock.
- One append-only stock movement per successfully updated item; none when the
  item update failed.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Optional

from ..rowstore import Filters, RowStoreClient, RowStoreError
from ..validation import parse_order_items

logger = logging.getLogger(__name__)

CATALOGUE_TABLE = "store_catalogue_items"
MOVEMENTS_TABLE = "store_catalogue_stock_movements"

IN_STOCK = "in_stock"
LOW_STOCK = "low_stock"
OUT_OF_STOCK = "out_of_stock"

MOVEMENT_DECREASE = "DECREASE"
MOVEMENT_STOCKOUT = "STOCKOUT"


@dataclass(frozen=True)
class InventoryLineFailure:
    """A single order line whose stock adjustment could not be applied."""
    item_id: Optional[str]
    stage: str  # "lookup" | "update" | "audit"
    message: str


@dataclass(frozen=True)
class StockAdjustment:
    item_id: str
    qty_delta: int
    qty_before: int
    qty_after: int
    stock_status: str
    movement_type: str
    audited: bool


@dataclass
class InventoryResult:
    adjusted: list[StockAdjustment] = field(default_factory=list)
    skipped: list[Optional[str]] = field(default_factory=list)
    failures: list[InventoryLineFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "adjusted": [asdict(a) for a in self.adjusted],
            "skipped": list(self.skipped),
            "failures": [asdict(f) for f in self.failures],
        }


def stock_status_from_qty(qty, low_stock_threshold=5) -> str:
    """
    qty <= 0                    -> out_of_stock
    qty <= low_stock_threshold  -> low_stock
    otherwise                   -> in_stock
    """
    try:
        q = int(qty or 0)
    except (TypeError, ValueError):
        q = 0
    try:
        low = int(low_stock_threshold) if low_stock_threshold is not None else 5
    except (TypeError, ValueError):
        low = 5
    if q <= 0:
        return OUT_OF_STOCK
    if q <= low:
        return LOW_STOCK
    return IN_STOCK


def movement_type_for(before: int, after: int) -> str:
    return MOVEMENT_STOCKOUT if after == 0 and before > 0 else MOVEMENT_DECREASE


def apply_order_decrement(
    client: RowStoreClient,
    order: dict,
    *,
    store_id,
    actor_user_id: Optional[str] = None,
    reason: Optional[str] = None,
    default_low_stock_threshold: int = 5,
) -> InventoryResult:
    """
    Decrement tracked stock for every line of a collected order.

    Args:
        client: Row store
        order: Order row (items in any accepted shape)
        store_id: Owning store; catalogue lookups are scoped to it
        actor_user_id: Partner who marked the order collected
        reason: Audit reason, e.g. "Order collected: SO-1001"

    Returns:
        InventoryResult; line problems are collected, never raised
    """
    result = InventoryResult()
    order_label = order.get("order_no") or order.get("id")
    reason = reason or f"Order collected: {order_label}"

    for line in parse_order_items(order.get("items")):
        if not line.item_id:
            result.skipped.append(None)
            continue

        # 1. Resolve within the same store
        lookup_id = int(line.item_id) if line.item_id.isdigit() else line.item_id
        try:
            item = client.select_one(
                CATALOGUE_TABLE,
                {"id": lookup_id, "store_id": store_id},
                columns=("id", "store_id", "title", "track_inventory", "stock_qty", "low_stock_threshold", "is_available"),
            )
        except RowStoreError as exc:
            logger.warning("Stock lookup failed for item %s on order %s: %s", line.item_id, order_label, exc)
            result.failures.append(InventoryLineFailure(line.item_id, "lookup", str(exc)))
            continue

        if item is None or not item.get("track_inventory"):
            result.skipped.append(line.item_id)
            continue

        # 2. Clamp and derive
        before = int(item.get("stock_qty") or 0)
        after = max(0, before - line.qty)
        threshold = item.get("low_stock_threshold")
        if threshold is None:
            threshold = default_low_stock_threshold
        next_status = stock_status_from_qty(after, threshold)

        # 3. Persist item
        try:
            updated = client.update(
                CATALOGUE_TABLE,
                {
                    "stock_qty": after,
                    "stock_status": next_status,
                    "is_available": next_status != OUT_OF_STOCK,
                },
                {"id": item["id"]},
            )
        except RowStoreError as exc:
            logger.warning("Stock update failed for item %s on order %s: %s", item["id"], order_label, exc)
            result.failures.append(InventoryLineFailure(line.item_id, "update", str(exc)))
            continue
        if not updated:
            result.failures.append(InventoryLineFailure(line.item_id, "update", "item no longer exists"))
            continue

        # 4. Audit
        movement_type = movement_type_for(before, after)
        audited = True
        try:
            client.insert(
                MOVEMENTS_TABLE,
                {
                    "store_id": item["store_id"],
                    "item_id": item["id"],
                    "movement_type": movement_type,
                    "qty_delta": -line.qty,
                    "qty_before": before,
                    "qty_after": after,
                    "reason": reason[:255],
                    "actor_user_id": actor_user_id,
                },
            )
        except RowStoreError as exc:
            audited = False
            logger.warning("Stock movement audit failed for item %s on order %s: %s", item["id"], order_label, exc)
            result.failures.append(InventoryLineFailure(line.item_id, "audit", str(exc)))

        result.adjusted.append(
            StockAdjustment(
                item_id=str(item["id"]),
                qty_delta=-line.qty,
                qty_before=before,
                qty_after=after,
                stock_status=next_status,
                movement_type=movement_type,
                audited=audited,
            )
        )

    if result.failures:
        logger.warning(
            "Inventory decrement for order %s finished with %d failed line(s)",
            order_label, len(result.failures),
        )
    return result


def list_stock_movements(client: RowStoreClient, store_id, *, item_id=None, limit: int = 100) -> list[dict]:
    """Audit history for a store, newest first."""
    filters = Filters(eq={"store_id": store_id}, range=(0, max(1, limit) - 1))
    if item_id is not None:
        filters.eq["item_id"] = item_id
    return client.select(MOVEMENTS_TABLE, filters=filters, order_by=()).rows
