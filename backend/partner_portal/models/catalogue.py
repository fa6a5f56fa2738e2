from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class StoreCatalogueItem(db.Model):
    """
    Sellable item in a store catalogue.

    STOCK MODEL:
    - stock_qty is a stored counter (>= 0), adjusted by fulfilment and manual edits.
    - track_inventory=False means orders never touch stock_qty.
    - stock_status is derived from stock_qty vs low_stock_threshold and stored
      for list filtering; is_available is forced False when out_of_stock.
    """
    __tablename__ = "store_catalogue_items"
    __table_args__ = (
        db.Index("ix_catalogue_items_store_title", "store_id", "title"),
        db.CheckConstraint("stock_qty >= 0", name="ck_catalogue_items_stock_non_negative"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    price_cents = db.Column(db.Integer, nullable=True)

    track_inventory = db.Column(db.Boolean, nullable=False, default=False)
    stock_qty = db.Column(db.Integer, nullable=False, default=0)
    low_stock_threshold = db.Column(db.Integer, nullable=False, default=5)
    stock_status = db.Column(db.String(16), nullable=False, default="in_stock")
    is_available = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<StoreCatalogueItem id={self.id} title={self.title!r} stock={self.stock_qty}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "title": self.title,
            "price_cents": self.price_cents,
            "track_inventory": self.track_inventory,
            "stock_qty": self.stock_qty,
            "low_stock_threshold": self.low_stock_threshold,
            "stock_status": self.stock_status,
            "is_available": self.is_available,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only stock audit row.

    One row per inventory-affecting event. Never updated, never deleted.
    """
    __tablename__ = "store_catalogue_stock_movements"
    __table_args__ = (
        db.Index("ix_stock_movements_store_item_created", "store_id", "item_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("store_catalogue_items.id"), nullable=False, index=True)

    # DECREASE | STOCKOUT | INCREASE | ADJUST
    movement_type = db.Column(db.String(16), nullable=False)
    qty_delta = db.Column(db.Integer, nullable=False)
    qty_before = db.Column(db.Integer, nullable=False)
    qty_after = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=True)
    actor_user_id = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def __repr__(self) -> str:
        return f"<StockMovement id={self.id} item_id={self.item_id} {self.movement_type} {self.qty_delta}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_id": self.store_id,
            "item_id": self.item_id,
            "movement_type": self.movement_type,
            "qty_delta": self.qty_delta,
            "qty_before": self.qty_before,
            "qty_after": self.qty_after,
            "reason": self.reason,
            "actor_user_id": self.actor_user_id,
            "created_at": to_utc_z(self.created_at),
        }
