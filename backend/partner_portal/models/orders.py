from __future__ import annotations

import uuid

from ..extensions import db


def _new_row_id() -> str:
    return str(uuid.uuid4())


class PartnerOrderMixin:
    """
    Columns shared by every order/booking table the partner dashboards act on.

    INVARIANTS:
    - id is opaque and immutable.
    - items is written once by the customer-facing surface; partners never edit it.
    - Per-status timestamps are stamped on first entry into that status and never reset.
    - Rows are never deleted; they end in a terminal status.
    """

    id = db.Column(db.String(36), primary_key=True, default=_new_row_id)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)
    customer_email = db.Column(db.String(255), nullable=True)

    cancel_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )


class RestaurantTableOrder(PartnerOrderMixin, db.Model):
    """
    Dine-in order placed from a table QR code.

    STATE MACHINE: PLACED -> ACCEPTED -> PREPARING -> READY -> COMPLETED,
    CANCELLED from any state before COMPLETED.
    """
    __tablename__ = "restaurant_table_orders"
    __table_args__ = (
        db.Index("ix_table_orders_restaurant_status", "restaurant_id", "status"),
    )

    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)
    table_label = db.Column(db.String(32), nullable=True)
    order_code = db.Column(db.String(32), nullable=True, index=True)

    items = db.Column(db.JSON, nullable=False, default=list)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_status = db.Column(db.String(16), nullable=False, default="PENDING")

    status = db.Column(db.String(16), nullable=False, default="PLACED", index=True)
    partner_seen_at = db.Column(db.DateTime(timezone=True), nullable=True)

    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    preparing_at = db.Column(db.DateTime(timezone=True), nullable=True)
    ready_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<RestaurantTableOrder id={self.id} table={self.table_label!r} status={self.status}>"


class RestaurantOrder(PartnerOrderMixin, db.Model):
    """
    Restaurant pickup order.

    STATE MACHINE (order_status): NEW -> ACCEPTED -> PREPARING -> READY_FOR_PICKUP -> PICKED_UP,
    CANCELLED from any non-terminal state.
    """
    __tablename__ = "restaurant_orders"
    __table_args__ = (
        db.Index("ix_restaurant_orders_restaurant_status", "restaurant_id", "order_status"),
    )

    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)
    order_number = db.Column(db.String(32), nullable=True, index=True)
    pickup_code = db.Column(db.String(16), nullable=True)
    pickup_eta = db.Column(db.DateTime(timezone=True), nullable=True)

    items = db.Column(db.JSON, nullable=False, default=list)
    total_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_status = db.Column(db.String(16), nullable=False, default="PENDING")

    order_status = db.Column(db.String(24), nullable=False, default="NEW", index=True)
    partner_seen_at = db.Column(db.DateTime(timezone=True), nullable=True)

    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    preparing_at = db.Column(db.DateTime(timezone=True), nullable=True)
    ready_at = db.Column(db.DateTime(timezone=True), nullable=True)
    picked_up_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<RestaurantOrder id={self.id} number={self.order_number!r} status={self.order_status}>"


class StoreOrder(PartnerOrderMixin, db.Model):
    """
    Store order, collected in person.

    Two independent lifecycles live on this row:
    - status (fulfilment): NEW/PLACED -> ACCEPTED -> PREPARING -> READY -> DELIVERED,
      REJECTED from any non-terminal state. DELIVERED decrements tracked stock.
    - payment_status: PENDING -> PAID -> REFUNDED.
    """
    __tablename__ = "store_orders"
    __table_args__ = (
        db.Index("ix_store_orders_store_status", "store_id", "status"),
        db.Index("ix_store_orders_store_payment", "store_id", "payment_status"),
    )

    store_id = db.Column(db.Integer, db.ForeignKey("stores.id"), nullable=False, index=True)
    order_no = db.Column(db.String(32), nullable=True, index=True)
    delivery_address = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    items = db.Column(db.JSON, nullable=False, default=list)
    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    delivery_fee_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    payment_method = db.Column(db.String(32), nullable=True)
    payment_status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    refunded_at = db.Column(db.DateTime(timezone=True), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="NEW", index=True)
    partner_seen_at = db.Column(db.DateTime(timezone=True), nullable=True)

    accepted_at = db.Column(db.DateTime(timezone=True), nullable=True)
    preparing_at = db.Column(db.DateTime(timezone=True), nullable=True)
    ready_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<StoreOrder id={self.id} order_no={self.order_no!r} status={self.status} payment={self.payment_status}>"


class RestaurantBooking(PartnerOrderMixin, db.Model):
    """
    Table reservation.

    STATE MACHINE: pending -> confirmed -> completed, cancelled from pending|confirmed,
    no_show from confirmed. Lowercase statuses match the booking widget.
    """
    __tablename__ = "restaurant_bookings"
    __table_args__ = (
        db.Index("ix_bookings_restaurant_date", "restaurant_id", "booking_date", "booking_time"),
    )

    restaurant_id = db.Column(db.Integer, db.ForeignKey("restaurants.id"), nullable=False, index=True)
    customer_user_id = db.Column(db.String(64), nullable=True)
    booking_code = db.Column(db.String(32), nullable=True, index=True)
    customer_booking_number = db.Column(db.Integer, nullable=True)

    booking_date = db.Column(db.Date, nullable=False)
    booking_time = db.Column(db.Time, nullable=False)
    duration_minutes = db.Column(db.Integer, nullable=False, default=90)
    party_size = db.Column(db.Integer, nullable=False, default=2)

    source = db.Column(db.String(32), nullable=True)
    special_request = db.Column(db.Text, nullable=True)
    notes_internal = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    read = db.Column(db.Boolean, nullable=False, default=False)

    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    no_show_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        return f"<RestaurantBooking id={self.id} code={self.booking_code!r} status={self.status}>"
