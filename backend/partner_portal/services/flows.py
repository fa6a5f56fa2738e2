# Overview: Flow graph definitions for every partner order/booking lifecycle.

from __future__ import annotations

from .status_machine import Edge, FlowDefinition


def _cancel_edges(sources, target: str, timestamp_field: str) -> tuple[Edge, ...]:
    return tuple(Edge(s, target, timestamp_field, accepts_reason=True) for s in sources)


TABLE_ORDERS = FlowDefinition(
    name="table_orders",
    label="Restaurant table orders",
    table="restaurant_table_orders",
    location_field="restaurant_id",
    location_kind="restaurant",
    status_field="status",
    states=("PLACED", "ACCEPTED", "PREPARING", "READY", "COMPLETED", "CANCELLED"),
    initial=("PLACED",),
    edges=(
        Edge("PLACED", "ACCEPTED", "accepted_at"),
        Edge("ACCEPTED", "PREPARING", "preparing_at"),
        Edge("PREPARING", "READY", "ready_at"),
        Edge("READY", "COMPLETED", "completed_at"),
    ) + _cancel_edges(("PLACED", "ACCEPTED", "PREPARING", "READY"), "CANCELLED", "cancelled_at"),
    read_field="partner_seen_at",
    label_field="order_code",
    search_fields=("customer_name", "table_label", "order_code"),
)

PICKUP_ORDERS = FlowDefinition(
    name="pickup_orders",
    label="Restaurant pickup orders",
    table="restaurant_orders",
    location_field="restaurant_id",
    location_kind="restaurant",
    status_field="order_status",
    states=("NEW", "ACCEPTED", "PREPARING", "READY_FOR_PICKUP", "PICKED_UP", "CANCELLED"),
    initial=("NEW",),
    edges=(
        Edge("NEW", "ACCEPTED", "accepted_at"),
        Edge("ACCEPTED", "PREPARING", "preparing_at"),
        Edge("PREPARING", "READY_FOR_PICKUP", "ready_at"),
        Edge("READY_FOR_PICKUP", "PICKED_UP", "picked_up_at"),
    ) + _cancel_edges(("NEW", "ACCEPTED", "PREPARING", "READY_FOR_PICKUP"), "CANCELLED", "cancelled_at"),
    read_field="partner_seen_at",
    label_field="order_number",
    search_fields=("customer_name", "customer_phone", "order_number", "pickup_code"),
)

# CANCELLED is set by the customer app only; partners reject instead.
STORE_PICKUP_ORDERS = FlowDefinition(
    name="store_pickup_orders",
    label="Store pickup orders",
    table="store_orders",
    location_field="store_id",
    location_kind="store",
    status_field="status",
    states=("NEW", "PLACED", "ACCEPTED", "PREPARING", "READY", "DELIVERED", "REJECTED", "CANCELLED"),
    initial=("NEW", "PLACED"),
    edges=(
        Edge("NEW", "ACCEPTED", "accepted_at"),
        Edge("PLACED", "ACCEPTED", "accepted_at"),
        Edge("ACCEPTED", "PREPARING", "preparing_at"),
        Edge("PREPARING", "READY", "ready_at"),
        Edge("READY", "DELIVERED", "delivered_at", decrements_inventory=True),
    ) + _cancel_edges(("NEW", "PLACED", "ACCEPTED", "PREPARING", "READY"), "REJECTED", "rejected_at"),
    read_field="partner_seen_at",
    label_field="order_no",
    search_fields=("order_no", "customer_name", "customer_phone"),
    tracks_inventory=True,
)

BOOKINGS = FlowDefinition(
    name="bookings",
    label="Restaurant bookings",
    table="restaurant_bookings",
    location_field="restaurant_id",
    location_kind="restaurant",
    status_field="status",
    states=("pending", "confirmed", "completed", "cancelled", "no_show"),
    initial=("pending",),
    edges=(
        Edge("pending", "confirmed", "confirmed_at"),
        Edge("confirmed", "completed", "completed_at"),
        Edge("confirmed", "no_show", "no_show_at"),
    ) + _cancel_edges(("pending", "confirmed"), "cancelled", "cancelled_at"),
    read_field="read",
    label_field="booking_code",
    search_fields=("customer_name", "customer_phone", "booking_code"),
    order_by=("booking_date", "booking_time"),
)

PAYMENT_ORDERS = FlowDefinition(
    name="payment_orders",
    label="Store payment orders",
    table="store_orders",
    location_field="store_id",
    location_kind="store",
    status_field="payment_status",
    states=("PENDING", "PAID", "REFUNDED"),
    initial=("PENDING",),
    edges=(
        Edge("PENDING", "PAID", "paid_at"),
        Edge("PENDING", "REFUNDED", "refunded_at"),
        Edge("PAID", "REFUNDED", "refunded_at"),
    ),
    read_field="partner_seen_at",
    label_field="order_no",
    search_fields=("order_no", "customer_name", "customer_phone"),
)

FLOWS: dict[str, FlowDefinition] = {
    flow.name: flow
    for flow in (TABLE_ORDERS, PICKUP_ORDERS, STORE_PICKUP_ORDERS, BOOKINGS, PAYMENT_ORDERS)
}


def get_flow(name: str) -> FlowDefinition:
    """
    Raises:
        LookupError: unknown flow name
    """
    flow = FLOWS.get(name)
    if flow is None:
        raise LookupError(f"Unknown flow '{name}'. Must be one of: {', '.join(sorted(FLOWS))}")
    return flow
