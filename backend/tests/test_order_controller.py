# Overview: Pytest coverage for scoped listing and partner-initiated transitions.

"""
Order Lifecycle Controller Tests

Covers:
1. Location scoping: a partner never lists or touches another partner's rows
2. List query shape: status / open / search / pagination / ordering
3. Transitions: persisted values, read marker, round-trip re-query
4. Double-submission guard and optimistic patch revert on persistence failure
"""

import logging
from datetime import date, time

import pytest

from partner_portal.rowstore import RowStoreError
from partner_portal.services.flows import BOOKINGS, PICKUP_ORDERS, STORE_PICKUP_ORDERS, TABLE_ORDERS
from partner_portal.services.order_controller import (
    ActionInProgress,
    ListQuery,
    OrderLifecycleController,
    PersistenceFailure,
    RowNotFound,
    ViewContext,
    controller_for_partner,
)
from partner_portal.services.status_machine import InvalidTransition
from partner_portal.validation import ValidationError


class RecordingContext(ViewContext):
    def __init__(self):
        super().__init__()
        self.refetch_requests = 0

    def schedule_refetch(self):
        self.refetch_requests += 1


class BrokenUpdates:
    """Row store whose writes fail; reads pass through."""

    def __init__(self, inner, result=None, error=True):
        self.inner = inner
        self.result = result
        self.error = error

    def __getattr__(self, name):
        return getattr(self.inner, name)

    def update(self, table, patch, eq):
        if self.error:
            raise RowStoreError("connection reset", table=table)
        return self.result if self.result is not None else []


@pytest.fixture
def table_controller(row_store, restaurant_a):
    return OrderLifecycleController(row_store, TABLE_ORDERS, [restaurant_a.id], actor_user_id="partner-a")


class TestScoping:
    def test_lists_only_owned_locations(self, row_store, factory, restaurant_a, restaurant_b):
        mine = factory.table_order(restaurant_a)
        factory.table_order(restaurant_b)

        controller = controller_for_partner(row_store, TABLE_ORDERS, "partner-a")
        page = controller.list_rows()

        assert page.total == 1
        assert [r["id"] for r in page.rows] == [mine.id]

    def test_foreign_location_filter_returns_empty_page(self, row_store, factory, restaurant_a, restaurant_b):
        factory.table_order(restaurant_b)
        controller = controller_for_partner(row_store, TABLE_ORDERS, "partner-a")

        page = controller.list_rows(ListQuery(location_id=restaurant_b.id))

        assert page.total == 0
        assert page.rows == []

    def test_partner_without_locations_sees_nothing(self, row_store, factory, restaurant_a):
        factory.table_order(restaurant_a)
        controller = controller_for_partner(row_store, TABLE_ORDERS, "stranger")

        assert controller.list_rows().total == 0
        assert controller.summary()["total"] == 0

    def test_foreign_row_is_not_found(self, row_store, factory, restaurant_a, restaurant_b):
        theirs = factory.table_order(restaurant_b)
        controller = controller_for_partner(row_store, TABLE_ORDERS, "partner-a")

        with pytest.raises(RowNotFound):
            controller.get_row(theirs.id)
        with pytest.raises(RowNotFound):
            controller.transition(theirs.id, "ACCEPTED")

        assert row_store.select_one("restaurant_table_orders", {"id": theirs.id})["status"] == "PLACED"

    def test_member_store_is_visible(self, row_store, factory, store_a, shared_store, store_b):
        factory.store_order(store_a)
        factory.store_order(shared_store)
        factory.store_order(store_b)

        controller = controller_for_partner(row_store, STORE_PICKUP_ORDERS, "partner-a")

        assert sorted(controller.location_ids) == sorted([store_a.id, shared_store.id])
        assert controller.list_rows().total == 2


class TestListing:
    def test_status_filters(self, table_controller, factory, restaurant_a):
        factory.table_order(restaurant_a, status="PLACED")
        factory.table_order(restaurant_a, status="READY")
        factory.table_order(restaurant_a, status="COMPLETED")

        assert table_controller.list_rows(ListQuery(status="READY")).total == 1
        assert table_controller.list_rows(ListQuery(status="open")).total == 2
        assert table_controller.list_rows(ListQuery(status="all")).total == 3
        assert table_controller.list_rows(ListQuery(status="")).total == 3

    def test_unknown_status_filter(self, table_controller, restaurant_a):
        with pytest.raises(ValidationError):
            table_controller.list_rows(ListQuery(status="SHIPPED"))

    def test_search_across_fields(self, row_store, factory, restaurant_a):
        factory.pickup_order(restaurant_a, customer_name="Ines Costa", order_number="P-1")
        factory.pickup_order(restaurant_a, customer_name="Rui", customer_phone="+351911222333", order_number="P-2")
        factory.pickup_order(restaurant_a, customer_name="Rita", pickup_code="COSTA", order_number="P-3")
        controller = OrderLifecycleController(row_store, PICKUP_ORDERS, [restaurant_a.id])

        assert controller.list_rows(ListQuery(search="costa")).total == 2
        assert controller.list_rows(ListQuery(search="911222")).total == 1
        assert controller.list_rows(ListQuery(search="   ")).total == 3

    def test_pagination_and_newest_first(self, row_store, factory, restaurant_a):
        for minutes_ago in range(12, 0, -1):
            factory.table_order(restaurant_a, minutes_ago=minutes_ago, order_code=f"T-{minutes_ago:02d}")
        controller = OrderLifecycleController(row_store, TABLE_ORDERS, [restaurant_a.id], page_size=10)

        first = controller.list_rows(ListQuery(page=1))
        second = controller.list_rows(ListQuery(page=2))

        assert first.total == 12
        assert first.pages == 2
        assert len(first.rows) == 10
        assert first.rows[0]["order_code"] == "T-01"
        assert [r["order_code"] for r in second.rows] == ["T-11", "T-12"]

    def test_bookings_ordered_by_date_and_time(self, row_store, factory, restaurant_a):
        factory.booking(restaurant_a, booking_code="EARLY", booking_date=date(2026, 10, 20), booking_time=time(19, 0))
        factory.booking(restaurant_a, booking_code="LATE", booking_date=date(2026, 10, 20), booking_time=time(21, 0))
        factory.booking(restaurant_a, booking_code="NEXT", booking_date=date(2026, 10, 21), booking_time=time(12, 0))
        controller = OrderLifecycleController(row_store, BOOKINGS, [restaurant_a.id])

        codes = [r["booking_code"] for r in controller.list_rows().rows]
        assert codes == ["NEXT", "LATE", "EARLY"]

    def test_rows_carry_actions_and_unread(self, table_controller, factory, restaurant_a):
        factory.table_order(restaurant_a, status="PLACED", items='[{"id": 3, "title": "Soup", "quantity": 2}]')

        row = table_controller.list_rows().rows[0]

        assert row["allowed_actions"] == ["ACCEPTED", "CANCELLED"]
        assert row["unread"] is True
        assert row["items"] == [{"item_id": "3", "name": "Soup", "qty": 2, "price": 0.0}]

    def test_invalid_page(self, table_controller):
        with pytest.raises(ValidationError):
            table_controller.list_rows(ListQuery(page=-1))

    def test_summary_counts(self, table_controller, factory, restaurant_a):
        factory.table_order(restaurant_a, status="PLACED")
        factory.table_order(restaurant_a, status="PLACED", partner_seen_at=factory._created_at(1))
        factory.table_order(restaurant_a, status="READY")
        factory.table_order(restaurant_a, status="CANCELLED")

        summary = table_controller.summary()

        assert summary["total"] == 4
        assert summary["counts"]["PLACED"] == 2
        assert summary["counts"]["COMPLETED"] == 0
        assert summary["open"] == 3
        assert summary["unread"] == 1


class TestTransitions:
    def test_accept_persists_status_timestamp_and_seen_marker(self, table_controller, row_store, factory, restaurant_a):
        order = factory.table_order(restaurant_a)

        outcome = table_controller.transition(order.id, "ACCEPTED")

        stored = row_store.select_one("restaurant_table_orders", {"id": order.id})
        assert stored["status"] == "ACCEPTED"
        assert stored["accepted_at"] is not None
        assert stored["partner_seen_at"] is not None
        assert outcome.row["status"] == "ACCEPTED"
        assert outcome.row["allowed_actions"] == ["PREPARING", "CANCELLED"]

    def test_earlier_timestamp_survives_later_transitions(self, table_controller, row_store, factory, restaurant_a):
        order = factory.table_order(restaurant_a)
        table_controller.transition(order.id, "ACCEPTED")
        accepted_at = row_store.select_one("restaurant_table_orders", {"id": order.id})["accepted_at"]

        table_controller.transition(order.id, "PREPARING")
        stored = row_store.select_one("restaurant_table_orders", {"id": order.id})

        assert stored["accepted_at"] == accepted_at
        assert stored["preparing_at"] is not None

    def test_invalid_transition_changes_nothing(self, table_controller, row_store, factory, restaurant_a):
        order = factory.table_order(restaurant_a, status="READY")

        with pytest.raises(InvalidTransition):
            table_controller.transition(order.id, "PLACED")

        assert row_store.select_one("restaurant_table_orders", {"id": order.id})["status"] == "READY"

    def test_cancel_keeps_reason(self, table_controller, row_store, factory, restaurant_a):
        order = factory.table_order(restaurant_a)

        table_controller.transition(order.id, "CANCELLED", cancel_reason="Kitchen closed")

        stored = row_store.select_one("restaurant_table_orders", {"id": order.id})
        assert stored["cancel_reason"] == "Kitchen closed"
        assert stored["cancelled_at"] is not None

    def test_booking_confirm_marks_read(self, row_store, factory, restaurant_a):
        booking = factory.booking(restaurant_a)
        controller = OrderLifecycleController(row_store, BOOKINGS, [restaurant_a.id])

        controller.transition(booking.id, "confirmed")

        stored = row_store.select_one("restaurant_bookings", {"id": booking.id})
        assert stored["status"] == "confirmed"
        assert stored["read"] is True

    def test_context_patch_and_refetch(self, table_controller, factory, restaurant_a):
        order = factory.table_order(restaurant_a)
        context = RecordingContext()
        page = table_controller.list_rows()
        context.replace_rows(page.rows, page.total)

        table_controller.transition(order.id, "ACCEPTED", context=context)

        assert context.rows[0]["status"] == "ACCEPTED"
        assert context.rows[0]["allowed_actions"] == ["PREPARING", "CANCELLED"]
        assert context.saving_ids == set()
        assert context.refetch_requests == 1


class TestDoubleSubmission:
    def test_second_request_for_same_row_refused(self, table_controller, row_store, factory, restaurant_a):
        order = factory.table_order(restaurant_a)
        other = factory.table_order(restaurant_a)
        context = RecordingContext()
        context.begin_saving(str(order.id))

        with pytest.raises(ActionInProgress):
            table_controller.transition(order.id, "ACCEPTED", context=context)

        # Other rows are not blocked
        table_controller.transition(other.id, "ACCEPTED", context=context)

        assert row_store.select_one("restaurant_table_orders", {"id": order.id})["status"] == "PLACED"
        assert context.is_saving(str(order.id))
        assert not context.is_saving(str(other.id))

    def test_marker_cleared_after_invalid_transition(self, table_controller, factory, restaurant_a):
        order = factory.table_order(restaurant_a, status="COMPLETED")
        context = RecordingContext()

        with pytest.raises(InvalidTransition):
            table_controller.transition(order.id, "READY", context=context)

        assert context.saving_ids == set()
        assert context.refetch_requests == 0


class TestPersistenceFailure:
    def test_write_error_reverts_local_patch(self, row_store, factory, restaurant_a):
        order = factory.table_order(restaurant_a)
        controller = OrderLifecycleController(BrokenUpdates(row_store), TABLE_ORDERS, [restaurant_a.id])
        context = RecordingContext()
        page = controller.list_rows()
        context.replace_rows(page.rows, page.total)
        before = dict(context.rows[0])

        with pytest.raises(PersistenceFailure) as exc_info:
            controller.transition(order.id, "ACCEPTED", context=context)

        assert "connection reset" in exc_info.value.message
        assert exc_info.value.row_id == str(order.id)
        assert context.rows[0] == before
        assert context.saving_ids == set()
        assert context.refetch_requests == 0
        assert row_store.select_one("restaurant_table_orders", {"id": order.id})["status"] == "PLACED"

    def test_empty_write_result_is_a_failure(self, row_store, factory, restaurant_a):
        order = factory.table_order(restaurant_a)
        controller = OrderLifecycleController(
            BrokenUpdates(row_store, error=False), TABLE_ORDERS, [restaurant_a.id]
        )

        with pytest.raises(PersistenceFailure):
            controller.transition(order.id, "ACCEPTED")

    def test_inventory_crash_is_logged_not_raised(self, row_store, factory, store_a, caplog):
        order = factory.store_order(store_a, status="READY")

        def exploding_applier(*args, **kwargs):
            raise RuntimeError("stock service down")

        controller = OrderLifecycleController(
            row_store, STORE_PICKUP_ORDERS, [store_a.id], inventory_applier=exploding_applier
        )
        with caplog.at_level(logging.ERROR, logger="partner_portal.services.order_controller"):
            outcome = controller.transition(order.id, "DELIVERED")

        assert outcome.inventory is None
        assert outcome.row["status"] == "DELIVERED"
        assert "Inventory side effect failed" in caplog.text
