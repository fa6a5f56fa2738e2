# Overview: Flask CLI command groups for bootstrap, partner tokens and order inspection.

# backend/partner_portal/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to wsgi.py (PowerShell: $env:FLASK_APP="wsgi.py").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init-db
#   Create all tables (use `flask db upgrade` for migrated databases).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
# - python -m flask system seed-demo --owner partner-1
#   Create a demo restaurant, store, catalogue and a few orders/bookings for a partner.
#
# Partner identity:
# - python -m flask partners issue-token partner-1
#   Print a signed bearer token for the partner id.
# - python -m flask partners locations partner-1 --kind store
#   List the locations a partner can act on.
#
# Order inspection/repair:
# - python -m flask orders list table_orders --owner partner-1 --status open
#   List one page of a flow for a partner.
# - python -m flask orders advance store_pickup_orders <row-id> DELIVERED --owner partner-1
#   Apply a status transition exactly as the dashboard would.
# - python -m flask orders movements --store-id 1
#   Show the stock movement audit trail for a store.

from datetime import date, time, timedelta

import click
from flask import current_app
from flask.cli import with_appcontext

from .decorators import issue_partner_token
from .extensions import db
from .models import (
    Restaurant,
    RestaurantBooking,
    RestaurantOrder,
    RestaurantTableOrder,
    Store,
    StoreCatalogueItem,
    StoreOrder,
)
from .services.flows import FLOWS, get_flow
from .services.inventory_service import list_stock_movements, stock_status_from_qty
from .services.location_service import LOCATION_RESTAURANT, LOCATION_STORE, partner_locations
from .services.order_controller import ListQuery, PersistenceFailure, RowNotFound, controller_for_app
from .services.status_machine import InvalidTransition
from .time_utils import to_utc_z, utcnow
from .validation import ValidationError


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Tables created.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete. Run 'python -m flask system seed-demo' to add demo data.")


@system_group.command('seed-demo')
@click.option('--owner', 'owner_user_id', default='partner-demo', help='Partner user id owning the demo locations')
@with_appcontext
def seed_demo(owner_user_id):
    """
    Demo data for one partner.

    Creates (idempotent by name):
    - Restaurant "Demo Kitchen" with one table order, one pickup order, one booking
    - Store "Demo Store" with two tracked catalogue items and one store order
    """
    click.echo(f"START Seeding demo data for {owner_user_id}...")

    restaurant = db.session.query(Restaurant).filter_by(owner_user_id=owner_user_id, name="Demo Kitchen").first()
    if not restaurant:
        restaurant = Restaurant(owner_user_id=owner_user_id, name="Demo Kitchen", city="Lisbon")
        db.session.add(restaurant)
        db.session.commit()
        click.echo(f"PASS Created restaurant: {restaurant.name} (ID: {restaurant.id})")
    else:
        click.echo(f"PASS Using existing restaurant: {restaurant.name} (ID: {restaurant.id})")

    store = db.session.query(Store).filter_by(owner_user_id=owner_user_id, name="Demo Store").first()
    if not store:
        store = Store(owner_user_id=owner_user_id, name="Demo Store", city="Lisbon")
        db.session.add(store)
        db.session.commit()
        click.echo(f"PASS Created store: {store.name} (ID: {store.id})")
    else:
        click.echo(f"PASS Using existing store: {store.name} (ID: {store.id})")

    threshold = current_app.config.get("DEFAULT_LOW_STOCK_THRESHOLD", 5)
    items = []
    for title, price_cents, qty in (("Espresso beans 1kg", 2490, 12), ("Oat milk 1L", 299, 3)):
        item = db.session.query(StoreCatalogueItem).filter_by(store_id=store.id, title=title).first()
        if not item:
            item = StoreCatalogueItem(
                store_id=store.id,
                title=title,
                price_cents=price_cents,
                track_inventory=True,
                stock_qty=qty,
                low_stock_threshold=threshold,
                stock_status=stock_status_from_qty(qty, threshold),
                is_available=qty > 0,
            )
            db.session.add(item)
            db.session.commit()
            click.echo(f"PASS Created catalogue item: {title} (qty {qty})")
        items.append(item)

    now = utcnow()
    db.session.add(RestaurantTableOrder(
        restaurant_id=restaurant.id,
        table_label="T4",
        order_code=f"T-{now:%H%M%S}",
        customer_name="Walk-in",
        items=[{"name": "Bifana", "qty": 2, "price": 4.5}],
        total_cents=900,
    ))
    db.session.add(RestaurantOrder(
        restaurant_id=restaurant.id,
        order_number=f"P-{now:%H%M%S}",
        pickup_code=f"{now:%M%S}",
        pickup_eta=now + timedelta(minutes=20),
        customer_name="Ana",
        items=[{"name": "Pastel de nata", "qty": 6, "price": 1.2}],
        total_cents=720,
    ))
    db.session.add(RestaurantBooking(
        restaurant_id=restaurant.id,
        booking_code=f"B-{now:%H%M%S}",
        customer_name="Rui",
        booking_date=date.today() + timedelta(days=1),
        booking_time=time(20, 0),
        party_size=4,
        source="web",
    ))
    db.session.add(StoreOrder(
        store_id=store.id,
        order_no=f"SO-{now:%H%M%S}",
        customer_name="Marta",
        items=[
            {"item_id": items[0].id, "name": items[0].title, "qty": 1, "price": items[0].price_cents / 100},
            {"item_id": items[1].id, "name": items[1].title, "qty": 2, "price": items[1].price_cents / 100},
        ],
        subtotal_cents=items[0].price_cents + 2 * items[1].price_cents,
        total_cents=items[0].price_cents + 2 * items[1].price_cents,
        payment_method="card",
    ))
    db.session.commit()

    click.echo("PASS Demo orders and booking created.")
    click.echo(f"   token -> {issue_partner_token(owner_user_id)}")


@click.group('partners')
def partners_group():
    """Partner identity helpers."""


@partners_group.command('issue-token')
@click.argument('partner_user_id')
@with_appcontext
def issue_token(partner_user_id):
    """Print a signed bearer token for PARTNER_USER_ID."""
    click.echo(issue_partner_token(partner_user_id))


@partners_group.command('locations')
@click.argument('partner_user_id')
@click.option('--kind', type=click.Choice([LOCATION_RESTAURANT, LOCATION_STORE]), default=LOCATION_RESTAURANT)
@with_appcontext
def list_locations(partner_user_id, kind):
    """List locations PARTNER_USER_ID may act on."""
    locations = partner_locations(current_app.extensions["row_store"], partner_user_id, kind)
    if not locations:
        click.echo(f"No {kind} locations for {partner_user_id}.")
        return
    for loc in locations:
        state = "active" if loc.get("is_active") else "inactive"
        click.echo(f"{loc['id']:>5}  {loc['name']:<30} {loc.get('city') or '':<15} {state}")


@click.group('orders')
def orders_group():
    """Order and booking inspection."""


@orders_group.command('list')
@click.argument('flow_name', type=click.Choice(sorted(FLOWS)))
@click.option('--owner', 'owner_user_id', required=True, help='Partner user id')
@click.option('--status', default='all', help='all | open | a status of the flow')
@click.option('--q', 'search', default=None, help='Search term')
@click.option('--page', type=int, default=1)
@click.option('--location-id', type=int, default=None)
@with_appcontext
def list_orders(flow_name, owner_user_id, status, search, page, location_id):
    """List one page of FLOW_NAME rows for a partner."""
    flow = get_flow(flow_name)
    controller = controller_for_app(current_app, flow, owner_user_id)
    try:
        result = controller.list_rows(ListQuery(status=status, search=search, page=page, location_id=location_id))
    except ValidationError as e:
        raise click.ClickException(str(e))

    click.echo(f"{flow.label}: {result.total} row(s), page {result.page}/{max(result.pages, 1)}")
    for row in result.rows:
        marker = "*" if row.get("unread") else " "
        label = row.get(flow.label_field) or "-"
        click.echo(
            f"{marker} {row['id']}  {label:<12} {row.get(flow.status_field):<14} "
            f"{to_utc_z(row.get('created_at')) or '':<22} next: {', '.join(row['allowed_actions']) or '-'}"
        )


@orders_group.command('advance')
@click.argument('flow_name', type=click.Choice(sorted(FLOWS)))
@click.argument('row_id')
@click.argument('status')
@click.option('--owner', 'owner_user_id', required=True, help='Partner user id')
@click.option('--reason', 'cancel_reason', default=None, help='Cancel/reject reason')
@with_appcontext
def advance_order(flow_name, row_id, status, owner_user_id, cancel_reason):
    """Move ROW_ID to STATUS exactly as the dashboard would."""
    flow = get_flow(flow_name)
    controller = controller_for_app(current_app, flow, owner_user_id)
    try:
        outcome = controller.transition(row_id, status, cancel_reason=cancel_reason)
    except (InvalidTransition, RowNotFound, PersistenceFailure) as e:
        raise click.ClickException(str(e))

    click.echo(f"PASS {row_id}: {outcome.decision.from_status} -> {outcome.decision.to_status}")
    if outcome.inventory is not None:
        for adj in outcome.inventory.adjusted:
            click.echo(f"   stock {adj.item_id}: {adj.qty_before} -> {adj.qty_after} ({adj.movement_type}, {adj.stock_status})")
        for failure in outcome.inventory.failures:
            click.echo(f"   WARN stock {failure.item_id} {failure.stage} failed: {failure.message}")


@orders_group.command('movements')
@click.option('--store-id', type=int, required=True)
@click.option('--item-id', type=int, default=None)
@click.option('--limit', type=int, default=50)
@with_appcontext
def stock_movements(store_id, item_id, limit):
    """Stock movement audit trail for a store, newest first."""
    rows = list_stock_movements(current_app.extensions["row_store"], store_id, item_id=item_id, limit=limit)
    if not rows:
        click.echo("No stock movements.")
        return
    for row in rows:
        click.echo(
            f"{to_utc_z(row.get('created_at')) or '':<22} item {row['item_id']:>5} {row['movement_type']:<9} "
            f"{row['qty_before']:>4} -> {row['qty_after']:<4} {row.get('reason') or ''}"
        )


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(partners_group)
    app.cli.add_command(orders_group)
