# Overview: Pytest coverage for the flask CLI command groups.

from partner_portal.decorators import resolve_partner_token
from partner_portal.models import Restaurant, StockMovement, Store


def test_issue_token_round_trips(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=['partners', 'issue-token', 'partner-x'])

    assert result.exit_code == 0
    assert resolve_partner_token(result.output.strip()) == 'partner-x'


def test_locations_lists_member_stores(app, store_a, shared_store):
    runner = app.test_cli_runner()

    result = runner.invoke(args=['partners', 'locations', 'partner-a', '--kind', 'store'])

    assert result.exit_code == 0
    assert 'Store A' in result.output
    assert 'Shared Store' in result.output


def test_seed_demo_is_idempotent_for_locations(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=['system', 'seed-demo', '--owner', 'partner-demo'])
    second = runner.invoke(args=['system', 'seed-demo', '--owner', 'partner-demo'])

    assert first.exit_code == 0
    assert 'Created restaurant' in first.output
    assert 'Using existing restaurant' in second.output
    assert db_session.query(Restaurant).filter_by(owner_user_id='partner-demo').count() == 1
    assert db_session.query(Store).filter_by(owner_user_id='partner-demo').count() == 1

    listing = runner.invoke(args=['orders', 'list', 'table_orders', '--owner', 'partner-demo'])
    assert listing.exit_code == 0
    assert 'Restaurant table orders: 2 row(s)' in listing.output


def test_orders_list_rejects_unknown_status(app, restaurant_a):
    runner = app.test_cli_runner()

    result = runner.invoke(args=['orders', 'list', 'table_orders', '--owner', 'partner-a', '--status', 'SHIPPED'])

    assert result.exit_code != 0
    assert 'Invalid status filter' in result.output


def test_advance_applies_transition_and_stock(app, db_session, factory, store_a):
    item = factory.catalogue_item(store_a, stock_qty=2)
    order = factory.store_order(store_a, status='READY', items=[{'item_id': item.id, 'qty': 1}])
    runner = app.test_cli_runner()

    result = runner.invoke(args=['orders', 'advance', 'store_pickup_orders', order.id, 'DELIVERED', '--owner', 'partner-a'])

    assert result.exit_code == 0
    assert 'READY -> DELIVERED' in result.output
    assert '2 -> 1' in result.output
    assert db_session.query(StockMovement).filter_by(item_id=item.id).count() == 1

    movements = runner.invoke(args=['orders', 'movements', '--store-id', str(store_a.id)])
    assert 'DECREASE' in movements.output


def test_advance_refuses_invalid_edge_and_foreign_rows(app, factory, restaurant_a, restaurant_b):
    mine = factory.table_order(restaurant_a, status='COMPLETED')
    theirs = factory.table_order(restaurant_b)
    runner = app.test_cli_runner()

    invalid = runner.invoke(args=['orders', 'advance', 'table_orders', mine.id, 'READY', '--owner', 'partner-a'])
    foreign = runner.invoke(args=['orders', 'advance', 'table_orders', theirs.id, 'ACCEPTED', '--owner', 'partner-a'])

    assert invalid.exit_code != 0
    assert 'terminal' in invalid.output
    assert foreign.exit_code != 0
    assert 'not found' in foreign.output
