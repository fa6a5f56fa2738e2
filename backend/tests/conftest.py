"""
Pytest fixtures for partner portal backend tests.

Provides test database setup, two partners with their own locations,
row factories, a manual timer scheduler and an authenticated test client.
"""

from datetime import date, time, timedelta

import pytest

from partner_portal import create_app
from partner_portal.decorators import issue_partner_token
from partner_portal.extensions import db
from partner_portal.models import (
    Restaurant,
    RestaurantBooking,
    RestaurantOrder,
    RestaurantTableOrder,
    Store,
    StoreCatalogueItem,
    StoreMember,
    StoreOrder,
)
from partner_portal.time_utils import utcnow

PARTNER_A = "partner-a"
PARTNER_B = "partner-b"


class ManualTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Timers that only fire when the test says so."""

    def __init__(self):
        self.timers = []

    def call_later(self, delay, callback):
        timer = ManualTimer(delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self):
        return [t for t in self.timers if not t.cancelled]

    def run_pending(self):
        due = self.pending
        self.timers = []
        for timer in due:
            timer.callback()
        return len(due)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SECRET_KEY': 'test-secret',
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'PAGE_SIZE': 10,
        'POLL_INTERVAL_SECONDS': 0,
        'REFETCH_DEBOUNCE_SECONDS': 0.15,
        'ALERT_SOUND_URL': '/sound.wav',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def row_store(app):
    return app.extensions["row_store"]


@pytest.fixture(scope='function')
def scheduler():
    return ManualScheduler()


@pytest.fixture(scope='function')
def views(app, scheduler):
    """View registry whose timers run on the manual scheduler."""
    registry = app.extensions["partner_views"]
    registry.scheduler = scheduler
    yield registry
    registry.close_all()
    registry.scheduler = None


@pytest.fixture(scope='function')
def client(app, views):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def restaurant_a(db_session):
    restaurant = Restaurant(owner_user_id=PARTNER_A, name="Tasca A", city="Porto")
    db_session.add(restaurant)
    db_session.commit()
    return restaurant


@pytest.fixture(scope='function')
def restaurant_b(db_session):
    restaurant = Restaurant(owner_user_id=PARTNER_B, name="Tasca B", city="Faro")
    db_session.add(restaurant)
    db_session.commit()
    return restaurant


@pytest.fixture(scope='function')
def store_a(db_session):
    store = Store(owner_user_id=PARTNER_A, name="Store A", city="Porto")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def store_b(db_session):
    store = Store(owner_user_id=PARTNER_B, name="Store B", city="Faro")
    db_session.add(store)
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def shared_store(db_session):
    """Owned by partner B, partner A is staff."""
    store = Store(owner_user_id=PARTNER_B, name="Shared Store", city="Braga")
    db_session.add(store)
    db_session.commit()
    db_session.add(StoreMember(store_id=store.id, user_id=PARTNER_A, role="staff"))
    db_session.commit()
    return store


class RowFactory:
    """Creates committed rows; created_at steps back one minute per row so order is deterministic."""

    def __init__(self, session):
        self.session = session
        self._counter = 0

    def _created_at(self, minutes_ago=None):
        self._counter += 1
        if minutes_ago is None:
            minutes_ago = 1000 - self._counter
        return utcnow() - timedelta(minutes=minutes_ago)

    def _save(self, obj):
        self.session.add(obj)
        self.session.commit()
        return obj

    def table_order(self, restaurant, minutes_ago=None, **kwargs):
        values = dict(
            restaurant_id=restaurant.id,
            table_label="T1",
            order_code=f"T-{self._counter + 1:03d}",
            customer_name="Guest",
            items=[{"name": "Soup", "qty": 1, "price": 3.5}],
            total_cents=350,
            status="PLACED",
        )
        values.update(kwargs)
        return self._save(RestaurantTableOrder(created_at=self._created_at(minutes_ago), **values))

    def pickup_order(self, restaurant, minutes_ago=None, **kwargs):
        values = dict(
            restaurant_id=restaurant.id,
            order_number=f"P-{self._counter + 1:03d}",
            pickup_code="1234",
            customer_name="Guest",
            customer_phone="+351900000000",
            items=[],
            order_status="NEW",
        )
        values.update(kwargs)
        return self._save(RestaurantOrder(created_at=self._created_at(minutes_ago), **values))

    def store_order(self, store, minutes_ago=None, **kwargs):
        values = dict(
            store_id=store.id,
            order_no=f"SO-{self._counter + 1:03d}",
            customer_name="Shopper",
            items=[],
            status="NEW",
        )
        values.update(kwargs)
        return self._save(StoreOrder(created_at=self._created_at(minutes_ago), **values))

    def booking(self, restaurant, minutes_ago=None, **kwargs):
        values = dict(
            restaurant_id=restaurant.id,
            booking_code=f"B-{self._counter + 1:03d}",
            customer_name="Diner",
            booking_date=date(2026, 10, 20),
            booking_time=time(20, 0),
            party_size=2,
            status="pending",
        )
        values.update(kwargs)
        return self._save(RestaurantBooking(created_at=self._created_at(minutes_ago), **values))

    def catalogue_item(self, store, **kwargs):
        values = dict(
            store_id=store.id,
            title="Item",
            price_cents=100,
            track_inventory=True,
            stock_qty=10,
            low_stock_threshold=5,
            stock_status="in_stock",
            is_available=True,
        )
        values.update(kwargs)
        return self._save(StoreCatalogueItem(**values))


@pytest.fixture(scope='function')
def factory(db_session):
    return RowFactory(db_session)


def auth_headers(partner_user_id: str) -> dict:
    """Helper to create Authorization headers (app context required)."""
    return {'Authorization': f'Bearer {issue_partner_token(partner_user_id)}'}


@pytest.fixture(scope='function')
def headers_a(app):
    return auth_headers(PARTNER_A)


@pytest.fixture(scope='function')
def headers_b(app):
    return auth_headers(PARTNER_B)
