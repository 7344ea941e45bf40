"""
Pytest fixtures for bonusboard backend tests.

Provides an app bound to in-memory SQLite, a per-test clean database,
and small factories for staff, sales, and goals.
"""

import itertools

import pytest
from bonusboard import create_app
from bonusboard.config import Config
from bonusboard.extensions import db
from bonusboard.models import CashierGoal, Sale, SaleReceipt, SalesGoal, User, UserStore


class TestConfig(Config):
    __test__ = False

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite:///:memory:"
    DAPIC_CREDENTIALS = {}
    TEAM_BONUS_STORE_IDS = ["saron2"]


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app(TestConfig)

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


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
def make_user(db_session):
    """Factory: make_user("vendor", "Ana Souza", store_id="saron1", achieved=2.5)."""
    counter = itertools.count(1)

    def _make(role, full_name, *, store_id="saron1", achieved=None, not_achieved=None, stores=(), is_active=True):
        user = User(
            username=f"{role}{next(counter)}",
            full_name=full_name,
            role=role,
            store_id=store_id,
            bonus_percentage_achieved=achieved,
            bonus_percentage_not_achieved=not_achieved,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.flush()
        for store in stores:
            db_session.add(UserStore(user_id=user.id, store_id=store))
        db_session.commit()
        return user

    return _make


@pytest.fixture(scope='function')
def make_sale(db_session):
    """Factory: make_sale("saron1", "Ana Souza", date(2024, 1, 3), 500.0, receipts=[("pix", 500.0)])."""
    counter = itertools.count(1)

    def _make(store_id, seller_name, sale_date, total_value, *, receipts=()):
        sale = Sale(
            sale_code=f"V{next(counter):05d}",
            sale_date=sale_date,
            total_value=total_value,
            seller_name=seller_name,
            store_id=store_id,
            status="Finalizado",
        )
        db_session.add(sale)
        db_session.flush()
        for method, gross in receipts:
            db_session.add(SaleReceipt(sale_id=sale.id, payment_method=method, gross_value=gross, net_value=gross))
        db_session.commit()
        return sale

    return _make


@pytest.fixture(scope='function')
def make_goal(db_session):
    """Factory: make_goal("saron1", date(...), date(...), 10000, seller=user)."""

    def _make(store_id, week_start, week_end, target_value, *, seller=None, goal_type=None, period="weekly", is_active=True):
        goal = SalesGoal(
            store_id=store_id,
            type=goal_type or ("individual" if seller is not None else "team"),
            period=period,
            seller_id=seller.id if seller is not None else None,
            week_start=week_start,
            week_end=week_end,
            target_value=target_value,
            is_active=is_active,
        )
        db_session.add(goal)
        db_session.commit()
        return goal

    return _make


@pytest.fixture(scope='function')
def make_cashier_goal(db_session):
    def _make(cashier, store_id, week_start, week_end, *, methods=("pix",), target=50.0, achieved=1.0, not_achieved=0.0):
        goal = CashierGoal(
            cashier_id=cashier.id,
            store_id=store_id,
            period_type="weekly",
            week_start=week_start,
            week_end=week_end,
            payment_methods=list(methods),
            target_percentage=target,
            bonus_percentage_achieved=achieved,
            bonus_percentage_not_achieved=not_achieved,
        )
        db_session.add(goal)
        db_session.commit()
        return goal

    return _make
