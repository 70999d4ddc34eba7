"""
Pytest fixtures for unitops backend tests.

Provides test database setup, unit/user factories, and auth helpers.
"""

import pytest

from unitops import create_app
from unitops.extensions import db
from unitops.models import User, PageAccess, UnitAccess, Unit, Product, PaymentType
from unitops.permissions import CAPABILITY_FLAGS
from unitops.services.auth_service import hash_password
from unitops.services.session_service import SessionContext


PASSWORD = "Password123!"
ALL_FLAGS = tuple(CAPABILITY_FLAGS.values())


@pytest.fixture(scope='session')
def app(tmp_path_factory):
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'UPLOAD_DIR': str(tmp_path_factory.mktemp("uploads")),
        'MAX_IMAGE_BYTES': 1024,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='session')
def password_hash(app):
    """One bcrypt hash shared by every test user."""
    return hash_password(PASSWORD)


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        db.session.remove()
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        db.session.remove()


@pytest.fixture(scope='function')
def make_user(db_session, password_hash):
    """
    Factory: make_user("alice", flags=("pg_sales",), units=[unit]).

    flags lists PageAccess columns to set; units are Unit rows or ids.
    """
    def _make(user_name, *, flags=(), units=(), super_admin=False, active=True, name=None):
        user = User(
            name=name or user_name.title(),
            user_name=user_name,
            password_hash=password_hash,
            active=active,
            is_super_admin=super_admin,
        )
        user.page_access = PageAccess(**{flag: True for flag in flags})
        db_session.add(user)
        db_session.flush()
        for unit in units:
            unit_id = unit if isinstance(unit, int) else unit.id
            db_session.add(UnitAccess(user_id=user.id, unit_id=unit_id))
        db_session.commit()
        return user

    return _make


@pytest.fixture(scope='function')
def unit_a(db_session):
    unit = Unit(name="Alpha Bistro", address="1 Main St", active=True)
    db_session.add(unit)
    db_session.commit()
    return unit


@pytest.fixture(scope='function')
def unit_b(db_session):
    unit = Unit(name="Beta Bar", address="2 Side St", active=True)
    db_session.add(unit)
    db_session.commit()
    return unit


@pytest.fixture(scope='function')
def cash(db_session):
    payment_type = PaymentType(name="Cash", abbreviation="CA", active=True)
    db_session.add(payment_type)
    db_session.commit()
    return payment_type


@pytest.fixture(scope='function')
def product_a(db_session, unit_a):
    product = Product(unit_id=unit_a.id, name="Espresso", sell_price=10.0, margin_perc=40.0, active=True)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def super_admin(make_user):
    return make_user("root", super_admin=True, flags=ALL_FLAGS, name="Root Admin")


@pytest.fixture(scope='function')
def staff(make_user, unit_a):
    """Regular user scoped to unit A with the day-to-day page flags."""
    return make_user(
        "staff",
        flags=("pg_sales", "pg_sales_confirm", "pg_expenses", "pg_business", "pg_result"),
        units=[unit_a],
    )


def context_for(user) -> SessionContext:
    """SessionContext built straight from the current user row."""
    flags = user.page_access.flags() if user.page_access else {}
    return SessionContext(
        user_id=user.id,
        display_name=user.name,
        is_super_admin=bool(user.is_super_admin),
        page_access=flags,
    )


def get_auth_token(app, user_name: str, password: str = PASSWORD) -> str:
    """
    Helper to get auth token for a user.

    Uses a throwaway client so the login cookie does not leak into the
    client a test makes requests with.
    """
    response = app.test_client().post('/api/auth/login', json={
        'user_name': user_name,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture(scope='function')
def login(app):
    """login("staff") -> Authorization headers for that user."""
    def _login(user_name, password=PASSWORD):
        token = get_auth_token(app, user_name, password)
        assert token, f"login failed for {user_name}"
        return auth_headers(token)

    return _login
