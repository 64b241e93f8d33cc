from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import make_engine, init_db
from handlers import cars, users
from handlers.auth import TokenService
from main import create_app
from models.user import UserRole


@pytest.fixture
def engine():
    engine = make_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def file_session_factory(tmp_path):
    """Sessions on a SQLite file, one connection per session, for cross-session tests."""
    engine = make_engine(f"sqlite:///{tmp_path / 'rentals.db'}")
    init_db(engine)
    yield sessionmaker(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def tokens():
    return TokenService("test-access-secret", "test-refresh-secret", access_max_age=60, refresh_max_age=120)


@pytest.fixture
def client(session_factory, tokens):
    app = create_app(session_factory=session_factory, tokens=tokens)
    return TestClient(app)


@pytest.fixture
def make_user(db):
    counter = iter(range(1, 1000))

    def _make(role=UserRole.USER, email=None):
        n = next(counter)
        return users.create_user(db, email or f"user{n}@example.com", "not-a-real-hash", "Test", f"User{n}", role=role)

    return _make


@pytest.fixture
def renter(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role=UserRole.ADMIN)


@pytest.fixture
def make_car(db):
    def _make(price="50.00", available=True, latitude=None, longitude=None, **extra):
        data = {
            "brand": extra.pop("brand", "Toyota"),
            "model": extra.pop("model", "Camry"),
            "year": extra.pop("year", 2022),
            "price_per_day": Decimal(price),
            "available": available,
            "latitude": latitude,
            "longitude": longitude,
        }
        data.update(extra)
        return cars.create_car(db, data, admin_id=0)

    return _make


@pytest.fixture
def car(make_car):
    return make_car()


@pytest.fixture
def auth_headers(tokens):
    def _headers(user):
        return {"Authorization": f"Bearer {tokens.issue(user)['access_token']}"}

    return _headers
