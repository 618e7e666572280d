import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("ENV", "test")

from datetime import datetime
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from journal.api.auth import create_access_token
from journal.api.main import app
from journal.core.position_manager import PositionManager
from journal.models.base import Base, get_db
from journal.models.users import User
import journal.models.positions  # noqa: F401  registers tables


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def user(db):
    user = User(email="trader@example.com")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def other_user(db):
    user = User(email="someone.else@example.com")
    db.add(user)
    db.commit()
    return user


@pytest.fixture
def manager(db):
    return PositionManager(db)


@pytest.fixture
def open_position(manager, user):
    """Buy 100 @ 10 on 2024-01-02."""
    return manager.create_position(
        user.id, "aapl", "Buy", Decimal("100"), Decimal("10"), datetime(2024, 1, 2)
    )


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def other_auth_headers(other_user):
    return {"Authorization": f"Bearer {create_access_token(other_user.id)}"}
