"""Pytest configuration and shared fixtures."""

import os

# Use in-memory sqlite for tests; must be set before app.core.config loads
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["ROUTES_API_KEY"] = "test-key"

import pytest  # noqa: E402

from app.db import Base, SessionLocal, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.api.accounts import hash_credential  # noqa: E402
from app.models.account import Account  # noqa: E402
from app.services.route_provider import (  # noqa: E402
    GatewayError,
    RouteResult,
    get_route_gateway,
)


class FakeGateway:
    """Stands in for the Routes API; set ``error`` to make lookups fail."""

    def __init__(self, distance_meters: int = 1500, encoded_path: str = "_p~iF~ps|U"):
        self.distance_meters = distance_meters
        self.encoded_path = encoded_path
        self.error = None
        self.calls = []

    def compute_route(self, origin, destination):
        self.calls.append((origin, destination))
        if self.error:
            raise GatewayError(self.error)
        return RouteResult(distance_meters=self.distance_meters, encoded_path=self.encoded_path)


@pytest.fixture(autouse=True)
def fresh_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def account(db):
    acct = Account(email="a@x.com", name="Ada", credential_hash=hash_credential("pw"))
    db.add(acct)
    db.commit()
    db.refresh(acct)
    return acct


@pytest.fixture
def client(gateway):
    from fastapi.testclient import TestClient

    app.dependency_overrides[get_route_gateway] = lambda: gateway
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
