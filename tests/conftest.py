"""
Pytest configuration and shared fixtures.
"""

import json
from datetime import datetime, timezone

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clock import FixedClock
from database import init_db, make_engine
from license_client import LicenseClient
from license_types import TransportFailure, TransportResponse

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeTransport:
    """Scripted stand-in for HttpTransport, one queue of outcomes per endpoint."""

    def __init__(self):
        self.queued = {}
        self.calls = []

    def respond(self, endpoint, status_code, payload=None):
        body = "" if payload is None else json.dumps(payload)
        self.queued.setdefault(endpoint, []).append(TransportResponse(status_code=status_code, body=body))
        return self

    def fail(self, endpoint, message="Connection timed out"):
        self.queued.setdefault(endpoint, []).append(TransportFailure(message=message))
        return self

    def endpoints_called(self):
        return [endpoint for endpoint, _ in self.calls]

    async def post(self, url, json_body, timeout=30):
        endpoint = "/licenses/" + url.rsplit("/", 1)[1]
        self.calls.append((endpoint, json_body))
        queue = self.queued.get(endpoint)
        if not queue:
            raise AssertionError(f"Unexpected call to {endpoint}")
        return queue.pop(0)


@pytest.fixture
def session_factory():
    """Fixture for a session factory bound to an in-memory database."""
    engine = make_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def client(db, transport, clock):
    """Fixture for a LicenseClient wired to fakes."""
    return LicenseClient(db, transport=transport, clock=clock, domain="example.com")
