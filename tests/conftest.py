"""Shared test infrastructure for the UMKM Call Server test suite.

Provides:
- database: in-memory SQLite engine bound to the application session factory
- session: a session on that engine for ORM level assertions
- auditLog: OpenObserve replaced by an in-memory list of events
- client: TestClient on the mounted application
- signUp: factory creating an account, a token and optionally a profile
- vendorUser / onlineVendor / customerUser: ready made participants
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.pool import StaticPool

from app.main import app
from app.src import openobserve
from app.src.db import ORMbase, sessionMaker
from app.src.enums import SubscriptionStatus
from app.src.realtime import feed
from app.src.urls import (
    URL_AUTH_APP,
    URL_CUSTOMER_APP,
    URL_VENDOR_APP,
    URL_ACCOUNT,
    URL_ACCOUNT_TOKEN,
    URL_PROFILE,
    URL_VENDOR,
    URL_SUBSCRIPTION,
)

# Reference points in central Jakarta
CUSTOMER_LOCATION = (-6.2, 106.816666)
VENDOR_LOCATION = (-6.21, 106.82)
PASSWORD = "password"


class User:
    def __init__(self, id: str, access_token: str):
        self.id = id
        self.access_token = access_token
        self.header = {"Authorization": f"Bearer {access_token}"}
        self.vendor = None


# ---------------------------------------------------------------------------
# Database fixtures
# ---------------------------------------------------------------------------
@pytest.fixture(autouse=True)
def database():
    """Fresh in-memory schema for every test, shared by all sessions."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def enableForeignKeys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    ORMbase.metadata.create_all(engine)
    sessionMaker.configure(bind=engine)
    yield engine
    ORMbase.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(database):
    session = sessionMaker()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def auditLog(monkeypatch):
    events = []
    monkeypatch.setattr(openobserve, "logEvent", events.append)
    return events


@pytest.fixture(autouse=True)
def cleanFeed():
    yield feed
    for listeners in feed.channels.values():
        listeners.clear()


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------
@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def signUp(client):
    def _signUp(email_id: str, appURL: str | None = None, full_name="Pengguna"):
        credentials = {"email_id": email_id, "password": PASSWORD}
        account = client.post(URL_AUTH_APP + URL_ACCOUNT, data=credentials)
        assert account.status_code == 201, account.text
        token = client.post(URL_AUTH_APP + URL_ACCOUNT_TOKEN, data=credentials)
        assert token.status_code == 201, token.text

        user = User(account.json()["id"], token.json()["access_token"])
        if appURL is not None:
            profile = client.post(
                appURL + URL_PROFILE, headers=user.header, data={"full_name": full_name}
            )
            assert profile.status_code == 201, profile.text
        return user

    return _signUp


@pytest.fixture
def makeVendor(client, signUp):
    def _makeVendor(email_id: str, business_name="Warung Bu Sari"):
        user = signUp(email_id, URL_VENDOR_APP)
        vendor = client.post(
            URL_VENDOR_APP + URL_VENDOR,
            headers=user.header,
            data={"business_name": business_name, "business_type": "Makanan"},
        )
        assert vendor.status_code == 201, vendor.text
        user.vendor = vendor.json()
        return user

    return _makeVendor


@pytest.fixture
def goOnline(client):
    def _goOnline(user: User, location=VENDOR_LOCATION):
        subscription = client.post(
            URL_VENDOR_APP + URL_SUBSCRIPTION,
            headers=user.header,
            data={"status": int(SubscriptionStatus.ACTIVE)},
        )
        assert subscription.status_code == 201, subscription.text
        vendor = client.patch(
            URL_VENDOR_APP + URL_VENDOR,
            headers=user.header,
            data={"is_active": True, "latitude": location[0], "longitude": location[1]},
        )
        assert vendor.status_code == 200, vendor.text
        user.vendor = vendor.json()
        return user

    return _goOnline


@pytest.fixture
def vendorUser(makeVendor):
    return makeVendor("sari@warung.co.id")


@pytest.fixture
def onlineVendor(vendorUser, goOnline):
    return goOnline(vendorUser)


@pytest.fixture
def customerUser(signUp):
    return signUp("budi@pelanggan.co.id", URL_CUSTOMER_APP, full_name="Budi")
