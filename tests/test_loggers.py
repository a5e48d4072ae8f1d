import logging
from uuid import UUID
import pytest
import requests

from app.src import openobserve
from app.src.db import Call
from app.src.loggers import logEvent
from app.src.openobserve import logEvent as shipEvent
from app.src.schemas import RequestInfo
from app.src.urls import URL_CUSTOMER_APP, URL_CALL
from tests.conftest import CUSTOMER_LOCATION


class FakeSocket:
    def __init__(self):
        self.messages = []

    async def send_json(self, data):
        self.messages.append(data)


@pytest.fixture
def unreachableSink(monkeypatch):
    """OpenObserve wired back in, with every delivery refused."""
    attempts = []

    def refuse(url, *args, **kwargs):
        attempts.append(url)
        raise requests.ConnectionError("connection refused")

    monkeypatch.setattr(openobserve, "logEvent", shipEvent)
    monkeypatch.setattr(openobserve.client, "post", refuse)
    return attempts


def test_sink_failure_is_reported(unreachableSink, caplog):
    requestInfo = RequestInfo(method="POST", path="/auth/account", app_id=1)
    with caplog.at_level(logging.ERROR, logger="uvicorn.error"):
        logEvent(None, requestInfo, {"email_id": "sari@warung.co.id"})
    assert len(unreachableSink) == 1
    assert "/auth/account" in caplog.text


def test_committed_call_survives_sink_failure(
    client, session, cleanFeed, customerUser, onlineVendor, unreachableSink
):
    socket = FakeSocket()
    cleanFeed.subscribe(socket, "call", UUID(onlineVendor.id))

    response = client.post(
        URL_CUSTOMER_APP + URL_CALL,
        headers=customerUser.header,
        data={
            "vendor_id": onlineVendor.vendor["id"],
            "latitude": CUSTOMER_LOCATION[0],
            "longitude": CUSTOMER_LOCATION[1],
        },
    )
    assert response.status_code == 201
    assert len(unreachableSink) == 1
    assert session.query(Call).count() == 1
    (message,) = socket.messages
    assert message["record"]["id"] == response.json()["id"]
