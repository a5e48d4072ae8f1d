import asyncio
from uuid import UUID
import pytest
from fastapi import status
from fastapi.websockets import WebSocketDisconnect

from app.src.db import Vendor
from app.src.enums import CallStatus, ChangeEvent
from app.src.urls import (
    URL_CUSTOMER_APP,
    URL_VENDOR_APP,
    URL_CALL,
    URL_VENDOR,
    URL_SUBSCRIPTION,
    URL_REALTIME,
)
from tests.conftest import CUSTOMER_LOCATION


class FakeSocket:
    def __init__(self, broken=False):
        self.broken = broken
        self.messages = []

    async def send_json(self, data):
        if self.broken:
            raise RuntimeError("connection reset")
        self.messages.append(data)


def listen(feed, table, user):
    socket = FakeSocket()
    feed.subscribe(socket, table, UUID(user.id))
    return socket


def placeCall(client, customer, vendor):
    return client.post(
        URL_CUSTOMER_APP + URL_CALL,
        headers=customer.header,
        data={
            "vendor_id": vendor.vendor["id"],
            "latitude": CUSTOMER_LOCATION[0],
            "longitude": CUSTOMER_LOCATION[1],
        },
    )


class TestChangeFeed:
    def test_subscribe_unknown_table(self, cleanFeed):
        with pytest.raises(KeyError):
            cleanFeed.subscribe(FakeSocket(), "account", UUID(int=1))

    def test_unsubscribe(self, cleanFeed):
        listenerId = cleanFeed.subscribe(FakeSocket(), "call", UUID(int=1))
        assert cleanFeed.listenerCount("call") == 1
        cleanFeed.unsubscribe("call", listenerId)
        cleanFeed.unsubscribe("call", listenerId)
        assert cleanFeed.listenerCount("call") == 0

    def test_no_listeners(self, cleanFeed, session, vendorUser):
        vendor = session.query(Vendor).one()
        delivered = asyncio.run(
            cleanFeed.publish(session, "vendor", ChangeEvent.UPDATE, vendor)
        )
        assert delivered == 0

    def test_broken_listener_is_dropped(self, cleanFeed, session, vendorUser, customerUser):
        healthy = listen(cleanFeed, "vendor", customerUser)
        cleanFeed.subscribe(FakeSocket(broken=True), "vendor", UUID(vendorUser.id))

        vendor = session.query(Vendor).one()
        delivered = asyncio.run(
            cleanFeed.publish(session, "vendor", ChangeEvent.UPDATE, vendor)
        )
        assert delivered == 1
        assert len(healthy.messages) == 1
        assert cleanFeed.listenerCount("vendor") == 1


class TestNotifications:
    def test_call_reaches_customer_and_owning_vendor(
        self, client, cleanFeed, customerUser, onlineVendor, makeVendor, signUp
    ):
        joko = makeVendor("joko@warung.co.id", business_name="Es Teh Joko")
        ani = signUp("ani@pelanggan.co.id", URL_CUSTOMER_APP, full_name="Ani")
        sockets = {
            "budi": listen(cleanFeed, "call", customerUser),
            "sari": listen(cleanFeed, "call", onlineVendor),
            "joko": listen(cleanFeed, "call", joko),
            "ani": listen(cleanFeed, "call", ani),
        }

        response = placeCall(client, customerUser, onlineVendor)
        assert response.status_code == 201

        for name in ("budi", "sari"):
            (message,) = sockets[name].messages
            assert message["table"] == "call"
            assert message["event"] == "INSERT"
            assert message["record"]["id"] == response.json()["id"]
            assert message["record"]["status"] == CallStatus.PENDING
        assert sockets["joko"].messages == []
        assert sockets["ani"].messages == []

    def test_acknowledgement_is_published(
        self, client, cleanFeed, customerUser, onlineVendor
    ):
        call = placeCall(client, customerUser, onlineVendor).json()
        socket = listen(cleanFeed, "call", customerUser)

        client.patch(
            URL_VENDOR_APP + URL_CALL,
            headers=onlineVendor.header,
            data={"id": call["id"], "status": int(CallStatus.ACKNOWLEDGED)},
        )
        (message,) = socket.messages
        assert message["event"] == "UPDATE"
        assert message["record"]["status"] == CallStatus.ACKNOWLEDGED
        assert message["record"]["acknowledged_on"] is not None

    def test_repeated_acknowledgement_is_silent(
        self, client, cleanFeed, customerUser, onlineVendor
    ):
        call = placeCall(client, customerUser, onlineVendor).json()
        acknowledge = {"id": call["id"], "status": int(CallStatus.ACKNOWLEDGED)}
        client.patch(URL_VENDOR_APP + URL_CALL, headers=onlineVendor.header, data=acknowledge)

        socket = listen(cleanFeed, "call", customerUser)
        client.patch(URL_VENDOR_APP + URL_CALL, headers=onlineVendor.header, data=acknowledge)
        assert socket.messages == []

    def test_vendor_changes_reach_everyone(
        self, client, cleanFeed, customerUser, onlineVendor
    ):
        customerSocket = listen(cleanFeed, "vendor", customerUser)
        vendorSocket = listen(cleanFeed, "vendor", onlineVendor)

        client.patch(
            URL_VENDOR_APP + URL_VENDOR,
            headers=onlineVendor.header,
            data={"latitude": -6.22, "longitude": 106.83},
        )
        for socket in (customerSocket, vendorSocket):
            (message,) = socket.messages
            assert message["record"]["latitude"] == pytest.approx(-6.22)

    def test_subscription_stays_with_owner(
        self, client, cleanFeed, customerUser, vendorUser
    ):
        customerSocket = listen(cleanFeed, "subscription", customerUser)
        vendorSocket = listen(cleanFeed, "subscription", vendorUser)

        client.post(URL_VENDOR_APP + URL_SUBSCRIPTION, headers=vendorUser.header)
        assert len(vendorSocket.messages) == 1
        assert customerSocket.messages == []


class TestEndpoint:
    def test_invalid_token_closes(self, client):
        url = URL_CUSTOMER_APP + URL_REALTIME.format(table="call")
        url += "?access_token=" + "0" * 64
        with pytest.raises(WebSocketDisconnect) as error:
            with client.websocket_connect(url):
                pass
        assert error.value.code == status.WS_1008_POLICY_VIOLATION

    def test_unknown_table_closes(self, client, customerUser):
        url = URL_CUSTOMER_APP + URL_REALTIME.format(table="account")
        url += "?access_token=" + customerUser.access_token
        with pytest.raises(WebSocketDisconnect) as error:
            with client.websocket_connect(url):
                pass
        assert error.value.code == status.WS_1008_POLICY_VIOLATION
