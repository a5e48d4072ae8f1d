"""
In-process change notification feed.

Listeners are WebSocket connections subscribed to one table channel. After a
route handler commits a write it publishes the row, and each listener whose
profile may read that row (per the table's select policy) receives a
`ChangeNotification`. Delivery is best effort, a listener that fails to
receive is dropped and is expected to reconnect and re-read.
"""

from datetime import datetime, timezone
from logging import getLogger
from typing import Dict
from uuid import UUID, uuid4
from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm.session import Session

from app.src import policies, schemas
from app.src.db import Call, Profile, Subscription, Vendor
from app.src.enums import ChangeEvent

logger = getLogger(__name__)

# Channel name -> ORM model
CHANNELS = {
    "profile": Profile,
    "vendor": Vendor,
    "subscription": Subscription,
    "call": Call,
}


class Listener:
    def __init__(self, websocket: WebSocket, profile_id: UUID):
        self.id = uuid4().hex
        self.websocket = websocket
        self.profile_id = profile_id


class ChangeFeed:
    """
    Keeps listeners per channel and fans out committed changes.

    Example:
        >>> listenerId = feed.subscribe(websocket, "call", token.account_id)
        >>> await feed.publish(session, "call", ChangeEvent.INSERT, call)
        >>> feed.unsubscribe("call", listenerId)
    """

    def __init__(self):
        self.channels: Dict[str, Dict[str, Listener]] = {
            table: {} for table in CHANNELS
        }

    def subscribe(self, websocket: WebSocket, table: str, profileId: UUID) -> str:
        if table not in self.channels:
            raise KeyError(table)
        listener = Listener(websocket, profileId)
        self.channels[table][listener.id] = listener
        logger.info("Listener %s subscribed to %s", listener.id, table)
        return listener.id

    def unsubscribe(self, table: str, listenerId: str) -> None:
        if self.channels.get(table, {}).pop(listenerId, None) is not None:
            logger.info("Listener %s unsubscribed from %s", listenerId, table)

    def listenerCount(self, table: str) -> int:
        return len(self.channels.get(table, {}))

    async def publish(
        self, session: Session, table: str, event: ChangeEvent, row
    ) -> int:
        """
        Send `row` to every listener of `table` allowed to read it.

        Returns:
            int: Number of listeners the notification was delivered to.
        """
        listeners = list(self.channels.get(table, {}).values())
        if not listeners:
            return 0

        notification = schemas.ChangeNotification(
            table=table,
            event=event.name,
            record=jsonable_encoder(row),
            timestamp=datetime.now(timezone.utc),
        )
        message = notification.model_dump(mode="json")

        delivered = 0
        for listener in listeners:
            if not policies.visible(session, listener.profile_id, row):
                continue
            try:
                await listener.websocket.send_json(message)
                delivered += 1
            except Exception:
                logger.warning("Delivery to listener %s failed, removing", listener.id)
                self.unsubscribe(table, listener.id)
        return delivered


feed = ChangeFeed()
