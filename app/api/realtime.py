from logging import getLogger
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from app.src.db import sessionMaker
from app.src import exceptions, validators
from app.src.realtime import CHANNELS, feed

route_common = APIRouter()
logger = getLogger(__name__)


## API endpoints [Customer, Vendor]
@route_common.websocket("/realtime/{table}")
async def listen(websocket: WebSocket, table: str, access_token: str = Query()):
    """
    Streams change notifications of one table to the connected client.

    Only rows the account may read are delivered. Unknown tables and
    invalid tokens close the connection with a policy violation.
    """
    session = sessionMaker()
    try:
        token = validators.accountToken(access_token, session)
    except exceptions.InvalidToken:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    finally:
        session.close()
    if table not in CHANNELS:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    listenerId = feed.subscribe(websocket, table, token.account_id)
    try:
        # Client messages are ignored, reading only detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect as e:
        logger.debug("Listener %s disconnected with code %s", listenerId, e.code)
    finally:
        feed.unsubscribe(table, listenerId)
