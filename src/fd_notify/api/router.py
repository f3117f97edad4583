"""WebSocket endpoint streaming room events to dashboards and tracking pages.

    /api/v1/ws/events?rooms=order:123,restaurant:9&token=<jwt>

The token is optional (guests may follow their own order room). A bad token
or a forbidden room closes the socket with code 1008 before anything is sent.
"""

import asyncio
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from src.fd_common.errors import InvalidCredentialsError
from src.fd_gateway.auth.capabilities import Actor
from src.fd_gateway.auth.jwt_handler import decode_token
from src.fd_notify.domain.access import RoomAccessError, authorize_rooms, parse_rooms
from src.fd_notify.infrastructure.bus import Subscription, get_notification_bus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["events"])


async def _forward(websocket: WebSocket, sub: Subscription) -> None:
    async for event in sub:
        await websocket.send_json(event.to_message())


async def _until_closed(websocket: WebSocket) -> None:
    while True:
        await websocket.receive_text()


@router.websocket("/events")
async def events(
    websocket: WebSocket,
    rooms: str = Query(""),
    token: str | None = Query(None),
) -> None:
    actor: Actor | None = None
    try:
        if token:
            actor = decode_token(token)
        allowed = authorize_rooms(actor, parse_rooms(rooms))
    except (InvalidCredentialsError, RoomAccessError) as exc:
        logger.info("WebSocket subscription refused: %s", exc)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    if not allowed:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    with get_notification_bus().subscribe(allowed) as sub:
        tasks = {
            asyncio.create_task(_forward(websocket, sub)),
            asyncio.create_task(_until_closed(websocket)),
        }
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.warning("WebSocket for %s closed on error: %r", sorted(allowed), exc)
        if sub.dropped:
            logger.info("Subscriber for %s dropped %d events", sorted(allowed), sub.dropped)
