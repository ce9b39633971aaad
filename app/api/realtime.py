"""WebSocket rooms: one room per group, carrying `attendance_updated` hints."""
import asyncio
import logging

from fastapi import APIRouter, HTTPException, Query, WebSocket, WebSocketDisconnect, status

from app.api.deps import Dispatcher, Roster, decode_token
from app.errors import DomainError
from app.services.notifier import Subscription

logger = logging.getLogger(__name__)

router = APIRouter()


async def _forward_events(websocket: WebSocket, subscription: Subscription) -> None:
    while True:
        event = await subscription.next_event()
        await websocket.send_json({"event": event, "groupId": subscription.group_id})


async def _read_client(websocket: WebSocket) -> None:
    while True:
        try:
            message = await websocket.receive_json()
        except ValueError:
            continue
        if isinstance(message, dict) and message.get("action") == "ping":
            await websocket.send_json({"event": "pong"})


@router.websocket("/groups/{group_id}")
async def group_channel(websocket: WebSocket, group_id: str, dispatcher: Dispatcher, roster: Roster, token: str = Query("")):
    """Join the group's room; the client refetches state whenever an event arrives."""
    try:
        payload = decode_token(token)
        await roster.require_member(group_id, payload["sub"])
    except (HTTPException, DomainError) as e:
        logger.info("Rejected realtime connection to group %s: %s", group_id, getattr(e, "detail", e))
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await websocket.accept()
    subscription = dispatcher.subscribe(group_id)
    tasks = {
        asyncio.create_task(_forward_events(websocket, subscription)),
        asyncio.create_task(_read_client(websocket)),
    }
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                raise exc
    finally:
        dispatcher.unsubscribe(subscription.handle)
        logger.debug("Observer %s left group %s", subscription.handle.token, group_id)
