"""WebSocket endpoint carrying presence announcements and real-time events."""

import json
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from taskboard_service.auth.authenticator import Authenticator, Identity
from taskboard_service.core.notification_dispatcher import NotificationDispatcher
from taskboard_service.errors import AuthenticationError
from taskboard_service.realtime.channels import (
    ERROR,
    JOIN_USER_ROOM,
    JOINED,
    SEND_NOTIFICATION,
    ChannelHub,
    event_frame,
)
from taskboard_service.realtime.presence import PresenceRegistry
from taskboard_service.utils.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _credential(websocket: WebSocket) -> str | None:
    """Bearer credential from the `token` query parameter or the Authorization header."""
    token = websocket.query_params.get("token")
    if token:
        return f"Bearer {token}"
    return websocket.headers.get("authorization")


def _joined_user_id(data: Any) -> str | None:
    """Accept either a bare user ID or {"userId": ...}."""
    if isinstance(data, dict):
        data = data.get("userId")
    if isinstance(data, str) and data.strip():
        return data.strip()
    return None


async def _receive_frame(websocket: WebSocket) -> Any:
    """Next decoded frame, or None when it is not a JSON text frame."""
    message = await websocket.receive()
    if message["type"] == "websocket.disconnect":
        raise WebSocketDisconnect(message.get("code", status.WS_1000_NORMAL_CLOSURE))
    text = message.get("text")
    if text is None:
        return None
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        return None


@router.websocket("/ws")
async def realtime_channel(websocket: WebSocket) -> None:
    """Serve one real-time channel until the client disconnects.

    The client authenticates with a bearer token when connecting and may only
    join its own user's room. Frames are JSON text of the form
    {"event": ..., "data": ...}.
    """
    state = websocket.app.state
    hub: ChannelHub = state.hub
    presence: PresenceRegistry = state.presence
    dispatcher: NotificationDispatcher = state.dispatcher
    authenticator: Authenticator = state.authenticator

    await websocket.accept()
    try:
        identity: Identity = await authenticator.verify(_credential(websocket))
    except AuthenticationError as e:
        logger.info("channel_rejected", reason=e.message)
        await websocket.send_json(event_frame(ERROR, {"message": e.message}))
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    channel_id = await hub.register(websocket)
    joined = False

    try:
        while True:
            frame = await _receive_frame(websocket)
            if frame is None:
                await websocket.send_json(event_frame(ERROR, {"message": "Frames must be JSON"}))
                continue

            if not isinstance(frame, dict):
                await websocket.send_json(event_frame(ERROR, {"message": "Frames must be JSON objects"}))
                continue

            event = frame.get("event")
            data = frame.get("data")

            if event == JOIN_USER_ROOM:
                user_id = _joined_user_id(data) or identity.user_id
                if user_id != identity.user_id:
                    await websocket.send_json(event_frame(ERROR, {"message": "Cannot join another user's room"}))
                    continue
                await presence.join(user_id, channel_id)
                joined = True
                await websocket.send_json(event_frame(JOINED, {"userId": user_id}))

            elif event == SEND_NOTIFICATION:
                if not identity.is_admin:
                    await websocket.send_json(event_frame(ERROR, {"message": "Admin access denied"}))
                    continue
                target = data.get("userId") if isinstance(data, dict) else None
                message = data.get("message") if isinstance(data, dict) else None
                if not isinstance(target, str) or not target or not isinstance(message, str) or not message:
                    await websocket.send_json(event_frame(ERROR, {"message": "userId and message are required"}))
                    continue
                delivered = await dispatcher.relay(target, message)
                logger.info("realtime_relayed", sender=identity.user_id, user_id=target, delivered=delivered)

            else:
                await websocket.send_json(event_frame(ERROR, {"message": f"Unknown event: {event}"}))

    except WebSocketDisconnect:
        logger.debug("channel_disconnected", channel_id=channel_id, user_id=identity.user_id, joined=joined)
    finally:
        await presence.leave(channel_id)
        await hub.unregister(channel_id)
