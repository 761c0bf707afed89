"""Live real-time channels and event delivery."""

import asyncio
from itertools import count
from typing import Any, Protocol

from taskboard_service.utils.logging import get_logger

logger = get_logger(__name__)

# Event names on the wire
JOIN_USER_ROOM = "join-user-room"
SEND_NOTIFICATION = "send-notification"
NEW_NOTIFICATION = "new-notification"
JOINED = "joined"
ERROR = "error"


class ChannelClosedError(Exception):
    """Raised when sending to a channel that is no longer connected."""

    def __init__(self, channel_id: str) -> None:
        super().__init__(f"Channel is not connected: {channel_id}")
        self.channel_id = channel_id


class Channel(Protocol):
    """The part of a WebSocket connection the hub needs."""

    async def send_json(self, data: Any, mode: str = "text") -> None: ...


def event_frame(event: str, data: Any) -> dict[str, Any]:
    """Wrap a payload in the wire envelope."""
    return {"event": event, "data": data}


class ChannelHub:
    """Owns connected channels, addressed by a process-unique channel ID."""

    def __init__(self) -> None:
        self._channels: dict[str, Channel] = {}
        self._ids = count(1)
        self._lock = asyncio.Lock()

    async def register(self, channel: Channel) -> str:
        """Add a connected channel.

        Returns:
            The channel ID assigned to it
        """
        async with self._lock:
            channel_id = f"ch-{next(self._ids)}"
            self._channels[channel_id] = channel
        logger.debug("channel_registered", channel_id=channel_id)
        return channel_id

    async def unregister(self, channel_id: str) -> None:
        async with self._lock:
            self._channels.pop(channel_id, None)
        logger.debug("channel_unregistered", channel_id=channel_id)

    async def send(self, channel_id: str, event: str, data: Any) -> None:
        """Send one event to one channel.

        Raises:
            ChannelClosedError: If the channel is not registered
        """
        async with self._lock:
            channel = self._channels.get(channel_id)
        if channel is None:
            raise ChannelClosedError(channel_id)
        await channel.send_json(event_frame(event, data))

    def __len__(self) -> int:
        return len(self._channels)
