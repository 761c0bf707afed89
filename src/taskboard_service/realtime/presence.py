"""Presence registry: which users currently hold a real-time channel."""

import asyncio

from taskboard_service.utils.logging import get_logger
from taskboard_service.utils.metrics import get_metrics

logger = get_logger(__name__)
metrics = get_metrics()


class PresenceRegistry:
    """Maps user IDs to the ID of their active real-time channel.

    One channel per user; the most recent join wins. State is in-memory only
    and is rebuilt as clients reconnect. Every read and write goes through a
    single lock so a disconnect cannot interleave with a dispatch lookup.
    """

    def __init__(self) -> None:
        self._channels: dict[str, str] = {}
        self._lock = asyncio.Lock()

    async def join(self, user_id: str, channel_id: str) -> None:
        """Record `channel_id` as the active channel for `user_id`.

        Args:
            user_id: User announcing itself
            channel_id: Channel the announcement arrived on
        """
        async with self._lock:
            previous = self._channels.get(user_id)
            self._channels[user_id] = channel_id
            metrics.online_users.set(len(self._channels))

        logger.info(
            "presence_joined",
            user_id=user_id,
            channel_id=channel_id,
            replaced_channel=previous if previous != channel_id else None,
        )

    async def leave(self, channel_id: str) -> str | None:
        """Drop the entry whose active channel is `channel_id`.

        A channel that was already superseded by a newer join is a no-op.

        Returns:
            The user ID that went offline, or None
        """
        async with self._lock:
            user_id = next((uid for uid, cid in self._channels.items() if cid == channel_id), None)
            if user_id is not None:
                del self._channels[user_id]
            metrics.online_users.set(len(self._channels))

        if user_id is not None:
            logger.info("presence_left", user_id=user_id, channel_id=channel_id)
        return user_id

    async def is_online(self, user_id: str) -> bool:
        async with self._lock:
            return user_id in self._channels

    async def channel_of(self, user_id: str) -> str | None:
        """Active channel ID for a user, or None when offline."""
        async with self._lock:
            return self._channels.get(user_id)

    async def online_count(self) -> int:
        async with self._lock:
            return len(self._channels)
