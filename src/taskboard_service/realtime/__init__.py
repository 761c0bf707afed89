"""Real-time delivery: presence tracking and channel fan-out."""

from taskboard_service.realtime.channels import (
    JOIN_USER_ROOM,
    JOINED,
    NEW_NOTIFICATION,
    SEND_NOTIFICATION,
    Channel,
    ChannelClosedError,
    ChannelHub,
    event_frame,
)
from taskboard_service.realtime.presence import PresenceRegistry

__all__ = [
    "Channel",
    "ChannelClosedError",
    "ChannelHub",
    "PresenceRegistry",
    "event_frame",
    "JOIN_USER_ROOM",
    "JOINED",
    "NEW_NOTIFICATION",
    "SEND_NOTIFICATION",
]
