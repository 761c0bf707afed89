"""Unit tests for the presence registry and channel hub."""

import asyncio

import pytest

from taskboard_service.realtime.channels import (
    NEW_NOTIFICATION,
    ChannelClosedError,
    ChannelHub,
    event_frame,
)
from taskboard_service.realtime.presence import PresenceRegistry
from tests.fixtures.channels import FakeChannel


class TestPresenceRegistry:
    """Tests for join/leave semantics."""

    @pytest.mark.asyncio
    async def test_join_makes_user_online(self, presence: PresenceRegistry) -> None:
        await presence.join("u1", "ch-1")

        assert await presence.is_online("u1")
        assert await presence.channel_of("u1") == "ch-1"
        assert await presence.online_count() == 1

    @pytest.mark.asyncio
    async def test_unknown_user_is_offline(self, presence: PresenceRegistry) -> None:
        assert not await presence.is_online("nobody")
        assert await presence.channel_of("nobody") is None

    @pytest.mark.asyncio
    async def test_latest_join_wins(self, presence: PresenceRegistry) -> None:
        await presence.join("u1", "ch-1")
        await presence.join("u1", "ch-2")

        assert await presence.channel_of("u1") == "ch-2"
        assert await presence.online_count() == 1

    @pytest.mark.asyncio
    async def test_leave_removes_user(self, presence: PresenceRegistry) -> None:
        await presence.join("u1", "ch-1")

        assert await presence.leave("ch-1") == "u1"
        assert not await presence.is_online("u1")

    @pytest.mark.asyncio
    async def test_leave_of_superseded_channel_keeps_user(self, presence: PresenceRegistry) -> None:
        await presence.join("u1", "ch-1")
        await presence.join("u1", "ch-2")

        assert await presence.leave("ch-1") is None
        assert await presence.channel_of("u1") == "ch-2"

    @pytest.mark.asyncio
    async def test_leave_unknown_channel_is_noop(self, presence: PresenceRegistry) -> None:
        assert await presence.leave("ch-404") is None

    @pytest.mark.asyncio
    async def test_concurrent_joins_and_leaves(self, presence: PresenceRegistry) -> None:
        await asyncio.gather(*(presence.join(f"u{i}", f"ch-{i}") for i in range(50)))
        await asyncio.gather(*(presence.leave(f"ch-{i}") for i in range(0, 50, 2)))

        assert await presence.online_count() == 25
        assert await presence.is_online("u1")
        assert not await presence.is_online("u0")


class TestChannelHub:
    """Tests for channel registration and sends."""

    @pytest.mark.asyncio
    async def test_register_assigns_unique_ids(self, hub: ChannelHub) -> None:
        first = await hub.register(FakeChannel())
        second = await hub.register(FakeChannel())

        assert first != second
        assert len(hub) == 2

    @pytest.mark.asyncio
    async def test_send_wraps_payload_in_envelope(self, hub: ChannelHub) -> None:
        channel = FakeChannel()
        channel_id = await hub.register(channel)

        await hub.send(channel_id, NEW_NOTIFICATION, {"text": "hi"})

        assert channel.sent == [event_frame(NEW_NOTIFICATION, {"text": "hi"})]
        assert channel.sent[0] == {"event": "new-notification", "data": {"text": "hi"}}

    @pytest.mark.asyncio
    async def test_send_to_unregistered_channel_raises(self, hub: ChannelHub) -> None:
        channel_id = await hub.register(FakeChannel())
        await hub.unregister(channel_id)

        with pytest.raises(ChannelClosedError):
            await hub.send(channel_id, NEW_NOTIFICATION, {})
        assert len(hub) == 0
