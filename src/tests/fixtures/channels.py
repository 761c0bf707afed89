"""In-memory stand-ins for real-time connections."""

from typing import Any


class FakeChannel:
    """Stand-in for a WebSocket connection that records what it is sent."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[dict[str, Any]] = []
        self.fail = fail

    async def send_json(self, data: Any, mode: str = "text") -> None:
        if self.fail:
            raise RuntimeError("connection reset")
        self.sent.append(data)

    def events(self, name: str) -> list[Any]:
        """Payloads of every frame with the given event name."""
        return [frame["data"] for frame in self.sent if frame["event"] == name]
