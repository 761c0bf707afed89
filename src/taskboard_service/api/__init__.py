"""HTTP and WebSocket interface."""

from taskboard_service.api.http_server import create_http_server

__all__ = ["create_http_server"]
