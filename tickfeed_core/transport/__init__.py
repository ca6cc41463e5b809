"""Transport layer for tickfeed sessions.

Components:
- port: the transport protocol the session engine depends on
- ws: WebSocket connection helpers
- ws_client: WebSocket implementation of the port
"""

from .port import FeedTransport, Frame
from .ws import connect_aiohttp_websocket, connect_websocket
from .ws_client import FeedWsClient, FeedWsMessage, FeedWsMessageType

__all__ = [
    "FeedTransport",
    "FeedWsClient",
    "FeedWsMessage",
    "FeedWsMessageType",
    "Frame",
    "connect_aiohttp_websocket",
    "connect_websocket",
]
