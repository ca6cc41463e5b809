"""WebSocket connection helpers for feed transports."""

from __future__ import annotations

import asyncio

import aiohttp
import websockets
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import (
    InvalidHandshake,
    InvalidURI,
    WebSocketException,
)

from ..errors import (
    TransportHandshakeError,
    TransportIOError,
    TransportTimeout,
)


async def connect_websocket(
    url: str,
    *,
    ping_interval: int | None = 20,
    timeout: float = 15.0,
) -> ClientConnection:
    """Connect to a feed WebSocket endpoint.

    Args:
        url: ws:// or wss:// endpoint
        ping_interval: Interval for ping frames
        timeout: Connection timeout
    """
    try:
        return await asyncio.wait_for(
            websockets.connect(
                url,
                ping_interval=ping_interval,
                close_timeout=5,
                max_size=None,
            ),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise TransportTimeout("WebSocket connection timed out") from err
    except (InvalidHandshake, InvalidURI) as err:
        raise TransportHandshakeError("WebSocket handshake failed") from err
    except (OSError, WebSocketException) as err:
        raise TransportIOError("WebSocket connection failed") from err


async def connect_aiohttp_websocket(
    session: aiohttp.ClientSession,
    url: str,
    *,
    heartbeat: float | None = 30.0,
    timeout: float = 15.0,
) -> aiohttp.ClientWebSocketResponse:
    """Connect to a feed WebSocket endpoint through an existing aiohttp session.

    For hosts that already own a ClientSession and its connector settings.
    """
    try:
        return await asyncio.wait_for(
            session.ws_connect(url, heartbeat=heartbeat, max_msg_size=0),
            timeout=timeout,
        )
    except TimeoutError as err:
        raise TransportTimeout("WebSocket connection timed out") from err
    except aiohttp.WSServerHandshakeError as err:
        raise TransportHandshakeError("WebSocket handshake failed") from err
    except (OSError, aiohttp.ClientError) as err:
        raise TransportIOError("WebSocket connection failed") from err
