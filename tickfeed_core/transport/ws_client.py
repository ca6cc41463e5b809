"""WebSocket implementation of the feed transport port."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

import aiohttp
from aiohttp import WSMsgType
from websockets.asyncio.client import ClientConnection
from websockets.exceptions import ConnectionClosed, ConnectionClosedOK

from ..errors import TransportClosed, TransportIOError
from .port import Frame
from .ws import connect_aiohttp_websocket, connect_websocket

_LOGGER = logging.getLogger(__name__)

# 1000 normal closure, 1001 going away, 1005 no status code sent
_CLEAN_CLOSE_CODES = frozenset({1000, 1001, 1005})


class FeedWsMessageType(Enum):
    """Normalized WebSocket message types."""

    TEXT = "text"
    CLOSED = "closed"
    ERROR = "error"


@dataclass(frozen=True)
class FeedWsMessage:
    """Normalized WebSocket message payload."""

    type: FeedWsMessageType
    data: str | None = None


class FeedWsClient:
    """Feed transport over a websockets or aiohttp WebSocket connection."""

    def __init__(
        self, ws: ClientConnection | aiohttp.ClientWebSocketResponse | None = None
    ) -> None:
        self._ws = ws

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def connect(
        self,
        url: str,
        *,
        ping_interval: int | None = 20,
        timeout: float = 15.0,
    ) -> None:
        """Open the connection with the websockets backend."""
        self._ws = await connect_websocket(
            url,
            ping_interval=ping_interval,
            timeout=timeout,
        )

    async def connect_with_session(
        self,
        session: aiohttp.ClientSession,
        url: str,
        *,
        heartbeat: float | None = 30.0,
        timeout: float = 15.0,
    ) -> None:
        """Open the connection through an existing aiohttp session."""
        self._ws = await connect_aiohttp_websocket(
            session,
            url,
            heartbeat=heartbeat,
            timeout=timeout,
        )

    async def close(self) -> None:
        """Close the websocket connection."""
        ws, self._ws = self._ws, None
        if ws is not None:
            await ws.close()

    async def send(self, message: bytes) -> None:
        """Send one serialized request as a text frame."""
        if self._ws is None:
            raise TransportClosed("WebSocket is not connected")
        text = message.decode("utf-8")
        try:
            if isinstance(self._ws, aiohttp.ClientWebSocketResponse):
                await self._ws.send_str(text)
            else:
                await self._ws.send(text)
        except ConnectionClosed as err:
            raise TransportClosed("WebSocket closed while sending") from err
        except (OSError, aiohttp.ClientError) as err:
            raise TransportIOError("WebSocket send failed") from err

    async def receive(self) -> Frame | None:
        """Return the next text frame, or None once the peer closed cleanly."""
        if self._ws is None:
            raise TransportClosed("WebSocket is not connected")

        while True:
            try:
                raw = await self._recv_raw()
            except ConnectionClosedOK:
                return None
            except ConnectionClosed as err:
                raise TransportIOError(f"WebSocket closed abnormally: {err}") from err
            except (OSError, aiohttp.ClientError) as err:
                raise TransportIOError("WebSocket receive failed") from err

            message = self._normalize_message(raw)
            if message is None:
                continue
            if message.type is FeedWsMessageType.CLOSED:
                return None
            if message.type is FeedWsMessageType.ERROR:
                if message.data:
                    raise TransportIOError(message.data)
                raise TransportIOError("WebSocket error frame received")
            return message.data

    async def _recv_raw(self) -> Any:
        if isinstance(self._ws, aiohttp.ClientWebSocketResponse):
            return await self._ws.receive()
        return await self._ws.recv()

    @staticmethod
    def _normalize_message(msg: Any) -> FeedWsMessage | None:
        """Normalize backend-specific frames into FeedWsMessage."""
        if isinstance(msg, bytes):
            _LOGGER.debug("Skipping binary frame (%d bytes)", len(msg))
            return None
        if isinstance(msg, str):
            return FeedWsMessage(FeedWsMessageType.TEXT, msg)

        msg_type = getattr(msg, "type", None)
        if msg_type is None:
            return FeedWsMessage(FeedWsMessageType.TEXT, str(msg))

        normalized_type = FeedWsClient._map_aiohttp_type(msg_type)
        if normalized_type is None:
            return None
        data = getattr(msg, "data", None)
        if normalized_type is FeedWsMessageType.TEXT:
            return FeedWsMessage(normalized_type, data)
        if msg_type is WSMsgType.CLOSE and data and data not in _CLEAN_CLOSE_CODES:
            # CLOSE carries the close code in data and the reason in extra.
            reason = getattr(msg, "extra", None) or ""
            return FeedWsMessage(
                FeedWsMessageType.ERROR,
                f"WebSocket closed abnormally: code {data} {reason}".rstrip(),
            )
        return FeedWsMessage(normalized_type)

    @staticmethod
    def _map_aiohttp_type(msg_type: Any) -> FeedWsMessageType | None:
        """Map aiohttp WSMsgType enums to internal message types."""
        if msg_type is WSMsgType.TEXT:
            return FeedWsMessageType.TEXT

        if msg_type in {WSMsgType.CLOSE, WSMsgType.CLOSING, WSMsgType.CLOSED}:
            return FeedWsMessageType.CLOSED

        if msg_type is WSMsgType.ERROR:
            return FeedWsMessageType.ERROR

        # BINARY, PING, PONG
        return None
