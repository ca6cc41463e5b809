"""Tests for FeedWsClient WebSocket transport."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest
from aiohttp import WSMsgType
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK
from websockets.frames import Close

from tickfeed_core.errors import TransportClosed, TransportIOError
from tickfeed_core.transport.port import FeedTransport
from tickfeed_core.transport.ws_client import (
    FeedWsClient,
    FeedWsMessage,
    FeedWsMessageType,
)

URL = "wss://feed.example/stocks"


def closed_ok() -> ConnectionClosedOK:
    return ConnectionClosedOK(Close(1000, "bye"), Close(1000, "bye"), True)


def closed_error() -> ConnectionClosedError:
    return ConnectionClosedError(None, None)


def aiohttp_ws(*messages: MagicMock) -> MagicMock:
    """Create a mock aiohttp websocket returning messages in order."""
    ws = MagicMock(spec=aiohttp.ClientWebSocketResponse)
    ws.receive = AsyncMock(side_effect=list(messages))
    ws.send_str = AsyncMock()
    ws.close = AsyncMock()
    return ws


def aiohttp_msg(
    msg_type: WSMsgType, data: object = None, extra: str | None = None
) -> MagicMock:
    msg = MagicMock()
    msg.type = msg_type
    msg.data = data
    msg.extra = extra
    return msg


class TestFeedWsMessage:
    """Tests for FeedWsMessage dataclass."""

    def test_create_text_message(self):
        """Test creating a text message."""
        msg = FeedWsMessage(type=FeedWsMessageType.TEXT, data="hello")
        assert msg.type == FeedWsMessageType.TEXT
        assert msg.data == "hello"

    def test_message_is_frozen(self):
        """Test that messages are immutable."""
        msg = FeedWsMessage(type=FeedWsMessageType.TEXT, data="test")
        with pytest.raises(AttributeError):
            msg.data = "modified"  # type: ignore[misc]


class TestFeedWsClientConnect:
    """Tests for FeedWsClient.connect()."""

    def test_satisfies_transport_port(self):
        """Test the client implements the transport protocol."""
        assert isinstance(FeedWsClient(), FeedTransport)

    @pytest.mark.asyncio
    async def test_connect_success(self):
        """Test successful WebSocket connection."""
        mock_ws = AsyncMock()

        with patch(
            "tickfeed_core.transport.ws_client.connect_websocket",
            return_value=mock_ws,
        ) as mock_connect:
            client = FeedWsClient()
            await client.connect(URL)

            mock_connect.assert_called_once_with(URL, ping_interval=20, timeout=15.0)
            assert client.connected

    @pytest.mark.asyncio
    async def test_connect_with_session(self):
        """Test connecting through an aiohttp session."""
        http_session = MagicMock(spec=aiohttp.ClientSession)
        mock_ws = aiohttp_ws()

        with patch(
            "tickfeed_core.transport.ws_client.connect_aiohttp_websocket",
            return_value=mock_ws,
        ) as mock_connect:
            client = FeedWsClient()
            await client.connect_with_session(http_session, URL, heartbeat=10.0)

            mock_connect.assert_called_once_with(
                http_session, URL, heartbeat=10.0, timeout=15.0
            )
            assert client.connected

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        """Test closing twice closes the socket once."""
        mock_ws = AsyncMock()
        client = FeedWsClient(mock_ws)

        await client.close()
        await client.close()

        mock_ws.close.assert_called_once()
        assert not client.connected


class TestFeedWsClientSend:
    """Tests for FeedWsClient.send()."""

    @pytest.mark.asyncio
    async def test_send_as_text(self):
        """Test serialized requests go out as text frames."""
        mock_ws = AsyncMock()
        client = FeedWsClient(mock_ws)

        await client.send(b'{"action":"auth","params":"secret"}')

        mock_ws.send.assert_called_once_with('{"action":"auth","params":"secret"}')

    @pytest.mark.asyncio
    async def test_send_aiohttp(self):
        """Test aiohttp connections use send_str."""
        mock_ws = aiohttp_ws()
        client = FeedWsClient(mock_ws)

        await client.send(b'{"action":"subscribe","params":"Q.T"}')

        mock_ws.send_str.assert_called_once_with('{"action":"subscribe","params":"Q.T"}')

    @pytest.mark.asyncio
    async def test_send_not_connected(self):
        """Test send raises when not connected."""
        with pytest.raises(TransportClosed, match="not connected"):
            await FeedWsClient().send(b"{}")

    @pytest.mark.asyncio
    async def test_send_on_closed_socket(self):
        """Test a closed socket maps to TransportClosed."""
        mock_ws = AsyncMock()
        mock_ws.send.side_effect = closed_error()

        with pytest.raises(TransportClosed):
            await FeedWsClient(mock_ws).send(b"{}")

    @pytest.mark.asyncio
    async def test_send_io_error(self):
        """Test OS errors map to TransportIOError."""
        mock_ws = AsyncMock()
        mock_ws.send.side_effect = ConnectionResetError()

        with pytest.raises(TransportIOError):
            await FeedWsClient(mock_ws).send(b"{}")


class TestFeedWsClientReceive:
    """Tests for FeedWsClient.receive()."""

    @pytest.mark.asyncio
    async def test_receive_not_connected(self):
        """Test receive raises when not connected."""
        with pytest.raises(TransportClosed, match="not connected"):
            await FeedWsClient().receive()

    @pytest.mark.asyncio
    async def test_receive_text(self):
        """Test text frames are returned as-is."""
        mock_ws = AsyncMock()
        mock_ws.recv.side_effect = ['[{"ev":"status"}]']

        assert await FeedWsClient(mock_ws).receive() == '[{"ev":"status"}]'

    @pytest.mark.asyncio
    async def test_receive_skips_binary(self):
        """Test binary frames are skipped."""
        mock_ws = AsyncMock()
        mock_ws.recv.side_effect = [b"\x00\x01", "text1"]

        assert await FeedWsClient(mock_ws).receive() == "text1"

    @pytest.mark.asyncio
    async def test_receive_clean_close(self):
        """Test a normal close returns None."""
        mock_ws = AsyncMock()
        mock_ws.recv.side_effect = closed_ok()

        assert await FeedWsClient(mock_ws).receive() is None

    @pytest.mark.asyncio
    async def test_receive_abnormal_close(self):
        """Test an abnormal close raises TransportIOError."""
        mock_ws = AsyncMock()
        mock_ws.recv.side_effect = closed_error()

        with pytest.raises(TransportIOError):
            await FeedWsClient(mock_ws).receive()

    @pytest.mark.asyncio
    async def test_receive_aiohttp_frames(self):
        """Test aiohttp frames are normalized."""
        mock_ws = aiohttp_ws(
            aiohttp_msg(WSMsgType.PING),
            aiohttp_msg(WSMsgType.TEXT, "[]"),
            aiohttp_msg(WSMsgType.BINARY, b"\x00"),
            aiohttp_msg(WSMsgType.CLOSE, 1000),
        )
        client = FeedWsClient(mock_ws)

        assert await client.receive() == "[]"
        assert await client.receive() is None

    @pytest.mark.asyncio
    async def test_receive_aiohttp_going_away_is_clean(self):
        """Test an aiohttp close with code 1001 returns None."""
        client = FeedWsClient(aiohttp_ws(aiohttp_msg(WSMsgType.CLOSE, 1001)))

        assert await client.receive() is None

    @pytest.mark.asyncio
    async def test_receive_aiohttp_abnormal_close(self):
        """Test an aiohttp close with an error code raises TransportIOError."""
        client = FeedWsClient(
            aiohttp_ws(aiohttp_msg(WSMsgType.CLOSE, 1011, "internal error"))
        )

        with pytest.raises(TransportIOError, match="code 1011 internal error"):
            await client.receive()

    @pytest.mark.asyncio
    async def test_receive_aiohttp_close_without_code(self):
        """Test an aiohttp close frame carrying no status code returns None."""
        client = FeedWsClient(aiohttp_ws(aiohttp_msg(WSMsgType.CLOSE, 0)))

        assert await client.receive() is None

    @pytest.mark.asyncio
    async def test_receive_aiohttp_policy_violation_close(self):
        """Test an aiohttp close with code 1008 raises TransportIOError."""
        client = FeedWsClient(aiohttp_ws(aiohttp_msg(WSMsgType.CLOSE, 1008)))

        with pytest.raises(TransportIOError, match="code 1008"):
            await client.receive()

    @pytest.mark.asyncio
    async def test_receive_aiohttp_error(self):
        """Test aiohttp ERROR frames raise TransportIOError."""
        client = FeedWsClient(aiohttp_ws(aiohttp_msg(WSMsgType.ERROR)))

        with pytest.raises(TransportIOError, match="error frame"):
            await client.receive()


class TestFeedWsClientNormalization:
    """Tests for FeedWsClient message normalization."""

    def test_normalize_string_message(self):
        """Test normalizing a plain string."""
        result = FeedWsClient._normalize_message("hello world")
        assert result is not None
        assert result.type == FeedWsMessageType.TEXT
        assert result.data == "hello world"

    def test_normalize_bytes_returns_none(self):
        """Test normalizing bytes returns None (skipped)."""
        assert FeedWsClient._normalize_message(b"\x00\x01\x02") is None

    def test_normalize_unknown_object(self):
        """Test normalizing unknown object uses string repr."""
        result = FeedWsClient._normalize_message(object())
        assert result is not None
        assert result.type == FeedWsMessageType.TEXT
        assert "object at" in result.data  # type: ignore[operator]

    @pytest.mark.parametrize(
        ("msg_type", "expected"),
        [
            (WSMsgType.TEXT, FeedWsMessageType.TEXT),
            (WSMsgType.BINARY, None),
            (WSMsgType.PING, None),
            (WSMsgType.CLOSE, FeedWsMessageType.CLOSED),
            (WSMsgType.CLOSING, FeedWsMessageType.CLOSED),
            (WSMsgType.CLOSED, FeedWsMessageType.CLOSED),
            (WSMsgType.ERROR, FeedWsMessageType.ERROR),
        ],
    )
    def test_map_aiohttp_type(self, msg_type, expected):
        """Test mapping aiohttp WSMsgType values."""
        assert FeedWsClient._map_aiohttp_type(msg_type) == expected
