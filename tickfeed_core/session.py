"""Session supervisor for tickfeed connections.

One FeedSession owns one transport for its whole life:

1. run the handshake to STREAMING (or fail),
2. start the producer and consumer tasks,
3. end the session as soon as either side stops, cancelling the other,
4. close the transport.

Usage:
    await start_session(transport, secret, ["AAPL", "MSFT"], print)

or, to let the session open the WebSocket itself:
    await stream_feed("wss://feed.example/stocks", secret, ["AAPL"], StdoutSink())
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any

import aiohttp

from .config import FeedConfig
from .errors import (
    SessionError,
    SessionTransportError,
    SinkError,
    TransportError,
)
from .handshake import HandshakeMachine, Phase, SessionState
from .pipeline import IngestionPipeline, PipelineStats
from .protocol import Response
from .sinks import ResponseSink, as_sink
from .transport.port import FeedTransport
from .transport.ws_client import FeedWsClient

_LOGGER = logging.getLogger(__name__)

SinkLike = ResponseSink | Callable[[Response], Any]


class FeedSession:
    """Runs the handshake and ingestion pipeline for one connection."""

    def __init__(
        self,
        transport: FeedTransport,
        secret: str,
        targets: Sequence[str],
        sink: SinkLike,
        *,
        config: FeedConfig | None = None,
        label: str = "feed",
    ) -> None:
        """Initialize session.

        Args:
            transport: Connected transport; the session closes it when done
            secret: Auth secret, exactly config.secret_length bytes
            targets: Subscription targets, at least one
            sink: ResponseSink or callable receiving each Response
            config: Session tunables
            label: Prefix for log messages

        Raises:
            ConstructionError: If secret or targets are invalid.
        """
        self.label = label
        self._config = config or FeedConfig()
        self._transport = transport
        self._sink = as_sink(sink)
        self._state = SessionState(label)
        self._handshake = HandshakeMachine(
            transport, self._state, secret, targets, config=self._config
        )
        self._pipeline: IngestionPipeline | None = None
        self._started = False

    @property
    def phase(self) -> Phase:
        return self._state.phase

    @property
    def stats(self) -> PipelineStats:
        """Pipeline counters (all zero before streaming starts)."""
        if self._pipeline is None:
            return PipelineStats()
        return self._pipeline.stats

    async def run(self) -> None:
        """Run until the stream ends.

        Returns normally when the server closes the stream after the handshake,
        leaving the phase CLOSED.

        Raises:
            SessionError: Classifies why the session failed. Phase is FAILED,
                or CLOSED when the stream ended mid-handshake.
            Exception: Anything unexpected is re-raised as-is, with the phase
                left FAILED.
        """
        if self._started:
            raise RuntimeError("FeedSession.run() may only be called once")
        self._started = True

        _LOGGER.info("[%s] Starting session", self.label)
        try:
            leftover = await self._handshake.run()
            self._pipeline = IngestionPipeline(
                self._transport,
                self._sink,
                maxsize=self._config.queue_maxsize,
                initial=leftover,
                label=self.label,
            )
            await self._stream(self._pipeline)
        except SessionError:
            if not self._state.phase.is_terminal:
                self._state.advance(Phase.FAILED)
            raise
        except asyncio.CancelledError:
            _LOGGER.debug("[%s] Session cancelled", self.label)
            if not self._state.phase.is_terminal:
                self._state.advance(Phase.CLOSED)
            raise
        except Exception:
            _LOGGER.exception("[%s] Session failed unexpectedly", self.label)
            if not self._state.phase.is_terminal:
                self._state.advance(Phase.FAILED)
            raise
        finally:
            await self._release_transport()

        self._state.advance(Phase.CLOSED)
        _LOGGER.info(
            "[%s] Session closed (%d frames, %d responses, %d skipped)",
            self.label,
            self.stats.frames_received,
            self.stats.responses_delivered,
            self.stats.frames_skipped,
        )

    async def _stream(self, pipeline: IngestionPipeline) -> None:
        producer = asyncio.create_task(
            pipeline.produce(), name=f"{self.label}-producer"
        )
        consumer = asyncio.create_task(
            pipeline.consume(), name=f"{self.label}-consumer"
        )
        tasks = {producer, consumer}

        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)

            if consumer in done and consumer.exception() is not None:
                # Nobody is left to read the queue; stop reading the socket.
                producer.cancel()
            else:
                # The producer has closed the channel; let the consumer drain it.
                await asyncio.wait(tasks)
        finally:
            for task in tasks:
                if not task.done():
                    task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        self._raise_task_errors(producer, consumer)

    def _raise_task_errors(
        self, producer: asyncio.Task[None], consumer: asyncio.Task[None]
    ) -> None:
        sink_err = consumer.exception()
        if sink_err is not None:
            if isinstance(sink_err, SinkError):
                sink_err.phase = Phase.STREAMING
                _LOGGER.error("[%s] %s", self.label, sink_err)
            raise sink_err

        transport_err = producer.exception()
        if transport_err is None:
            return
        if isinstance(transport_err, TransportError):
            raise SessionTransportError(
                f"transport failed while streaming: {transport_err}",
                phase=Phase.STREAMING,
            ) from transport_err
        raise transport_err

    async def _release_transport(self) -> None:
        try:
            await asyncio.wait_for(self._transport.close(), timeout=2.0)
        except TimeoutError:
            _LOGGER.warning("[%s] Transport close timed out", self.label)
        except TransportError as err:
            _LOGGER.warning("[%s] Transport close failed: %s", self.label, err)


async def start_session(
    transport: FeedTransport,
    secret: str,
    targets: Sequence[str],
    sink: SinkLike,
    *,
    config: FeedConfig | None = None,
    label: str = "feed",
) -> None:
    """Run one feed session over an already connected transport.

    Raises:
        ConstructionError: If secret or targets are invalid (before any I/O).
        SessionError: If the session ends for any reason other than a clean
            close after streaming started.
    """
    session = FeedSession(
        transport, secret, targets, sink, config=config, label=label
    )
    await session.run()


async def stream_feed(
    url: str,
    secret: str,
    targets: Sequence[str],
    sink: SinkLike,
    *,
    config: FeedConfig | None = None,
    http_session: aiohttp.ClientSession | None = None,
    label: str = "feed",
) -> None:
    """Open a WebSocket to url and run a feed session over it.

    Args:
        url: ws:// or wss:// feed endpoint
        secret: Auth secret
        targets: Subscription targets
        sink: ResponseSink or callable receiving each Response
        config: Session tunables (also supplies connect timeout and keepalive)
        http_session: Connect through this aiohttp session instead of websockets
        label: Prefix for log messages
    """
    config = config or FeedConfig()
    client = FeedWsClient()
    session = FeedSession(client, secret, targets, sink, config=config, label=label)

    _LOGGER.info("[%s] Connecting to %s", label, url)
    try:
        if http_session is not None:
            await client.connect_with_session(
                http_session,
                url,
                heartbeat=config.ping_interval,
                timeout=config.connect_timeout,
            )
        else:
            await client.connect(
                url,
                ping_interval=config.ping_interval,
                timeout=config.connect_timeout,
            )
    except TransportError as err:
        _LOGGER.error("[%s] Connection failed: %s", label, err)
        raise SessionTransportError(
            f"could not connect to {url}: {err}", phase=Phase.AWAITING_CONNECT_ACK
        ) from err

    await session.run()
