"""Ingestion pipeline: socket reads on one task, decode and delivery on another."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

from .errors import DecodeError, SinkError, TransportError
from .protocol import Response
from .sinks import ResponseSink, deliver
from .transport.port import FeedTransport, Frame

_LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class PipelineStats:
    """Counters for one streaming session."""

    frames_received: int = 0
    responses_delivered: int = 0
    frames_skipped: int = 0


class IngestionPipeline:
    """Single producer, single consumer hand-off between transport and sink.

    The producer only reads frames and enqueues them in arrival order. The
    consumer decodes and delivers. ``None`` on the queue marks end of stream,
    so everything queued before a close or a transport failure is still
    delivered. A bounded queue blocks the producer when full; frames are
    never dropped.
    """

    def __init__(
        self,
        transport: FeedTransport,
        sink: ResponseSink,
        *,
        maxsize: int = 0,
        initial: Sequence[Response] = (),
        label: str = "feed",
    ) -> None:
        self._transport = transport
        self._sink = sink
        self._initial = list(initial)
        self._label = label
        self._queue: asyncio.Queue[Frame | None] = asyncio.Queue(maxsize=maxsize)
        self.stats = PipelineStats()

    @property
    def pending(self) -> int:
        """Frames read but not yet consumed."""
        return self._queue.qsize()

    async def produce(self) -> None:
        """Read frames until the stream ends.

        Raises:
            TransportError: After closing the channel, if a read fails.
                Any other exception from the transport is re-raised the same way.
        """
        while True:
            try:
                frame = await self._transport.receive()
            except TransportError as err:
                _LOGGER.error(
                    "[%s] Transport failed while streaming: %s", self._label, err
                )
                await self._queue.put(None)
                raise
            except Exception as err:
                _LOGGER.error("[%s] Frame reader failed: %r", self._label, err)
                await self._queue.put(None)
                raise

            if frame is None:
                _LOGGER.info(
                    "[%s] Stream closed by server after %d frames",
                    self._label,
                    self.stats.frames_received,
                )
                await self._queue.put(None)
                return

            self.stats.frames_received += 1
            await self._queue.put(frame)

    async def consume(self) -> None:
        """Deliver responses in order until the end-of-stream marker.

        Undecodable frames are logged and skipped.

        Raises:
            SinkError: If the sink raises.
        """
        for response in self._initial:
            await self._deliver(response)
        self._initial.clear()

        while True:
            frame = await self._queue.get()
            if frame is None:
                _LOGGER.debug(
                    "[%s] Consumer drained (%d delivered, %d skipped)",
                    self._label,
                    self.stats.responses_delivered,
                    self.stats.frames_skipped,
                )
                return

            try:
                responses = Response.decode_frame(frame)
            except DecodeError as err:
                self.stats.frames_skipped += 1
                _LOGGER.warning("[%s] Skipping undecodable frame: %s", self._label, err)
                continue

            for response in responses:
                await self._deliver(response)

    async def _deliver(self, response: Response) -> None:
        try:
            await deliver(self._sink, response)
        except Exception as err:
            raise SinkError(
                f"sink failed on {response.event_type!r} event: {err}"
            ) from err
        self.stats.responses_delivered += 1
