"""Delivery targets for decoded feed responses."""

from __future__ import annotations

import inspect
import json
import sys
from collections.abc import Awaitable, Callable
from typing import Any, Protocol, TextIO, runtime_checkable

from .protocol import Response


@runtime_checkable
class ResponseSink(Protocol):
    """Receives responses in wire order. May be sync or async."""

    def deliver(self, response: Response) -> Awaitable[None] | None: ...


class CallbackSink:
    """Adapts a plain or async callable to ResponseSink."""

    def __init__(self, callback: Callable[[Response], Any]) -> None:
        self._callback = callback

    async def deliver(self, response: Response) -> None:
        result = self._callback(response)
        if inspect.isawaitable(result):
            await result


class StdoutSink:
    """Writes each response payload as one JSON line."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream

    def deliver(self, response: Response) -> None:
        stream = self._stream if self._stream is not None else sys.stdout
        stream.write(json.dumps(response.payload) + "\n")
        stream.flush()


def as_sink(sink: ResponseSink | Callable[[Response], Any]) -> ResponseSink:
    """Return sink unchanged, or wrap a bare callable in CallbackSink."""
    if isinstance(sink, ResponseSink):
        return sink
    if callable(sink):
        return CallbackSink(sink)
    raise TypeError(
        f"sink must define deliver() or be callable, got {type(sink).__name__}"
    )


async def deliver(sink: ResponseSink, response: Response) -> None:
    """Deliver to sink, awaiting the result when it is awaitable."""
    result = sink.deliver(response)
    if inspect.isawaitable(result):
        await result
