"""Transport port the session engine depends on."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

Frame = str | bytes


@runtime_checkable
class FeedTransport(Protocol):
    """A duplex message stream carrying one feed connection.

    Implementations do not retry or reconnect; that policy belongs to the caller.
    """

    async def send(self, message: bytes) -> None:
        """Transmit one serialized outbound message.

        Raises:
            TransportClosed: If the connection is closed.
            TransportIOError: If the write fails.
        """
        ...

    async def receive(self) -> Frame | None:
        """Wait for the next inbound frame.

        Returns:
            The frame, or None once the peer has closed the stream cleanly.

        Raises:
            TransportError: On I/O failure or broken framing.
        """
        ...

    async def close(self) -> None:
        """Release the connection. Safe to call more than once."""
        ...
