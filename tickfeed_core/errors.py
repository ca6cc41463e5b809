"""Error types for tickfeed sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .handshake import Phase


class TickFeedError(Exception):
    """Base error for tickfeed client failures."""


class ConstructionError(TickFeedError, ValueError):
    """Request parameters were rejected before anything was sent."""


class InvalidSecretLength(ConstructionError):
    """Auth secret does not have the configured length."""

    def __init__(self, expected: int, actual: int) -> None:
        super().__init__(
            f"secret should be {expected} bytes in length, got {actual}"
        )
        self.expected = expected
        self.actual = actual


class EmptyTargetList(ConstructionError):
    """Subscribe was asked for zero targets."""

    def __init__(self) -> None:
        super().__init__("need to subscribe to at least one target")


class InvalidTarget(ConstructionError):
    """A subscription target is not a non-empty string."""


class DecodeError(TickFeedError):
    """Inbound frame could not be decoded."""


class MalformedFrame(DecodeError):
    """Frame is not valid UTF-8 JSON."""


class UnexpectedShape(DecodeError):
    """Frame is JSON but not an array of response objects."""


class TransportError(TickFeedError):
    """Base error for the underlying connection."""


class TransportClosed(TransportError):
    """Connection is closed or was never opened."""


class TransportIOError(TransportError):
    """Network I/O failed."""


class TransportTimeout(TransportError):
    """Timed out while opening the connection."""


class TransportHandshakeError(TransportError):
    """WebSocket upgrade failed."""


class InvalidPhaseTransition(TickFeedError):
    """Session phase was asked to move backwards or out of a terminal phase."""


class SessionError(TickFeedError):
    """Terminal error explaining why a session ended."""

    def __init__(self, message: str, *, phase: Phase | None = None) -> None:
        super().__init__(message)
        self.phase = phase


class HandshakeTimeout(SessionError):
    """Server never acknowledged a handshake step."""


class AuthenticationRejected(SessionError):
    """Server rejected the auth secret."""

    def __init__(
        self,
        message: str,
        *,
        phase: Phase | None = None,
        server_message: str | None = None,
    ) -> None:
        super().__init__(message, phase=phase)
        self.server_message = server_message


class HandshakeDecodeError(SessionError):
    """An acknowledgement frame could not be decoded."""


class HandshakeInterrupted(SessionError):
    """Stream ended before the handshake completed."""


class SessionTransportError(SessionError):
    """Transport failed during the session."""


class SinkError(SessionError):
    """The response sink raised while delivering."""
