"""Handshake state machine for feed sessions.

The server acknowledges each step before the client may take the next one:

    AWAITING_CONNECT_ACK --connected--> send auth
    AWAITING_AUTH_ACK --auth_success--> send subscribe
    AWAITING_SUBSCRIBE_ACK --success--> STREAMING

FAILED and CLOSED are absorbing and reachable from any phase.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from enum import Enum

from .config import FeedConfig
from .errors import (
    AuthenticationRejected,
    DecodeError,
    HandshakeDecodeError,
    HandshakeInterrupted,
    HandshakeTimeout,
    InvalidPhaseTransition,
    SessionError,
    SessionTransportError,
    TransportError,
)
from .protocol import (
    Request,
    Response,
    Status,
    find_status,
    validate_secret,
    validate_targets,
)
from .transport.port import FeedTransport

_LOGGER = logging.getLogger(__name__)


class Phase(Enum):
    """Lifecycle phase of one feed connection."""

    AWAITING_CONNECT_ACK = "awaiting_connect_ack"
    AWAITING_AUTH_ACK = "awaiting_auth_ack"
    AWAITING_SUBSCRIBE_ACK = "awaiting_subscribe_ack"
    STREAMING = "streaming"
    FAILED = "failed"
    CLOSED = "closed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_PHASES


_FORWARD_PHASES: tuple[Phase, ...] = (
    Phase.AWAITING_CONNECT_ACK,
    Phase.AWAITING_AUTH_ACK,
    Phase.AWAITING_SUBSCRIBE_ACK,
    Phase.STREAMING,
)
_TERMINAL_PHASES = frozenset({Phase.FAILED, Phase.CLOSED})


class SessionState:
    """Phase holder that only ever moves forward."""

    def __init__(self, label: str = "feed") -> None:
        self.label = label
        self._phase = Phase.AWAITING_CONNECT_ACK

    @property
    def phase(self) -> Phase:
        return self._phase

    def advance(self, phase: Phase) -> None:
        """Move to phase.

        Allowed moves are the next forward phase, or any terminal phase from a
        non-terminal one. Re-entering the current terminal phase is a no-op.

        Raises:
            InvalidPhaseTransition: For any other move.
        """
        current = self._phase
        if current.is_terminal:
            if phase is current:
                return
            raise InvalidPhaseTransition(
                f"cannot leave terminal phase {current.value} for {phase.value}"
            )

        if not phase.is_terminal:
            position = _FORWARD_PHASES.index(current)
            if (
                position + 1 >= len(_FORWARD_PHASES)
                or _FORWARD_PHASES[position + 1] is not phase
            ):
                raise InvalidPhaseTransition(
                    f"cannot move from {current.value} to {phase.value}"
                )

        _LOGGER.debug("[%s] Phase: %s → %s", self.label, current.value, phase.value)
        self._phase = phase


class HandshakeMachine:
    """Drives one connection from AWAITING_CONNECT_ACK to STREAMING.

    Secret and targets are validated on construction so bad parameters fail
    before any frame is read or written.
    """

    def __init__(
        self,
        transport: FeedTransport,
        state: SessionState,
        secret: str,
        targets: Sequence[str],
        *,
        config: FeedConfig | None = None,
    ) -> None:
        self._config = config or FeedConfig()
        self._transport = transport
        self._state = state
        self._secret = validate_secret(
            secret, secret_length=self._config.secret_length
        )
        self._targets = validate_targets(targets)

        self.sent: list[Request] = []
        self.leftover: list[Response] = []

    @property
    def phase(self) -> Phase:
        return self._state.phase

    async def run(self) -> list[Response]:
        """Complete the handshake.

        Returns:
            Responses that arrived in the same frame after the subscribe ack,
            in order. They belong to the stream, not the handshake.

        Raises:
            SessionError: If the handshake cannot complete. The state is left
                in FAILED, or CLOSED when the server ended the stream.
        """
        if self._state.phase is not Phase.AWAITING_CONNECT_ACK:
            raise InvalidPhaseTransition(
                f"handshake cannot start from {self._state.phase.value}"
            )

        idle_cycles = 0
        while self._state.phase is not Phase.STREAMING:
            batch = await self._next_batch()
            if await self._handle_batch(batch):
                idle_cycles = 0
                continue

            idle_cycles += 1
            _LOGGER.debug(
                "[%s] Ignoring %d unrelated responses in %s (%d/%d)",
                self._state.label,
                len(batch),
                self._state.phase.value,
                idle_cycles,
                self._config.max_idle_cycles,
            )
            if idle_cycles > self._config.max_idle_cycles:
                raise self._fail(
                    HandshakeTimeout,
                    f"no acknowledgement after {idle_cycles} frames",
                )

        _LOGGER.info(
            "[%s] Subscribed to %d targets, streaming",
            self._state.label,
            len(self._targets),
        )
        return self.leftover

    async def _handle_batch(self, batch: list[Response]) -> bool:
        """Apply one batch; return True if the phase advanced."""
        phase = self._state.phase

        if phase is Phase.AWAITING_CONNECT_ACK:
            if find_status(batch, Status.CONNECTED) is None:
                return False
            self._state.advance(Phase.AWAITING_AUTH_ACK)
            await self._send(
                Request.auth(self._secret, secret_length=self._config.secret_length)
            )
            return True

        if phase is Phase.AWAITING_AUTH_ACK:
            rejected = find_status(batch, Status.AUTH_FAILED)
            if rejected is not None:
                raise self._fail(
                    AuthenticationRejected,
                    "authentication rejected by server",
                    server_message=rejected.message,
                )
            if find_status(batch, Status.AUTH_SUCCESS) is None:
                return False
            self._state.advance(Phase.AWAITING_SUBSCRIBE_ACK)
            await self._send(
                Request.subscribe(self._targets, prefix=self._config.topic_prefix)
            )
            return True

        if phase is Phase.AWAITING_SUBSCRIBE_ACK:
            for idx, response in enumerate(batch):
                if response.status is Status.SUCCESS:
                    self._state.advance(Phase.STREAMING)
                    self.leftover = batch[idx + 1 :]
                    return True
            return False

        raise InvalidPhaseTransition(f"no handshake step for {phase.value}")

    async def _next_batch(self) -> list[Response]:
        try:
            frame = await asyncio.wait_for(
                self._transport.receive(), timeout=self._config.ack_timeout
            )
        except TimeoutError as err:
            raise self._fail(
                HandshakeTimeout,
                f"no acknowledgement within {self._config.ack_timeout}s",
            ) from err
        except TransportError as err:
            raise self._fail(
                SessionTransportError, f"transport failed during handshake: {err}"
            ) from err

        if frame is None:
            phase = self._state.phase
            self._state.advance(Phase.CLOSED)
            _LOGGER.warning(
                "[%s] Stream ended during handshake (%s)",
                self._state.label,
                phase.value,
            )
            raise HandshakeInterrupted(
                f"stream ended while {phase.value}", phase=phase
            )

        try:
            return Response.decode_frame(frame)
        except DecodeError as err:
            raise self._fail(
                HandshakeDecodeError, f"undecodable acknowledgement: {err}"
            ) from err

    async def _send(self, request: Request) -> None:
        try:
            await self._transport.send(request.serialize())
        except TransportError as err:
            raise self._fail(
                SessionTransportError,
                f"failed to send {request.action.value}: {err}",
            ) from err
        self.sent.append(request)
        _LOGGER.debug("[%s] %s sent", self._state.label, request.action.value)

    def _fail(
        self, error_cls: type[SessionError], message: str, **kwargs: str | None
    ) -> SessionError:
        """Move to FAILED and build the error to raise."""
        phase = self._state.phase
        self._state.advance(Phase.FAILED)
        _LOGGER.error(
            "[%s] Handshake failed in %s: %s", self._state.label, phase.value, message
        )
        return error_cls(message, phase=phase, **kwargs)
