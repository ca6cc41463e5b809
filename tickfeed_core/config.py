"""Session configuration."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_SECRET_LENGTH = 32
DEFAULT_TOPIC_PREFIX = "Q."


@dataclass(frozen=True, slots=True)
class FeedConfig:
    """Tunables for one feed session.

    Attributes:
        secret_length: Exact byte length the auth secret must have.
        topic_prefix: Namespace prepended to the joined subscription targets
            (e.g. "Q." for quotes, "A." for aggregates, "" for none).
        max_idle_cycles: Unrelated batches tolerated while waiting for one
            handshake acknowledgement.
        ack_timeout: Seconds to wait for each handshake batch (None waits forever).
        queue_maxsize: Capacity of the ingestion queue (0 means unbounded).
        ping_interval: WebSocket keepalive interval in seconds (None disables).
        connect_timeout: Seconds allowed for opening the WebSocket.
    """

    secret_length: int = DEFAULT_SECRET_LENGTH
    topic_prefix: str = DEFAULT_TOPIC_PREFIX
    max_idle_cycles: int = 5
    ack_timeout: float | None = 10.0
    queue_maxsize: int = 0
    ping_interval: int | None = 20
    connect_timeout: float = 15.0

    def __post_init__(self) -> None:
        if self.secret_length < 1:
            raise ValueError("secret_length must be positive")
        if self.max_idle_cycles < 1:
            raise ValueError("max_idle_cycles must be at least 1")
        if self.ack_timeout is not None and self.ack_timeout <= 0:
            raise ValueError("ack_timeout must be positive or None")
        if self.queue_maxsize < 0:
            raise ValueError("queue_maxsize must not be negative")
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be positive")
