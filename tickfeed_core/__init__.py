"""Client-side protocol engine for push-based market-data feeds."""

__version__ = "0.1.0"

from .config import FeedConfig
from .errors import (
    AuthenticationRejected,
    ConstructionError,
    DecodeError,
    EmptyTargetList,
    HandshakeDecodeError,
    HandshakeInterrupted,
    HandshakeTimeout,
    InvalidPhaseTransition,
    InvalidSecretLength,
    InvalidTarget,
    MalformedFrame,
    SessionError,
    SessionTransportError,
    SinkError,
    TickFeedError,
    TransportClosed,
    TransportError,
    TransportHandshakeError,
    TransportIOError,
    TransportTimeout,
    UnexpectedShape,
)
from .handshake import HandshakeMachine, Phase, SessionState
from .pipeline import IngestionPipeline, PipelineStats
from .protocol import Action, Request, Response, Status
from .session import FeedSession, start_session, stream_feed
from .sinks import CallbackSink, ResponseSink, StdoutSink
from .transport import FeedTransport, FeedWsClient

__all__ = [
    "Action",
    "AuthenticationRejected",
    "CallbackSink",
    "ConstructionError",
    "DecodeError",
    "EmptyTargetList",
    "FeedConfig",
    "FeedSession",
    "FeedTransport",
    "FeedWsClient",
    "HandshakeDecodeError",
    "HandshakeInterrupted",
    "HandshakeMachine",
    "HandshakeTimeout",
    "IngestionPipeline",
    "InvalidPhaseTransition",
    "InvalidSecretLength",
    "InvalidTarget",
    "MalformedFrame",
    "Phase",
    "PipelineStats",
    "Request",
    "Response",
    "ResponseSink",
    "SessionError",
    "SessionState",
    "SessionTransportError",
    "SinkError",
    "StdoutSink",
    "Status",
    "TickFeedError",
    "TransportClosed",
    "TransportError",
    "TransportHandshakeError",
    "TransportIOError",
    "TransportTimeout",
    "UnexpectedShape",
    "__version__",
    "start_session",
    "stream_feed",
]
