"""Request and response frames for the tickfeed wire protocol.

Outbound frames are single JSON objects ``{"action": ..., "params": ...}``.
Inbound frames are JSON arrays; one frame may carry any number of events.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .config import DEFAULT_SECRET_LENGTH, DEFAULT_TOPIC_PREFIX
from .errors import (
    ConstructionError,
    EmptyTargetList,
    InvalidSecretLength,
    InvalidTarget,
    MalformedFrame,
    UnexpectedShape,
)

STATUS_EVENT = "status"


class Action(Enum):
    """Outbound request actions."""

    AUTH = "auth"
    SUBSCRIBE = "subscribe"


class Status(Enum):
    """Status values carried by server status events."""

    CONNECTED = "connected"
    AUTH_FAILED = "auth_failed"
    AUTH_SUCCESS = "auth_success"
    SUCCESS = "success"


_STATUS_VALUES = {status.value: status for status in Status}


def validate_secret(secret: str, *, secret_length: int = DEFAULT_SECRET_LENGTH) -> str:
    """Return secret unchanged if its UTF-8 length matches secret_length."""
    if not isinstance(secret, str):
        raise ConstructionError(
            f"secret must be a string, got {type(secret).__name__}"
        )
    actual = len(secret.encode("utf-8"))
    if actual != secret_length:
        raise InvalidSecretLength(secret_length, actual)
    return secret


def validate_targets(targets: Iterable[str]) -> list[str]:
    """Return targets as a list, rejecting empty lists and blank entries."""
    if isinstance(targets, (str, bytes)):
        raise InvalidTarget("targets must be a sequence of strings, not a string")
    checked = list(targets)
    if not checked:
        raise EmptyTargetList()
    for idx, target in enumerate(checked):
        if not isinstance(target, str) or not target:
            raise InvalidTarget(f"target at index {idx} must be a non-empty string")
    return checked


@dataclass(frozen=True, slots=True)
class Request:
    """Outbound control message."""

    action: Action
    params: str

    @classmethod
    def auth(
        cls, secret: str, *, secret_length: int = DEFAULT_SECRET_LENGTH
    ) -> Request:
        """Build an auth request.

        Raises:
            InvalidSecretLength: If the secret is not exactly secret_length bytes.
        """
        return cls(Action.AUTH, validate_secret(secret, secret_length=secret_length))

    @classmethod
    def subscribe(
        cls, targets: Sequence[str], *, prefix: str = DEFAULT_TOPIC_PREFIX
    ) -> Request:
        """Build a subscribe request for targets, in order.

        Args:
            targets: Symbols or topics to subscribe to.
            prefix: Feed namespace prepended once to the joined list.

        Raises:
            EmptyTargetList: If targets is empty.
            InvalidTarget: If any target is not a non-empty string.
        """
        return cls(Action.SUBSCRIBE, prefix + ",".join(validate_targets(targets)))

    def to_dict(self) -> dict[str, str]:
        """Convert to dictionary for wire format."""
        return {"action": self.action.value, "params": self.params}

    def to_text(self) -> str:
        """Serialize to compact JSON text."""
        return json.dumps(self.to_dict(), separators=(",", ":"))

    def serialize(self) -> bytes:
        """Serialize to UTF-8 encoded compact JSON."""
        return self.to_text().encode("utf-8")


@dataclass(frozen=True, slots=True)
class Response:
    """One inbound event.

    Attributes:
        event_type: Value of the ``ev`` discriminator.
        status: Parsed status for status events, otherwise None.
        message: Human readable message, when present.
        payload: The decoded object as received.
    """

    event_type: str
    status: Status | None = None
    message: str | None = None
    payload: dict[str, Any] = field(default_factory=lambda: {})

    @property
    def is_status(self) -> bool:
        """True for handshake/status events."""
        return self.event_type == STATUS_EVENT

    @classmethod
    def from_dict(cls, data: Any, *, index: int = 0) -> Response:
        """Build a response from one decoded array element.

        Raises:
            UnexpectedShape: If data does not look like a response object.
        """
        if not isinstance(data, dict):
            raise UnexpectedShape(
                f"element {index} must be an object, got {type(data).__name__}"
            )

        event_type = data.get("ev")
        if not isinstance(event_type, str):
            raise UnexpectedShape(f"element {index} is missing a string 'ev' field")

        message = data.get("message")
        if message is not None and not isinstance(message, str):
            raise UnexpectedShape(f"element {index} has a non-string 'message'")

        raw_status = data.get("status")
        if raw_status is not None and not isinstance(raw_status, str):
            raise UnexpectedShape(f"element {index} has a non-string 'status'")

        status = _STATUS_VALUES.get(raw_status) if raw_status is not None else None
        if event_type == STATUS_EVENT and status is None:
            raise UnexpectedShape(
                f"element {index} is a status event with unknown status {raw_status!r}"
            )

        return cls(
            event_type=event_type,
            status=status,
            message=message,
            payload=dict(data),
        )

    @classmethod
    def decode_frame(cls, frame: str | bytes) -> list[Response]:
        """Decode one inbound frame into zero or more responses.

        Raises:
            MalformedFrame: If the frame is not UTF-8 JSON.
            UnexpectedShape: If the JSON is not an array of response objects.
        """
        if isinstance(frame, (bytes, bytearray)):
            try:
                frame = bytes(frame).decode("utf-8")
            except UnicodeDecodeError as err:
                raise MalformedFrame("frame is not valid UTF-8") from err

        try:
            decoded = json.loads(frame)
        except json.JSONDecodeError as err:
            raise MalformedFrame(f"frame is not valid JSON: {err.msg}") from err
        except RecursionError as err:
            raise MalformedFrame("frame is nested too deeply") from err
        except (ValueError, TypeError) as err:
            raise MalformedFrame(f"frame is not valid JSON: {err}") from err

        if not isinstance(decoded, list):
            raise UnexpectedShape(
                f"frame must be a JSON array, got {type(decoded).__name__}"
            )

        return [cls.from_dict(item, index=idx) for idx, item in enumerate(decoded)]


def find_status(responses: Iterable[Response], status: Status) -> Response | None:
    """Return the first response carrying status, or None."""
    for response in responses:
        if response.status is status:
            return response
    return None
