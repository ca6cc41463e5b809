"""Pytest configuration and fixtures for tickfeed_core tests."""

from __future__ import annotations

import asyncio
import json
from collections import deque
from typing import Any

import pytest

SECRET = "x" * 32


def status_frame(*statuses: str, message: str = "") -> str:
    """Build an inbound frame carrying one status event per status."""
    return json.dumps(
        [{"ev": "status", "status": status, "message": message} for status in statuses]
    )


def data_frame(*events: dict[str, Any]) -> str:
    """Build an inbound frame carrying data events."""
    return json.dumps(list(events))


def quote(symbol: str, seq: int) -> dict[str, Any]:
    return {"ev": "Q", "sym": symbol, "q": seq}


HANDSHAKE = [
    status_frame("connected", message="Connected Successfully"),
    status_frame("auth_success", message="authenticated"),
    status_frame("success", message="subscribed to: Q.T"),
]


class ScriptedTransport:
    """In-memory FeedTransport replaying a fixed list of inbound items.

    Items may be frames, None (clean close) or exceptions (raised from
    receive). When the script runs out, receive() returns None, or blocks
    forever if hang_at_end is set.
    """

    def __init__(self, frames: list[Any] | None = None, *, hang_at_end: bool = False):
        self._frames: deque[Any] = deque(frames or [])
        self._hang_at_end = hang_at_end
        self.sent: list[bytes] = []
        self.send_error: Exception | None = None
        self.closed = False
        self.receive_calls = 0

    async def send(self, message: bytes) -> None:
        if self.send_error is not None:
            raise self.send_error
        self.sent.append(message)

    async def receive(self) -> str | bytes | None:
        self.receive_calls += 1
        await asyncio.sleep(0)
        if not self._frames:
            if self._hang_at_end:
                await asyncio.Event().wait()
            return None
        item = self._frames.popleft()
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True

    @property
    def sent_payloads(self) -> list[dict[str, str]]:
        return [json.loads(message) for message in self.sent]

    @property
    def sent_actions(self) -> list[str]:
        return [payload["action"] for payload in self.sent_payloads]


@pytest.fixture
def secret() -> str:
    return SECRET


@pytest.fixture
def handshake_frames() -> list[str]:
    return list(HANDSHAKE)
