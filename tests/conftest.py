"""
Shared pytest fixtures for the MIDI relay tests.

Provides:
- sys.path setup so the server modules import by bare name, as they do when run from server/
- FakeWebSocket, an in-memory stand-in for a server-side WebSocket connection
- Registry / lifecycle / relay fixtures wired the same way RelayServer wires them
"""

import asyncio
import sys
from pathlib import Path

import pytest
from websockets.protocol import State

# Add server/ to path
sys.path.insert(0, str(Path(__file__).parent.parent / "server"))

from lifecycle import ConnectionLifecycle
from registry import ConnectionRegistry
from relay import BroadcastRelay


class FakeWebSocket:
    """Records sent frames. Can be told to fail every send or to stall until released."""

    _next_port = 50000

    def __init__(self, fail_with=None, stalled=False):
        FakeWebSocket._next_port += 1
        self.remote_address = ("127.0.0.1", FakeWebSocket._next_port)
        self.state = State.OPEN
        self.sent = []
        self.fail_with = fail_with
        self.closed_with = None
        self.gate = asyncio.Event()
        if not stalled:
            self.gate.set()

    async def send(self, message):
        await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(message)

    async def close(self, code=1000, reason=""):
        self.state = State.CLOSED
        self.closed_with = (code, reason)


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def lifecycle(registry):
    return ConnectionLifecycle(registry, send_failure_limit=3)


@pytest.fixture
def relay(registry, lifecycle):
    return BroadcastRelay(registry, lifecycle)
