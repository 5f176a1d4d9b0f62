"""
Tests for the WebSocket tunnel bridge.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from starlette.websockets import WebSocketState

import sys
import os
sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))

from service_edge.app.adapters import WebSocketTunnelRelay

from conftest import SUBSCRIBER_ID


class FakeUpstream:
    """Upstream connection yielding a fixed sequence of frames."""

    def __init__(self, frames, subprotocol=None):
        self.frames = frames
        self.subprotocol = subprotocol
        self.sent = []
        self.closed = False

    async def send(self, message):
        self.sent.append(message)

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for frame in self.frames:
            yield frame

    async def close(self):
        self.closed = True


def make_client_socket(messages, subprotocols=None):
    """Client socket that delivers ``messages`` then waits until cancelled."""
    pending = list(messages)

    async def receive():
        if pending:
            return pending.pop(0)
        await asyncio.Event().wait()

    websocket = MagicMock()
    websocket.scope = {"subprotocols": subprotocols or []}
    websocket.receive = receive
    websocket.accept = AsyncMock()
    websocket.send_bytes = AsyncMock()
    websocket.send_text = AsyncMock()
    websocket.close = AsyncMock()
    websocket.client_state = WebSocketState.CONNECTED
    return websocket


class TestWebSocketTunnelRelay:
    """Test frame bridging and upstream failures."""

    @pytest.fixture
    def relay(self):
        return WebSocketTunnelRelay("ws://tunnel.internal:10000/")

    @pytest.mark.asyncio
    async def test_frames_flow_both_ways(self, relay):
        upstream = FakeUpstream([b"world", "text-frame"])
        websocket = make_client_socket([{"type": "websocket.receive", "bytes": b"hello"}])

        with patch("service_edge.app.adapters.tunnel_relay.websockets.connect",
                   new=AsyncMock(return_value=upstream)) as connect:
            await relay(websocket, SUBSCRIBER_ID)

        assert connect.await_args.args[0] == f"ws://tunnel.internal:10000/{SUBSCRIBER_ID}"
        websocket.accept.assert_awaited_once_with(subprotocol=None)
        assert upstream.sent == [b"hello"]
        websocket.send_bytes.assert_awaited_once_with(b"world")
        websocket.send_text.assert_awaited_once_with("text-frame")
        assert upstream.closed
        websocket.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_client_disconnect_closes_upstream(self, relay):
        upstream = FakeUpstream([])

        async def never_ending():
            await asyncio.Event().wait()
            yield b""

        upstream._iterate = never_ending
        websocket = make_client_socket([
            {"type": "websocket.receive", "text": "ping"},
            {"type": "websocket.disconnect", "code": 1000},
        ])

        with patch("service_edge.app.adapters.tunnel_relay.websockets.connect",
                   new=AsyncMock(return_value=upstream)):
            await relay(websocket, SUBSCRIBER_ID)

        assert upstream.sent == ["ping"]
        assert upstream.closed

    @pytest.mark.asyncio
    async def test_subprotocols_are_passed_through(self, relay):
        upstream = FakeUpstream([], subprotocol="early-data")
        websocket = make_client_socket([], subprotocols=["early-data"])

        with patch("service_edge.app.adapters.tunnel_relay.websockets.connect",
                   new=AsyncMock(return_value=upstream)) as connect:
            await relay(websocket, SUBSCRIBER_ID)

        assert connect.await_args.kwargs["subprotocols"] == ["early-data"]
        websocket.accept.assert_awaited_once_with(subprotocol="early-data")

    @pytest.mark.asyncio
    async def test_unreachable_upstream_closes_client(self, relay):
        websocket = make_client_socket([])

        with patch("service_edge.app.adapters.tunnel_relay.websockets.connect",
                   new=AsyncMock(side_effect=OSError("connection refused"))):
            await relay(websocket, SUBSCRIBER_ID)

        websocket.accept.assert_not_awaited()
        websocket.close.assert_awaited_once_with(code=1011)
