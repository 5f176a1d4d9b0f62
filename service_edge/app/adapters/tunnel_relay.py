"""
Bridges an admitted WebSocket to the tunnel data plane.
"""

import asyncio
from typing import Optional

import websockets
from fastapi import WebSocket, WebSocketDisconnect, status
from starlette.websockets import WebSocketState
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from shared.logging import get_logger


class WebSocketTunnelRelay:
    """Default tunnel collaborator.

    Opens ``{upstream_url}/{subscriber_id}`` and pumps frames in both
    directions until either side closes. The client's requested
    subprotocols are passed through so early-data tunnels keep working.
    """

    def __init__(self, upstream_url: str, open_timeout: float = 10.0):
        self.upstream_url = upstream_url.rstrip("/")
        self.open_timeout = open_timeout
        self.logger = get_logger("edge.adapters.tunnel")

    async def __call__(self, websocket: WebSocket, subscriber_id: str) -> None:
        subprotocols = list(websocket.scope.get("subprotocols") or [])
        try:
            upstream = await websockets.connect(
                f"{self.upstream_url}/{subscriber_id}",
                subprotocols=subprotocols or None,
                open_timeout=self.open_timeout,
            )
        except (OSError, InvalidURI, InvalidHandshake, asyncio.TimeoutError) as e:
            self.logger.error("Tunnel upstream unavailable", subscriber_id=subscriber_id, error=str(e))
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
            return

        try:
            await websocket.accept(subprotocol=upstream.subprotocol)
            await self._bridge(websocket, upstream)
        finally:
            await upstream.close()
            if websocket.client_state == WebSocketState.CONNECTED:
                await websocket.close()

        self.logger.info("Tunnel session closed", subscriber_id=subscriber_id)

    async def _bridge(self, websocket: WebSocket, upstream) -> None:
        tasks = [
            asyncio.create_task(self._client_to_upstream(websocket, upstream)),
            asyncio.create_task(self._upstream_to_client(websocket, upstream)),
        ]
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

        for task in done:
            error: Optional[BaseException] = task.exception()
            if error is not None and not isinstance(error, (ConnectionClosed, WebSocketDisconnect)):
                raise error

    async def _client_to_upstream(self, websocket: WebSocket, upstream) -> None:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                return
            if message.get("bytes") is not None:
                await upstream.send(message["bytes"])
            elif message.get("text") is not None:
                await upstream.send(message["text"])

    async def _upstream_to_client(self, websocket: WebSocket, upstream) -> None:
        async for message in upstream:
            if isinstance(message, bytes):
                await websocket.send_bytes(message)
            else:
                await websocket.send_text(message)
