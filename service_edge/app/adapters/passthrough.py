"""
Streaming HTTP passthrough shared by the DNS relay and the fallback proxy.
"""

from typing import Iterable, List, Optional, Tuple

import httpx
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from shared.errors import UpstreamError
from shared.logging import get_logger

HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailers",
    "transfer-encoding",
    "upgrade",
})

logger = get_logger("edge.adapters.passthrough")


def forwardable_headers(items: Iterable[Tuple[str, str]], drop: Iterable[str] = ()) -> List[Tuple[str, str]]:
    """Filter hop-by-hop (and any extra) headers, keeping repeated values."""
    excluded = HOP_BY_HOP_HEADERS.union(name.lower() for name in drop)
    return [(name, value) for name, value in items if name.lower() not in excluded]


async def stream_upstream(
    service: str,
    upstream_request: httpx.Request,
    timeout: float = 10.0,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> StreamingResponse:
    """Send ``upstream_request`` and stream the raw response back.

    Status, headers and body bytes are relayed as received (no content
    decoding). Transport failures raise UpstreamError.
    """
    client = httpx.AsyncClient(timeout=timeout, transport=transport)
    try:
        upstream = await client.send(upstream_request, stream=True)
    except httpx.HTTPError as e:
        await client.aclose()
        logger.error(
            "Upstream request failed",
            service=service,
            host=upstream_request.url.host,
            error=str(e)
        )
        raise UpstreamError(service, "Failed to connect to upstream")

    async def _close():
        await upstream.aclose()
        await client.aclose()

    response = StreamingResponse(
        upstream.aiter_raw(),
        status_code=upstream.status_code,
        background=BackgroundTask(_close),
    )
    response.raw_headers = [
        (name.encode("latin-1"), value.encode("latin-1"))
        for name, value in forwardable_headers(upstream.headers.multi_items())
    ]
    return response
