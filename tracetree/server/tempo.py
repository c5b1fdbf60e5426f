"""Forward trace queries to a Tempo build with native tree queries.

The engine is bypassed entirely; only the query string is re-derived from
the incoming request.
"""

from __future__ import annotations

import logging

import httpx
from fastapi import Response

from tracetree.core.models import TraversalRequest
from tracetree.errors import QueryError

logger = logging.getLogger("tracetree")

_PASSTHROUGH_HEADERS = ("content-type", "cache-control", "etag")


def tempo_params(request: TraversalRequest) -> dict[str, int | str]:
    """Query-string parameters understood by the optimized Tempo API."""
    params: dict[str, int | str] = {}
    if request.start is not None:
        params["start"] = request.start
    if request.end is not None:
        params["end"] = request.end
    if request.span_id is not None:
        params["spanId"] = request.span_id
    if request.depth is not None:
        params["depth"] = request.depth
    params["childrenLimit"] = request.children_limit
    params["skip"] = request.skip
    params["take"] = request.take
    return params


async def proxy_trace(
    tempo_url: str,
    trace_id: str,
    request: TraversalRequest,
    *,
    timeout: float | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> Response:
    """GET ``/api/v2/traces/{trace_id}`` upstream and relay the response."""
    url = f"{tempo_url.rstrip('/')}/api/v2/traces/{trace_id}"
    params = tempo_params(request)
    logger.info("Forwarding trace %s to %s", trace_id, url)
    try:
        async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
            upstream = await client.get(
                url, params=params, headers={"Content-Type": "application/json"}
            )
    except httpx.HTTPError as exc:
        raise QueryError(f"Failed to forward trace {trace_id} to {url}: {exc}") from exc

    headers = {
        k: v for k, v in upstream.headers.items() if k.lower() in _PASSTHROUGH_HEADERS
    }
    return Response(content=upstream.content, status_code=upstream.status_code, headers=headers)
