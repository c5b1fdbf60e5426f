"""Trace API routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Query, Request

from tracetree.core.engine import with_deadline
from tracetree.core.models import TraversalRequest
from tracetree.ids import Identifier
from tracetree.server.models import TraceDetailResponse, TraceSearchItem, TraceSearchResponse
from tracetree.server.tempo import proxy_trace

logger = logging.getLogger("tracetree")

router = APIRouter(tags=["traces"])


def _get_db(request: Request):
    return request.app.state.db


@router.get("/traces", response_model=TraceSearchResponse)
async def search_traces(
    request: Request,
    start: int | None = Query(None, description="Earliest root start time (unix ns)"),
    end: int | None = Query(None, description="Latest root start time (unix ns)"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum traces returned"),
):
    """List traces by their root spans, newest first."""
    db = _get_db(request)
    roots = await db.search_root_spans(start=start, end=end, limit=limit)
    logger.info("Trace search returned %d traces", len(roots))
    return TraceSearchResponse(traces=[TraceSearchItem.from_root(r) for r in roots])


@router.get("/traces/{trace_id}", response_model=TraceDetailResponse)
async def query_trace(
    request: Request,
    trace_id: str,
    span_id: str | None = Query(None, alias="spanId", description="Expand this span"),
    depth: int | None = Query(None, description="Levels to load; omit for the entire trace"),
    skip: int = Query(0, description="Children of spanId to skip"),
    take: int | None = Query(None, description="Children per span"),
    children_limit: int | None = Query(None, alias="childrenLimit"),
    start: int | None = Query(None),
    end: int | None = Query(None),
):
    """Resource/scope grouped view of a trace, or of one span's subtree."""
    config = request.app.state.config
    traversal = TraversalRequest(
        span_id=span_id,
        skip=skip,
        take=take if take is not None else config.default_take,
        children_limit=(
            children_limit if children_limit is not None else config.default_children_limit
        ),
        depth=depth,
        start=start,
        end=end,
    )

    if config.backend == "tempo":
        return await proxy_trace(
            config.tempo_url, trace_id, traversal, timeout=config.request_timeout
        )

    if span_id is not None:
        traversal = traversal.model_copy(update={"span_id": Identifier.parse(span_id).hex})
    service = request.app.state.service
    detail = await with_deadline(
        service.query_trace(Identifier.parse(trace_id).hex, traversal),
        config.request_timeout,
    )
    return TraceDetailResponse(trace=detail)


@router.delete("/traces/{trace_id}")
async def delete_trace(request: Request, trace_id: str):
    """Delete every span of one trace."""
    db = _get_db(request)
    count = await db.delete_trace(Identifier.parse(trace_id).hex)
    return {"deleted": count, "message": f"Deleted {count} spans"}
