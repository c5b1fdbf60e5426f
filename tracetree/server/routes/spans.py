"""Span API routes: flat partial trees rooted at a span."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Query, Request

from tracetree.core.engine import with_deadline
from tracetree.core.models import SpanNode
from tracetree.ids import Identifier

router = APIRouter(tags=["spans"])


def _get_db(request: Request):
    return request.app.state.db


@router.get("/traces/{trace_id}/spans/{span_id}/tree", response_model=list[SpanNode])
async def get_span_tree(
    request: Request,
    trace_id: str,
    span_id: str,
    children_limit: int | None = Query(None, alias="childrenLimit"),
    depth: int | None = Query(None),
    level: int = Query(1),
):
    """Pre-order list of the span and its descendants, with child counts."""
    config = request.app.state.config
    service = request.app.state.service
    return await with_deadline(
        service.flat_tree(
            Identifier.parse(trace_id).hex,
            Identifier.parse(span_id).hex,
            children_limit=(
                children_limit if children_limit is not None else config.default_children_limit
            ),
            depth=depth if depth is not None else config.default_depth,
            level=level,
        ),
        config.request_timeout,
    )


@router.get("/traces/{trace_id}/spans/{span_id}/children", response_model=list[SpanNode])
async def get_additional_children(
    request: Request,
    trace_id: str,
    span_id: str,
    skip: int = Query(0),
    take: int = Query(10),
    children_limit: int = Query(3, alias="childrenLimit"),
    depth: int = Query(3),
    level: int = Query(1, description="Level of span_id in the caller's tree"),
):
    """Another page of the span's children, each with a bounded subtree."""
    config = request.app.state.config
    service = request.app.state.service
    return await with_deadline(
        service.additional_children(
            Identifier.parse(trace_id).hex,
            Identifier.parse(span_id).hex,
            skip=skip,
            take=take,
            children_limit=children_limit,
            depth=depth,
            level=level,
        ),
        config.request_timeout,
    )


@router.get("/traces/{trace_id}/spans/{span_id}/attributes")
async def get_span_attributes(request: Request, trace_id: str, span_id: str) -> dict[str, Any]:
    """Raw attribute map of a single span."""
    db = _get_db(request)
    record = await db.get_span(Identifier.parse(trace_id).hex, Identifier.parse(span_id).hex)
    return record.attributes
