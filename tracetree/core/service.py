"""Pick the right view for a request and wrap it in a trace envelope."""

from __future__ import annotations

import asyncio
import logging

from tracetree.core.assembler import TraceAssembler
from tracetree.core.engine import TraversalEngine
from tracetree.core.models import SpanNode, SpanRecord, TraceDetail, TraversalRequest
from tracetree.errors import InvalidArgument

logger = logging.getLogger("tracetree")


class TraceQueryService:
    """Map a :class:`TraversalRequest` onto the engine's materializations.

    ===========  ==========  =============================================
    span_id      depth       view
    ===========  ==========  =============================================
    unset        unset       entire trace (capped)
    unset        N           roots + nested expansion to depth N
    set          unset / N   one page of that span's children (+N levels)
    ===========  ==========  =============================================
    """

    def __init__(self, engine: TraversalEngine, assembler: TraceAssembler | None = None):
        self.engine = engine
        self.assembler = assembler or TraceAssembler()

    async def query_trace(
        self,
        trace_id: str,
        request: TraversalRequest,
        cancel: asyncio.Event | None = None,
    ) -> TraceDetail:
        if request.span_id is None and request.depth is None:
            entire = await self.engine.load_entire_trace(trace_id, cancel=cancel)
            return self.assembler.assemble(
                entire.records, counts=entire.counts, default_resource=entire.root
            )

        if request.span_id is None:
            records = await self.engine.load_initial(
                trace_id, take=request.take, depth=request.depth, cancel=cancel
            )
            roots = [r for r in records if r.parent_span_id == ""]
            return await self._annotated(
                trace_id, records, default=roots[0] if roots else None
            )

        # "load more" at an already partially loaded node; without a depth
        # only the node's own children are returned
        if request.depth is not None and request.depth <= 0:
            raise InvalidArgument(f"depth must be a positive integer, got {request.depth!r}")
        records = await self.engine.expand_nested(
            trace_id,
            request.span_id,
            skip=request.skip,
            take=request.take,
            current_depth=1,
            max_depth=1 if request.depth is None else request.depth,
            cancel=cancel,
        )
        return await self._annotated(trace_id, records)

    async def _annotated(
        self,
        trace_id: str,
        records: list[SpanRecord],
        default: SpanRecord | None = None,
    ) -> TraceDetail:
        counts = await self.engine.counts.resolve(trace_id, [r.span_id for r in records])
        return self.assembler.assemble(records, counts=counts, default_resource=default)

    async def flat_tree(
        self,
        trace_id: str,
        span_id: str,
        *,
        children_limit: int,
        depth: int,
        level: int = 1,
        cancel: asyncio.Event | None = None,
    ) -> list[SpanNode]:
        """Pre-order partial tree rooted at ``span_id``."""
        nodes = await self.engine.expand_pre_order(
            trace_id,
            span_id,
            children_limit=children_limit,
            max_depth=depth,
            start_level=level,
            cancel=cancel,
        )
        logger.info("Built flat tree of %d spans for %s/%s", len(nodes), trace_id, span_id)
        return nodes

    async def additional_children(
        self,
        trace_id: str,
        span_id: str,
        *,
        skip: int,
        take: int,
        children_limit: int,
        depth: int,
        level: int,
        cancel: asyncio.Event | None = None,
    ) -> list[SpanNode]:
        return await self.engine.expand_additional(
            trace_id,
            span_id,
            skip=skip,
            take=take,
            children_limit=children_limit,
            depth=depth,
            level=level,
            cancel=cancel,
        )
