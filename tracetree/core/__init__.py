"""Trace-tree assembly: data model, span store contract and traversal engine."""

from tracetree.core.assembler import SCHEMA_URL, TraceAssembler
from tracetree.core.counts import ChildCountResolver
from tracetree.core.engine import EntireTrace, TraversalEngine, with_deadline
from tracetree.core.mapper import SpanRecordMapper
from tracetree.core.models import (
    Span,
    SpanNode,
    SpanRecord,
    TraceDetail,
    TraversalRequest,
)
from tracetree.core.service import TraceQueryService
from tracetree.core.store import SpanStore

__all__ = [
    "SCHEMA_URL",
    "ChildCountResolver",
    "EntireTrace",
    "Span",
    "SpanNode",
    "SpanRecord",
    "SpanRecordMapper",
    "SpanStore",
    "TraceAssembler",
    "TraceDetail",
    "TraceQueryService",
    "TraversalEngine",
    "TraversalRequest",
    "with_deadline",
]
