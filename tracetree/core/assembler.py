"""Shape engine output into the externally visible trace envelope."""

from __future__ import annotations

import json
from typing import Iterable, Mapping

from tracetree.core.mapper import SpanRecordMapper
from tracetree.core.models import (
    AnyValue,
    InstrumentationScope,
    KeyValue,
    Link,
    Resource,
    ResourceSpans,
    ScopeSpans,
    Span,
    SpanNode,
    SpanRecord,
    TraceDetail,
    ValueCase,
)
from tracetree.ids import IdEncoding, decode_id, encode_id

SCHEMA_URL = "https://opentelemetry.io/schemas/1.28.0"

CHILDREN_COUNT_KEY = "childrenCount"


def _group_key(resource: Resource, scope: InstrumentationScope) -> tuple[str, str]:
    return (
        json.dumps(resource.model_dump(mode="json"), sort_keys=True),
        json.dumps(scope.model_dump(mode="json"), sort_keys=True),
    )


class TraceAssembler:
    """Group spans under resource and scope and attach schema metadata.

    Usage::

        assembler = TraceAssembler(id_encoding=IdEncoding.BASE64)
        detail = assembler.assemble(records, counts=counts)
        spans = assembler.flatten(detail)
    """

    def __init__(
        self,
        schema_url: str = SCHEMA_URL,
        id_encoding: IdEncoding = IdEncoding.HEX,
        mapper: SpanRecordMapper | None = None,
    ):
        self.schema_url = schema_url
        self.id_encoding = IdEncoding(id_encoding)
        self.mapper = mapper or SpanRecordMapper()

    def assemble(
        self,
        records: Iterable[SpanRecord],
        *,
        counts: Mapping[str, int] | None = None,
        default_resource: SpanRecord | None = None,
    ) -> TraceDetail:
        """Build a :class:`TraceDetail` from store records.

        Spans keep their relative order inside each resource/scope group and
        groups appear in the order they are first seen.  Records without a
        resource borrow ``default_resource``'s.  With ``counts``, every span
        gets a synthetic ``childrenCount`` attribute.
        """
        pairs = []
        for record in records:
            span = self.mapper.to_span(record)
            source = record
            if not record.resource and default_resource is not None:
                source = default_resource
            pairs.append(
                (span, self.mapper.to_resource(source), self.mapper.to_scope(record))
            )
        return self._group(pairs, counts)

    def assemble_nodes(
        self,
        nodes: Iterable[SpanNode],
        *,
        resource: SpanRecord | None = None,
    ) -> TraceDetail:
        """Wrap a pre-order :class:`SpanNode` list; counts come from the nodes."""
        nodes = list(nodes)
        counts = {n.span.span_id: n.total_children_count for n in nodes}
        res = self.mapper.to_resource(resource) if resource else Resource()
        scope = self.mapper.to_scope(resource) if resource else InstrumentationScope()
        return self._group([(n.span, res, scope) for n in nodes], counts)

    def _group(
        self,
        pairs: list[tuple[Span, Resource, InstrumentationScope]],
        counts: Mapping[str, int] | None,
    ) -> TraceDetail:
        resources: dict[str, ResourceSpans] = {}
        scopes: dict[tuple[str, str], ScopeSpans] = {}
        for span, resource, scope in pairs:
            key = _group_key(resource, scope)
            resource_spans = resources.get(key[0])
            if resource_spans is None:
                resource_spans = ResourceSpans(resource=resource, schema_url=self.schema_url)
                resources[key[0]] = resource_spans
            scope_spans = scopes.get(key)
            if scope_spans is None:
                scope_spans = ScopeSpans(scope=scope, schema_url=self.schema_url)
                scopes[key] = scope_spans
                resource_spans.scope_spans.append(scope_spans)
            count = counts.get(span.span_id) if counts is not None else None
            scope_spans.spans.append(self._outgoing(span, count))
        return TraceDetail(resource_spans=list(resources.values()))

    def _outgoing(self, span: Span, children_count: int | None) -> Span:
        attributes = list(span.attributes)
        if children_count is not None:
            attributes.append(
                KeyValue(
                    key=CHILDREN_COUNT_KEY,
                    value=AnyValue(value_case=ValueCase.INT, int_value=children_count),
                )
            )
        enc = self.id_encoding
        return span.model_copy(
            update={
                "trace_id": encode_id(span.trace_id, enc),
                "span_id": encode_id(span.span_id, enc),
                "parent_span_id": encode_id(span.parent_span_id, enc),
                "attributes": attributes,
                "links": [
                    link.model_copy(
                        update={
                            "trace_id": encode_id(link.trace_id, enc),
                            "span_id": encode_id(link.span_id, enc),
                        }
                    )
                    for link in span.links
                ],
            }
        )

    def flatten(self, detail: TraceDetail) -> list[Span]:
        """Walk an envelope back into spans, undoing what :meth:`assemble` added."""
        enc = self.id_encoding
        spans: list[Span] = []
        for resource_spans in detail.resource_spans:
            for scope_spans in resource_spans.scope_spans:
                for span in scope_spans.spans:
                    spans.append(
                        span.model_copy(
                            update={
                                "trace_id": decode_id(span.trace_id, enc),
                                "span_id": decode_id(span.span_id, enc),
                                "parent_span_id": decode_id(span.parent_span_id, enc),
                                "attributes": [
                                    kv for kv in span.attributes
                                    if kv.key != CHILDREN_COUNT_KEY
                                ],
                                "links": [_decode_link(link, enc) for link in span.links],
                            }
                        )
                    )
        return spans


def _decode_link(link: Link, enc: IdEncoding) -> Link:
    return link.model_copy(
        update={
            "trace_id": decode_id(link.trace_id, enc),
            "span_id": decode_id(link.span_id, enc),
        }
    )


def children_count(span: Span) -> int | None:
    """Read back the synthetic ``childrenCount`` attribute, if present."""
    for kv in span.attributes:
        if kv.key == CHILDREN_COUNT_KEY:
            return kv.value.int_value
    return None
