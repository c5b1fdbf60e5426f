"""The read-only span store the traversal engine runs against."""

from __future__ import annotations

from typing import Iterable, Protocol

from tracetree.core.models import SpanRecord


class SpanStore(Protocol):
    """Spans addressable by ``(trace_id, parent_span_id)`` lookups.

    Implementations raise :class:`~tracetree.errors.NotFound` for missing
    spans and wrap their own failures in :class:`~tracetree.errors.QueryError`.
    Children are always returned ascending by ``sort_field``.
    """

    async def get_root_spans(self, trace_id: str) -> list[SpanRecord]: ...

    async def get_children(
        self,
        trace_id: str,
        parent_span_id: str,
        *,
        sort_field: str,
        skip: int,
        take: int,
    ) -> list[SpanRecord]: ...

    async def get_child_ids(
        self,
        trace_id: str,
        parent_span_id: str,
        *,
        sort_field: str,
        skip: int,
        take: int,
    ) -> list[str]: ...

    async def get_span(self, trace_id: str, span_id: str) -> SpanRecord: ...

    async def get_span_with_child_ids(
        self,
        trace_id: str,
        span_id: str,
        *,
        sort_field: str,
        take: int,
    ) -> tuple[SpanRecord, list[str]]: ...

    async def count_children_by_parent(
        self, trace_id: str, parent_ids: Iterable[str]
    ) -> dict[str, int]: ...

    async def get_all_spans(
        self, trace_id: str, *, sort_field: str, cap: int
    ) -> list[SpanRecord]: ...
