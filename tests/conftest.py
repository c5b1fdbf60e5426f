"""Shared test helpers: an in-memory span store and trace builders."""

from __future__ import annotations

import asyncio

import pytest

from tracetree.core.models import SpanRecord
from tracetree.errors import NotFound, QueryError

TRACE_ID = "0af7651916cd43dd8448eb211c80319c"


def sid(n: int) -> str:
    """A 16-hex-digit span id."""
    return f"{n:016x}"


def make_record(
    span_id: str,
    parent_span_id: str = "",
    start: int = 0,
    *,
    trace_id: str = TRACE_ID,
    duration: int = 1_000_000,
    name: str | None = None,
    **extra,
) -> SpanRecord:
    return SpanRecord(
        trace_id=trace_id,
        span_id=span_id,
        parent_span_id=parent_span_id,
        name=name or f"op-{span_id[-4:]}",
        start_time=start,
        end_time=start + duration,
        resource=extra.pop("resource", {"service.name": "checkout"}),
        scope_name=extra.pop("scope_name", "tracetree.tests"),
        **extra,
    )


# S1 ── S2 ── S5
#    ├─ S3
#    └─ S4
S1, S2, S3, S4, S5, S9 = (sid(n) for n in (1, 2, 3, 4, 5, 9))


def scenario_records() -> list[SpanRecord]:
    return [
        make_record(S1, "", 0),
        make_record(S4, S1, 30),
        make_record(S2, S1, 10),
        make_record(S3, S1, 20),
        make_record(S5, S2, 15),
    ]


def wide_records(branching: int = 3, levels: int = 4) -> list[SpanRecord]:
    """A complete tree with ``branching`` children per node."""
    records = [make_record(sid(1), "", 0)]
    frontier = [sid(1)]
    counter = 1
    for _ in range(levels - 1):
        next_frontier = []
        for parent in frontier:
            for i in range(branching):
                counter += 1
                records.append(make_record(sid(counter), parent, counter * 10 + i))
                next_frontier.append(sid(counter))
        frontier = next_frontier
    return records


def assert_pre_order(nodes) -> None:
    """Every node's parent is the nearest earlier node one level up."""
    stack = []
    for node in nodes:
        while stack and stack[-1].level >= node.level:
            stack.pop()
        if stack:
            parent = stack[-1]
            assert node.level == parent.level + 1
            assert node.span.parent_span_id == parent.span.span_id
        stack.append(node)


class FakeSpanStore:
    """In-memory :class:`~tracetree.core.store.SpanStore` that records calls."""

    def __init__(self, records=()):
        self.records: list[SpanRecord] = list(records)
        self.calls: list[str] = []
        self.fail_on: str | None = None
        self.delay: float = 0.0
        self.on_call = None

    async def _enter(self, name: str) -> None:
        self.calls.append(name)
        if self.on_call is not None:
            self.on_call(name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_on == name:
            raise QueryError(f"{name} failed")

    def _in_trace(self, trace_id: str) -> list[SpanRecord]:
        return [r for r in self.records if r.trace_id == trace_id]

    @staticmethod
    def _sorted(records, sort_field: str) -> list[SpanRecord]:
        return sorted(records, key=lambda r: (getattr(r, sort_field), r.span_id))

    def _children(self, trace_id, parent_span_id, sort_field, skip, take):
        children = [r for r in self._in_trace(trace_id) if r.parent_span_id == parent_span_id]
        return self._sorted(children, sort_field)[skip:skip + take]

    async def get_root_spans(self, trace_id):
        await self._enter("get_root_spans")
        roots = [r for r in self._in_trace(trace_id) if r.parent_span_id == ""]
        return self._sorted(roots, "start_time")

    async def get_children(self, trace_id, parent_span_id, *, sort_field, skip, take):
        await self._enter("get_children")
        return self._children(trace_id, parent_span_id, sort_field, skip, take)

    async def get_child_ids(self, trace_id, parent_span_id, *, sort_field, skip, take):
        await self._enter("get_child_ids")
        return [r.span_id for r in self._children(trace_id, parent_span_id, sort_field, skip, take)]

    async def get_span(self, trace_id, span_id):
        await self._enter("get_span")
        for r in self._in_trace(trace_id):
            if r.span_id == span_id:
                return r
        raise NotFound(span_id)

    async def get_span_with_child_ids(self, trace_id, span_id, *, sort_field, take):
        await self._enter("get_span_with_child_ids")
        for r in self._in_trace(trace_id):
            if r.span_id == span_id:
                children = self._children(trace_id, span_id, sort_field, 0, take)
                return r, [c.span_id for c in children]
        raise NotFound(span_id)

    async def count_children_by_parent(self, trace_id, parent_ids):
        await self._enter("count_children_by_parent")
        wanted = set(parent_ids)
        counts: dict[str, int] = {}
        for r in self._in_trace(trace_id):
            if r.parent_span_id in wanted:
                counts[r.parent_span_id] = counts.get(r.parent_span_id, 0) + 1
        return counts

    async def get_all_spans(self, trace_id, *, sort_field, cap):
        await self._enter("get_all_spans")
        return self._sorted(self._in_trace(trace_id), sort_field)[:cap]


@pytest.fixture
def store() -> FakeSpanStore:
    return FakeSpanStore(scenario_records())
