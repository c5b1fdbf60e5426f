"""Incremental trace-tree assembly over a :class:`SpanStore`.

Three ways to materialize a trace:

* :meth:`TraversalEngine.expand_pre_order`: a flat, pre-order list of
  :class:`SpanNode` with child counts, bounded by depth and page size.
* :meth:`TraversalEngine.expand_nested` / :meth:`load_initial`: spans only,
  pre-order, bounded the same way, for the nested resource/scope envelope.
* :meth:`TraversalEngine.load_entire_trace`: everything up to a hard cap.

Every traversal is a sequential, depth-first series of store round trips: a
subtree is complete before its next sibling is fetched.  Any failure aborts
the whole call; nothing partial is returned.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Awaitable, Callable, TypeVar

from tracetree.core.counts import ChildCountResolver
from tracetree.core.mapper import SpanRecordMapper
from tracetree.core.models import SpanNode, SpanRecord
from tracetree.core.store import SpanStore
from tracetree.errors import Cancelled, InvalidArgument, NotFound

logger = logging.getLogger("tracetree")

T = TypeVar("T")

LevelLimit = Callable[[int, int], int]
"""``(level, default_page_size) -> page size`` for children of a node at ``level``."""

DEFAULT_ENTIRE_TRACE_CAP = 10000


@dataclass(frozen=True)
class EntireTrace:
    """Result of :meth:`TraversalEngine.load_entire_trace`."""

    root: SpanRecord
    records: list[SpanRecord] = field(default_factory=list)
    counts: dict[str, int] = field(default_factory=dict)
    truncated: bool = False


async def with_deadline(awaitable: Awaitable[T], timeout: float | None) -> T:
    """Await a traversal, turning an expired deadline into :class:`Cancelled`."""
    if timeout is None:
        return await awaitable
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as exc:
        raise Cancelled(f"Traversal exceeded its {timeout:g}s deadline") from exc


def _checkpoint(cancel: asyncio.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise Cancelled("Traversal cancelled by caller")


def _require_positive(**values: int) -> None:
    for name, value in values.items():
        if value is None or value <= 0:
            raise InvalidArgument(f"{name} must be a positive integer, got {value!r}")


def _require_non_negative(**values: int) -> None:
    for name, value in values.items():
        if value is None or value < 0:
            raise InvalidArgument(f"{name} must be >= 0, got {value!r}")


class TraversalEngine:
    """Bounded, paginated tree materialization over an injected span store."""

    def __init__(
        self,
        store: SpanStore,
        *,
        time_field: str = "start_time",
        counts: ChildCountResolver | None = None,
        mapper: SpanRecordMapper | None = None,
        level_limit: LevelLimit | None = None,
        entire_trace_cap: int = DEFAULT_ENTIRE_TRACE_CAP,
    ):
        self.store = store
        self.time_field = time_field
        self.counts = counts or ChildCountResolver(store)
        self.mapper = mapper or SpanRecordMapper()
        self.level_limit = level_limit
        self.entire_trace_cap = entire_trace_cap

    def _page_size(self, level: int, default: int) -> int:
        if self.level_limit is None:
            return default
        size = self.level_limit(level, default)
        _require_positive(page_size=size)
        return size

    # ── Flat pre-order ─────────────────────────────────────────────────

    async def expand_pre_order(
        self,
        trace_id: str,
        start_span_id: str,
        *,
        children_limit: int,
        max_depth: int,
        start_level: int = 1,
        cancel: asyncio.Event | None = None,
    ) -> list[SpanNode]:
        """Load ``start_span_id`` and its descendants as a pre-order list.

        Each node lists at most ``children_limit`` children (ascending by
        the time field); recursion stops after ``max_depth`` levels.  Level
        numbering starts at ``start_level`` so several calls can be
        stitched into one logical tree.
        """
        if start_level > max_depth:
            return []
        _require_positive(children_limit=children_limit, max_depth=max_depth)
        return await self._pre_order(
            trace_id, start_span_id, children_limit, max_depth, start_level, cancel
        )

    async def expand_additional(
        self,
        trace_id: str,
        span_id: str,
        *,
        skip: int = 0,
        take: int = 10,
        children_limit: int = 3,
        depth: int = 3,
        level: int = 1,
        cancel: asyncio.Event | None = None,
    ) -> list[SpanNode]:
        """Load another page of ``span_id``'s children, each with its subtree.

        ``skip``/``take`` page the immediate children of ``span_id`` only;
        every level below restarts at skip 0 with ``children_limit``.
        ``level`` is the level of ``span_id`` itself.
        """
        _require_non_negative(skip=skip)
        _require_positive(take=take, children_limit=children_limit, depth=depth)

        _checkpoint(cancel)
        child_ids = await self.store.get_child_ids(
            trace_id, span_id, sort_field=self.time_field, skip=skip, take=take
        )
        _checkpoint(cancel)
        totals = await self.counts.resolve(trace_id, child_ids)

        max_depth = level + 1 + depth
        nodes: list[SpanNode] = []
        for child_id in child_ids:
            nodes.extend(
                await self._pre_order(
                    trace_id,
                    child_id,
                    children_limit,
                    max_depth,
                    level + 1,
                    cancel,
                    total=totals[child_id],
                )
            )
        logger.info(
            "Loaded %d additional spans under %s (trace %s, skip=%d, take=%d)",
            len(nodes), span_id, trace_id, skip, take,
        )
        return nodes

    async def _pre_order(
        self,
        trace_id: str,
        span_id: str,
        children_limit: int,
        max_depth: int,
        level: int,
        cancel: asyncio.Event | None,
        total: int | None = None,
    ) -> list[SpanNode]:
        if level > max_depth:
            return []

        _checkpoint(cancel)
        record, child_ids = await self.store.get_span_with_child_ids(
            trace_id,
            span_id,
            sort_field=self.time_field,
            take=self._page_size(level, children_limit),
        )
        logger.debug("Fetched span %s with %d child ids (level %d)", span_id, len(child_ids), level)

        # Totals for this node and its fetched children come from one
        # aggregation call per node; the caller already knows ours unless
        # this is the starting span.
        wanted = list(child_ids) if level < max_depth else []
        if total is None:
            wanted.append(span_id)
        totals: dict[str, int] = {}
        if wanted:
            _checkpoint(cancel)
            totals = await self.counts.resolve(trace_id, wanted)
        if total is None:
            total = totals[span_id]

        node = SpanNode(
            span=self.mapper.to_span(record),
            level=level,
            current_children_count=len(child_ids),
            # the store is not snapshotted; never report fewer than we saw
            total_children_count=max(total, len(child_ids)),
        )
        result = [node]
        for child_id in child_ids:
            result.extend(
                await self._pre_order(
                    trace_id,
                    child_id,
                    children_limit,
                    max_depth,
                    level + 1,
                    cancel,
                    total=totals.get(child_id),
                )
            )
        return result

    # ── Nested (spans only) ────────────────────────────────────────────

    async def expand_nested(
        self,
        trace_id: str,
        start_span_id: str,
        *,
        skip: int = 0,
        take: int,
        current_depth: int = 1,
        max_depth: int,
        cancel: asyncio.Event | None = None,
    ) -> list[SpanRecord]:
        """Descendants of ``start_span_id`` in pre-order, excluding itself.

        ``skip``/``take`` page ``start_span_id``'s own children; deeper
        levels use skip 0 and the same ``take``.
        """
        if current_depth > max_depth:
            return []
        _require_non_negative(skip=skip)
        _require_positive(take=take, max_depth=max_depth)
        return await self._nested(
            trace_id, start_span_id, skip, take, take, current_depth, max_depth, cancel
        )

    async def _nested(
        self,
        trace_id: str,
        span_id: str,
        skip: int,
        page: int,
        take: int,
        current_depth: int,
        max_depth: int,
        cancel: asyncio.Event | None,
    ) -> list[SpanRecord]:
        if current_depth > max_depth:
            return []
        _checkpoint(cancel)
        children = await self.store.get_children(
            trace_id, span_id, sort_field=self.time_field, skip=skip, take=page
        )
        result: list[SpanRecord] = []
        for child in children:
            result.append(child)
            result.extend(
                await self._nested(
                    trace_id,
                    child.span_id,
                    0,
                    self._page_size(current_depth + 1, take),
                    take,
                    current_depth + 1,
                    max_depth,
                    cancel,
                )
            )
        return result

    async def load_initial(
        self,
        trace_id: str,
        *,
        take: int,
        depth: int,
        cancel: asyncio.Event | None = None,
    ) -> list[SpanRecord]:
        """Root spans, each followed by its nested expansion to ``depth``."""
        _require_positive(take=take, depth=depth)
        _checkpoint(cancel)
        roots = await self.store.get_root_spans(trace_id)
        if not roots:
            raise NotFound(f"Trace {trace_id} has no root span")

        records: list[SpanRecord] = []
        for root in roots:
            records.append(root)
            records.extend(
                await self._nested(trace_id, root.span_id, 0, take, take, 1, depth, cancel)
            )
        logger.info(
            "Loaded %d spans from %d roots of trace %s (depth=%d, take=%d)",
            len(records), len(roots), trace_id, depth, take,
        )
        return records

    # ── Entire trace ───────────────────────────────────────────────────

    async def load_entire_trace(
        self, trace_id: str, cancel: asyncio.Event | None = None
    ) -> EntireTrace:
        """Every span of the trace (up to the cap), sorted by time field.

        Only safe because of the cap; do not use it for traces known to be
        larger than ``entire_trace_cap``.
        """
        _checkpoint(cancel)
        records = await self.store.get_all_spans(
            trace_id, sort_field=self.time_field, cap=self.entire_trace_cap
        )
        root = next((r for r in records if r.parent_span_id == ""), None)
        if root is None:
            raise NotFound(f"Trace {trace_id} has no root span")

        _checkpoint(cancel)
        counts = await self.counts.resolve(trace_id, [r.span_id for r in records])
        truncated = len(records) >= self.entire_trace_cap
        if truncated:
            logger.warning(
                "Trace %s reached the %d span cap; the entire-trace view is truncated",
                trace_id, self.entire_trace_cap,
            )
        return EntireTrace(root=root, records=records, counts=counts, truncated=truncated)
