"""Batched immediate-child counts."""

from __future__ import annotations

import logging
from typing import Iterable

from tracetree.core.store import SpanStore

logger = logging.getLogger("tracetree")


class ChildCountResolver:
    """Resolve child counts for many spans in a single store round trip."""

    def __init__(self, store: SpanStore):
        self.store = store

    async def resolve(self, trace_id: str, span_ids: Iterable[str]) -> dict[str, int]:
        """Map every requested id to its child count.

        The result always has exactly the requested ids as keys; ids the
        store has no children for map to 0.
        """
        wanted = list(dict.fromkeys(span_ids))
        if not wanted:
            return {}
        found = await self.store.count_children_by_parent(trace_id, wanted)
        logger.debug("Resolved child counts for %d spans in trace %s", len(wanted), trace_id)
        return {span_id: found.get(span_id, 0) for span_id in wanted}
