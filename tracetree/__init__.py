"""
tracetree: progressive loading of large distributed traces.

Spans live in a store addressable only by ``(traceId, parentSpanId)``
lookups; tracetree turns them into bounded views a UI can render a piece at
a time::

    from tracetree.core import TraversalEngine
    from tracetree.server.database import Database

    db = Database("./tracetree.db")
    await db.connect()
    engine = TraversalEngine(db)

    # Root span plus three children per node, five levels deep
    nodes = await engine.expand_pre_order(
        trace_id, root_span_id, children_limit=3, max_depth=5
    )
"""

from tracetree.config import TracetreeConfig
from tracetree.errors import Cancelled, InvalidArgument, NotFound, QueryError, TraceTreeError

__version__ = "0.1.0"
__all__ = [
    "Cancelled",
    "InvalidArgument",
    "NotFound",
    "QueryError",
    "TraceTreeError",
    "TracetreeConfig",
]
