"""SQLite span store for tracetree."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable

import aiosqlite

from tracetree.core.mapper import stored_bytes
from tracetree.core.models import SpanRecord
from tracetree.errors import InvalidArgument, NotFound, QueryError

logger = logging.getLogger("tracetree")

# ── Schema ─────────────────────────────────────────────────────────────────

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS spans (
    trace_id                       TEXT NOT NULL,
    span_id                        TEXT NOT NULL,
    parent_span_id                 TEXT NOT NULL DEFAULT '',
    name                           TEXT NOT NULL DEFAULT '',
    kind                           TEXT NOT NULL DEFAULT '',
    status_code                    TEXT NOT NULL DEFAULT '',
    status_message                 TEXT NOT NULL DEFAULT '',
    trace_state                    TEXT NOT NULL DEFAULT '',
    start_time                     INTEGER NOT NULL,
    end_time                       INTEGER NOT NULL,
    attributes                     TEXT NOT NULL DEFAULT '{}',
    events                         TEXT NOT NULL DEFAULT '[]',
    links                          TEXT NOT NULL DEFAULT '[]',
    dropped_attributes_count       INTEGER NOT NULL DEFAULT 0,
    dropped_events_count           INTEGER NOT NULL DEFAULT 0,
    dropped_links_count            INTEGER NOT NULL DEFAULT 0,
    resource                       TEXT NOT NULL DEFAULT '{}',
    scope_name                     TEXT NOT NULL DEFAULT '',
    scope_version                  TEXT NOT NULL DEFAULT '',
    scope_dropped_attributes_count INTEGER NOT NULL DEFAULT 0,
    PRIMARY KEY (trace_id, span_id)
);

CREATE INDEX IF NOT EXISTS idx_spans_parent ON spans(trace_id, parent_span_id, start_time);
CREATE INDEX IF NOT EXISTS idx_spans_roots ON spans(parent_span_id, start_time);
"""

SORT_FIELDS = ("start_time", "end_time")

# stay well below SQLITE_MAX_VARIABLE_NUMBER on old builds
_MAX_IN_PARAMS = 500

_JSON_COLUMNS = ("attributes", "events", "links", "resource")

_COLUMNS = (
    "trace_id", "span_id", "parent_span_id", "name", "kind", "status_code",
    "status_message", "trace_state", "start_time", "end_time", "attributes",
    "events", "links", "dropped_attributes_count", "dropped_events_count",
    "dropped_links_count", "resource", "scope_name", "scope_version",
    "scope_dropped_attributes_count",
)


def _order_by(sort_field: str) -> str:
    if sort_field not in SORT_FIELDS:
        raise InvalidArgument(
            f"Unknown sort field {sort_field!r}; expected one of {', '.join(SORT_FIELDS)}"
        )
    return f"ORDER BY {sort_field} ASC, span_id ASC"


class Database:
    """Async SQLite span store.

    Implements :class:`tracetree.core.store.SpanStore`; every sqlite failure
    surfaces as :class:`QueryError`.
    """

    def __init__(self, db_path: str = "./tracetree.db"):
        self.db_path = db_path
        self._db: aiosqlite.Connection | None = None

    async def connect(self) -> None:
        """Open database connection and ensure schema exists."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self._db = await aiosqlite.connect(self.db_path)
            self._db.row_factory = aiosqlite.Row
            await self._db.execute("PRAGMA journal_mode=WAL")
            await self._db.executescript(SCHEMA_SQL)
            await self._db.commit()
        except aiosqlite.Error as exc:
            raise QueryError(f"Cannot open span store {self.db_path}: {exc}") from exc

    async def close(self) -> None:
        """Close database connection."""
        if self._db:
            await self._db.close()
            self._db = None

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._db

    async def _fetchall(self, sql: str, params: Iterable[Any]) -> list[aiosqlite.Row]:
        try:
            async with self.db.execute(sql, tuple(params)) as cursor:
                return list(await cursor.fetchall())
        except aiosqlite.Error as exc:
            raise QueryError(f"Span store query failed: {exc}") from exc

    # ── Writes ─────────────────────────────────────────────────────────

    async def insert_spans(self, records: Iterable[SpanRecord]) -> int:
        """Insert or replace span records. Returns how many were written."""
        rows = [self._record_to_row(r) for r in records]
        if not rows:
            return 0
        placeholders = ", ".join("?" for _ in _COLUMNS)
        try:
            await self.db.executemany(
                f"INSERT OR REPLACE INTO spans ({', '.join(_COLUMNS)}) VALUES ({placeholders})",
                rows,
            )
            await self.db.commit()
        except aiosqlite.Error as exc:
            raise QueryError(f"Failed to store spans: {exc}") from exc
        logger.info("Stored %d spans", len(rows))
        return len(rows)

    async def delete_trace(self, trace_id: str) -> int:
        """Delete one trace. Returns the number of spans removed."""
        try:
            cursor = await self.db.execute("DELETE FROM spans WHERE trace_id = ?", (trace_id,))
            await self.db.commit()
        except aiosqlite.Error as exc:
            raise QueryError(f"Failed to delete trace {trace_id}: {exc}") from exc
        return cursor.rowcount

    async def delete_all(self) -> int:
        """Delete every span. Returns the number of traces removed."""
        rows = await self._fetchall("SELECT COUNT(DISTINCT trace_id) FROM spans", ())
        try:
            await self.db.execute("DELETE FROM spans")
            await self.db.commit()
        except aiosqlite.Error as exc:
            raise QueryError(f"Failed to clear span store: {exc}") from exc
        return rows[0][0]

    # ── Span store reads ───────────────────────────────────────────────

    async def get_root_spans(self, trace_id: str) -> list[SpanRecord]:
        rows = await self._fetchall(
            "SELECT * FROM spans WHERE trace_id = ? AND parent_span_id = '' "
            "ORDER BY start_time ASC, span_id ASC",
            (trace_id,),
        )
        return [self._row_to_record(row) for row in rows]

    async def get_children(
        self,
        trace_id: str,
        parent_span_id: str,
        *,
        sort_field: str,
        skip: int,
        take: int,
    ) -> list[SpanRecord]:
        rows = await self._fetchall(
            "SELECT * FROM spans WHERE trace_id = ? AND parent_span_id = ? "
            f"{_order_by(sort_field)} LIMIT ? OFFSET ?",
            (trace_id, parent_span_id, take, skip),
        )
        return [self._row_to_record(row) for row in rows]

    async def get_child_ids(
        self,
        trace_id: str,
        parent_span_id: str,
        *,
        sort_field: str,
        skip: int,
        take: int,
    ) -> list[str]:
        rows = await self._fetchall(
            "SELECT span_id FROM spans WHERE trace_id = ? AND parent_span_id = ? "
            f"{_order_by(sort_field)} LIMIT ? OFFSET ?",
            (trace_id, parent_span_id, take, skip),
        )
        return [row["span_id"] for row in rows]

    async def get_span(self, trace_id: str, span_id: str) -> SpanRecord:
        rows = await self._fetchall(
            "SELECT * FROM spans WHERE trace_id = ? AND span_id = ?",
            (trace_id, span_id),
        )
        if not rows:
            raise NotFound(f"Span {span_id} not found in trace {trace_id}")
        return self._row_to_record(rows[0])

    async def get_span_with_child_ids(
        self,
        trace_id: str,
        span_id: str,
        *,
        sort_field: str,
        take: int,
    ) -> tuple[SpanRecord, list[str]]:
        """The span's record plus the first page of its child ids, one query."""
        order = _order_by(sort_field)
        rows = await self._fetchall(
            f"""
            SELECT 0 AS part, * FROM spans WHERE trace_id = ? AND span_id = ?
            UNION ALL
            SELECT 1 AS part, * FROM (
                SELECT * FROM spans WHERE trace_id = ? AND parent_span_id = ?
                {order} LIMIT ?
            )
            ORDER BY part ASC, {sort_field} ASC, span_id ASC
            """,
            (trace_id, span_id, trace_id, span_id, take),
        )
        if not rows or rows[0]["part"] != 0:
            raise NotFound(f"Span {span_id} not found in trace {trace_id}")
        return self._row_to_record(rows[0]), [row["span_id"] for row in rows[1:]]

    async def count_children_by_parent(
        self, trace_id: str, parent_ids: Iterable[str]
    ) -> dict[str, int]:
        """Child counts grouped by parent; parents without children are omitted."""
        ids = list(dict.fromkeys(parent_ids))
        counts: dict[str, int] = {}
        for i in range(0, len(ids), _MAX_IN_PARAMS):
            chunk = ids[i:i + _MAX_IN_PARAMS]
            marks = ", ".join("?" for _ in chunk)
            rows = await self._fetchall(
                "SELECT parent_span_id, COUNT(*) AS n FROM spans "
                f"WHERE trace_id = ? AND parent_span_id IN ({marks}) "
                "GROUP BY parent_span_id",
                (trace_id, *chunk),
            )
            counts.update({row["parent_span_id"]: row["n"] for row in rows})
        return counts

    async def get_all_spans(
        self, trace_id: str, *, sort_field: str, cap: int
    ) -> list[SpanRecord]:
        rows = await self._fetchall(
            f"SELECT * FROM spans WHERE trace_id = ? {_order_by(sort_field)} LIMIT ?",
            (trace_id, cap),
        )
        return [self._row_to_record(row) for row in rows]

    # ── Search ─────────────────────────────────────────────────────────

    async def search_root_spans(
        self,
        start: int | None = None,
        end: int | None = None,
        limit: int = 100,
    ) -> list[SpanRecord]:
        """Root spans, newest first, optionally limited to a time range (ns)."""
        where_parts = ["parent_span_id = ''"]
        params: list[Any] = []
        if start is not None:
            where_parts.append("start_time >= ?")
            params.append(start)
        if end is not None:
            where_parts.append("start_time <= ?")
            params.append(end)
        rows = await self._fetchall(
            f"SELECT * FROM spans WHERE {' AND '.join(where_parts)} "
            "ORDER BY start_time DESC LIMIT ?",
            params + [limit],
        )
        return [self._row_to_record(row) for row in rows]

    # ── Helpers ─────────────────────────────────────────────────────────

    @staticmethod
    def _record_to_row(record: SpanRecord) -> tuple[Any, ...]:
        data = record.model_dump()
        for column in _JSON_COLUMNS:
            data[column] = json.dumps(data[column], default=_json_default)
        data["kind"] = str(data["kind"])
        data["status_code"] = str(data["status_code"])
        return tuple(data[column] for column in _COLUMNS)

    @staticmethod
    def _row_to_record(row: aiosqlite.Row) -> SpanRecord:
        data = {column: row[column] for column in _COLUMNS}
        try:
            for column in _JSON_COLUMNS:
                if isinstance(data[column], str):
                    data[column] = json.loads(data[column])
        except json.JSONDecodeError as exc:
            raise QueryError(f"Corrupt span row {data['span_id']}: {exc}") from exc
        return SpanRecord(**data)


def _json_default(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray)):
        return stored_bytes(bytes(value))
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")
