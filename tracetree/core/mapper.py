"""Normalize raw store records into canonical :class:`Span` entities.

Store records carry attributes as free-form JSON.  Everything here turns
them into the closed :class:`AnyValue` variant so the rest of the code never
has to guess at a value's shape.

JSON has no byte type, so byte arrays are stored as a one-key
``{"bytesValue": "<base64>"}`` object (see :func:`stored_bytes`).
"""

from __future__ import annotations

import base64
import binascii
from typing import Any, Mapping

from pydantic import ValidationError

from tracetree.core.models import (
    AnyValue,
    ArrayValue,
    Event,
    InstrumentationScope,
    KeyValue,
    KeyValueList,
    Link,
    Resource,
    Span,
    SpanRecord,
    Status,
    ValueCase,
)
from tracetree.errors import QueryError

SPAN_KINDS = (
    "SPAN_KIND_UNSPECIFIED",
    "SPAN_KIND_INTERNAL",
    "SPAN_KIND_SERVER",
    "SPAN_KIND_CLIENT",
    "SPAN_KIND_PRODUCER",
    "SPAN_KIND_CONSUMER",
)

STATUS_CODES = (
    "STATUS_CODE_UNSET",
    "STATUS_CODE_OK",
    "STATUS_CODE_ERROR",
)

BYTES_KEY = "bytesValue"


def stored_bytes(raw: bytes) -> dict[str, str]:
    """The JSON form a byte array takes inside stored attributes."""
    return {BYTES_KEY: base64.b64encode(raw).decode("ascii")}


def _from_stored_bytes(value: Mapping[str, Any]) -> bytes | None:
    if len(value) != 1 or not isinstance(value.get(BYTES_KEY), str):
        return None
    try:
        return base64.b64decode(value[BYTES_KEY], validate=True)
    except (binascii.Error, ValueError):
        return None


def to_any_value(value: Any) -> AnyValue:
    """Wrap a JSON-ish value in the matching :class:`AnyValue` case."""
    # bool first: it is a subclass of int
    if isinstance(value, bool):
        return AnyValue(value_case=ValueCase.BOOL, bool_value=value)
    if isinstance(value, str):
        return AnyValue(value_case=ValueCase.STRING, string_value=value)
    if isinstance(value, int):
        return AnyValue(value_case=ValueCase.INT, int_value=value)
    if isinstance(value, float):
        return AnyValue(value_case=ValueCase.DOUBLE, double_value=value)
    if isinstance(value, (bytes, bytearray)):
        return AnyValue(value_case=ValueCase.BYTES, bytes_value=bytes(value))
    if isinstance(value, (list, tuple)):
        return AnyValue(
            value_case=ValueCase.ARRAY,
            array_value=ArrayValue(values=[to_any_value(v) for v in value]),
        )
    if isinstance(value, Mapping):
        raw = _from_stored_bytes(value)
        if raw is not None:
            return AnyValue(value_case=ValueCase.BYTES, bytes_value=raw)
        return AnyValue(
            value_case=ValueCase.KVLIST,
            kvlist_value=KeyValueList(values=to_key_values(value)),
        )
    return AnyValue()


def to_key_values(mapping: Mapping[str, Any] | None) -> list[KeyValue]:
    """Convert a mapping to key/value pairs, sorted by key."""
    if not mapping:
        return []
    return [KeyValue(key=str(k), value=to_any_value(mapping[k])) for k in sorted(mapping)]


def normalize_kind(kind: str | int | None) -> str:
    """``2``, ``"server"``, ``"SERVER"`` and ``"SPAN_KIND_SERVER"`` all agree."""
    return _normalize_enum(kind, SPAN_KINDS, "SPAN_KIND_")


def normalize_status_code(code: str | int | None) -> str:
    return _normalize_enum(code, STATUS_CODES, "STATUS_CODE_")


def _normalize_enum(value: str | int | None, names: tuple[str, ...], prefix: str) -> str:
    if isinstance(value, int) and not isinstance(value, bool):
        return names[value] if 0 <= value < len(names) else names[0]
    if not value:
        return names[0]
    text = str(value).strip().upper()
    if text.isdigit():
        return _normalize_enum(int(text), names, prefix)
    if not text.startswith(prefix):
        text = prefix + text
    return text if text in names else names[0]


def _pick(data: Mapping[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


class SpanRecordMapper:
    """Convert :class:`SpanRecord` rows into canonical spans and resources."""

    def to_span(self, record: SpanRecord) -> Span:
        try:
            return Span(
                trace_id=record.trace_id,
                span_id=record.span_id,
                parent_span_id=record.parent_span_id or "",
                name=record.name,
                kind=normalize_kind(record.kind),
                status=Status(
                    code=normalize_status_code(record.status_code),
                    message=record.status_message,
                ),
                trace_state=record.trace_state,
                start_time_unix_nano=record.start_time,
                end_time_unix_nano=record.end_time,
                attributes=to_key_values(record.attributes),
                events=[self.to_event(e) for e in record.events],
                links=[self.to_link(link) for link in record.links],
                dropped_attributes_count=record.dropped_attributes_count,
                dropped_events_count=record.dropped_events_count,
                dropped_links_count=record.dropped_links_count,
            )
        except (ValidationError, TypeError, ValueError) as exc:
            raise QueryError(f"Malformed span record {record.span_id}: {exc}") from exc

    @staticmethod
    def to_event(event: Mapping[str, Any]) -> Event:
        return Event(
            time_unix_nano=int(_pick(event, "time_unix_nano", "timeUnixNano", "time", default=0)),
            name=_pick(event, "name", default=""),
            attributes=to_key_values(_pick(event, "attributes", default={})),
            dropped_attributes_count=int(
                _pick(event, "dropped_attributes_count", "droppedAttributesCount", default=0)
            ),
        )

    @staticmethod
    def to_link(link: Mapping[str, Any]) -> Link:
        return Link(
            trace_id=_pick(link, "trace_id", "traceId", default=""),
            span_id=_pick(link, "span_id", "spanId", default=""),
            trace_state=_pick(link, "trace_state", "traceState", default=""),
            attributes=to_key_values(_pick(link, "attributes", default={})),
            dropped_attributes_count=int(
                _pick(link, "dropped_attributes_count", "droppedAttributesCount", default=0)
            ),
        )

    @staticmethod
    def to_resource(record: SpanRecord) -> Resource:
        return Resource(attributes=to_key_values(record.resource))

    @staticmethod
    def to_scope(record: SpanRecord) -> InstrumentationScope:
        return InstrumentationScope(
            name=record.scope_name,
            version=record.scope_version,
            dropped_attributes_count=record.scope_dropped_attributes_count,
        )
