"""Load OTLP JSON trace exports into span store records.

Accepts the OTLP/HTTP JSON shape::

    {"resourceSpans": [{"resource": {...},
                        "scopeSpans": [{"scope": {...}, "spans": [...]}]}]}

``instrumentationLibrarySpans`` (older exporters) is accepted in place of
``scopeSpans``.  Ids may be hex (OTLP JSON) or base64 (protobuf JSON).
"""

from __future__ import annotations

import base64
import binascii
import json
from typing import Any, Iterable

from tracetree.core.mapper import stored_bytes
from tracetree.core.models import SpanRecord
from tracetree.errors import InvalidArgument
from tracetree.ids import Identifier

_TYPED_KEYS = ("stringValue", "boolValue")


def unwrap_value(value: Any) -> Any:
    """Turn an OTLP ``AnyValue`` JSON object into a plain Python value."""
    if not isinstance(value, dict):
        return value
    if "intValue" in value:
        return int(value["intValue"])
    if "doubleValue" in value:
        return float(value["doubleValue"])
    if "bytesValue" in value:
        raw = value["bytesValue"] or ""
        try:
            if isinstance(raw, str):
                return stored_bytes(base64.b64decode(raw, validate=True))
            return stored_bytes(bytes(raw))
        except (binascii.Error, TypeError, ValueError) as exc:
            raise InvalidArgument(f"Invalid bytesValue {raw!r}: {exc}") from exc
    for key in _TYPED_KEYS:
        if key in value:
            return value[key]
    if "arrayValue" in value:
        return [unwrap_value(v) for v in (value["arrayValue"] or {}).get("values", [])]
    if "kvlistValue" in value:
        return attributes_to_dict((value["kvlistValue"] or {}).get("values", []))
    return None


def attributes_to_dict(attributes: Iterable[dict[str, Any]] | None) -> dict[str, Any]:
    return {kv["key"]: unwrap_value(kv.get("value")) for kv in attributes or [] if "key" in kv}


def _id(value: str | None) -> str:
    return Identifier.parse(value or "").hex


def _event(event: dict[str, Any]) -> dict[str, Any]:
    return {
        "time_unix_nano": int(event.get("timeUnixNano", 0)),
        "name": event.get("name", ""),
        "attributes": attributes_to_dict(event.get("attributes")),
        "dropped_attributes_count": int(event.get("droppedAttributesCount", 0)),
    }


def _link(link: dict[str, Any]) -> dict[str, Any]:
    return {
        "trace_id": _id(link.get("traceId")),
        "span_id": _id(link.get("spanId")),
        "trace_state": link.get("traceState", ""),
        "attributes": attributes_to_dict(link.get("attributes")),
        "dropped_attributes_count": int(link.get("droppedAttributesCount", 0)),
    }


def parse_otlp_json(payload: dict[str, Any] | str | bytes) -> list[SpanRecord]:
    """Flatten an OTLP JSON document into :class:`SpanRecord` objects."""
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise InvalidArgument(f"Invalid OTLP JSON: {exc}") from exc
    if not isinstance(payload, dict) or "resourceSpans" not in payload:
        raise InvalidArgument("OTLP JSON must contain a 'resourceSpans' array")

    records: list[SpanRecord] = []
    for resource_spans in payload["resourceSpans"] or []:
        resource = attributes_to_dict((resource_spans.get("resource") or {}).get("attributes"))
        scope_groups = (
            resource_spans.get("scopeSpans")
            or resource_spans.get("instrumentationLibrarySpans")
            or []
        )
        for scope_spans in scope_groups:
            scope = scope_spans.get("scope") or scope_spans.get("instrumentationLibrary") or {}
            for span in scope_spans.get("spans") or []:
                status = span.get("status") or {}
                try:
                    records.append(
                        SpanRecord(
                            trace_id=_id(span.get("traceId")),
                            span_id=_id(span.get("spanId")),
                            parent_span_id=_id(span.get("parentSpanId")),
                            name=span.get("name", ""),
                            kind=span.get("kind", ""),
                            status_code=status.get("code", ""),
                            status_message=status.get("message", ""),
                            trace_state=span.get("traceState", ""),
                            start_time=int(span.get("startTimeUnixNano", 0)),
                            end_time=int(span.get("endTimeUnixNano", 0)),
                            attributes=attributes_to_dict(span.get("attributes")),
                            events=[_event(e) for e in span.get("events") or []],
                            links=[_link(link) for link in span.get("links") or []],
                            dropped_attributes_count=int(span.get("droppedAttributesCount", 0)),
                            dropped_events_count=int(span.get("droppedEventsCount", 0)),
                            dropped_links_count=int(span.get("droppedLinksCount", 0)),
                            resource=resource,
                            scope_name=scope.get("name", ""),
                            scope_version=scope.get("version", ""),
                            scope_dropped_attributes_count=int(
                                scope.get("droppedAttributesCount", 0)
                            ),
                        )
                    )
                except (TypeError, ValueError) as exc:
                    raise InvalidArgument(f"Invalid span in OTLP JSON: {exc}") from exc
    return records
