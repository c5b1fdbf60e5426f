"""Pydantic models for spans, partial trees and trace envelopes."""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Attribute values ──────────────────────────────────────────────────────


class ValueCase(str, Enum):
    NONE = "none"
    STRING = "stringValue"
    BOOL = "boolValue"
    INT = "intValue"
    DOUBLE = "doubleValue"
    BYTES = "bytesValue"
    ARRAY = "arrayValue"
    KVLIST = "kvlistValue"


_CASE_FIELDS = {
    ValueCase.STRING: "string_value",
    ValueCase.BOOL: "bool_value",
    ValueCase.INT: "int_value",
    ValueCase.DOUBLE: "double_value",
    ValueCase.BYTES: "bytes_value",
    ValueCase.ARRAY: "array_value",
    ValueCase.KVLIST: "kvlist_value",
}


class AnyValue(WireModel):
    """Closed tagged variant: ``value_case`` names the one populated field."""

    value_case: ValueCase = ValueCase.NONE
    string_value: str | None = None
    bool_value: bool | None = None
    int_value: int | None = None
    double_value: float | None = None
    bytes_value: bytes | None = None
    array_value: ArrayValue | None = None
    kvlist_value: KeyValueList | None = None

    @model_validator(mode="after")
    def _check_case(self) -> AnyValue:
        populated = [
            case for case, name in _CASE_FIELDS.items()
            if getattr(self, name) is not None
        ]
        expected = [] if self.value_case is ValueCase.NONE else [self.value_case]
        if populated != expected:
            raise ValueError(
                f"value_case {self.value_case.value!r} does not match "
                f"populated fields {[c.value for c in populated]}"
            )
        return self

    @field_validator("bytes_value", mode="before")
    @classmethod
    def _ints_as_bytes(cls, value: Any) -> Any:
        if isinstance(value, list):
            return bytes(value)
        return value

    @field_serializer("bytes_value")
    def _bytes_as_ints(self, value: bytes | None) -> list[int] | None:
        return list(value) if value is not None else None

    def to_python(self) -> Any:
        """Unwrap into a plain value (nested lists become dicts/lists)."""
        if self.value_case is ValueCase.NONE:
            return None
        if self.value_case is ValueCase.ARRAY:
            return [v.to_python() for v in self.array_value.values]
        if self.value_case is ValueCase.KVLIST:
            return {kv.key: kv.value.to_python() for kv in self.kvlist_value.values}
        return getattr(self, _CASE_FIELDS[self.value_case])


class ArrayValue(WireModel):
    values: list[AnyValue] = Field(default_factory=list)


class KeyValue(WireModel):
    key: str
    value: AnyValue = Field(default_factory=AnyValue)


class KeyValueList(WireModel):
    values: list[KeyValue] = Field(default_factory=list)


for _model in (AnyValue, ArrayValue, KeyValue, KeyValueList):
    _model.model_rebuild()


# ── Spans ─────────────────────────────────────────────────────────────────


class Status(WireModel):
    code: str = "STATUS_CODE_UNSET"
    message: str = ""


class Event(WireModel):
    time_unix_nano: int = 0
    name: str = ""
    attributes: list[KeyValue] = Field(default_factory=list)
    dropped_attributes_count: int = 0


class Link(WireModel):
    trace_id: str = ""
    span_id: str = ""
    trace_state: str = ""
    attributes: list[KeyValue] = Field(default_factory=list)
    dropped_attributes_count: int = 0


class Span(WireModel):
    trace_id: str
    span_id: str
    parent_span_id: str = ""
    name: str = ""
    kind: str = "SPAN_KIND_UNSPECIFIED"
    status: Status = Field(default_factory=Status)
    trace_state: str = ""
    start_time_unix_nano: int = 0
    end_time_unix_nano: int = 0
    attributes: list[KeyValue] = Field(default_factory=list)
    events: list[Event] = Field(default_factory=list)
    links: list[Link] = Field(default_factory=list)
    dropped_attributes_count: int = 0
    dropped_events_count: int = 0
    dropped_links_count: int = 0

    @model_validator(mode="after")
    def _check_timing(self) -> Span:
        if self.end_time_unix_nano < self.start_time_unix_nano:
            raise ValueError(
                f"span {self.span_id} ends before it starts "
                f"({self.end_time_unix_nano} < {self.start_time_unix_nano})"
            )
        return self

    @property
    def duration_nanos(self) -> int:
        return self.end_time_unix_nano - self.start_time_unix_nano

    @property
    def is_root(self) -> bool:
        return self.parent_span_id == ""


class SpanNode(WireModel):
    """A span annotated with its place in a partially loaded tree.

    ``current_children_count`` is how many child ids this call fetched (at
    most the page size); ``total_children_count`` is the true child count
    from the aggregation.  Equal counts mean nothing is left to load.
    """

    span: Span
    level: int
    current_children_count: int = 0
    total_children_count: int = 0

    @model_validator(mode="after")
    def _check_counts(self) -> SpanNode:
        if self.total_children_count < self.current_children_count:
            raise ValueError(
                f"span {self.span.span_id}: total children "
                f"{self.total_children_count} < fetched {self.current_children_count}"
            )
        return self

    @property
    def has_more(self) -> bool:
        return self.total_children_count > self.current_children_count


# ── Envelope ──────────────────────────────────────────────────────────────


class Resource(WireModel):
    attributes: list[KeyValue] = Field(default_factory=list)
    dropped_attributes_count: int = 0


class InstrumentationScope(WireModel):
    name: str = ""
    version: str = ""
    attributes: list[KeyValue] = Field(default_factory=list)
    dropped_attributes_count: int = 0


class ScopeSpans(WireModel):
    scope: InstrumentationScope = Field(default_factory=InstrumentationScope)
    spans: list[Span] = Field(default_factory=list)
    schema_url: str = ""


class ResourceSpans(WireModel):
    resource: Resource = Field(default_factory=Resource)
    scope_spans: list[ScopeSpans] = Field(default_factory=list)
    schema_url: str = ""


class TraceDetail(WireModel):
    resource_spans: list[ResourceSpans] = Field(default_factory=list)


# ── Store records ─────────────────────────────────────────────────────────


class SpanRecord(BaseModel):
    """A span as a store returns it, before normalization."""

    trace_id: str
    span_id: str
    parent_span_id: str = ""
    name: str = ""
    kind: str | int = ""
    status_code: str | int = ""
    status_message: str = ""
    trace_state: str = ""
    start_time: int = 0
    end_time: int = 0
    attributes: dict[str, Any] = Field(default_factory=dict)
    events: list[dict[str, Any]] = Field(default_factory=list)
    links: list[dict[str, Any]] = Field(default_factory=list)
    dropped_attributes_count: int = 0
    dropped_events_count: int = 0
    dropped_links_count: int = 0
    resource: dict[str, Any] = Field(default_factory=dict)
    scope_name: str = ""
    scope_version: str = ""
    scope_dropped_attributes_count: int = 0


# ── Requests ──────────────────────────────────────────────────────────────


class TraversalRequest(WireModel):
    """Caller-facing view selection.

    ``span_id`` unset loads from the roots, set expands that node.
    ``depth`` unset asks for the entire trace (root load only).
    """

    span_id: str | None = None
    skip: int = 0
    take: int = 10
    children_limit: int = 3
    depth: int | None = None
    level: int = 1
    start: int | None = None
    end: int | None = None
