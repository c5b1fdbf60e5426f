"""Pydantic models for the tracetree HTTP API."""

from __future__ import annotations

from tracetree.core.models import SpanRecord, TraceDetail, WireModel


class TraceSearchItem(WireModel):
    trace_id: str
    root_service_name: str = ""
    root_trace_name: str = ""
    start_time_unix_nano: int
    duration_ms: int

    @classmethod
    def from_root(cls, record: SpanRecord) -> TraceSearchItem:
        return cls(
            trace_id=record.trace_id,
            root_service_name=str(record.resource.get("service.name", "")),
            root_trace_name=record.name,
            start_time_unix_nano=record.start_time,
            duration_ms=(record.end_time - record.start_time) // 1_000_000,
        )


class TraceSearchResponse(WireModel):
    traces: list[TraceSearchItem]


class TraceDetailResponse(WireModel):
    trace: TraceDetail


class IngestResponse(WireModel):
    accepted: int
