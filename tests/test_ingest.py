"""Tests for OTLP JSON ingestion."""

import json

import pytest

from conftest import S1, S2, TRACE_ID
from tracetree.core.mapper import to_key_values
from tracetree.core.models import ValueCase
from tracetree.errors import InvalidArgument
from tracetree.ingest import attributes_to_dict, parse_otlp_json, unwrap_value


def _export(spans, scope_key="scopeSpans", scope=None):
    return {
        "resourceSpans": [
            {
                "resource": {
                    "attributes": [
                        {"key": "service.name", "value": {"stringValue": "checkout"}},
                        {"key": "host.cpus", "value": {"intValue": "8"}},
                    ]
                },
                scope_key: [{"scope": scope or {"name": "io.opentelemetry.http", "version": "1.2"}, "spans": spans}],
            }
        ]
    }


def test_unwrap_value():
    assert unwrap_value({"stringValue": "GET"}) == "GET"
    assert unwrap_value({"intValue": "42"}) == 42
    assert unwrap_value({"doubleValue": 0.5}) == 0.5
    assert unwrap_value({"boolValue": False}) is False
    assert unwrap_value({"bytesValue": "AQI="}) == {"bytesValue": "AQI="}
    assert unwrap_value({"bytesValue": ""}) == {"bytesValue": ""}
    assert unwrap_value({"bytesValue": [1, 2]}) == {"bytesValue": "AQI="}
    assert unwrap_value({"arrayValue": {"values": [{"intValue": 1}, {"stringValue": "a"}]}}) == [1, "a"]
    assert unwrap_value({"kvlistValue": {"values": [{"key": "k", "value": {"boolValue": True}}]}}) == {"k": True}
    assert unwrap_value({}) is None


def test_int_arrays_and_bytes_keep_their_types():
    attributes = attributes_to_dict(
        [
            {"key": "small", "value": {"arrayValue": {"values": [{"intValue": "1"}, {"intValue": "2"}]}}},
            {"key": "empty_bytes", "value": {"bytesValue": ""}},
        ]
    )
    mapped = {kv.key: kv.value.value_case for kv in to_key_values(attributes)}
    assert mapped == {"small": ValueCase.ARRAY, "empty_bytes": ValueCase.BYTES}


def test_unwrap_rejects_bad_bytes():
    with pytest.raises(InvalidArgument):
        unwrap_value({"bytesValue": "not base64!"})


def test_attributes_to_dict_skips_keyless():
    assert attributes_to_dict([{"key": "a", "value": {"intValue": 1}}, {"value": {}}]) == {"a": 1}
    assert attributes_to_dict(None) == {}


def test_parse_hex_export():
    payload = _export(
        [
            {
                "traceId": TRACE_ID,
                "spanId": S2,
                "parentSpanId": S1,
                "name": "GET /cart",
                "kind": 2,
                "startTimeUnixNano": "1700000000000000000",
                "endTimeUnixNano": "1700000000005000000",
                "attributes": [{"key": "http.status_code", "value": {"intValue": "200"}}],
                "status": {"code": 2, "message": "boom"},
                "events": [{"timeUnixNano": "1700000000001000000", "name": "retry"}],
                "links": [{"traceId": TRACE_ID, "spanId": S1}],
                "droppedLinksCount": 3,
            }
        ]
    )
    [record] = parse_otlp_json(payload)

    assert record.trace_id == TRACE_ID
    assert record.span_id == S2
    assert record.parent_span_id == S1
    assert record.kind == 2
    assert record.status_code == 2
    assert record.status_message == "boom"
    assert record.end_time - record.start_time == 5_000_000
    assert record.attributes == {"http.status_code": 200}
    assert record.events[0]["name"] == "retry"
    assert record.links[0]["span_id"] == S1
    assert record.dropped_links_count == 3
    assert record.resource == {"service.name": "checkout", "host.cpus": 8}
    assert (record.scope_name, record.scope_version) == ("io.opentelemetry.http", "1.2")


def test_parse_base64_ids_and_bytes():
    payload = json.dumps(
        _export([{"traceId": "CvdlGRbNQ92ESOshHIAxnA==", "spanId": "AAAAAAAAAAI=", "name": "root"}])
    )
    [record] = parse_otlp_json(payload)
    assert record.trace_id == TRACE_ID
    assert record.span_id == S2
    assert record.parent_span_id == ""


def test_parse_instrumentation_library_spans():
    payload = _export(
        [{"traceId": TRACE_ID, "spanId": S1, "name": "legacy"}],
        scope_key="instrumentationLibrarySpans",
    )
    [record] = parse_otlp_json(payload)
    assert record.name == "legacy"
    assert record.scope_name == "io.opentelemetry.http"


def test_parse_empty_export():
    assert parse_otlp_json({"resourceSpans": []}) == []


@pytest.mark.parametrize("payload", ["{broken", "[]", {"spans": []}])
def test_parse_rejects_bad_documents(payload):
    with pytest.raises(InvalidArgument):
        parse_otlp_json(payload)


def test_parse_rejects_bad_ids():
    with pytest.raises(InvalidArgument):
        parse_otlp_json(_export([{"traceId": "zz-not-an-id", "spanId": S1}]))


def test_parse_rejects_bad_timestamps():
    with pytest.raises(InvalidArgument):
        parse_otlp_json(_export([{"traceId": TRACE_ID, "spanId": S1, "startTimeUnixNano": "soon"}]))
