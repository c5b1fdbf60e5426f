"""Tests for the tracetree CLI."""

import json

from click.testing import CliRunner

from conftest import S1, S2, S3, TRACE_ID
from tracetree.cli import main


def _write_export(path):
    spans = [
        {"traceId": TRACE_ID, "spanId": S1, "name": "checkout", "startTimeUnixNano": "0", "endTimeUnixNano": "4000000"},
        {"traceId": TRACE_ID, "spanId": S2, "parentSpanId": S1, "name": "reserve", "startTimeUnixNano": "10", "endTimeUnixNano": "20"},
        {"traceId": TRACE_ID, "spanId": S3, "parentSpanId": S1, "name": "charge", "startTimeUnixNano": "30", "endTimeUnixNano": "40"},
    ]
    path.write_text(
        json.dumps({"resourceSpans": [{"resource": {}, "scopeSpans": [{"scope": {}, "spans": spans}]}]}),
        encoding="utf-8",
    )


def test_load_then_show(tmp_path):
    export = tmp_path / "trace.json"
    db = tmp_path / "cli.db"
    _write_export(export)
    runner = CliRunner()

    result = runner.invoke(main, ["load", str(export), "--db", str(db)])
    assert result.exit_code == 0, result.output
    assert "Stored 3 spans" in result.output

    result = runner.invoke(main, ["show", TRACE_ID, "--db", str(db), "--children-limit", "1"])
    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0].startswith(f"checkout [{S1}] 4.00ms children 1/2 (+1 more)")
    assert lines[1].startswith(f"  reserve [{S2}]")
    assert len(lines) == 2


def test_show_json(tmp_path):
    export = tmp_path / "trace.json"
    db = tmp_path / "cli.db"
    _write_export(export)
    runner = CliRunner()
    runner.invoke(main, ["load", str(export), "--db", str(db)])

    result = runner.invoke(main, ["show", TRACE_ID, "--db", str(db), "--json"])
    assert result.exit_code == 0, result.output
    detail = json.loads(result.output)
    spans = detail["resourceSpans"][0]["scopeSpans"][0]["spans"]
    assert [s["name"] for s in spans] == ["checkout", "reserve", "charge"]


def test_show_unknown_trace(tmp_path):
    export = tmp_path / "trace.json"
    db = tmp_path / "cli.db"
    _write_export(export)
    runner = CliRunner()
    runner.invoke(main, ["load", str(export), "--db", str(db)])

    result = runner.invoke(main, ["show", "f" * 32, "--db", str(db)])
    assert result.exit_code == 1


def test_show_missing_database(tmp_path):
    result = CliRunner().invoke(main, ["show", TRACE_ID, "--db", str(tmp_path / "nope.db")])
    assert result.exit_code == 1


def test_load_rejects_bad_json(tmp_path):
    export = tmp_path / "bad.json"
    export.write_text("{not json", encoding="utf-8")
    result = CliRunner().invoke(main, ["load", str(export), "--db", str(tmp_path / "cli.db")])
    assert result.exit_code == 1


def test_show_honours_environment(tmp_path):
    export = tmp_path / "trace.json"
    db = tmp_path / "cli.db"
    _write_export(export)
    runner = CliRunner()
    runner.invoke(main, ["load", str(export), "--db", str(db)])

    result = runner.invoke(
        main,
        ["show", TRACE_ID, "--db", str(db), "--json"],
        env={"TRACETREE_ID_ENCODING": "base64"},
    )
    assert result.exit_code == 0, result.output
    spans = json.loads(result.output)["resourceSpans"][0]["scopeSpans"][0]["spans"]
    assert spans[0]["spanId"] == "AAAAAAAAAAE="


def test_clean(tmp_path):
    export = tmp_path / "trace.json"
    db = tmp_path / "cli.db"
    _write_export(export)
    runner = CliRunner()
    runner.invoke(main, ["load", str(export), "--db", str(db)])

    result = runner.invoke(main, ["clean", "--db", str(db), "--yes"])
    assert result.exit_code == 0, result.output
    assert "Deleted 1 traces" in result.output

    result = runner.invoke(main, ["show", TRACE_ID, "--db", str(db)])
    assert result.exit_code == 1


def test_serve_rejects_tempo_without_url(tmp_path):
    result = CliRunner().invoke(
        main,
        ["serve", "--db", str(tmp_path / "cli.db")],
        env={"TRACETREE_BACKEND": "tempo", "TRACETREE_TEMPO_URL": ""},
    )
    assert result.exit_code == 1
    assert "tempo_url" in result.output
