"""tracetree command-line interface.

Usage:
    tracetree serve                 Start the API server
    tracetree load trace.json       Store spans from an OTLP JSON export
    tracetree show TRACE_ID         Print a bounded pre-order view of a trace
    tracetree show TRACE_ID --json  Print the entire trace envelope as JSON
    tracetree clean                 Delete all stored spans
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from pathlib import Path

import click

from tracetree import __version__
from tracetree.config import TracetreeConfig
from tracetree.errors import TraceTreeError


@click.group()
@click.version_option(version=__version__, prog_name="tracetree")
@click.option("--verbose", "-v", is_flag=True, help="Log engine activity to stderr")
def main(verbose: bool):
    """tracetree: progressive loading of large distributed traces."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG, format="%(asctime)s %(levelname)s %(name)s: %(message)s"
        )


@main.command()
@click.option("--port", "-p", default=None, type=int, help="Port to serve on (default: 8746)")
@click.option("--host", "-h", default=None, help="Host to bind to (default: 127.0.0.1)")
@click.option("--db", default=None, help="Path to SQLite span store (default: ./tracetree.db)")
@click.option("--tempo-url", default=None, help="Forward trace queries to this Tempo URL")
def serve(port: int | None, host: str | None, db: str | None, tempo_url: str | None):
    """Start the tracetree API server."""
    import uvicorn
    from tracetree.server.app import create_app

    config = TracetreeConfig.from_env()
    if port is not None:
        config.server_port = port
    if host is not None:
        config.server_host = host
    if db is not None:
        config.db_path = db
    if tempo_url is not None:
        config.backend = "tempo"
        config.tempo_url = tempo_url
    config.db_path = str(Path(config.db_path).resolve())

    try:
        app = create_app(config=config)
    except TraceTreeError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    click.echo("")
    click.echo(f"  tracetree v{__version__}")
    click.echo(f"  API:      http://{config.server_host}:{config.server_port}/api")
    if config.backend == "tempo":
        click.echo(f"  Backend:  {config.tempo_url}")
    else:
        click.echo(f"  Database: {config.db_path}")
    click.echo("")

    uvicorn.run(app, host=config.server_host, port=config.server_port, log_level="warning")


@main.command()
@click.argument("files", nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option("--db", default="./tracetree.db", help="Path to SQLite span store")
def load(files: tuple[str, ...], db: str):
    """Store spans from one or more OTLP JSON files."""
    from tracetree.ingest import parse_otlp_json
    from tracetree.server.database import Database

    async def _load() -> int:
        database = Database(db_path=str(Path(db).resolve()))
        await database.connect()
        try:
            total = 0
            for path in files:
                records = parse_otlp_json(Path(path).read_text(encoding="utf-8"))
                total += await database.insert_spans(records)
            return total
        finally:
            await database.close()

    try:
        count = asyncio.run(_load())
    except TraceTreeError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    click.echo(f"Stored {count} spans in {db}")


def _format_node(node) -> str:
    span = node.span
    indent = "  " * max(node.level - 1, 0)
    more = f" (+{node.total_children_count - node.current_children_count} more)" if node.has_more else ""
    return (
        f"{indent}{span.name or '<unnamed>'} [{span.span_id}] "
        f"{span.duration_nanos / 1_000_000:.2f}ms "
        f"children {node.current_children_count}/{node.total_children_count}{more}"
    )


@main.command()
@click.argument("trace_id")
@click.option("--db", default="./tracetree.db", help="Path to SQLite span store")
@click.option("--span-id", default=None, help="Start from this span instead of the root")
@click.option("--children-limit", default=3, show_default=True, help="Children loaded per span")
@click.option("--depth", default=5, show_default=True, help="Levels to load")
@click.option("--json", "as_json", is_flag=True, help="Print the entire trace envelope as JSON")
def show(
    trace_id: str,
    db: str,
    span_id: str | None,
    children_limit: int,
    depth: int,
    as_json: bool,
):
    """Print a trace as an indented, bounded tree."""
    from tracetree.core.models import TraversalRequest
    from tracetree.ids import Identifier
    from tracetree.server.app import build_service
    from tracetree.server.database import Database

    db_path = str(Path(db).resolve())
    if not Path(db_path).exists():
        click.echo(f"No database found at {db_path}", err=True)
        sys.exit(1)

    async def _show() -> str:
        config = TracetreeConfig.from_env()
        config.db_path = db_path
        database = Database(db_path=db_path)
        await database.connect()
        try:
            service = build_service(database, config)
            tid = Identifier.parse(trace_id).hex
            if as_json:
                detail = await service.query_trace(tid, TraversalRequest())
                return json.dumps(detail.model_dump(mode="json", by_alias=True), indent=2)
            start = Identifier.parse(span_id).hex if span_id else None
            if start is None:
                roots = await database.get_root_spans(tid)
                if not roots:
                    return ""
                start = roots[0].span_id
            nodes = await service.flat_tree(
                tid, start, children_limit=children_limit, depth=depth
            )
            return "\n".join(_format_node(n) for n in nodes)
        finally:
            await database.close()

    try:
        output = asyncio.run(_show())
    except TraceTreeError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    if not output:
        click.echo(f"Trace {trace_id} has no root span", err=True)
        sys.exit(1)
    click.echo(output)


@main.command()
@click.option("--db", default="./tracetree.db", help="Path to SQLite span store")
@click.confirmation_option(prompt="This will delete ALL stored spans. Continue?")
def clean(db: str):
    """Delete all stored spans."""
    db_path = str(Path(db).resolve())

    if not Path(db_path).exists():
        click.echo(f"No database found at {db_path}")
        return

    async def _clean():
        from tracetree.server.database import Database
        database = Database(db_path=db_path)
        await database.connect()
        try:
            return await database.delete_all()
        finally:
            await database.close()

    count = asyncio.run(_clean())
    click.echo(f"Deleted {count} traces from {db_path}")


if __name__ == "__main__":
    main()
