"""tracetree FastAPI application."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from tracetree import __version__
from tracetree.config import TracetreeConfig
from tracetree.core.assembler import TraceAssembler
from tracetree.core.engine import TraversalEngine
from tracetree.core.service import TraceQueryService
from tracetree.errors import InvalidArgument, TraceTreeError
from tracetree.ids import IdEncoding
from tracetree.server.database import Database
from tracetree.server.routes.ingest import router as ingest_router
from tracetree.server.routes.spans import router as spans_router
from tracetree.server.routes.traces import router as traces_router

logger = logging.getLogger("tracetree")

BACKENDS = ("sqlite", "tempo")


def build_service(db: Database, config: TracetreeConfig) -> TraceQueryService:
    """Wire the traversal engine and assembler to a span store."""
    engine = TraversalEngine(
        db,
        time_field=config.time_field,
        entire_trace_cap=config.entire_trace_cap,
    )
    assembler = TraceAssembler(id_encoding=IdEncoding(config.id_encoding))
    return TraceQueryService(engine, assembler)


def create_app(
    db_path: str | None = None, config: TracetreeConfig | None = None
) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or TracetreeConfig()
    if db_path is not None:
        config.db_path = db_path
    if config.backend not in BACKENDS:
        raise InvalidArgument(
            f"Unknown backend {config.backend!r}; expected one of {', '.join(BACKENDS)}"
        )
    if config.backend == "tempo" and not config.tempo_url:
        raise InvalidArgument("The tempo backend needs tempo_url (TRACETREE_TEMPO_URL)")

    db = Database(db_path=config.db_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await db.connect()
        yield
        await db.close()

    app = FastAPI(
        title="tracetree",
        description="Progressive, bounded loading of large distributed traces",
        version=__version__,
        lifespan=lifespan,
    )

    # Store shared objects for route access
    app.state.config = config
    app.state.db = db
    app.state.service = build_service(db, config)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(TraceTreeError)
    async def handle_tracetree_error(request: Request, exc: TraceTreeError):
        if exc.status_code >= 500:
            logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": str(exc), "error": type(exc).__name__},
        )

    app.include_router(traces_router, prefix="/api")
    app.include_router(spans_router, prefix="/api")
    app.include_router(ingest_router)

    return app
