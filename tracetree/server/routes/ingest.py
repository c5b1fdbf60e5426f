"""OTLP/HTTP JSON ingest route."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from tracetree.ingest import parse_otlp_json
from tracetree.server.models import IngestResponse

logger = logging.getLogger("tracetree")

router = APIRouter(tags=["ingest"])


@router.post("/v1/traces", response_model=IngestResponse)
async def ingest_traces(request: Request):
    """Accept an OTLP JSON export and store its spans."""
    records = parse_otlp_json(await request.body())
    accepted = await request.app.state.db.insert_spans(records)
    logger.info("Ingested %d spans", accepted)
    return IngestResponse(accepted=accepted)
