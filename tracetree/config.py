"""tracetree configuration."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields


@dataclass
class TracetreeConfig:
    """Configuration for tracetree."""

    db_path: str = "./tracetree.db"
    """Path to the SQLite span store."""

    server_host: str = "127.0.0.1"
    """Host to bind the web server to."""

    server_port: int = 8746
    """Port for the web server."""

    time_field: str = "start_time"
    """Column children are sorted by (``start_time`` or ``end_time``)."""

    backend: str = "sqlite"
    """``sqlite`` to assemble trees locally, ``tempo`` to forward trace queries."""

    tempo_url: str | None = None
    """Base URL of a Tempo build that supports optimized tree queries."""

    request_timeout: float = 30.0
    """Seconds a single view may take before it is cancelled."""

    entire_trace_cap: int = 10000
    """Hard limit on spans fetched by the entire-trace view."""

    default_children_limit: int = 3
    default_depth: int = 5
    default_take: int = 10

    id_encoding: str = "hex"
    """Encoding of ids in trace envelopes: ``hex`` or ``base64``."""

    @classmethod
    def from_env(cls, prefix: str = "TRACETREE_") -> TracetreeConfig:
        """Build a config from ``TRACETREE_*`` environment variables."""
        config = cls()
        for f in fields(cls):
            raw = os.getenv(prefix + f.name.upper())
            if raw is None:
                continue
            current = getattr(config, f.name)
            if isinstance(current, bool):
                value: object = raw.lower() in ("1", "true", "yes")
            elif isinstance(current, int):
                value = int(raw)
            elif isinstance(current, float):
                value = float(raw)
            else:
                value = raw
            setattr(config, f.name, value)
        return config
