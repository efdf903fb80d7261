"""FastAPI application factory.

Lifespan
--------
On startup the app opens a single SQLite connection, initialises the schema
and builds one :class:`~coascan.pipeline.PipelineController` shared by all
requests via ``request.app.state.controller``.  On shutdown it closes the
connection cleanly.

Routers
-------
    /scans     scan admission, analysis requests, selection, pipeline state
    /history   stored scan records
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from coascan.db import get_connection, open_history
from coascan.pipeline import PipelineController

from coascan.api.routers import history as history_router
from coascan.api.routers import scans as scans_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the DB and build the pipeline on startup; close the DB on shutdown."""
    conn = get_connection()
    app.state.db = conn
    app.state.controller = PipelineController(open_history(conn))
    logger.info("COA scan API ready")
    try:
        yield
    finally:
        conn.close()


def create_app() -> FastAPI:
    """Return a fully-configured FastAPI application instance."""
    app = FastAPI(
        title="COA Scan API",
        description=(
            "Scan-to-analysis pipeline for Certificates of Analysis: admits "
            "decoded QR values, extracts the referenced PDF, stores scan "
            "history and summarises documents with a language model."
        ),
        version="0.1.0",
        lifespan=lifespan,
    )

    # Allow browser frontends on any origin (tighten for production).
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(scans_router.router, prefix="/scans", tags=["scans"])
    app.include_router(history_router.router, prefix="/history", tags=["history"])

    return app


# Module-level instance used by uvicorn:
#   uvicorn coascan.api.app:app --reload
app = create_app()
