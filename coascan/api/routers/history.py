"""Scan history endpoints.

Routes
------
GET    /history                   List records, most recent first
GET    /history/record?url=...    Fetch one record
DELETE /history/record?url=...    Delete one record

``display=structured`` normalises the analysis text for markdown rendering;
``display=plain`` (the default) returns it exactly as stored.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response

from coascan.api.routers.schemas import DisplayMode, RecordOut, record_out

router = APIRouter()


@router.get("", response_model=list[RecordOut])
def list_history_endpoint(
    request: Request,
    display: DisplayMode = "plain",
) -> list[RecordOut]:
    """List every stored scan record, most recently written first."""
    history = request.app.state.controller.history
    return [record_out(r, display) for r in history.load_all()]


@router.get("/record", response_model=RecordOut)
def get_record_endpoint(
    url: str,
    request: Request,
    display: DisplayMode = "plain",
) -> RecordOut:
    """Fetch the record stored for *url*."""
    record = request.app.state.controller.history.get(url)
    if record is None:
        raise HTTPException(status_code=404, detail=f"No scan record for '{url}'.")
    return record_out(record, display)


@router.delete("/record", status_code=204, response_class=Response, response_model=None)
def delete_record_endpoint(url: str, request: Request) -> Response:
    """Delete the record stored for *url*.  Unknown urls are a no-op."""
    request.app.state.controller.history.delete(url)
    return Response(status_code=204)
