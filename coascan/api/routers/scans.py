"""Scan pipeline endpoints.

Routes
------
POST /scans            Body: {"code": "https://..."}   → admit + fetch + extract
POST /scans/analysis   Body: {"url": "https://..."}    → analyse stored text
POST /scans/select     Body: {"url": "https://..."}    → show a stored record
GET  /scans/state                                      → current pipeline state
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from coascan.errors import InvalidTransition, UnknownRecord

from coascan.api.routers.schemas import (
    DisplayMode,
    RecordOut,
    StateOut,
    record_out,
    state_out,
)

router = APIRouter()


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------

class ScanRequest(BaseModel):
    code: str


class UrlRequest(BaseModel):
    url: Optional[str] = None


class ScanResponse(BaseModel):
    admitted: bool
    state: StateOut
    record: Optional[RecordOut] = None


class RecordResponse(BaseModel):
    state: StateOut
    record: Optional[RecordOut] = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("", response_model=ScanResponse)
async def scan_endpoint(body: ScanRequest, request: Request) -> ScanResponse:
    """Run a decoded value through the gate, then fetch and extract it.

    Repeats inside the cooldown window return ``admitted: false`` and do not
    touch the history.
    """
    controller = request.app.state.controller
    code = body.code.strip()
    if not code:
        raise HTTPException(status_code=422, detail="Scan code must not be empty.")

    admitted = controller.gate.admit(code)
    record = await controller.run_scan(code) if admitted else None
    return ScanResponse(
        admitted=admitted,
        state=state_out(controller.state_for(code)),
        record=record_out(record) if record else None,
    )


@router.post("/analysis", response_model=RecordResponse)
async def analysis_endpoint(
    body: UrlRequest,
    request: Request,
    display: DisplayMode = "plain",
) -> RecordResponse:
    """Analyse the extracted text of *url* (default: the current record)."""
    controller = request.app.state.controller
    try:
        record = await controller.request_analysis(body.url)
    except UnknownRecord as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return RecordResponse(
        state=state_out(controller.state),
        record=record_out(record, display) if record else None,
    )


@router.post("/select", response_model=RecordResponse)
def select_endpoint(
    body: UrlRequest,
    request: Request,
    display: DisplayMode = "plain",
) -> RecordResponse:
    """Make a stored record the current one without re-running any stage."""
    controller = request.app.state.controller
    if not body.url:
        raise HTTPException(status_code=422, detail="A url is required.")
    try:
        record = controller.select(body.url)
    except UnknownRecord as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return RecordResponse(state=state_out(controller.state), record=record_out(record, display))


@router.get("/state", response_model=StateOut)
def state_endpoint(request: Request) -> StateOut:
    """Return the state of the most recently scanned or selected url."""
    return state_out(request.app.state.controller.state)
