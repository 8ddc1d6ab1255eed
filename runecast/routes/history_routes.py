"""FastAPI routes for saved readings: list, delete, prune, export, analysis."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import Response
from pydantic import BaseModel

from .. import config
from ..ai import analyze_patterns
from ..catalog import get_catalog
from ..errors import InsufficientHistoryError, StorageError
from ..export import (
    export_filename,
    history_to_html,
    history_to_markdown,
    record_to_html,
    record_to_markdown,
)
from ..models import PatternAnalysis, ReadingRecord
from ..storage import HistoryStore

log = logging.getLogger("runecast.routes.history")

router = APIRouter(prefix="/history", tags=["history"])

ExportFormat = Literal["markdown", "html"]

_MEDIA_TYPES = {"markdown": "text/markdown; charset=utf-8", "html": "text/html; charset=utf-8"}


class PruneRequest(BaseModel):
    retention_days: Optional[int] = None


class RetentionRequest(BaseModel):
    retention_days: int


def _history(request: Request) -> HistoryStore:
    return request.app.state.history


def _unavailable(e: StorageError) -> HTTPException:
    log.error("history store failure: %s", e)
    return HTTPException(status_code=503, detail="Reading history is unavailable. Please try again.")


def _download(body: str, fmt: str) -> Response:
    return Response(
        content=body,
        media_type=_MEDIA_TYPES[fmt],
        headers={"Content-Disposition": f'attachment; filename="{export_filename(fmt)}"'},
    )


@router.get("", response_model=List[ReadingRecord])
def list_readings(request: Request) -> List[ReadingRecord]:
    return _history(request).list()


@router.delete("")
def clear_readings(request: Request) -> Dict[str, Any]:
    try:
        _history(request).clear()
    except StorageError as e:
        raise _unavailable(e)
    return {"ok": True}


@router.get("/settings/retention")
def get_retention(request: Request) -> Dict[str, Any]:
    return {
        "retention_days": _history(request).get_retention_days(),
        "choices": list(config.RETENTION_CHOICES),
    }


@router.put("/settings/retention")
def set_retention(req: RetentionRequest, request: Request) -> Dict[str, Any]:
    try:
        _history(request).set_retention_days(req.retention_days)
    except StorageError as e:
        raise _unavailable(e)
    return {"retention_days": req.retention_days}


@router.post("/prune")
def prune(req: PruneRequest, request: Request) -> Dict[str, Any]:
    history = _history(request)
    days = req.retention_days if req.retention_days is not None else history.get_retention_days()
    try:
        removed = history.prune_days(days)
    except StorageError as e:
        raise _unavailable(e)
    return {"retention_days": days, "removed": removed}


@router.get("/export")
def export_history(request: Request, format: ExportFormat = "markdown") -> Response:
    records = _history(request).list()
    if format == "html":
        body = history_to_html(records, get_catalog())
    else:
        body = history_to_markdown(records, get_catalog())
    return _download(body, format)


@router.post("/analysis", response_model=PatternAnalysis)
async def analysis(request: Request) -> PatternAnalysis:
    records = _history(request).list()
    try:
        return await analyze_patterns(
            records,
            request.app.state.pattern_gateway,
            minimum=config.MIN_READINGS_FOR_ANALYSIS,
        )
    except InsufficientHistoryError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.get("/{record_id}", response_model=ReadingRecord)
def get_reading(record_id: int, request: Request) -> ReadingRecord:
    record = _history(request).get(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Reading not found: {record_id}")
    return record


@router.get("/{record_id}/export")
def export_reading(record_id: int, request: Request, format: ExportFormat = "markdown") -> Response:
    record = _history(request).get(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Reading not found: {record_id}")
    if format == "html":
        body = record_to_html(record, get_catalog())
    else:
        body = record_to_markdown(record, get_catalog())
    return _download(body, format)


@router.delete("/{record_id}")
def delete_reading(record_id: int, request: Request) -> Dict[str, Any]:
    try:
        deleted = _history(request).delete(record_id)
    except StorageError as e:
        raise _unavailable(e)
    if not deleted:
        raise HTTPException(status_code=404, detail=f"Reading not found: {record_id}")
    return {"ok": True}
