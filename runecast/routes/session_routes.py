"""FastAPI routes driving the reading session.

Each POST feeds one event into the app's ReadingSession and returns the new
snapshot. Completing a spread schedules the interpretation in the
background; clients poll GET /session until the phase leaves `completing`.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from ..errors import InvalidTransition, StorageError, UnknownRuneError, UnknownSpreadError
from ..models import AcquisitionMode, Orientation, ReadingRecord, SessionSnapshot
from ..session import ReadingSession

log = logging.getLogger("runecast.routes.session")

router = APIRouter(prefix="/session", tags=["session"])


class ModeRequest(BaseModel):
    mode: AcquisitionMode = Field(..., description="'physical' or 'virtual'")


class SpreadRequest(BaseModel):
    spread: str = Field(..., description="Spread name, e.g. 'Three Norns'")


class PickRequest(BaseModel):
    rune: str = Field(..., min_length=1, description="Rune name, e.g. 'Fehu'")


class OrientationRequest(BaseModel):
    orientation: Orientation


class PickResponse(BaseModel):
    accepted: bool
    session: SessionSnapshot


class CommitResponse(BaseModel):
    record: ReadingRecord
    session: SessionSnapshot


def _session(request: Request) -> ReadingSession:
    return request.app.state.session


def _conflict(e: InvalidTransition) -> HTTPException:
    return HTTPException(status_code=409, detail=str(e))


@router.get("", response_model=SessionSnapshot)
async def get_session(request: Request) -> SessionSnapshot:
    return _session(request).snapshot()


@router.post("/mode", response_model=SessionSnapshot)
async def choose_mode(req: ModeRequest, request: Request) -> SessionSnapshot:
    s = _session(request)
    try:
        s.choose_mode(req.mode)
    except InvalidTransition as e:
        raise _conflict(e)
    return s.snapshot()


@router.post("/back", response_model=SessionSnapshot)
async def back(request: Request) -> SessionSnapshot:
    s = _session(request)
    try:
        s.back_to_mode_selection()
    except InvalidTransition as e:
        raise _conflict(e)
    return s.snapshot()


@router.post("/spread", response_model=SessionSnapshot)
async def choose_spread(req: SpreadRequest, request: Request) -> SessionSnapshot:
    s = _session(request)
    try:
        s.choose_spread(req.spread)
    except UnknownSpreadError:
        raise HTTPException(status_code=400, detail=f"Unknown spread: {req.spread}")
    except InvalidTransition as e:
        raise _conflict(e)
    return s.snapshot()


@router.post("/pick", response_model=PickResponse)
async def pick(req: PickRequest, request: Request) -> PickResponse:
    s = _session(request)
    try:
        accepted = s.pick_rune(req.rune)
    except UnknownRuneError:
        raise HTTPException(status_code=400, detail=f"Unknown rune: {req.rune}")
    except InvalidTransition as e:
        raise _conflict(e)
    return PickResponse(accepted=accepted, session=s.snapshot())


@router.post("/orientation", response_model=SessionSnapshot)
async def confirm_orientation(req: OrientationRequest, request: Request) -> SessionSnapshot:
    s = _session(request)
    try:
        s.confirm_orientation(req.orientation)
    except InvalidTransition as e:
        raise _conflict(e)
    return s.snapshot()


@router.post("/orientation/cancel", response_model=SessionSnapshot)
async def cancel_orientation(request: Request) -> SessionSnapshot:
    s = _session(request)
    try:
        s.cancel_orientation()
    except InvalidTransition as e:
        raise _conflict(e)
    return s.snapshot()


@router.post("/retry", response_model=SessionSnapshot)
async def retry(request: Request) -> SessionSnapshot:
    s = _session(request)
    try:
        s.retry()
    except InvalidTransition as e:
        raise _conflict(e)
    return s.snapshot()


@router.post("/commit", response_model=CommitResponse)
async def commit(request: Request) -> CommitResponse:
    s = _session(request)
    generation = s.generation
    try:
        record = s.begin_commit()
    except InvalidTransition as e:
        raise _conflict(e)
    try:
        await run_in_threadpool(request.app.state.history.append, record)
    except StorageError as e:
        s.end_commit(generation, saved=False)
        log.error("saving reading failed: %s", e)
        raise HTTPException(status_code=503, detail="Could not save the reading. Please try again.")
    s.end_commit(generation, saved=True)
    return CommitResponse(record=record, session=s.snapshot())


@router.post("/discard", response_model=SessionSnapshot)
async def discard(request: Request) -> SessionSnapshot:
    s = _session(request)
    try:
        s.discard()
    except InvalidTransition as e:
        raise _conflict(e)
    return s.snapshot()


@router.post("/reset", response_model=SessionSnapshot)
async def reset(request: Request) -> SessionSnapshot:
    s = _session(request)
    s.reset()
    return s.snapshot()
