from __future__ import annotations

import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates
from loguru import logger
from sqlalchemy.orm import Session

from celpip_prep.database import SessionLocal, get_db
from celpip_prep.delivery.presentation import build_snapshot, html_blocks
from celpip_prep.delivery.runner import DeliveryRunner, MediaController, TimerDriver
from celpip_prep.delivery.state import (
    Answer,
    BeginSection,
    ContinueReview,
    Exit,
    Next,
    Tick,
    WriteResponse,
)
from celpip_prep.schemas.session import (
    ScreenSnapshot,
    SessionEventIn,
    SessionEventResponse,
    StartSessionRequest,
)
from celpip_prep.utils.ai_client import SpeechSynthesizer, WritingEvaluator
from celpip_prep.utils.gateway import Gateway, LocalGateway
from celpip_prep.utils.set_selector import select_set

templates = Jinja2Templates(directory=str(Path(__file__).resolve().parents[1] / "templates"))

router = APIRouter(prefix="/api/session", tags=["Session"])
pages = APIRouter(tags=["Session"])


@dataclass
class LiveSession:
    id: str
    runner: DeliveryRunner
    media: MediaController
    driver: Optional[TimerDriver] = None
    last_seen: float = field(default_factory=lambda: _clock())
    finished_at: Optional[float] = None

    def touch(self) -> None:
        self.last_seen = _clock()

    def close(self) -> None:
        if self.driver is not None:
            self.driver.stop()


# Sittings in progress, keyed by session id. One process, one registry.
SESSIONS: Dict[str, LiveSession] = {}

# Untouched sittings are dropped after this long; finished ones keep their
# result around for a shorter while so the client can fetch it.
IDLE_SECONDS = float(os.getenv("SESSION_IDLE_SECONDS", "1800"))
RESULT_SECONDS = float(os.getenv("SESSION_RESULT_SECONDS", "300"))

_clock = time.monotonic


def discard_session(session_id: str) -> None:
    live = SESSIONS.pop(session_id, None)
    if live is not None:
        live.close()
        logger.info("Session {} closed", session_id)


def sweep_sessions() -> None:
    now = _clock()
    for sid, live in list(SESSIONS.items()):
        if live.finished_at is not None and now - live.finished_at > RESULT_SECONDS:
            discard_session(sid)
        elif now - live.last_seen > IDLE_SECONDS:
            logger.warning("Session {} idle for {:.0f}s; dropping it", sid, now - live.last_seen)
            discard_session(sid)


def get_gateway() -> Gateway:
    return LocalGateway(SessionLocal, WritingEvaluator(), SpeechSynthesizer())


def _get_live(session_id: str) -> LiveSession:
    sweep_sessions()
    live = SESSIONS.get(session_id)
    if not live:
        raise HTTPException(status_code=404, detail="Session not found")
    live.touch()
    return live


def _snapshot(live: LiveSession) -> ScreenSnapshot:
    runner = live.runner
    return build_snapshot(
        runner.practice_set,
        runner.state,
        session_id=live.id,
        analyzing=runner.analyzing,
        capture_degraded=runner.capture_degraded,
        attempt=runner.result.attempt if runner.result else None,
    )


def _respond(live: LiveSession) -> SessionEventResponse:
    return SessionEventResponse(snapshot=_snapshot(live), media=live.media.drain())


def _to_event(payload: SessionEventIn):
    if payload.type == "begin":
        return BeginSection()
    if payload.type == "next":
        return Next()
    if payload.type == "tick":
        return Tick()
    if payload.type == "continue":
        return ContinueReview()
    if payload.type == "exit":
        return Exit()
    if payload.type == "answer":
        if not payload.question_id:
            raise HTTPException(status_code=400, detail="questionId is required")
        return Answer(payload.question_id, payload.value or "")
    if payload.type == "write":
        if not payload.part_id:
            raise HTTPException(status_code=400, detail="partId is required")
        return WriteResponse(payload.part_id, payload.value or "")
    raise HTTPException(status_code=400, detail=f"Unsupported event '{payload.type}'")



def _mark_finished(session_id: str) -> None:
    live = SESSIONS.get(session_id)
    if live is not None:
        live.finished_at = _clock()


@router.post("/start", response_model=SessionEventResponse, response_model_by_alias=True)
async def start_session(
    payload: StartSessionRequest,
    db: Session = Depends(get_db),
    gateway: Gateway = Depends(get_gateway),
):
    try:
        practice_set = await run_in_threadpool(select_set, db, payload.set_id, payload.section_ids)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    sweep_sessions()
    session_id = str(uuid4())
    media = MediaController()
    runner = DeliveryRunner(
        practice_set,
        payload.user_id,
        gateway,
        media=media,
        on_complete=lambda result: _mark_finished(session_id),
        on_exit=lambda: discard_session(session_id),
    )
    live = LiveSession(id=session_id, runner=runner, media=media)
    if payload.server_timer:
        live.driver = TimerDriver(runner)
        live.driver.start()
    SESSIONS[live.id] = live
    logger.info("Session {} started: user {} on set {}", live.id, payload.user_id, practice_set.id)
    return _respond(live)


@router.get("/{session_id}", response_model=SessionEventResponse, response_model_by_alias=True)
async def get_session(session_id: str):
    live = _get_live(session_id)
    response = _respond(live)
    if live.runner.finished:
        discard_session(session_id)
    return response


@router.post("/{session_id}/events", response_model=SessionEventResponse, response_model_by_alias=True)
async def post_event(session_id: str, payload: SessionEventIn):
    live = _get_live(session_id)
    if payload.type == "media_error":
        live.runner.report_media_failure(payload.kind or "audio", payload.detail or "")
    else:
        await live.runner.dispatch(_to_event(payload))
    return _respond(live)


@pages.get("/testing/{session_id}", response_class=HTMLResponse)
async def testing(request: Request, session_id: str):
    live = _get_live(session_id)
    runner = live.runner
    return templates.TemplateResponse(
        request,
        "testing.html",
        {
            "snap": _snapshot(live),
            "html": html_blocks(runner.practice_set, runner.state),
        },
    )
