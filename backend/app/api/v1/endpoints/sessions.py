import asyncio
import json
from typing import List

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from app.api import deps
from app.core.config import settings
from app.models.analysis import ProgressStatus
from app.schemas.analysis import ProgressEntryRead, SessionProgressResponse, SessionRead
from app.services.analysis.progress_ledger import ProgressLedger
from app.services.analysis.session_service import AnalysisSessionService

router = APIRouter()

IN_FLIGHT_STATUSES = {ProgressStatus.IN_PROGRESS.value, ProgressStatus.ENHANCING.value}


@router.get("", response_model=List[SessionRead])
def list_sessions(
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(deps.get_db)
):
    """
    Recent analysis sessions, newest first
    """
    return AnalysisSessionService(db).list_recent(limit)


@router.get("/{session_id}", response_model=SessionRead)
def get_session(
    session_id: str,
    db: Session = Depends(deps.get_db)
):
    return AnalysisSessionService(db).get_or_404(session_id)


@router.get("/{session_id}/progress", response_model=SessionProgressResponse)
def get_session_progress(
    session_id: str,
    db: Session = Depends(deps.get_db)
):
    """
    Every section's progress row for a session, in section order
    """
    session = AnalysisSessionService(db).get_or_404(session_id)
    return SessionProgressResponse(
        session=SessionRead.model_validate(session),
        sections=[ProgressEntryRead.model_validate(e) for e in ProgressLedger(db).read_all(session_id)],
    )


def _snapshot(db: Session, session_id: str):
    session = AnalysisSessionService(db).get_or_404(session_id)
    entries = ProgressLedger(db).read_all(session_id)
    payload = SessionProgressResponse(
        session=SessionRead.model_validate(session),
        sections=[ProgressEntryRead.model_validate(e) for e in entries],
    ).model_dump(mode="json")
    finished = session.is_terminal and not any(
        e["status"] in IN_FLIGHT_STATUSES for e in payload["sections"]
    )
    return payload, finished


def _event(name: str, payload) -> str:
    return f"event: {name}\ndata: {json.dumps(payload)}\n\n"


@router.get("/{session_id}/progress/stream")
async def stream_session_progress(
    session_id: str,
    request: Request,
    db: Session = Depends(deps.get_db),
    session_factory=Depends(deps.get_session_factory),
):
    """
    Server-Sent Events feed of a session's progress.

    Emits ``progress`` with the full row set whenever it changes and ``done``
    once the session is finished and nothing is still being worked on.
    """
    # 404 before the stream starts
    AnalysisSessionService(db).get_or_404(session_id)

    poll_interval = settings.PROGRESS_STREAM_POLL_SECONDS
    max_seconds = settings.PROGRESS_STREAM_MAX_SECONDS

    async def event_stream():
        loop = asyncio.get_running_loop()
        deadline = loop.time() + max_seconds
        last = None

        while True:
            if await request.is_disconnected():
                break

            # Fresh session per poll so committed writes from workers are visible
            poll_db = session_factory()
            try:
                payload, finished = _snapshot(poll_db, session_id)
            finally:
                poll_db.close()

            if payload != last:
                yield _event("progress", payload)
                last = payload
            else:
                yield ": keepalive\n\n"

            if finished:
                yield _event("done", {"sessionId": session_id, "status": payload["session"]["status"]})
                break
            if loop.time() >= deadline:
                break

            await asyncio.sleep(poll_interval)

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )
