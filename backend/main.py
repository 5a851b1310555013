"""
Timed Interview Assistant - FastAPI Backend

Candidate-facing and observer-facing commands over the session orchestrator:
- Resume upload and profile collection
- Six timed questions with keyword scoring
- Pause/resume and reset
- Observer dashboard, transcripts and live timer
"""
import sys
import os
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, File, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from utils.config import config
from utils.errors import (
    InterviewError,
    InvalidStateError,
    InvalidTransitionError,
    NotFoundError,
    UnsupportedFormatError,
)
from models.schemas import (
    CandidateRecord,
    ChatMessage,
    DashboardRow,
    DraftRequest,
    ProfileFieldRequest,
    SelectActiveRequest,
    SubmitAnswerRequest,
    TimerStatus,
)
from interview.orchestrator import SessionOrchestrator
from interview.selectors import SORT_OPTIONS, dashboard_row, interview_progress, list_candidates
from storage.persistence import SnapshotStore

logging.basicConfig(
    level=getattr(logging, config.server.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

# ================================================================
# Orchestrator
# ================================================================

# Lazily created so importing the app does not touch the snapshot file
_orchestrator: Optional[SessionOrchestrator] = None


def get_orchestrator() -> SessionOrchestrator:
    """Get the process-wide orchestrator, loading saved sessions on first use."""
    global _orchestrator
    if _orchestrator is None:
        store = SnapshotStore(config.storage.snapshot_path)
        _orchestrator = SessionOrchestrator(store=store)
        logger.info(f"Orchestrator ready (snapshot: {config.storage.snapshot_path})")
    return _orchestrator


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Process is going away: treat it like the candidate leaving
    if _orchestrator is not None:
        _orchestrator.suspend()


# ================================================================
# FastAPI App Initialization
# ================================================================

app = FastAPI(
    title="Timed Interview Assistant API",
    description="Resume intake, timed technical questions, scoring and observer dashboard",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

ERROR_STATUS = {
    NotFoundError: 404,
    InvalidStateError: 409,
    InvalidTransitionError: 409,
    UnsupportedFormatError: 415,
}


@app.exception_handler(InterviewError)
async def interview_error_handler(request: Request, exc: InterviewError):
    status_code = ERROR_STATUS.get(type(exc), 400)
    if status_code >= 409:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.reason}")
    return JSONResponse(status_code=status_code, content={"detail": exc.reason})


# ================================================================
# API Endpoints
# ================================================================

@app.get("/")
async def root():
    """Health check endpoint."""
    return {
        "status": "running",
        "version": "1.0.0",
        "service": "Timed Interview Assistant",
    }


# ---- Candidate commands (act on the active session) ----

@app.post("/sessions/ingest", response_model=CandidateRecord)
def ingest_document(
    file: UploadFile = File(...),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
):
    """
    Upload a PDF or DOCX resume and open a new candidate session.

    Returns:
        The created record, including any detected profile fields
    """
    data = file.file.read()
    return orchestrator.ingest_document(file.filename or "", file.content_type, data)


@app.post("/sessions/active/profile", response_model=CandidateRecord)
def submit_profile_field(
    request: ProfileFieldRequest,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
):
    return orchestrator.submit_profile_field(request.field, request.value)


@app.post("/sessions/active/start", response_model=CandidateRecord)
def start_interview(orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    """Generate the questions (may call the model server) and ask the first one."""
    return orchestrator.start_interview()


@app.post("/sessions/active/answer", response_model=CandidateRecord)
def submit_answer(
    request: SubmitAnswerRequest,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
):
    """
    Submit the answer to the current question.

    `question_index` names the question being answered; an answer for a
    question that is no longer current is ignored, so retries are safe.
    """
    return orchestrator.submit_answer(
        request.response,
        request.question_index,
        auto_submitted=request.auto_submitted,
    )


@app.put("/sessions/active/draft")
def save_draft(
    request: DraftRequest,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
):
    """Keep the candidate's unsent answer; it is submitted if the timer runs out."""
    orchestrator.save_draft(request.response, request.question_index)
    return {"status": "saved"}


@app.post("/sessions/active/pause", response_model=CandidateRecord)
def pause_interview(orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    return orchestrator.pause_interview()


@app.post("/sessions/active/resume", response_model=CandidateRecord)
def resume_interview(orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    return orchestrator.resume_interview()


@app.post("/sessions/active/suspend")
def suspend(orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    """Client is going away (tab hidden, window closed)."""
    orchestrator.suspend()
    return {"status": "suspended"}


@app.get("/sessions/active/timer", response_model=TimerStatus)
def timer_status(orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    return orchestrator.timer_status()


@app.put("/sessions/active")
def select_active(
    request: SelectActiveRequest,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
):
    record = orchestrator.select_active(request.session_id)
    return {"active_session_id": record.id if record else None}


# ---- Observer commands ----

@app.get("/sessions")
def list_sessions(
    search: str = Query(""),
    sort_by: str = Query("score-desc", pattern="^(" + "|".join(SORT_OPTIONS) + ")$"),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """
    Dashboard listing.

    Returns:
        Matching rows plus the active and welcome-back session ids
    """
    records = list_candidates(orchestrator.list_sessions(), search, sort_by)
    rows: List[DashboardRow] = [dashboard_row(r) for r in records]
    return {
        "sessions": [row.model_dump(mode="json") for row in rows],
        "active_session_id": orchestrator.repository.active_id,
        "welcome_back_session_id": orchestrator.repository.welcome_back_id,
    }


@app.delete("/sessions/welcome-back")
def dismiss_welcome_back(orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    orchestrator.dismiss_welcome_back()
    return {"status": "dismissed"}


@app.get("/sessions/{session_id}")
def get_session(session_id: str, orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    record = orchestrator.get_session(session_id)
    return {
        "record": record.model_dump(mode="json"),
        "progress": interview_progress(record),
    }


@app.get("/sessions/{session_id}/transcript", response_model=List[ChatMessage])
def get_transcript(session_id: str, orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    return orchestrator.get_session(session_id).chat


@app.post("/sessions/{session_id}/reset", response_model=CandidateRecord)
def reset_interview(session_id: str, orchestrator: SessionOrchestrator = Depends(get_orchestrator)):
    return orchestrator.reset_interview(session_id)


# ================================================================
# Main Entry Point
# ================================================================

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.server.host, port=config.server.port)
