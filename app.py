import logging
from dataclasses import asdict
from typing import List, Optional

from fastapi import Depends, FastAPI, Form, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

import settings
import storage
from controller import DrillController, StudyView
from database import Base, engine, get_db
from exceptions import InvalidTransition, ValidationFailure
from quiz import Decision
from schemas import *

logger = logging.getLogger("memoquiz")
if not logger.handlers:
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
    logger.addHandler(handler)
logger.setLevel(getattr(logging, settings.LOG_LEVEL, logging.INFO))

# Create DB tables
Base.metadata.create_all(bind=engine)

app = FastAPI(title="MemoQuiz Backend", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# one quiz run at a time for the whole process
drill = DrillController()


def get_controller() -> DrillController:
    return drill


@app.exception_handler(ValidationFailure)
def validation_failure_handler(request: Request, exc: ValidationFailure):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(InvalidTransition)
def invalid_transition_handler(request: Request, exc: InvalidTransition):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


def _study(view: StudyView) -> StudyOut:
    return StudyOut(**asdict(view))


def _paragraph_or_404(db: Session, pid: str) -> Paragraph:
    p = storage.get_paragraph(db, pid)
    if p is None:
        raise HTTPException(404, "Paragraph not found")
    return p


# -----------------------------
#  📝 PARAGRAPHS
# -----------------------------
@app.post("/paragraphs", response_model=ParagraphOut)
def create_paragraph(
    text: str = Form(None),
    transcript: str = Form(None),  # same field under the older name
    db: Session = Depends(get_db),
    ctl: DrillController = Depends(get_controller),
):
    paragraph = ctl.add_paragraph(text or transcript or "")
    storage.save_paragraph(db, paragraph)
    return ParagraphOut.from_paragraph(paragraph)


@app.get("/paragraphs", response_model=List[ParagraphOut])
def list_paragraphs(db: Session = Depends(get_db)):
    return [ParagraphOut.from_paragraph(p) for p in storage.list_paragraphs(db)]


@app.delete("/paragraphs/{pid}")
def delete_paragraph(
    pid: str,
    decision: Decision = Decision.NONE,
    db: Session = Depends(get_db),
    ctl: DrillController = Depends(get_controller),
):
    _paragraph_or_404(db, pid)
    if not ctl.confirm_delete(decision, pid):
        return {"deleted": False}
    return {"deleted": storage.delete_paragraph(db, pid)}


@app.get("/paragraphs/{pid}/results", response_model=List[Result])
def paragraph_results(
    pid: str, limit: Optional[int] = settings.HISTORY_LIMIT, db: Session = Depends(get_db)
):
    _paragraph_or_404(db, pid)
    return storage.results_for(db, pid, limit)


@app.get("/paragraphs/{pid}/best", response_model=Optional[Result])
def paragraph_best(pid: str, db: Session = Depends(get_db)):
    _paragraph_or_404(db, pid)
    return storage.best_result(db, pid)


# -----------------------------
#  🧠 QUIZ RUN
# -----------------------------
@app.post("/quiz/start", response_model=StudyOut)
def start_quiz(
    req: StartRequest,
    db: Session = Depends(get_db),
    ctl: DrillController = Depends(get_controller),
):
    paragraph = _paragraph_or_404(db, req.paragraph_id)
    return _study(ctl.start(paragraph))


@app.get("/quiz", response_model=StudyOut)
def quiz_state(ctl: DrillController = Depends(get_controller)):
    return _study(ctl.view())


@app.post("/quiz/ready", response_model=StudyOut)
def quiz_ready(ctl: DrillController = Depends(get_controller)):
    return _study(ctl.ready())


@app.post("/quiz/show", response_model=StudyOut)
def quiz_show_sentence(ctl: DrillController = Depends(get_controller)):
    return _study(ctl.show_sentence())


@app.post("/quiz/submit", response_model=SubmissionOut)
def quiz_submit(
    payload: SubmitRequest,
    db: Session = Depends(get_db),
    ctl: DrillController = Depends(get_controller),
):
    report = ctl.submit(payload.text)
    outcome = report.outcome
    if report.result is not None:
        storage.save_result(db, report.result)

    return SubmissionOut(
        correct=outcome.correct,
        similarity=outcome.similarity,
        segments=[DiffSegmentOut(text=s.text, kind=s.kind) for s in outcome.segments],
        has_error=outcome.has_error,
        complete=outcome.complete,
        rank=report.result.rank if report.result else None,
        description=report.description,
        result=report.result,
    )


@app.post("/quiz/resolve", response_model=StudyOut)
def quiz_resolve_error(
    payload: DecisionRequest, ctl: DrillController = Depends(get_controller)
):
    return _study(ctl.resolve_error(payload.decision))


@app.post("/quiz/quit", response_model=DecisionOut)
def quiz_quit(payload: DecisionRequest, ctl: DrillController = Depends(get_controller)):
    applied = ctl.quit(payload.decision)
    state = None if applied else ctl.view().state
    return DecisionOut(state=state, applied=applied)


# -----------------------------
#  📦 EXPORT / IMPORT
# -----------------------------
@app.get("/export", response_model=ExportBundle)
def export_all(db: Session = Depends(get_db)):
    return storage.export_data(db)


@app.post("/import", response_model=ImportReport)
def import_all(data: dict, db: Session = Depends(get_db)):
    return storage.import_data(db, data)


# ============================
# 🏠 Home (root) endpoint
# ============================
@app.get("/")
def home():
    return {
        "status": "Backend running",
        "version": "0.1.0",
        "message": "MemoQuiz backend is working normally.",
    }
