import logging
import threading
import time
from contextlib import ExitStack
from dataclasses import dataclass
from typing import Callable, Optional

import settings
from exceptions import InvalidTransition, ValidationFailure
from quiz import Decision, QuizSession, QuizState, SubmissionOutcome, Ticker
from rank import DESCRIPTIONS, build_result
from schemas import Paragraph, Result
from utils import format_elapsed

logger = logging.getLogger("memoquiz.controller")


@dataclass
class StudyView:
    state: QuizState
    sentence: Optional[str]
    number: int
    total: int
    elapsed: str


@dataclass
class SubmitReport:
    outcome: SubmissionOutcome
    result: Optional[Result] = None
    description: Optional[str] = None


class DrillController:
    """Single thread of control over the one active quiz run.

    Every action and every timer tick mutates the session under one lock.
    The timer lives in an ExitStack that is closed exactly once, when the run
    completes, is abandoned or is replaced by a new run.
    """

    def __init__(
        self,
        ticker_factory: Callable[..., Ticker] = Ticker,
        tick_seconds: float = settings.TICK_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._ticker_factory = ticker_factory
        self._tick_seconds = tick_seconds
        self._clock = clock
        self._lock = threading.RLock()
        self._scope: Optional[ExitStack] = None
        self.session: Optional[QuizSession] = None

    # -----------------------------
    #  Paragraphs
    # -----------------------------
    @staticmethod
    def add_paragraph(text: str) -> Paragraph:
        if not text or not text.strip():
            raise ValidationFailure("Please enter a paragraph")
        return Paragraph.from_text(text)

    def confirm_delete(self, decision: Decision, paragraph_id: Optional[str] = None) -> bool:
        """True when the paragraph may go; a run over it is abandoned first."""
        if decision is not Decision.CONFIRM:
            return False
        with self._lock:
            session = self.session
            if session is not None and session.paragraph.id == paragraph_id:
                if not session.finished:
                    session.abandon()
                self._release_timer()
                self.session = None
                logger.info("Abandoned quiz over deleted paragraph %s", paragraph_id)
        return True

    # -----------------------------
    #  Run lifecycle
    # -----------------------------
    def _active(self) -> QuizSession:
        if self.session is None or self.session.finished:
            raise InvalidTransition("No quiz in progress")
        return self.session

    def _release_timer(self) -> None:
        if self._scope is not None:
            self._scope.close()
            self._scope = None
            logger.debug("Timer cancelled")

    def start(self, paragraph: Paragraph) -> StudyView:
        with self._lock:
            if self.session is not None and not self.session.finished:
                logger.info("Discarding unfinished run over %s", self.session.paragraph.id)
            self._release_timer()
            self.session = QuizSession(paragraph, clock=self._clock)
            self.session.start_timer()
            scope = ExitStack()
            scope.enter_context(self._ticker_factory(self.tick, self._tick_seconds))
            self._scope = scope
            logger.info(
                "Started quiz over paragraph %s (%d sentences)",
                paragraph.id,
                self.session.total_sentences,
            )
            return self._view()

    def tick(self) -> None:
        # skip a tick rather than wait on an action in flight
        if not self._lock.acquire(blocking=False):
            return
        try:
            if self.session is not None and not self.session.finished:
                self.session.elapsed()
        finally:
            self._lock.release()

    def _view(self) -> StudyView:
        s = self.session
        return StudyView(
            state=s.state,
            # the sentence is hidden while the user is writing it from memory
            sentence=s.current_sentence() if s.state is QuizState.STUDYING else None,
            number=min(s.sentence_number, s.total_sentences),
            total=s.total_sentences,
            elapsed=format_elapsed(s.elapsed()),
        )

    def view(self) -> StudyView:
        with self._lock:
            if self.session is None:
                raise InvalidTransition("No quiz in progress")
            return self._view()

    # -----------------------------
    #  Actions
    # -----------------------------
    def ready(self) -> StudyView:
        with self._lock:
            self._active().ready()
            return self._view()

    def show_sentence(self) -> StudyView:
        with self._lock:
            self._active().show_sentence()
            return self._view()

    def submit(self, text: str) -> SubmitReport:
        with self._lock:
            session = self._active()
            outcome = session.submit((text or "").strip())
            if not outcome.complete:
                if not outcome.correct:
                    logger.info(
                        "Incorrect answer for sentence %d (similarity %d%%)",
                        session.sentence_number,
                        outcome.similarity,
                    )
                return SubmitReport(outcome=outcome)

            self._release_timer()
            result = build_result(session)
            logger.info(
                "Completed quiz over %s with rank %s in %s",
                result.paragraph_id,
                result.rank,
                format_elapsed(result.elapsed_time),
            )
            return SubmitReport(
                outcome=outcome, result=result, description=DESCRIPTIONS[result.rank]
            )

    def resolve_error(self, decision: Decision) -> StudyView:
        """After a wrong answer: CONFIRM reviews the sentence, anything else retries."""
        with self._lock:
            session = self._active()
            if decision is Decision.CONFIRM:
                session.review()
            else:
                session.retry()
            return self._view()

    def quit(self, decision: Decision) -> bool:
        """Abandon the run on CONFIRM. No result is produced for an abandoned run."""
        with self._lock:
            session = self._active()
            if decision is not Decision.CONFIRM:
                return False
            session.abandon()
            self._release_timer()
            logger.info("Abandoned quiz over paragraph %s", session.paragraph.id)
            self.session = None
            return True
