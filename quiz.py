import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

from exceptions import InvalidTransition, OutOfRange, ValidationFailure
from utils import DiffSegment, align, has_error, is_match, similarity, format_elapsed

logger = logging.getLogger("memoquiz.quiz")


class QuizState(str, Enum):
    STUDYING = "studying"
    WRITING = "writing"
    INCORRECT = "incorrect"
    COMPLETE = "complete"
    ABANDONED = "abandoned"


class Decision(str, Enum):
    """Answer to a confirmation prompt; NONE means it was dismissed or timed out."""

    CONFIRM = "confirm"
    CANCEL = "cancel"
    NONE = "none"


@dataclass(frozen=True)
class SubmissionOutcome:
    correct: bool
    similarity: Optional[int] = None
    segments: Tuple[DiffSegment, ...] = ()
    has_error: bool = False
    complete: bool = False


class Ticker:
    """Calls `callback` every `interval` seconds on a daemon thread until cancelled.

    Usable as a context manager so the tick is released on every exit path.
    Once `cancel()` returns the callback will not run again.
    """

    def __init__(self, callback: Callable[[], None], interval: float = 1.0):
        self._callback = callback
        self._interval = interval
        self._stopped = threading.Event()
        self._lock = threading.RLock()
        self._thread: Optional[threading.Thread] = None

    @property
    def active(self) -> bool:
        return self._thread is not None and not self._stopped.is_set()

    def start(self) -> "Ticker":
        if self._thread is None and not self._stopped.is_set():
            self._thread = threading.Thread(
                target=self._run, name="memoquiz-ticker", daemon=True
            )
            self._thread.start()
        return self

    def _run(self) -> None:
        while not self._stopped.wait(self._interval):
            with self._lock:
                if self._stopped.is_set():
                    break
                self._callback()

    def cancel(self) -> bool:
        with self._lock:
            if self._stopped.is_set():
                return False
            self._stopped.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=max(self._interval, 1.0))
        return True

    def __enter__(self) -> "Ticker":
        return self.start()

    def __exit__(self, *exc) -> None:
        self.cancel()


class QuizSession:
    """Mutable state of one quiz run over a paragraph's sentences.

    Counters are fixed-length, one slot per sentence, zeroed up front.
    """

    def __init__(self, paragraph, clock: Callable[[], float] = time.monotonic):
        self.paragraph = paragraph
        self.sentences: List[str] = list(paragraph.sentences)
        if not self.sentences:
            raise ValidationFailure("Cannot quiz a paragraph without sentences")
        self.current_index = 0
        self.attempts = [0] * len(self.sentences)
        self.errors = [0] * len(self.sentences)
        self.total_attempts = 0
        self.start_time: Optional[float] = None
        self.elapsed_seconds = 0
        self.state = QuizState.STUDYING
        self._clock = clock

    @property
    def total_sentences(self) -> int:
        return len(self.sentences)

    @property
    def sentence_number(self) -> int:
        return self.current_index + 1

    @property
    def is_complete(self) -> bool:
        return self.current_index >= len(self.sentences)

    @property
    def finished(self) -> bool:
        return self.state in (QuizState.COMPLETE, QuizState.ABANDONED)

    def _check_index(self) -> None:
        if self.current_index >= len(self.sentences):
            raise OutOfRange(
                f"sentence {self.current_index} of {len(self.sentences)} requested"
            )

    def current_sentence(self) -> str:
        self._check_index()
        return self.sentences[self.current_index]

    def record_review(self) -> None:
        self._check_index()
        self.attempts[self.current_index] += 1
        self.total_attempts += 1

    def record_error(self) -> None:
        self._check_index()
        self.errors[self.current_index] += 1

    def advance(self) -> bool:
        self._check_index()
        self.current_index += 1
        return self.current_index < len(self.sentences)

    def fill_gaps(self) -> None:
        n = len(self.sentences)
        self.attempts.extend([0] * (n - len(self.attempts)))
        self.errors.extend([0] * (n - len(self.errors)))

    def start_timer(self) -> None:
        if self.start_time is None:
            self.start_time = self._clock()

    def elapsed(self) -> int:
        # frozen once the run is over
        if self.start_time is not None and not self.finished:
            self.elapsed_seconds = int(self._clock() - self.start_time)
        return self.elapsed_seconds

    def formatted_time(self) -> str:
        return format_elapsed(self.elapsed_seconds)

    # transitions

    def _require(self, *states: QuizState) -> None:
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise InvalidTransition(f"quiz is {self.state.value}, expected {allowed}")

    def ready(self) -> None:
        self._require(QuizState.STUDYING)
        self.state = QuizState.WRITING

    def show_sentence(self) -> None:
        self._require(QuizState.WRITING)
        self.record_review()
        self.state = QuizState.STUDYING

    def submit(self, text: str) -> SubmissionOutcome:
        self._require(QuizState.WRITING)
        if not text:
            raise ValidationFailure("Please type the sentence")
        canonical = self.current_sentence()
        if is_match(text, canonical):
            if self.advance():
                self.state = QuizState.STUDYING
                return SubmissionOutcome(correct=True)
            self.elapsed()
            self.state = QuizState.COMPLETE
            return SubmissionOutcome(correct=True, complete=True)

        self.record_error()
        # typed text is graded as-is while the diff compares normalized forms,
        # so a miss on quote style alone reports similarity 100 and no error
        self.state = QuizState.INCORRECT
        logger.debug("Recalled %r against %r", text, canonical)
        segments = tuple(align(text, canonical))
        return SubmissionOutcome(
            correct=False,
            similarity=similarity(text, canonical),
            segments=segments,
            has_error=has_error(segments),
        )

    def review(self) -> None:
        self._require(QuizState.INCORRECT)
        self.record_review()
        self.state = QuizState.STUDYING

    def retry(self) -> None:
        self._require(QuizState.INCORRECT)
        self.state = QuizState.WRITING

    def abandon(self) -> None:
        self._require(QuizState.STUDYING, QuizState.WRITING, QuizState.INCORRECT)
        self.elapsed()
        self.state = QuizState.ABANDONED
