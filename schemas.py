from datetime import datetime, timezone
from typing import Annotated, List, Optional
from uuid import uuid4

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StrictInt
from pydantic.alias_generators import to_camel

from exceptions import ValidationFailure
from quiz import Decision, QuizState
from utils import SegmentKind, normalize, split_sentences


def new_id() -> str:
    return uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Record(BaseModel):
    # camelCase on the wire, snake_case in Python
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything stored is UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


class Paragraph(Record):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id, min_length=1)
    text: str = Field(min_length=1)
    sentences: List[str] = Field(min_length=1)
    created_at: UtcDatetime = Field(default_factory=utcnow)

    @classmethod
    def from_text(cls, text: str) -> "Paragraph":
        sentences = split_sentences(text)
        if not sentences:
            raise ValidationFailure(
                "The paragraph must contain at least one sentence ending in a period"
            )
        return cls(text=normalize(text), sentences=sentences)

    @property
    def sentence_count(self) -> int:
        return len(self.sentences)

    def preview(self, max_length: int = 100) -> str:
        first = self.sentences[0]
        return first[:max_length] + "..." if len(first) > max_length else first


class SentenceProgress(Record):
    model_config = ConfigDict(frozen=True)

    sentence: str
    attempts: StrictInt = Field(ge=0)
    errors: StrictInt = Field(ge=0)


class Result(Record):
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id, min_length=1)
    paragraph_id: str = Field(min_length=1)
    paragraph_text: str = ""
    rank: str = Field(min_length=1)
    total_attempts: StrictInt
    total_errors: StrictInt
    sentence_progress: List[SentenceProgress]
    completed_at: UtcDatetime = Field(default_factory=utcnow)
    elapsed_time: StrictInt = 0


class ImportedParagraph(Paragraph):
    """A paragraph read back from an export: nothing is generated for it."""

    id: str = Field(min_length=1)
    created_at: UtcDatetime


class ImportedResult(Result):
    id: str = Field(min_length=1)
    completed_at: UtcDatetime


class ExportBundle(Record):
    version: str = "1.0"
    export_date: datetime = Field(default_factory=utcnow)
    paragraphs: List[Paragraph]
    results: List[Result]


class ImportReport(Record):
    paragraphs: int
    results: int


class ParagraphOut(Record):
    id: str
    text: str
    sentences: List[str]
    created_at: datetime
    preview: str
    sentence_count: int

    @classmethod
    def from_paragraph(cls, paragraph: Paragraph) -> "ParagraphOut":
        return cls(
            id=paragraph.id,
            text=paragraph.text,
            sentences=paragraph.sentences,
            created_at=paragraph.created_at,
            preview=paragraph.preview(),
            sentence_count=paragraph.sentence_count,
        )


class StartRequest(Record):
    paragraph_id: str


class SubmitRequest(Record):
    text: str


class DecisionRequest(Record):
    decision: Decision = Decision.NONE


class DiffSegmentOut(Record):
    text: str
    kind: SegmentKind


class StudyOut(Record):
    state: QuizState
    sentence: Optional[str] = None
    number: int
    total: int
    elapsed: str


class SubmissionOut(Record):
    correct: bool
    similarity: Optional[int] = None
    segments: List[DiffSegmentOut] = Field(default_factory=list)
    has_error: bool = False
    complete: bool = False
    rank: Optional[str] = None
    description: Optional[str] = None
    result: Optional[Result] = None


class DecisionOut(Record):
    state: Optional[QuizState] = None
    applied: bool
