import logging
from typing import Any, List, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

import settings
from exceptions import ValidationFailure
from models import ParagraphRecord, ResultRecord
from rank import best_for, filter_by_paragraph, retain
from schemas import (
    ExportBundle,
    ImportedParagraph,
    ImportedResult,
    ImportReport,
    Paragraph,
    Result,
)

logger = logging.getLogger("memoquiz.storage")


def _paragraph(record: ParagraphRecord) -> Paragraph:
    return Paragraph(
        id=record.id,
        text=record.text,
        sentences=list(record.sentences),
        created_at=record.created_at,
    )


def _result(record: ResultRecord) -> Result:
    return Result(
        id=record.id,
        paragraph_id=record.paragraph_id,
        paragraph_text=record.paragraph_text or "",
        rank=record.rank,
        total_attempts=record.total_attempts,
        total_errors=record.total_errors,
        sentence_progress=record.sentence_progress,
        completed_at=record.completed_at,
        elapsed_time=record.elapsed_time or 0,
    )


def _paragraph_record(p: Paragraph) -> ParagraphRecord:
    return ParagraphRecord(
        id=p.id, text=p.text, sentences=list(p.sentences), created_at=p.created_at
    )


def _result_record(r: Result) -> ResultRecord:
    return ResultRecord(
        id=r.id,
        paragraph_id=r.paragraph_id,
        paragraph_text=r.paragraph_text,
        rank=r.rank,
        total_attempts=r.total_attempts,
        total_errors=r.total_errors,
        sentence_progress=[sp.model_dump() for sp in r.sentence_progress],
        completed_at=r.completed_at,
        elapsed_time=r.elapsed_time,
    )


# -----------------------------
#  Paragraphs
# -----------------------------
def save_paragraph(db: Session, paragraph: Paragraph) -> Paragraph:
    db.add(_paragraph_record(paragraph))
    db.commit()
    logger.info(
        "Stored paragraph %s with %d sentences", paragraph.id, paragraph.sentence_count
    )
    return paragraph


def list_paragraphs(db: Session) -> List[Paragraph]:
    records = db.query(ParagraphRecord).order_by(ParagraphRecord.created_at).all()
    return [_paragraph(r) for r in records]


def get_paragraph(db: Session, pid: str) -> Optional[Paragraph]:
    record = db.get(ParagraphRecord, pid)
    return _paragraph(record) if record else None


def delete_paragraph(db: Session, pid: str) -> bool:
    """Remove a paragraph together with its whole result history."""
    record = db.get(ParagraphRecord, pid)
    if record is None:
        return False
    db.delete(record)
    db.commit()
    logger.info("Deleted paragraph %s and its results", pid)
    return True


# -----------------------------
#  Results
# -----------------------------
def list_results(db: Session, paragraph_id: Optional[str] = None) -> List[Result]:
    query = db.query(ResultRecord)
    if paragraph_id is not None:
        query = query.filter(ResultRecord.paragraph_id == paragraph_id)
    return [_result(r) for r in query.all()]


def save_result(
    db: Session, result: Result, max_per_paragraph: int = settings.MAX_RESULTS_PER_PARAGRAPH
) -> Result:
    """Append a result, then trim that paragraph's history to the newest entries."""
    db.add(_result_record(result))
    db.flush()

    history = list_results(db, result.paragraph_id)
    kept = {r.id for r in retain(history, max_per_paragraph)}
    dropped = [r.id for r in history if r.id not in kept]
    if dropped:
        db.query(ResultRecord).filter(ResultRecord.id.in_(dropped)).delete(
            synchronize_session="fetch"
        )
        logger.info(
            "Trimmed %d old results of paragraph %s", len(dropped), result.paragraph_id
        )
    db.commit()
    return result


def results_for(
    db: Session, pid: str, limit: Optional[int] = settings.HISTORY_LIMIT
) -> List[Result]:
    return filter_by_paragraph(list_results(db, pid), pid, limit)


def best_result(db: Session, pid: str) -> Optional[Result]:
    return best_for(list_results(db, pid), pid)


# -----------------------------
#  Export / import
# -----------------------------
def export_data(db: Session) -> ExportBundle:
    bundle = ExportBundle(paragraphs=list_paragraphs(db), results=list_results(db))
    logger.info(
        "Exported %d paragraphs and %d results",
        len(bundle.paragraphs),
        len(bundle.results),
    )
    return bundle


def _first_error(exc: ValidationError) -> str:
    err = exc.errors()[0]
    where = ".".join(str(part) for part in err["loc"]) or "record"
    return f"{where}: {err['msg']}"


def validate_import(data: Any) -> ExportBundle:
    """Check an export bundle before it replaces the stored data.

    Reports the first malformed record by its 1-based position.
    """
    if not isinstance(data, dict):
        raise ValidationFailure("The data does not have the expected format")
    if "paragraphs" not in data or "results" not in data:
        raise ValidationFailure(
            "The data is missing the required properties (paragraphs, results)"
        )
    if not isinstance(data["paragraphs"], list):
        raise ValidationFailure('The "paragraphs" property must be a list')
    if not isinstance(data["results"], list):
        raise ValidationFailure('The "results" property must be a list')

    paragraphs = []
    known = set()
    for i, raw in enumerate(data["paragraphs"], start=1):
        try:
            # ids and timestamps must come from the file, not be generated
            imported = ImportedParagraph.model_validate(raw)
        except ValidationError as exc:
            raise ValidationFailure(
                f"Paragraph {i} does not have the expected structure "
                f"(id, text, sentences, createdAt): {_first_error(exc)}"
            ) from exc
        paragraph = Paragraph(**imported.model_dump())
        if paragraph.id in known:
            raise ValidationFailure(f"Paragraph {i} repeats id {paragraph.id}")
        known.add(paragraph.id)
        paragraphs.append(paragraph)

    results = []
    seen = set()
    for i, raw in enumerate(data["results"], start=1):
        try:
            imported = ImportedResult.model_validate(raw)
        except ValidationError as exc:
            raise ValidationFailure(
                f"Result {i} does not have the expected structure: {_first_error(exc)}"
            ) from exc
        result = Result(**imported.model_dump())
        if result.paragraph_id not in known:
            raise ValidationFailure(
                f"Result {i} refers to unknown paragraph {result.paragraph_id}"
            )
        if result.id in seen:
            raise ValidationFailure(f"Result {i} repeats id {result.id}")
        seen.add(result.id)
        results.append(result)

    extra = {}
    if data.get("version") is not None:
        extra["version"] = str(data["version"])
    return ExportBundle(paragraphs=paragraphs, results=results, **extra)


def import_data(db: Session, data: Any) -> ImportReport:
    """Validate, then replace every stored paragraph and result."""
    bundle = validate_import(data)
    db.query(ResultRecord).delete()
    db.query(ParagraphRecord).delete()
    db.add_all([_paragraph_record(p) for p in bundle.paragraphs])
    db.flush()
    db.add_all([_result_record(r) for r in bundle.results])
    db.commit()
    logger.info(
        "Imported %d paragraphs and %d results",
        len(bundle.paragraphs),
        len(bundle.results),
    )
    return ImportReport(paragraphs=len(bundle.paragraphs), results=len(bundle.results))
