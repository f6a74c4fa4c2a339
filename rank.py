from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from quiz import QuizSession
from schemas import Result, SentenceProgress

RANK_ORDER = {"S": 0, "A": 1, "B": 2, "C": 3}
UNRANKED_ORDER = 4

DESCRIPTIONS = {
    "S": "Perfect! Every sentence right on the first try without reviews.",
    "A": "Excellent! You got there in the end, but made some mistakes.",
    "B": "Good work, but there is room to improve.",
    "C": "You need more practice with this paragraph.",
}


def compute_rank(total_attempts: int, total_errors: int) -> Tuple[str, str]:
    # first match wins
    if total_attempts == 0 and total_errors == 0:
        rank = "S"
    elif total_attempts == 0:
        rank = "A"
    elif total_attempts <= 3:
        rank = "B"
    else:
        rank = "C"
    return rank, DESCRIPTIONS[rank]


def rank_order(rank: str) -> int:
    return RANK_ORDER.get(rank, UNRANKED_ORDER)


def aggregate(session: QuizSession) -> dict:
    session.fill_gaps()
    total_attempts = sum(session.attempts)
    total_errors = sum(session.errors)
    rank, description = compute_rank(total_attempts, total_errors)
    return {
        "rank": rank,
        "description": description,
        "total_attempts": total_attempts,
        "total_errors": total_errors,
        "sentence_progress": [
            SentenceProgress(sentence=s, attempts=a, errors=e)
            for s, a, e in zip(session.sentences, session.attempts, session.errors)
        ],
    }


def build_result(session: QuizSession, completed_at: Optional[datetime] = None) -> Result:
    fields = aggregate(session)
    fields.pop("description")
    if completed_at is not None:
        fields["completed_at"] = completed_at
    return Result(
        paragraph_id=session.paragraph.id,
        paragraph_text=session.paragraph.text,
        elapsed_time=session.elapsed_seconds,
        **fields,
    )


def filter_by_paragraph(
    results: Iterable[Result], paragraph_id: str, limit: Optional[int] = None
) -> List[Result]:
    """Results for one paragraph, newest first, optionally capped."""
    matching = sorted(
        (r for r in results if r.paragraph_id == paragraph_id),
        key=lambda r: r.completed_at,
        reverse=True,
    )
    return matching if limit is None else matching[:limit]


def best_for(results: Iterable[Result], paragraph_id: str) -> Optional[Result]:
    """Best rank for the paragraph; among equal ranks the most recent."""
    newest_first = filter_by_paragraph(results, paragraph_id)
    if not newest_first:
        return None
    # min() keeps the first of equal keys, which is the newest
    return min(newest_first, key=lambda r: rank_order(r.rank))


def retain(results: Iterable[Result], max_per_paragraph: int) -> List[Result]:
    """Keep the newest `max_per_paragraph` results of every paragraph."""
    groups: Dict[str, List[Result]] = {}
    for result in results:
        groups.setdefault(result.paragraph_id, []).append(result)
    kept: List[Result] = []
    for group in groups.values():
        group.sort(key=lambda r: r.completed_at, reverse=True)
        kept.extend(group[: max(0, max_per_paragraph)])
    return kept
