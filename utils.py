import math
import re
from dataclasses import dataclass
from enum import Enum
from typing import List

from rapidfuzz.distance import Levenshtein

_DOUBLE_QUOTES = re.compile("[\u201C\u201D\u201E\u201F\u2033\u2036\u00AB\u00BB]")
_SINGLE_QUOTES = re.compile("[\u2018\u2019\u201A\u201B\u2032\u2035]")
_ZERO_WIDTH_SPACE = "\u200B"

# A terminator, optionally closed by a straight quote, at the very end.
_TERMINATED = re.compile(r"[.!?][\"']?$")
# Zero-width split point: after a terminator (or terminator + quote), before whitespace/end.
_BOUNDARY = re.compile(r"(?:(?<=[.!?])|(?<=[.!?][\"']))(?=\s|$)")

MISSING_MARKER = "?"


def normalize(text: str) -> str:
    text = text.replace(_ZERO_WIDTH_SPACE, "")
    text = _DOUBLE_QUOTES.sub('"', text)
    text = _SINGLE_QUOTES.sub("'", text)
    return text.strip()


def split_sentences(text: str) -> List[str]:
    normalized = normalize(text)
    if not normalized:
        return []
    if not _TERMINATED.search(normalized):
        normalized += "."
    parts = _BOUNDARY.split(normalized)
    return [p.strip() for p in parts if p.strip() and _TERMINATED.search(p.strip())]


def _drop_final_period(text: str) -> str:
    return text[:-1] if text.endswith(".") else text


def is_match(recalled: str, canonical: str) -> bool:
    # recall is graded on what was typed, only the stored sentence is normalized
    expected = normalize(canonical)
    if recalled == expected:
        return True
    return _drop_final_period(recalled) == _drop_final_period(expected)


def edit_distance(a: str, b: str) -> int:
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> int:
    a, b = normalize(a), normalize(b)
    if a == b:
        return 100
    d = edit_distance(a, b)
    m = max(len(a), len(b))
    # halves round up
    score = math.floor((m - d) * 100 / m + 0.5)
    return max(0, min(100, score))


class SegmentKind(str, Enum):
    CORRECT = "correct"
    ERROR = "error"
    MISSING = "missing"


@dataclass(frozen=True)
class DiffSegment:
    text: str
    kind: SegmentKind


# backtrace operations
_MATCH, _SUBSTITUTE, _DELETE, _INSERT = range(4)


def align(user_text: str, correct_text: str) -> List[DiffSegment]:
    """Character-level diff of a recollection against the canonical sentence.

    Extra or wrong characters the user typed come back as ERROR, characters
    the user left out come back as MISSING rendered with MISSING_MARKER, so the
    diff never reveals the answer. Adjacent segments of one kind are merged.
    """
    user, correct = normalize(user_text), normalize(correct_text)
    if user == correct:
        return [DiffSegment(user, SegmentKind.CORRECT)]

    rows, cols = len(user) + 1, len(correct) + 1
    # flat (rows x cols) tables indexed by i * cols + j
    cost = [0] * (rows * cols)
    ops = [_MATCH] * (rows * cols)
    for i in range(1, rows):
        cost[i * cols] = i
        ops[i * cols] = _DELETE
    for j in range(1, cols):
        cost[j] = j
        ops[j] = _INSERT

    for i in range(1, rows):
        u = user[i - 1]
        row, prev = i * cols, (i - 1) * cols
        for j in range(1, cols):
            if u == correct[j - 1]:
                cost[row + j] = cost[prev + j - 1]
                ops[row + j] = _MATCH
                continue
            # ties resolve substitute > delete > insert
            best, op = cost[prev + j - 1] + 1, _SUBSTITUTE
            if cost[prev + j] + 1 < best:
                best, op = cost[prev + j] + 1, _DELETE
            if cost[row + j - 1] + 1 < best:
                best, op = cost[row + j - 1] + 1, _INSERT
            cost[row + j] = best
            ops[row + j] = op

    steps = []
    i, j = len(user), len(correct)
    while i > 0 or j > 0:
        op = ops[i * cols + j]
        if op == _MATCH:
            steps.append((user[i - 1], SegmentKind.CORRECT))
            i, j = i - 1, j - 1
        elif op == _SUBSTITUTE:
            steps.append((user[i - 1], SegmentKind.ERROR))
            i, j = i - 1, j - 1
        elif op == _DELETE:
            steps.append((user[i - 1], SegmentKind.ERROR))
            i -= 1
        else:
            steps.append((MISSING_MARKER, SegmentKind.MISSING))
            j -= 1
    steps.reverse()

    segments: List[DiffSegment] = []
    for char, kind in steps:
        if segments and segments[-1].kind is kind:
            segments[-1] = DiffSegment(segments[-1].text + char, kind)
        else:
            segments.append(DiffSegment(char, kind))
    return segments


def has_error(segments: List[DiffSegment]) -> bool:
    return any(s.kind is not SegmentKind.CORRECT for s in segments)


def format_elapsed(seconds: int) -> str:
    minutes, secs = divmod(max(0, int(seconds)), 60)
    return f"{minutes:02d}:{secs:02d}"
