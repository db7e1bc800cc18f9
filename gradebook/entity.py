from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence
from rapidfuzz import fuzz, process
from .schema import StudentRecord

MATCH_THRESHOLD = 0.5


def name_tokens(s: Any) -> List[str]:
    # uppercase, letters (any script) and spaces only, tokens in alphabetical order
    t = "".join(ch for ch in str(s or "").upper() if ch.isalpha() or ch.isspace())
    return sorted(t.split())


def normalize_name(s: Any) -> str:
    """
    Order- and punctuation-insensitive form of a name:
    "Okot, John Mary" and "MARY OKOT JOHN" both give "JOHN MARY OKOT".
    """
    return " ".join(name_tokens(s))


def _index_key(s: Any) -> str:
    return re.sub(r"\s+", "", str(s or "")).upper()


@dataclass(frozen=True)
class MatchResult:
    student: Optional[StudentRecord]
    score: float
    exact: bool = False

    @property
    def resolved(self) -> bool:
        return self.student is not None


UNRESOLVED = MatchResult(student=None, score=0.0)


def token_overlap(a: Sequence[str], b: Sequence[str]) -> float:
    if not a or not b:
        return 0.0
    shared = len(set(a) & set(b))
    return shared / max(len(a), len(b))


def match_student(
    name: Any,
    roster: Sequence[StudentRecord],
    threshold: float = MATCH_THRESHOLD,
) -> MatchResult:
    """
    Resolves a free-text name against the roster:
      1) exact match on normalize_name -> score 1.0
      2) otherwise the best token-overlap score, accepted when >= threshold;
         the first roster entry wins a tie
    """
    tokens = name_tokens(name)
    if not tokens:
        return UNRESOLVED

    key = " ".join(tokens)
    for s in roster:
        if normalize_name(s.name) == key:
            return MatchResult(student=s, score=1.0, exact=True)

    best: Optional[StudentRecord] = None
    best_score = 0.0
    for s in roster:
        sc = token_overlap(tokens, name_tokens(s.name))
        if sc > best_score:
            best_score = sc
            best = s

    if best is not None and best_score >= threshold:
        return MatchResult(student=best, score=best_score)
    return UNRESOLVED


def match_index_number(index_number: Any, roster: Sequence[StudentRecord]) -> Optional[StudentRecord]:
    key = _index_key(index_number)
    if not key:
        return None
    for s in roster:
        if _index_key(s.index_number) == key:
            return s
    return None


def suggest_students(name: Any, roster: Sequence[StudentRecord], limit: int = 3) -> List[Dict[str, Any]]:
    # closest roster names for manual confirmation of an unresolved row
    query = normalize_name(name)
    if not query or not roster:
        return []
    choices = {i: normalize_name(s.name) for i, s in enumerate(roster)}
    hits = process.extract(query, choices, scorer=fuzz.token_sort_ratio, limit=limit)
    return [
        {"student_id": roster[i].id, "name": roster[i].name, "similarity": round(float(score), 1)}
        for _, score, i in hits
        if score > 0
    ]
