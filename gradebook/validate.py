from __future__ import annotations
from typing import Any, Sequence
from .schema import ColumnMapping, NOT_FOUND
from .utils import cell_text, norm_text, parse_mark

# words that only ever appear in structural/summary rows, never in a pupil's name
STOP_WORDS = frozenset([
    "name", "names", "total", "totals", "average", "avg", "mean",
    "grade", "grades", "class", "position", "aggregate", "division",
    "subject", "subjects", "remarks", "signature", "teacher", "key",
])
STOP_SUBSTRINGS = ("grading", "summary", "performer")


def _cell(row: Sequence[Any], col: int) -> Any:
    if col == NOT_FOUND or col < 0 or col >= len(row):
        return None
    return row[col]


def is_blank_row(row: Sequence[Any]) -> bool:
    return not any(cell_text(c) for c in row)


def looks_like_name(value: Any) -> bool:
    s = cell_text(value)
    if len(s) < 3:
        return False
    tokens = s.split()
    if len(tokens) < 2:
        return False
    low = s.lower()
    if any(sub in low for sub in STOP_SUBSTRINGS):
        return False
    if any(t in STOP_WORDS for t in norm_text(s).split()):
        return False
    return True


def is_valid_score_row(row: Sequence[Any], mapping: ColumnMapping) -> bool:
    """
    A real score row (as opposed to titles, blank spacers or summary blocks):
      - name cell of >=3 chars with at least two words
      - no structural/stop word in the name
      - at least one mapped subject cell holding a mark in 0..100
    Used both to score header candidates and to accept rows on import.
    """
    if not looks_like_name(_cell(row, mapping.name)):
        return False
    return any(parse_mark(_cell(row, c)) is not None for c in mapping.subject_columns())
