from __future__ import annotations
import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union
from .schema import ColumnMapping, NOT_FOUND
from .utils import load_rules, norm_text
from .validate import is_blank_row, is_valid_score_row

logger = logging.getLogger(__name__)

SCAN_ROWS = 20
MARKER_LOOKBACK = 3

NO_NAME_COLUMN = "no_name_column"
NO_SUBJECT_COLUMNS = "no_subject_columns"
NO_DATA_ROWS = "no_data_rows"

_MESSAGES = {
    NO_NAME_COLUMN: "Could not find a name column. Make sure the header row has a NAME (or PUPIL) column.",
    NO_SUBJECT_COLUMNS: "Found a name column but no subject columns. Label them e.g. ENG, MTC, SCI, SST.",
    NO_DATA_ROWS: "Found a header row but no score rows beneath it.",
}


@dataclass(frozen=True)
class ColumnSynonyms:
    name: Tuple[str, ...]
    index_number: Tuple[str, ...]
    subjects: Tuple[Tuple[str, Tuple[str, ...]], ...]
    summary_markers: Tuple[str, ...]

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "ColumnSynonyms":
        base = DEFAULT_COLUMNS
        subjects = d.get("subjects") or base["subjects"]
        return cls(
            name=tuple(norm_text(x) for x in d.get("name") or base["name"]),
            index_number=tuple(norm_text(x) for x in d.get("index_number") or base["index_number"]),
            subjects=tuple((code, tuple(norm_text(x) for x in words)) for code, words in subjects.items()),
            summary_markers=tuple(norm_text(x) for x in d.get("summary_markers") or base["summary_markers"]),
        )


DEFAULT_COLUMNS: Dict[str, Any] = {
    "name": ["name", "names", "pupil", "pupils", "pupil name", "student", "student name",
             "learner", "candidate", "full name"],
    "index_number": ["index", "index no", "index number", "lin", "adm no", "admission no", "reg no", "student id"],
    "subjects": {
        "english": ["eng", "engl", "english"],
        "maths": ["mtc", "mth", "math", "maths", "mathematics"],
        "science": ["sci", "scie", "science"],
        "sst": ["sst", "s st", "social studies", "social"],
        "literacy1": ["lit1", "lit 1", "lit i", "literacy 1", "literacy i"],
        "literacy2": ["lit2", "lit 2", "lit ii", "literacy 2", "literacy ii"],
    },
    "summary_markers": ["top", "performer", "performers", "summary", "best", "ranking", "position"],
}

DEFAULT_SYNONYMS = ColumnSynonyms.from_dict(DEFAULT_COLUMNS)


def load_synonyms(rules: Optional[Dict[str, Any]] = None) -> ColumnSynonyms:
    rules = load_rules() if rules is None else rules
    return ColumnSynonyms.from_dict(rules.get("columns") or DEFAULT_COLUMNS)


@dataclass(frozen=True)
class HeaderFound:
    row_index: int
    mapping: ColumnMapping
    score: int
    ok: bool = True


@dataclass(frozen=True)
class HeaderMissing:
    reason: str
    message: str
    ok: bool = False


HeaderOutcome = Union[HeaderFound, HeaderMissing]


def _missing(reason: str) -> HeaderMissing:
    return HeaderMissing(reason, _MESSAGES[reason])


def _matches(text: str, words: Sequence[str]) -> bool:
    # whole-word match on normalized text, so "literacy i" does not hit "literacy ii"
    for w in words:
        if w and re.search(r"\b" + re.escape(w) + r"\b", text):
            return True
    return False


def map_header_row(row: Sequence[Any], synonyms: ColumnSynonyms = DEFAULT_SYNONYMS) -> ColumnMapping:
    """
    Maps one row's cells to fields. Each cell maps to at most one field,
    checked index -> name -> subjects; the first cell wins for each field.
    """
    name = NOT_FOUND
    index_number = NOT_FOUND
    subjects: Dict[str, int] = {}

    for col, v in enumerate(row):
        t = norm_text(v)
        if not t:
            continue
        if index_number == NOT_FOUND and _matches(t, synonyms.index_number):
            index_number = col
            continue
        if name == NOT_FOUND and _matches(t, synonyms.name):
            name = col
            continue
        for code, words in synonyms.subjects:
            if code not in subjects and _matches(t, words):
                subjects[code] = col
                break

    return ColumnMapping(name=name, index_number=index_number, subjects=subjects)


def _has_summary_marker(row: Sequence[Any], synonyms: ColumnSynonyms) -> bool:
    return any(_matches(norm_text(v), synonyms.summary_markers) for v in row)


def _score_candidate(rows: Sequence[Sequence[Any]], start: int, mapping: ColumnMapping) -> int:
    # consecutive valid score rows right under the header; blank rows don't break the run
    score = 0
    for row in rows[start + 1:]:
        if is_blank_row(row):
            continue
        if not is_valid_score_row(row, mapping):
            break
        score += 1
    return score


def locate_header(
    rows: Sequence[Sequence[Any]],
    synonyms: ColumnSynonyms = DEFAULT_SYNONYMS,
    scan_rows: int = SCAN_ROWS,
) -> HeaderOutcome:
    """
    Finds the header row among the first scan_rows rows.
    Candidate: has a name column and at least one subject column, and neither
    it nor the MARKER_LOOKBACK rows above carry a summary marker (report footers
    like "TOP PERFORMERS" repeat the column labels).
    Winner: most valid data rows directly beneath, earliest row on ties.
    """
    n = min(scan_rows, len(rows))
    candidates: List[Tuple[int, ColumnMapping]] = []
    saw_name = False
    saw_subjects = False

    for i in range(n):
        mapping = map_header_row(rows[i], synonyms)
        if mapping.name == NOT_FOUND:
            continue
        saw_name = True
        if not mapping.subjects:
            continue
        saw_subjects = True

        window = rows[max(0, i - MARKER_LOOKBACK): i + 1]
        if any(_has_summary_marker(r, synonyms) for r in window):
            logger.debug("header candidate at row %d rejected: summary marker nearby", i)
            continue
        candidates.append((i, mapping))

    if not candidates:
        if saw_name and not saw_subjects:
            return _missing(NO_SUBJECT_COLUMNS)
        return _missing(NO_NAME_COLUMN)

    best: Optional[HeaderFound] = None
    for i, mapping in candidates:
        score = _score_candidate(rows, i, mapping)
        logger.debug("header candidate at row %d scored %d", i, score)
        if best is None or score > best.score:
            best = HeaderFound(row_index=i, mapping=mapping, score=score)

    if best is None or best.score < 1:
        return _missing(NO_DATA_ROWS)
    return best
