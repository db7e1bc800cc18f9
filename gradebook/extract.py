from __future__ import annotations
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Collection, Dict, List, Optional, Sequence
from .dedupe import merge_score_entries
from .entity import MATCH_THRESHOLD, match_index_number, match_student, normalize_name, suggest_students
from .errors import HeaderNotFound
from .header_detect import DEFAULT_SYNONYMS, SCAN_ROWS, ColumnSynonyms, locate_header
from .ingest import load_frame_async, load_frame_from_upload
from .schema import ColumnMapping, NOT_FOUND, PendingStudent, ScoreEntry, StudentRecord
from .utils import cell_text, parse_mark
from .validate import is_blank_row, is_valid_score_row

logger = logging.getLogger(__name__)

# skip reasons
INVALID_ROW = "invalid_row"
UNMATCHED_WITHOUT_MARKS = "unmatched_without_marks"
LOCKED = "locked"


@dataclass
class ImportResult:
    header_row: int
    mapping: ColumnMapping
    entries: List[ScoreEntry] = field(default_factory=list)
    pending_students: List[PendingStudent] = field(default_factory=list)
    skipped: int = 0
    locked: int = 0
    skip_reasons: Counter = field(default_factory=Counter)
    overwrites: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def imported(self) -> int:
        return len(self.entries)

    @property
    def pending(self) -> int:
        return len(self.pending_students)

    def counts(self) -> Dict[str, int]:
        return {"imported": self.imported, "skipped": self.skipped}

    def summary(self) -> str:
        parts = [f"Imported marks for {self.imported} student{'s' if self.imported != 1 else ''}."]
        if self.skipped:
            parts.append(f"{self.skipped} row{'s' if self.skipped != 1 else ''} skipped.")
        if self.locked:
            parts.append(f"{self.locked} locked row{'s' if self.locked != 1 else ''} left unchanged.")
        if self.pending:
            parts.append(f"{self.pending} new student{'s' if self.pending != 1 else ''} need confirmation.")
        return " ".join(parts)


def _cell(row: Sequence[Any], col: int) -> Any:
    if col == NOT_FOUND or col >= len(row):
        return None
    return row[col]


def extract_scores(
    rows: Sequence[Sequence[Any]],
    roster: Sequence[StudentRecord],
    *,
    locked: Collection[Any] = (),
    subjects: Optional[Sequence[str]] = None,
    synonyms: ColumnSynonyms = DEFAULT_SYNONYMS,
    threshold: float = MATCH_THRESHOLD,
    scan_rows: int = SCAN_ROWS,
) -> ImportResult:
    """
    One ingestion pass over a parsed frame.
      - header located heuristically; no usable header -> HeaderNotFound
      - rows failing the row validator are counted as skipped
      - `subjects` narrows the mapped columns to a class tier's subject set
      - student resolved by index number when that column exists, else by name
      - unreadable / out-of-range marks become None, never an error
      - rows for locked students are left alone (counted in `locked`)
      - unresolved rows with marks are queued for manual confirmation,
        one per normalized name (the last row wins)
      - repeated rows for one student: the last one wins
    """
    outcome = locate_header(rows, synonyms, scan_rows)
    if not outcome.ok:
        logger.info("import aborted: %s", outcome.reason)
        raise HeaderNotFound(outcome.reason, outcome.message)

    mapping = outcome.mapping
    if subjects is not None:
        mapping = mapping.subjects_for(subjects)
    result = ImportResult(header_row=outcome.row_index, mapping=mapping)
    locked = set(locked)
    collected = []
    # normalized name -> position in result.pending_students
    pending_at: Dict[str, int] = {}

    for i in range(outcome.row_index + 1, len(rows)):
        row = rows[i]
        if is_blank_row(row):
            continue
        if not is_valid_score_row(row, mapping):
            result.skipped += 1
            result.skip_reasons[INVALID_ROW] += 1
            logger.debug("row %d skipped: not a score row", i)
            continue

        name = cell_text(_cell(row, mapping.name))
        marks = {code: parse_mark(_cell(row, col)) for code, col in mapping.subjects.items()}

        student = None
        index_number = cell_text(_cell(row, mapping.index_number)) if mapping.has_index else ""
        if index_number:
            student = match_index_number(index_number, roster)
        if student is None:
            student = match_student(name, roster, threshold).student

        if student is None:
            if any(v is not None for v in marks.values()):
                pending = PendingStudent(
                    name=name,
                    marks=marks,
                    row_index=i,
                    index_number=index_number,
                    suggestions=suggest_students(name, roster),
                )
                key = normalize_name(name)
                if key in pending_at:
                    old = result.pending_students[pending_at[key]]
                    result.pending_students[pending_at[key]] = pending
                    result.overwrites.append({
                        "reason": "repeated_pending_row",
                        "student_id": None,
                        "name": name,
                        "kept_row": i,
                        "kept_marks": dict(marks),
                        "dropped_row": old.row_index,
                        "dropped_marks": dict(old.marks),
                    })
                else:
                    pending_at[key] = len(result.pending_students)
                    result.pending_students.append(pending)
            else:
                result.skipped += 1
                result.skip_reasons[UNMATCHED_WITHOUT_MARKS] += 1
            continue

        if student.id in locked:
            result.locked += 1
            result.skip_reasons[LOCKED] += 1
            continue

        collected.append((i, ScoreEntry(student_id=student.id, marks=marks)))

    result.entries, merged = merge_score_entries(collected)
    result.overwrites = merged + result.overwrites
    logger.info(
        "import: %d imported, %d skipped, %d locked, %d pending",
        result.imported, result.skipped, result.locked, result.pending,
    )
    return result


def import_upload(name: str, data: bytes, roster: Sequence[StudentRecord], **kwargs) -> ImportResult:
    return extract_scores(load_frame_from_upload(name, data), roster, **kwargs)


async def import_upload_async(name: str, data: bytes, roster: Sequence[StudentRecord], **kwargs) -> ImportResult:
    rows = await load_frame_async(name, data)
    return extract_scores(rows, roster, **kwargs)
