from __future__ import annotations
from typing import Any, Dict, List, Sequence, Tuple
from .schema import ScoreEntry


def merge_score_entries(
    entries: Sequence[Tuple[int, ScoreEntry]],
) -> Tuple[List[ScoreEntry], List[Dict[str, Any]]]:
    """
    Collapses repeated rows for the same student: the later row replaces the
    earlier one (last import wins, no conflict is raised).
    `entries` are (source row index, entry) pairs in file order.
    Returns:
      - kept: one entry per student, in order of first appearance
      - overwrites: log of replaced rows (which row replaced which)
    """
    kept: List[ScoreEntry] = []
    overwrites: List[Dict[str, Any]] = []

    # student_id -> (index in kept, source row)
    seen: Dict[Any, Tuple[int, int]] = {}
    for row_index, e in entries:
        if e.student_id not in seen:
            seen[e.student_id] = (len(kept), row_index)
            kept.append(e)
            continue

        kept_idx, old_row = seen[e.student_id]
        old = kept[kept_idx]
        kept[kept_idx] = e
        seen[e.student_id] = (kept_idx, row_index)
        overwrites.append({
            "reason": "repeated_student_row",
            "student_id": e.student_id,
            "kept_row": row_index,
            "kept_marks": dict(e.marks),
            "dropped_row": old_row,
            "dropped_marks": dict(old.marks),
        })

    return kept, overwrites
