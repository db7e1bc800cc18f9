from __future__ import annotations
import numpy as np
import pandas as pd
from typing import Any, Dict, List, Optional, Sequence
from .config import GradingConfiguration
from .grading import compute_aggregate, compute_division, total_marks
from .schema import ABSENT, SICK

INCOMPLETE_COMMENT = "Incomplete results."
STATUS_COMMENTS = {
    ABSENT: "Has underperformed due to absenteeism. Being present throughout the term will improve performance.",
    SICK: "Has been affected by sickness this term and can perform better than this.",
}


def ordinal(n: int) -> str:
    suffix = ["th", "st", "nd", "rd"]
    v = n % 100
    if 10 < v < 14:
        return f"{n}th"
    return f"{n}{suffix[n % 10] if n % 10 < 4 else 'th'}"


def _graded_frame(records: Sequence[Dict[str, Any]]) -> pd.DataFrame:
    df = pd.DataFrame([
        {
            "student_id": r.get("studentId"),
            "aggregate": int(r.get("aggregate") or 0),
            "total": total_marks(r.get("marks") or {}),
        }
        for r in records
    ])
    if df.empty:
        return df
    # ungraded (aggregate 0) rank after every graded row
    df["__graded"] = np.where(df["aggregate"] > 0, 0, 1)
    return df.sort_values(
        ["__graded", "aggregate", "total"],
        ascending=[True, True, False],
        kind="mergesort",
    ).reset_index(drop=True)


def compute_positions(records: Sequence[Dict[str, Any]]) -> Dict[Any, str]:
    """
    Class positions from storage records (lower aggregate is better,
    higher total marks breaks ties). Returns student_id -> "1st", "2nd", ...
    """
    df = _graded_frame(records)
    if df.empty:
        return {}
    return {sid: ordinal(i + 1) for i, sid in enumerate(df["student_id"].tolist())}


def class_stats(session) -> Dict[str, Any]:
    """Summary of the loaded class: average aggregate, pass rate, division counts, best student."""
    config: GradingConfiguration = session.config
    rows = []
    for s in session.students:
        marks = session.marks_for(s.id)
        if not any(v is not None for v in marks.values()):
            continue
        agg = compute_aggregate(marks, session.class_level, config)
        rows.append({
            "student_id": s.id,
            "name": s.name,
            "aggregate": agg,
            "division": compute_division(agg, config).label,
            "total": total_marks(marks),
        })

    division_counts = {d.label: 0 for d in config.divisions}
    out: Dict[str, Any] = {
        "total_students": len(session.students),
        "students_with_marks": len(rows),
        "avg_aggregate": None,
        "pass_rate": 0,
        "division_counts": division_counts,
        "best_student": None,
        "best_aggregate": None,
    }
    if not rows:
        return out

    df = pd.DataFrame(rows)
    for label, n in df["division"].value_counts().items():
        if label in division_counts:
            division_counts[label] = int(n)

    passing = sum(n for label, n in division_counts.items() if label not in config.fail_divisions)
    out["pass_rate"] = int(round(100 * passing / len(df)))

    graded = df[df["aggregate"] > 0]
    if not graded.empty:
        out["avg_aggregate"] = round(float(graded["aggregate"].mean()), 1)
        best = graded.sort_values(["aggregate", "total"], ascending=[True, False], kind="mergesort").iloc[0]
        out["best_student"] = best["name"]
        out["best_aggregate"] = int(best["aggregate"])
    return out


def subject_remark(mark: Optional[int], config: GradingConfiguration) -> str:
    if mark is None:
        return ""
    for threshold, text in config.subject_remarks:
        if mark >= threshold:
            return text
    return ""


def teacher_comment(aggregate: int, status: str, config: GradingConfiguration) -> str:
    if status in STATUS_COMMENTS:
        return STATUS_COMMENTS[status]
    if not aggregate:
        return INCOMPLETE_COMMENT
    label = compute_division(aggregate, config).label
    return dict(config.division_comments).get(label, "")


def remarks_table(records: Sequence[Dict[str, Any]], config: GradingConfiguration) -> List[Dict[str, Any]]:
    # per-student comment rows for report cards
    out = []
    for r in records:
        marks = r.get("marks") or {}
        out.append({
            "studentId": r.get("studentId"),
            "subjectRemarks": {k: subject_remark(v, config) for k, v in marks.items()},
            "comment": r.get("comment") or teacher_comment(r.get("aggregate") or 0, r.get("status", ""), config),
        })
    return out
