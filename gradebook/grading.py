"""
Grade / aggregate / division computation.

Pure functions over an immutable GradingConfiguration; nothing here raises.
Missing or out-of-range marks degrade to the NO_GRADE / UNGRADED sentinels.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional
from .config import DivisionBand, GradeBoundary, GradingConfiguration, SCORE_MAX, SCORE_MIN

NO_GRADE = GradeBoundary(label="-", min_score=0, max_score=0, points=0)
UNGRADED = DivisionBand(label="-", min_aggregate=0, max_aggregate=0)


def _as_mark(mark: Any) -> Optional[int]:
    if mark is None or isinstance(mark, bool):
        return None
    try:
        m = int(mark)
    except (TypeError, ValueError, OverflowError):
        return None
    if m != mark or m < SCORE_MIN or m > SCORE_MAX:
        return None
    return m


def compute_grade(mark: Any, config: GradingConfiguration) -> GradeBoundary:
    m = _as_mark(mark)
    if m is None:
        return NO_GRADE
    for g in config.grades:
        if g.contains(m):
            return g
    return NO_GRADE


def compute_aggregate(marks: Mapping[str, Any], class_tier: str, config: GradingConfiguration) -> int:
    """
    Sum of grade points over the tier's required subjects (from the
    configuration, not from whatever keys are in `marks`).
    0 means "no aggregate": unknown tier, or any required subject ungraded.
    """
    subjects = config.subjects_for(class_tier)
    if not subjects:
        return 0
    total = 0
    for sub in subjects:
        g = compute_grade(marks.get(sub), config)
        if g is NO_GRADE:
            return 0
        total += g.points
    return total


def compute_division(aggregate: Any, config: GradingConfiguration) -> DivisionBand:
    if isinstance(aggregate, bool):
        return UNGRADED
    try:
        a = int(aggregate)
    except (TypeError, ValueError, OverflowError):
        return UNGRADED
    if a == 0:
        return UNGRADED
    for d in config.divisions:
        if d.contains(a):
            return d
    return UNGRADED


def is_pass(mark: Any, config: GradingConfiguration) -> bool:
    m = _as_mark(mark)
    return m is not None and m >= config.passing_mark


def total_marks(marks: Mapping[str, Any]) -> int:
    return sum(m for m in (_as_mark(v) for v in marks.values()) if m is not None)


@dataclass(frozen=True)
class GradeSummary:
    grades: Dict[str, GradeBoundary] = field(default_factory=dict)
    aggregate: int = 0
    division: DivisionBand = UNGRADED
    total: int = 0

    @property
    def complete(self) -> bool:
        return self.aggregate > 0


def grade_marks(marks: Mapping[str, Any], class_tier: str, config: GradingConfiguration) -> GradeSummary:
    subjects = config.subjects_for(class_tier)
    aggregate = compute_aggregate(marks, class_tier, config)
    return GradeSummary(
        grades={sub: compute_grade(marks.get(sub), config) for sub in subjects},
        aggregate=aggregate,
        division=compute_division(aggregate, config),
        total=total_marks({k: marks.get(k) for k in subjects}),
    )
