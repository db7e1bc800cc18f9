from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from .errors import ConfigError
from .utils import load_rules

SCORE_MIN = 0
SCORE_MAX = 100


@dataclass(frozen=True)
class GradeBoundary:
    label: str
    min_score: int
    max_score: int
    points: int

    def contains(self, mark: int) -> bool:
        return self.min_score <= mark <= self.max_score


@dataclass(frozen=True)
class DivisionBand:
    label: str
    min_aggregate: int
    max_aggregate: int

    def contains(self, aggregate: int) -> bool:
        return self.min_aggregate <= aggregate <= self.max_aggregate


@dataclass(frozen=True)
class ClassTier:
    name: str
    class_levels: Tuple[str, ...]
    subjects: Tuple[str, ...]


@dataclass(frozen=True)
class GradingConfiguration:
    """
    Immutable grading scheme:
      - grades: exhaustive, non-overlapping boundaries over [0, 100]
      - divisions: exhaustive, non-overlapping bands over every tier's
        achievable aggregate range
      - tiers: which subjects each group of class levels is graded on
    Construction validates the scheme and raises ConfigError.
    """
    grades: Tuple[GradeBoundary, ...]
    divisions: Tuple[DivisionBand, ...]
    passing_mark: int
    tiers: Tuple[ClassTier, ...]
    subject_remarks: Tuple[Tuple[int, str], ...] = ()
    division_comments: Tuple[Tuple[str, str], ...] = ()
    fail_divisions: Tuple[str, ...] = ()

    def __post_init__(self):
        self.validate()

    # ---- lookups ----
    def tier(self, class_tier: str) -> Optional[ClassTier]:
        # accepts a tier name ("upper") or a class level ("P5")
        key = str(class_tier or "").strip().lower()
        for t in self.tiers:
            if t.name.lower() == key:
                return t
        for t in self.tiers:
            if key in (c.lower() for c in t.class_levels):
                return t
        return None

    def subjects_for(self, class_tier: str) -> Tuple[str, ...]:
        t = self.tier(class_tier)
        return t.subjects if t else ()

    def all_subjects(self) -> List[str]:
        out: List[str] = []
        for t in self.tiers:
            for s in t.subjects:
                if s not in out:
                    out.append(s)
        return out

    def aggregate_range(self, subject_count: int) -> Tuple[int, int]:
        pts = [g.points for g in self.grades]
        return min(pts) * subject_count, max(pts) * subject_count

    # ---- validation ----
    def validate(self) -> None:
        if not self.grades:
            raise ConfigError("Grading scale has no grade boundaries.")
        if not self.divisions:
            raise ConfigError("Grading scale has no division bands.")

        for g in self.grades:
            if g.min_score > g.max_score:
                raise ConfigError(f"Grade {g.label}: min {g.min_score} is above max {g.max_score}.")
        _check_cover(
            [(g.min_score, g.max_score, g.label) for g in self.grades],
            SCORE_MIN, SCORE_MAX, "Grade boundaries",
        )

        for d in self.divisions:
            if d.min_aggregate > d.max_aggregate:
                raise ConfigError(f"Division {d.label}: min {d.min_aggregate} is above max {d.max_aggregate}.")
        spans = [(d.min_aggregate, d.max_aggregate, d.label) for d in self.divisions]
        _check_overlap(spans, "Division bands")
        for t in self.tiers:
            if not t.subjects:
                raise ConfigError(f"Class tier {t.name} has no required subjects.")
            lo, hi = self.aggregate_range(len(t.subjects))
            _check_cover(spans, lo, hi, f"Division bands ({t.name} tier)")

        if not (SCORE_MIN <= self.passing_mark <= SCORE_MAX):
            raise ConfigError(f"Passing mark {self.passing_mark} is outside {SCORE_MIN}..{SCORE_MAX}.")

    # ---- (de)serialization ----
    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "GradingConfiguration":
        try:
            grades = tuple(
                GradeBoundary(str(g["grade"]), int(g["minScore"]), int(g["maxScore"]), int(g["points"]))
                for g in d["grades"]
            )
            divisions = tuple(
                DivisionBand(str(x["division"]), int(x["minAggregate"]), int(x["maxAggregate"]))
                for x in d["divisions"]
            )
            tiers = tuple(
                ClassTier(str(name), tuple(t.get("classes", [])), tuple(t.get("subjects", [])))
                for name, t in (d.get("tiers") or {}).items()
            )
            remarks = tuple(
                sorted(((int(k), str(v)) for k, v in (d.get("subjectRemarks") or {}).items()), reverse=True)
            )
            comments = tuple((str(k), str(v)) for k, v in (d.get("divisionComments") or {}).items())
            return cls(
                grades=grades,
                divisions=divisions,
                passing_mark=int(d.get("passingMark", 40)),
                tiers=tiers or DEFAULT_TIERS,
                subject_remarks=remarks,
                division_comments=comments,
                fail_divisions=tuple(d.get("failDivisions", ())),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"Malformed grading configuration: {e}") from e

    def to_dict(self) -> Dict[str, Any]:
        return {
            "grades": [
                {"grade": g.label, "minScore": g.min_score, "maxScore": g.max_score, "points": g.points}
                for g in self.grades
            ],
            "divisions": [
                {"division": x.label, "minAggregate": x.min_aggregate, "maxAggregate": x.max_aggregate}
                for x in self.divisions
            ],
            "passingMark": self.passing_mark,
            "tiers": {t.name: {"classes": list(t.class_levels), "subjects": list(t.subjects)} for t in self.tiers},
            "subjectRemarks": {str(k): v for k, v in self.subject_remarks},
            "divisionComments": dict(self.division_comments),
            "failDivisions": list(self.fail_divisions),
        }


def _check_overlap(spans: Iterable[Tuple[int, int, str]], what: str) -> None:
    ordered = sorted(spans)
    for (lo1, hi1, l1), (lo2, hi2, l2) in zip(ordered, ordered[1:]):
        if lo2 <= hi1:
            raise ConfigError(f"{what} overlap: {l1} ({lo1}-{hi1}) and {l2} ({lo2}-{hi2}).")


def _check_cover(spans: Iterable[Tuple[int, int, str]], lo: int, hi: int, what: str) -> None:
    # integer domain [lo, hi] must be covered exactly once
    spans = list(spans)
    _check_overlap(spans, what)
    for v in range(lo, hi + 1):
        if not any(a <= v <= b for a, b, _ in spans):
            raise ConfigError(f"{what} leave {v} uncovered.")


DEFAULT_TIERS = (
    ClassTier("lower", ("P1", "P2", "P3"), ("english", "maths", "literacy1", "literacy2")),
    ClassTier("upper", ("P4", "P5", "P6", "P7"), ("english", "maths", "science", "sst")),
)

DEFAULT_GRADING = {
    "grades": [
        {"grade": "D1", "minScore": 90, "maxScore": 100, "points": 1},
        {"grade": "D2", "minScore": 80, "maxScore": 89, "points": 2},
        {"grade": "C3", "minScore": 70, "maxScore": 79, "points": 3},
        {"grade": "C4", "minScore": 60, "maxScore": 69, "points": 4},
        {"grade": "C5", "minScore": 55, "maxScore": 59, "points": 5},
        {"grade": "C6", "minScore": 50, "maxScore": 54, "points": 6},
        {"grade": "P7", "minScore": 45, "maxScore": 49, "points": 7},
        {"grade": "P8", "minScore": 40, "maxScore": 44, "points": 8},
        {"grade": "F9", "minScore": 0, "maxScore": 39, "points": 9},
    ],
    "divisions": [
        {"division": "I", "minAggregate": 4, "maxAggregate": 12},
        {"division": "II", "minAggregate": 13, "maxAggregate": 24},
        {"division": "III", "minAggregate": 25, "maxAggregate": 28},
        {"division": "IV", "minAggregate": 29, "maxAggregate": 32},
        {"division": "U", "minAggregate": 33, "maxAggregate": 36},
    ],
    "passingMark": 40,
    "failDivisions": ["U"],
    "tiers": {
        "lower": {"classes": ["P1", "P2", "P3"], "subjects": ["english", "maths", "literacy1", "literacy2"]},
        "upper": {"classes": ["P4", "P5", "P6", "P7"], "subjects": ["english", "maths", "science", "sst"]},
    },
    "subjectRemarks": {
        "95": "Excellent work",
        "90": "Very good work",
        "80": "Good work",
        "70": "Quite good work. Promising.",
        "60": "Work harder",
        "50": "Aim higher than this.",
        "40": "You can do better than this",
        "0": "Consult teacher.",
    },
    "divisionComments": {
        "I": "Excellent performance. Keep it up!",
        "II": "Promising results! Work harder for a better grade.",
        "III": "This is a fair attempt! Double your effort in all areas in order to achieve more.",
        "IV": "Work hard in all areas! You can make it.",
        "U": "Your score is still low! Put in more effort in order to achieve.",
    },
}

DEFAULT_SETTINGS = {
    "autosave_delay": 3.0,
    "history_limit": 50,
    "header_scan_rows": 20,
    "fuzzy_threshold": 0.5,
}


@dataclass(frozen=True)
class EngineSettings:
    autosave_delay: float = 3.0
    history_limit: int = 50
    header_scan_rows: int = 20
    fuzzy_threshold: float = 0.5


def load_grading_config(rules: Optional[Dict[str, Any]] = None) -> GradingConfiguration:
    rules = load_rules() if rules is None else rules
    return GradingConfiguration.from_dict(rules.get("grading") or DEFAULT_GRADING)


def load_settings(rules: Optional[Dict[str, Any]] = None) -> EngineSettings:
    rules = load_rules() if rules is None else rules
    s = dict(DEFAULT_SETTINGS)
    s.update(rules.get("settings") or {})
    try:
        return EngineSettings(
            autosave_delay=float(s["autosave_delay"]),
            history_limit=int(s["history_limit"]),
            header_scan_rows=int(s["header_scan_rows"]),
            fuzzy_threshold=float(s["fuzzy_threshold"]),
        )
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Malformed engine settings: {e}") from e
