from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional

NOT_FOUND = -1

PRESENT = "present"
ABSENT = "absent"
SICK = "sick"
STATUSES = (PRESENT, ABSENT, SICK)

Marks = Dict[str, Optional[int]]


@dataclass(frozen=True)
class ColumnMapping:
    """
    Semantic field -> column index for one located header row.
    Missing fields are NOT_FOUND.
    """
    name: int = NOT_FOUND
    index_number: int = NOT_FOUND
    subjects: Mapping[str, int] = field(default_factory=dict)

    @property
    def has_index(self) -> bool:
        return self.index_number != NOT_FOUND

    def subject_columns(self) -> List[int]:
        return [c for c in self.subjects.values() if c != NOT_FOUND]

    def subjects_for(self, codes: Iterable[str]) -> "ColumnMapping":
        # narrow to a class tier's required subjects
        codes = list(codes)
        return ColumnMapping(
            name=self.name,
            index_number=self.index_number,
            subjects={k: v for k, v in self.subjects.items() if k in codes},
        )


@dataclass(frozen=True)
class StudentRecord:
    id: Any
    name: str
    index_number: str = ""
    class_level: str = ""
    stream: str = ""

    @classmethod
    def from_dict(cls, d: Mapping[str, Any]) -> "StudentRecord":
        return cls(
            id=d.get("id"),
            name=str(d.get("name", "") or ""),
            index_number=str(d.get("indexNumber", d.get("index_number", "")) or ""),
            class_level=str(d.get("classLevel", d.get("class_level", "")) or ""),
            stream=str(d.get("stream", "") or ""),
        )


@dataclass(frozen=True)
class Selection:
    """Which score sheet is being edited: class/stream, term, year, assessment."""
    class_level: str
    term: int
    year: int
    assessment_type: str
    stream: str = ""

    def record_key(self, student_id: Any) -> tuple:
        return (student_id, self.term, self.year, self.assessment_type)


@dataclass
class ScoreEntry:
    student_id: Any
    marks: Marks = field(default_factory=dict)
    status: str = PRESENT
    comment: str = ""
    locked: bool = False

    @property
    def resolved(self) -> bool:
        return self.student_id is not None

    def has_marks(self) -> bool:
        return any(v is not None for v in self.marks.values())


@dataclass
class PendingStudent:
    """Unresolved import row awaiting manual confirmation as a new student."""
    name: str
    marks: Marks
    row_index: int
    index_number: str = ""
    suggestions: List[Dict[str, Any]] = field(default_factory=list)
