from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence
from .config import GradingConfiguration
from .extract import ImportResult
from .grading import compute_aggregate, compute_division
from .history import HISTORY_LIMIT, EditHistory, HistorySnapshot
from .schema import ABSENT, PRESENT, SICK, ScoreEntry, Selection, StudentRecord
from .store import MarksStore
from .utils import parse_mark

logger = logging.getLogger(__name__)

CLEAN = "clean"
DIRTY = "dirty"

# row statuses
EMPTY = "empty"
PARTIAL = "partial"
COMPLETE = "complete"


@dataclass(frozen=True)
class DeleteOutcome:
    deleted: int
    requested: int

    @property
    def complete(self) -> bool:
        return self.deleted == self.requested

    def summary(self) -> str:
        if self.complete:
            return f"Deleted marks for {self.deleted} student{'s' if self.deleted != 1 else ''}."
        return f"Deleted marks for {self.deleted} of {self.requested} students."


class MarksSession:
    """
    Live score grid for one class/term/assessment.

    Every edit goes through `_dispatch`, which refuses locked rows, records
    the pre-edit state in the history, applies the edit, records the
    post-edit state and flags the session dirty. Undo/redo restore snapshots
    directly and never create history entries themselves.
    """

    def __init__(
        self,
        config: GradingConfiguration,
        class_level: str,
        subjects: Optional[Sequence[str]] = None,
        history_limit: int = HISTORY_LIMIT,
    ):
        self.config = config
        self.class_level = class_level
        self._fixed_subjects = tuple(subjects) if subjects else None
        self.selection: Optional[Selection] = None
        self.students: List[StudentRecord] = []

        self._marks: Dict[Any, Dict[str, Optional[int]]] = {}
        self._comments: Dict[Any, str] = {}
        self._locked: set = set()
        self._absent: set = set()
        self._sick: set = set()

        self.history = EditHistory(self._capture, self._restore, limit=history_limit)
        self.history.reset()
        self.state = CLEAN
        self.revision = 0
        self._listeners: List[Callable[["MarksSession"], None]] = []
        self._leave_listeners: List[Callable[["MarksSession"], None]] = []
        self._load_seq = 0

    # ---- surface ----
    @property
    def subjects(self) -> tuple:
        return self._fixed_subjects or self.config.subjects_for(self.class_level)

    @property
    def dirty(self) -> bool:
        return self.state == DIRTY

    @property
    def can_undo(self) -> bool:
        return self.history.can_undo

    @property
    def can_redo(self) -> bool:
        return self.history.can_redo

    @property
    def locked(self) -> frozenset:
        return frozenset(self._locked)

    def marks_for(self, student_id: Any) -> Dict[str, Optional[int]]:
        return dict(self._marks.get(student_id, {}))

    def comment_for(self, student_id: Any) -> str:
        return self._comments.get(student_id, "")

    def status_for(self, student_id: Any) -> str:
        if student_id in self._absent:
            return ABSENT
        if student_id in self._sick:
            return SICK
        return PRESENT

    def subscribe(self, listener: Callable[["MarksSession"], None]) -> None:
        # called after every change that leaves the session dirty
        self._listeners.append(listener)

    def on_leave(self, listener: Callable[["MarksSession"], None]) -> None:
        # called when the loaded sheet is about to be replaced
        self._leave_listeners.append(listener)

    def _leave(self) -> None:
        for listener in self._leave_listeners:
            listener(self)

    def _capture(self) -> HistorySnapshot:
        return HistorySnapshot(
            marks=self._marks,
            comments=self._comments,
            locked=self._locked,
            absent=self._absent,
            sick=self._sick,
        )

    def _restore(self, snap: HistorySnapshot) -> None:
        self._marks = snap.marks
        self._comments = snap.comments
        self._locked = snap.locked
        self._absent = snap.absent
        self._sick = snap.sick

    # ---- loading ----
    def reset(
        self,
        students: Sequence[StudentRecord],
        records: Iterable[Dict[str, Any]] = (),
        selection: Optional[Selection] = None,
    ) -> None:
        """Replaces the whole surface from storage records and starts a clean history."""
        self._leave()
        ids = {s.id for s in students}
        marks: Dict[Any, Dict[str, Optional[int]]] = {}
        comments: Dict[Any, str] = {}
        absent, sick = set(), set()
        for r in records:
            sid = r.get("studentId")
            if sid not in ids:
                continue
            marks[sid] = {k: parse_mark(v) for k, v in (r.get("marks") or {}).items()}
            if r.get("comment"):
                comments[sid] = str(r["comment"])
            if r.get("status") == ABSENT:
                absent.add(sid)
            elif r.get("status") == SICK:
                sick.add(sid)

        self.students = list(students)
        self.selection = selection
        self._marks, self._comments = marks, comments
        self._locked, self._absent, self._sick = set(), absent, sick
        self.history.reset()
        self.state = CLEAN

    async def load(self, store: MarksStore, selection: Selection) -> bool:
        """
        Fetches roster, configuration and records for `selection`.
        A newer load supersedes one still in flight; the fetched data either
        replaces the session entirely or is dropped. Returns False if superseded.
        """
        self._leave()
        self._load_seq += 1
        token = self._load_seq

        roster = await store.fetch_roster(selection.class_level, selection.stream)
        config = await store.fetch_grading_config()
        records = await store.fetch_marks(selection)

        if token != self._load_seq:
            logger.debug("load for %s superseded", selection)
            return False

        if config is not None:
            self.config = config
        self.class_level = selection.class_level
        self.reset(roster, records, selection)
        logger.info("loaded %d students, %d records for %s", len(roster), len(records), selection)
        return True

    # ---- mutation chokepoint ----
    def _dispatch(self, action: str, apply: Callable[[], None], student_id: Any = None) -> bool:
        if student_id is not None and student_id in self._locked:
            logger.debug("%s refused: row %s is locked", action, student_id)
            return False
        self.history.checkpoint()
        apply()
        if not self.history.checkpoint():
            return False
        self._changed()
        return True

    def _changed(self) -> None:
        self.state = DIRTY
        self.revision += 1
        for listener in self._listeners:
            listener(self)

    def mark_clean(self, revision: int) -> bool:
        # only if nothing changed since `revision` was persisted
        if revision != self.revision:
            return False
        self.state = CLEAN
        return True

    # ---- mutations ----
    def set_mark(self, student_id: Any, subject: str, value: Any) -> bool:
        if value is None or (isinstance(value, str) and not value.strip()):
            mark = None
        else:
            mark = parse_mark(value)
            if mark is None:
                return False

        def apply():
            self._marks.setdefault(student_id, {})[subject] = mark

        return self._dispatch("set_mark", apply, student_id)

    def set_comment(self, student_id: Any, comment: str) -> bool:
        def apply():
            self._comments[student_id] = comment

        return self._dispatch("set_comment", apply, student_id)

    def toggle_lock(self, student_id: Any) -> bool:
        def apply():
            if student_id in self._locked:
                self._locked.discard(student_id)
            else:
                self._locked.add(student_id)

        return self._dispatch("toggle_lock", apply)

    def _toggle_status(self, student_id: Any, target: set, other: set) -> None:
        if student_id in target:
            target.discard(student_id)
            return
        target.add(student_id)
        other.discard(student_id)
        self._marks[student_id] = {}

    def toggle_absent(self, student_id: Any) -> bool:
        return self._dispatch(
            "toggle_absent", lambda: self._toggle_status(student_id, self._absent, self._sick), student_id
        )

    def toggle_sick(self, student_id: Any) -> bool:
        return self._dispatch(
            "toggle_sick", lambda: self._toggle_status(student_id, self._sick, self._absent), student_id
        )

    def clear_row(self, student_id: Any) -> bool:
        def apply():
            self._marks[student_id] = {}

        return self._dispatch("clear_row", apply, student_id)

    def quick_fill(self, subject: str, value: Any) -> bool:
        """Sets one subject for every row that is not locked, absent or sick."""
        mark = parse_mark(value)
        if mark is None:
            return False

        def apply():
            for s in self.students:
                if s.id in self._locked or s.id in self._absent or s.id in self._sick:
                    continue
                self._marks.setdefault(s.id, {})[subject] = mark

        return self._dispatch("quick_fill", apply)

    def _merge_marks(self, student_id: Any, marks: Dict[str, Any]) -> None:
        values = {k: parse_mark(v) for k, v in marks.items() if k in self.subjects}
        values = {k: v for k, v in values.items() if v is not None}
        if not values:
            return
        # a row with marks is no longer absent/sick
        self._absent.discard(student_id)
        self._sick.discard(student_id)
        self._marks.setdefault(student_id, {}).update(values)

    def apply_import(self, result: ImportResult) -> bool:
        """Merges imported entries into unlocked rows of this roster."""
        ids = {s.id for s in self.students}

        def apply():
            for e in result.entries:
                if e.student_id in ids and e.student_id not in self._locked:
                    self._merge_marks(e.student_id, e.marks)

        return self._dispatch("apply_import", apply)

    def copy_from(self, records: Iterable[Dict[str, Any]]) -> bool:
        """Copies marks from another assessment's records into unlocked present rows."""
        ids = {s.id for s in self.students}
        records = list(records)

        def apply():
            for r in records:
                sid = r.get("studentId")
                if sid not in ids or sid in self._locked or sid in self._absent or sid in self._sick:
                    continue
                self._merge_marks(sid, r.get("marks") or {})

        return self._dispatch("copy_from", apply)

    async def copy_from_assessment(self, store: MarksStore, source: Selection) -> bool:
        return self.copy_from(await store.fetch_marks(source))

    def undo(self) -> bool:
        if not self.history.undo():
            return False
        self._changed()
        return True

    def redo(self) -> bool:
        if not self.history.redo():
            return False
        self._changed()
        return True

    # ---- read side ----
    def row_status(self, student_id: Any) -> str:
        if student_id in self._absent:
            return ABSENT
        if student_id in self._sick:
            return SICK
        marks = self._marks.get(student_id) or {}
        if not any(v is not None for v in marks.values()):
            return EMPTY
        if all(marks.get(sub) is not None for sub in self.subjects):
            return COMPLETE
        return PARTIAL

    def progress(self) -> Dict[str, int]:
        counts = {EMPTY: 0, PARTIAL: 0, COMPLETE: 0, ABSENT: 0, SICK: 0}
        for s in self.students:
            counts[self.row_status(s.id)] += 1
        total = len(self.students)
        counts["total"] = total
        counts["with_marks"] = counts[PARTIAL] + counts[COMPLETE]
        counts["percentage"] = round(100 * counts[COMPLETE] / total) if total else 0
        return counts

    def aggregate_for(self, student_id: Any) -> int:
        return compute_aggregate(self._marks.get(student_id) or {}, self.class_level, self.config)

    def entries(self) -> List[ScoreEntry]:
        return [
            ScoreEntry(
                student_id=s.id,
                marks={sub: (self._marks.get(s.id) or {}).get(sub) for sub in self.subjects},
                status=self.status_for(s.id),
                comment=self._comments.get(s.id, ""),
                locked=s.id in self._locked,
            )
            for s in self.students
        ]

    def build_records(self) -> List[Dict[str, Any]]:
        """Storage records for every student, with derived aggregate and division."""
        sel = self.selection
        out = []
        for e in self.entries():
            aggregate = compute_aggregate(e.marks, self.class_level, self.config)
            out.append({
                "studentId": e.student_id,
                "term": sel.term if sel else None,
                "year": sel.year if sel else None,
                "type": sel.assessment_type if sel else None,
                "marks": {k: v for k, v in e.marks.items() if v is not None},
                "aggregate": aggregate,
                "division": compute_division(aggregate, self.config).label,
                "comment": e.comment,
                "status": e.status,
            })
        return out

    async def delete_marks(self, store: MarksStore, student_ids: Iterable[Any]) -> DeleteOutcome:
        """Bulk-deletes stored records; reports the store's own counts."""
        if self.selection is None:
            raise ValueError("no score sheet loaded")
        res = await store.delete_marks(list(student_ids), self.selection)
        outcome = DeleteOutcome(deleted=int(res.get("deleted", 0)), requested=int(res.get("requested", 0)))
        if not outcome.complete:
            logger.warning("bulk delete: %d of %d records deleted", outcome.deleted, outcome.requested)
        return outcome
