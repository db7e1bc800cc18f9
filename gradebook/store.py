"""
Storage collaborator port.

The engine never talks to a database directly: rosters, the grading
configuration and score records come through a MarksStore. Bulk writes are
not assumed atomic, so upsert returns how many records were written and
delete returns {"deleted", "requested"}.
"""
from __future__ import annotations

import asyncio
import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .config import GradingConfiguration
from .errors import PersistenceFailure
from .schema import Selection, StudentRecord


class MarksStore(ABC):
    """Async storage port for rosters, grading settings and score records."""

    @abstractmethod
    async def fetch_roster(self, class_level: str, stream: str = "") -> List[StudentRecord]:
        ...

    @abstractmethod
    async def fetch_grading_config(self) -> Optional[GradingConfiguration]:
        """None means "use the engine's default configuration"."""
        ...

    @abstractmethod
    async def fetch_marks(self, selection: Selection) -> List[Dict[str, Any]]:
        """Existing records for the selection's term/year/assessment."""
        ...

    @abstractmethod
    async def upsert_marks(self, records: Sequence[Dict[str, Any]]) -> int:
        """Writes records; returns how many succeeded. Raises PersistenceFailure on transport errors."""
        ...

    @abstractmethod
    async def delete_marks(self, student_ids: Iterable[Any], selection: Selection) -> Dict[str, int]:
        """Deletes records; returns {"deleted": n, "requested": m}."""
        ...


class InMemoryMarksStore(MarksStore):
    """
    Dict-backed store for tests and local use.
    `fail_next` raises PersistenceFailure on the next write, `max_success`
    caps how many records a bulk call reports as written, `delay` simulates
    latency on every call.
    """

    def __init__(
        self,
        students: Sequence[StudentRecord] = (),
        config: Optional[GradingConfiguration] = None,
        delay: float = 0.0,
    ):
        self.students = list(students)
        self.config = config
        self.delay = delay
        self.records: Dict[tuple, Dict[str, Any]] = {}
        self.upsert_calls: List[List[Dict[str, Any]]] = []
        self.fail_next = False
        self.max_success: Optional[int] = None

    async def _latency(self) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)

    @staticmethod
    def _key(r: Dict[str, Any]) -> tuple:
        return (r["studentId"], r["term"], r["year"], r["type"])

    async def fetch_roster(self, class_level: str, stream: str = "") -> List[StudentRecord]:
        await self._latency()
        return [
            s for s in self.students
            if s.class_level == class_level and (not stream or s.stream == stream)
        ]

    async def fetch_grading_config(self) -> Optional[GradingConfiguration]:
        await self._latency()
        return self.config

    async def fetch_marks(self, selection: Selection) -> List[Dict[str, Any]]:
        await self._latency()
        return [
            copy.deepcopy(r) for k, r in self.records.items()
            if k[1:] == (selection.term, selection.year, selection.assessment_type)
        ]

    async def upsert_marks(self, records: Sequence[Dict[str, Any]]) -> int:
        await self._latency()
        batch = [copy.deepcopy(r) for r in records]
        self.upsert_calls.append(batch)
        if self.fail_next:
            self.fail_next = False
            raise PersistenceFailure("store unavailable")
        limit = len(batch) if self.max_success is None else min(self.max_success, len(batch))
        for r in batch[:limit]:
            self.records[self._key(r)] = r
        return limit

    async def delete_marks(self, student_ids: Iterable[Any], selection: Selection) -> Dict[str, int]:
        await self._latency()
        ids = list(student_ids)
        deleted = 0
        for sid in ids:
            if self.records.pop(selection.record_key(sid), None) is not None:
                deleted += 1
        return {"deleted": deleted, "requested": len(ids)}
