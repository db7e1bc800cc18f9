from __future__ import annotations
import copy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set

HISTORY_LIMIT = 50


@dataclass
class HistorySnapshot:
    """Full copy of the mutable edit surface."""
    marks: Dict[Any, Dict[str, Optional[int]]] = field(default_factory=dict)
    comments: Dict[Any, str] = field(default_factory=dict)
    locked: Set[Any] = field(default_factory=set)
    absent: Set[Any] = field(default_factory=set)
    sick: Set[Any] = field(default_factory=set)

    def copy(self) -> "HistorySnapshot":
        return copy.deepcopy(self)


class EditHistory:
    """
    Bounded undo/redo over snapshots of the edit surface.

    `capture()` returns the live state, `restore(snapshot)` writes one back.
    The pointer always indexes the snapshot matching the live state after an
    undo/redo; at most `limit` snapshots are kept, oldest dropped first.
    """

    def __init__(
        self,
        capture: Callable[[], HistorySnapshot],
        restore: Callable[[HistorySnapshot], None],
        limit: int = HISTORY_LIMIT,
    ):
        if limit < 1:
            raise ValueError("history limit must be >= 1")
        self._capture = capture
        self._restore = restore
        self.limit = limit
        self._snapshots: List[HistorySnapshot] = []
        self._pointer = -1

    def __len__(self) -> int:
        return len(self._snapshots)

    @property
    def pointer(self) -> int:
        return self._pointer

    @property
    def can_undo(self) -> bool:
        return self._pointer > 0

    @property
    def can_redo(self) -> bool:
        return 0 <= self._pointer < len(self._snapshots) - 1

    def reset(self) -> None:
        # fresh history whose only entry is the current state
        self._snapshots = [self._capture().copy()]
        self._pointer = 0

    def save_snapshot(self) -> None:
        snap = self._capture().copy()
        del self._snapshots[self._pointer + 1:]
        self._snapshots.append(snap)
        overflow = len(self._snapshots) - self.limit
        if overflow > 0:
            del self._snapshots[:overflow]
        self._pointer = len(self._snapshots) - 1

    def checkpoint(self) -> bool:
        # save only if the live state moved away from the current entry
        if self._pointer >= 0 and self._snapshots[self._pointer] == self._capture():
            return False
        self.save_snapshot()
        return True

    def undo(self) -> bool:
        if self._pointer <= 0:
            return False
        self._pointer -= 1
        self._restore(self._snapshots[self._pointer].copy())
        return True

    def redo(self) -> bool:
        if self._pointer >= len(self._snapshots) - 1:
            return False
        self._pointer += 1
        self._restore(self._snapshots[self._pointer].copy())
        return True
