from __future__ import annotations
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional
from .config import load_settings
from .errors import PersistenceFailure, PersistencePartialFailure
from .session import MarksSession
from .store import MarksStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaveOutcome:
    saved: int
    requested: int
    error: Optional[PersistenceFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def summary(self) -> str:
        if self.ok:
            return "All marks saved successfully!"
        if isinstance(self.error, PersistencePartialFailure):
            return f"Saved marks for {self.saved} of {self.requested} students."
        return "Error saving marks."


class AutosaveScheduler:
    """
    Debounced persistence for a MarksSession.

    Each change restarts a `delay`-second timer, so a burst of edits is
    written once with its final state. A failed write leaves the session
    dirty and is not retried until the next edit or an explicit flush().
    Must be used from inside a running event loop.
    """

    def __init__(self, session: MarksSession, store: MarksStore, delay: Optional[float] = None):
        self.session = session
        self.store = store
        self.delay = load_settings().autosave_delay if delay is None else delay
        self.last_outcome: Optional[SaveOutcome] = None
        self._timer: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._scheduled_for = None
        session.subscribe(self._on_change)
        session.on_leave(self._on_leave)

    @property
    def pending(self) -> bool:
        return self._timer is not None

    def _on_change(self, session: MarksSession) -> None:
        self.notify()

    def _on_leave(self, session: MarksSession) -> None:
        # switching sheets never commits the old one
        if self._timer is not None:
            logger.debug("pending autosave dropped: sheet replaced")
        self.cancel()

    def notify(self) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("no running event loop; change left for an explicit flush")
            return
        self.cancel()
        self._scheduled_for = self.session.selection
        self._timer = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        # drops a pending timer without writing anything
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _fire(self) -> None:
        self._timer = None
        if not self.session.dirty or self.session.selection != self._scheduled_for:
            logger.debug("autosave skipped: nothing to save for the current sheet")
            return
        self._task = asyncio.ensure_future(self._commit())
        self._task.add_done_callback(self._on_commit_done)

    def _on_commit_done(self, task: asyncio.Task) -> None:
        # timer commits have no awaiting caller; surface unexpected store errors here
        if task.cancelled() or task.exception() is None:
            return
        err = task.exception()
        logger.error("autosave failed: %r", err, exc_info=err)
        self.last_outcome = SaveOutcome(
            saved=0,
            requested=len(self.session.students),
            error=PersistenceFailure(str(err) or type(err).__name__),
        )

    async def _commit(self) -> SaveOutcome:
        revision = self.session.revision
        records = self.session.build_records()
        requested = len(records)
        try:
            saved = await self.store.upsert_marks(records)
        except PersistenceFailure as e:
            logger.error("saving marks failed: %s", e)
            outcome = SaveOutcome(saved=0, requested=requested, error=e)
        else:
            if saved < requested:
                err = PersistencePartialFailure(saved, requested)
                logger.warning("saving marks: %s", err)
                outcome = SaveOutcome(saved=saved, requested=requested, error=err)
            else:
                self.session.mark_clean(revision)
                outcome = SaveOutcome(saved=saved, requested=requested)
        self.last_outcome = outcome
        return outcome

    async def flush(self) -> SaveOutcome:
        """Manual save: cancels the timer and writes the current state now."""
        self.cancel()
        if self._task is not None and not self._task.done():
            await self._task
        return await self._commit()
