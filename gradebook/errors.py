from __future__ import annotations


class GradebookError(Exception):
    """Base class for errors raised by the gradebook package."""


class InputError(GradebookError):
    """The uploaded frame is empty or malformed; the whole import is aborted."""


class EmptyInput(InputError):
    def __init__(self, rows: int = 0):
        self.rows = rows
        super().__init__(f"The file needs a header row and at least one data row (found {rows} row(s)).")


class HeaderNotFound(GradebookError):
    """No usable column mapping; carries the locator's failure reason."""

    def __init__(self, reason: str, message: str):
        self.reason = reason
        super().__init__(message)


class ConfigError(GradebookError):
    """Grading configuration is not a total, non-overlapping scheme."""


class PersistenceFailure(GradebookError):
    """Transport-level failure of the storage collaborator."""


class PersistencePartialFailure(PersistenceFailure):
    def __init__(self, saved: int, requested: int):
        self.saved = saved
        self.requested = requested
        super().__init__(f"Saved {saved} of {requested} records.")
