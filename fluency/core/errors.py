"""
Exceptions raised by the fluency trainer.
"""

from __future__ import annotations


class FluencyError(Exception):
    """Base class for trainer errors."""


class InvalidSelectionError(FluencyError, ValueError):
    """Raised for an unknown mode, factor group, table, or student id."""


class SessionStateError(FluencyError, RuntimeError):
    """Raised when a session operation is used outside a running session."""


class ProgressStoreError(FluencyError):
    """Raised when a progress backend fails to read or write a record."""

    def __init__(self, message: str, *, student_id: str | None = None):
        super().__init__(message)
        self.student_id = student_id
