from pathlib import Path
from typing import Optional


class WorkerError(Exception):
    """Base exception for all background worker errors."""


class InvalidStateError(WorkerError, RuntimeError):
    """Raised when a worker operation is invoked out of sequence."""


class NotStagedError(InvalidStateError):
    """Raised when a worker is launched before it has been copied to a run directory."""


class AlreadyStagedError(InvalidStateError):
    """Raised when a worker is copied again without an intervening teardown."""


class DuplicateUnitError(WorkerError, ValueError):
    """Raised when a site would hold two workers with the same logical name."""


class TeardownError(WorkerError):
    """Raised when a run directory could not be removed within the retry ceiling."""
    def __init__(self, message: str, path: Optional[Path] = None, attempts: int = 0):
        super().__init__(message)
        self.path = path
        self.attempts = attempts
