"""Exceptions raised across the capture pipeline."""

from __future__ import annotations


class FringeSyncError(Exception):
    """Base class for acquisition errors."""


class DeviceConnectionError(FringeSyncError):
    """A projector or camera is unreachable. Fatal to the session."""


class UploadError(FringeSyncError):
    """The pattern table was rejected by the projector or is malformed."""


class PatternTableError(UploadError):
    """The generated images cannot be arranged into a valid pattern table."""


class StepError(FringeSyncError):
    """The projector failed to enter stepping mode or to advance one pattern."""

    def __init__(self, message: str, index: int | None = None) -> None:
        super().__init__(message)
        self.index = index


class TriggerError(FringeSyncError):
    """A camera software trigger failed for one step."""

    def __init__(self, message: str, index: int | None = None) -> None:
        super().__init__(message)
        self.index = index


class SaveError(FringeSyncError):
    """A delivered frame could not be persisted."""
