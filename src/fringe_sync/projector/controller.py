"""Step-mode wrapper around a pattern-table projector."""

from __future__ import annotations

from fringe_sync.core.errors import StepError, UploadError
from fringe_sync.core.logging import get_logger
from fringe_sync.core.models import PatternTable
from fringe_sync.projector.base import ProjectorBase


class ProjectorStepController:
    """
    Uploads a pattern table and advances the projector one pattern at a time.

    Upload is all-or-nothing and expects a freshly (re)connected device; the
    connection lifecycle belongs to the caller. Wraparound after the last
    pattern follows the firmware and is not detected here.
    """

    def __init__(self, projector: ProjectorBase) -> None:
        self.projector = projector
        self.log = get_logger("projector")
        self._table: PatternTable | None = None
        self._stepping = False
        self._advances = 0

    @property
    def table(self) -> PatternTable | None:
        return self._table

    @property
    def advances(self) -> int:
        return self._advances

    def upload(self, table: PatternTable) -> None:
        if not table.sets or table.total_patterns <= 0:
            raise UploadError("Refusing to upload an empty pattern table")
        if self._table is not None:
            self.log.warning(
                "Pattern table already uploaded on this connection; reconnect the projector "
                "before uploading again or stale patterns may be shown"
            )
        try:
            ok = self.projector.populate_pattern_table(list(table.sets))
        except Exception as exc:
            raise UploadError(f"Pattern table upload failed: {exc}") from exc
        if not ok:
            raise UploadError("Projector rejected the pattern table")
        self._table = table
        self._advances = 0
        self.log.info(
            "Uploaded pattern table: %d sets, %d patterns",
            len(table.sets),
            table.total_patterns,
        )

    def begin_stepping(self) -> None:
        if self._table is None:
            raise UploadError("No pattern table uploaded")
        try:
            ok = self.projector.project(False)
        except Exception as exc:
            raise StepError(f"Failed to enter step mode: {exc}") from exc
        if not ok:
            raise StepError("Projector refused step mode")
        self._stepping = True

    def advance(self) -> None:
        if not self._stepping:
            raise StepError("Projector is not in step mode", index=self._advances)
        try:
            ok = self.projector.step()
        except Exception as exc:
            raise StepError(f"Step {self._advances} raised: {exc}", index=self._advances) from exc
        if not ok:
            raise StepError(f"Step {self._advances} failed", index=self._advances)
        self._advances += 1

    def stop(self) -> bool:
        self._stepping = False
        try:
            ok = bool(self.projector.stop())
        except Exception as exc:
            self.log.error("Projector stop raised: %s", exc)
            return False
        if not ok:
            self.log.error("Projector stop failed")
        return ok

    def set_led_current(self, red: float, green: float, blue: float) -> bool:
        for name, value in (("red", red), ("green", green), ("blue", blue)):
            if not 0.0 <= float(value) <= 1.0:
                raise ValueError(f"{name} LED current must be within [0, 1], got {value}")
        try:
            ok = bool(self.projector.set_led_current(float(red), float(green), float(blue)))
        except Exception as exc:
            self.log.warning("Setting LED current raised: %s", exc)
            return False
        if not ok:
            self.log.warning("Setting LED current failed; captured frames may be dark")
        return ok
