"""In-memory projector that records commands and exposes the shown pattern."""

from __future__ import annotations

import threading
from typing import Optional, Sequence

import numpy as np

from fringe_sync.core.models import PatternSet
from fringe_sync.projector.base import ProjectorBase


class MockProjector(ProjectorBase):
    """
    Mock projector with a flattened pattern table.

    step() moves to the next pattern in upload order and wraps after the last
    one. The per-set counter resets at every pattern-set boundary, like the
    firmware counter the coordinator must not rely on.
    """

    def __init__(
        self,
        fail_step_at: Optional[int] = None,
        fail_upload: bool = False,
        fail_project: bool = False,
    ) -> None:
        self.fail_step_at = fail_step_at
        self.fail_upload = fail_upload
        self.fail_project = fail_project
        self.calls: list[str] = []
        self.led_current: tuple[float, float, float] = (0.0, 0.0, 0.0)
        self._lock = threading.Lock()
        self._connected = False
        self._sets: list[PatternSet] = []
        self._images: list[np.ndarray] = []
        self._position = -1
        self._step_calls = 0
        self._mode: Optional[str] = None

    def connect(self) -> bool:
        self.calls.append("connect")
        self._connected = True
        return True

    def disconnect(self) -> bool:
        self.calls.append("disconnect")
        self._connected = False
        return True

    def is_connected(self) -> bool:
        return self._connected

    def populate_pattern_table(self, pattern_sets: Sequence[PatternSet]) -> bool:
        self.calls.append("populate")
        if self.fail_upload:
            return False
        with self._lock:
            self._sets = list(pattern_sets)
            self._images = [img.pixels for s in self._sets for img in s.images]
            self._position = -1
        return True

    def project(self, continuous: bool) -> bool:
        self.calls.append(f"project({continuous})")
        if self.fail_project or not self._images:
            return False
        self._mode = "continuous" if continuous else "step"
        return True

    def step(self) -> bool:
        self.calls.append("step")
        index = self._step_calls
        self._step_calls += 1
        if self.fail_step_at is not None and index == self.fail_step_at:
            return False
        if self._mode != "step":
            return False
        with self._lock:
            self._position = (self._position + 1) % len(self._images)
        return True

    def stop(self) -> bool:
        self.calls.append("stop")
        self._mode = None
        return True

    def set_led_current(self, red: float, green: float, blue: float) -> bool:
        self.calls.append("set_led_current")
        self.led_current = (red, green, blue)
        return True

    def get_led_current(self) -> tuple[float, float, float] | None:
        return self.led_current

    @property
    def position(self) -> int:
        return self._position

    def displayed_in_set(self) -> int:
        """1-based count within the current pattern set, as firmware reports it."""
        with self._lock:
            pos = self._position
            for s in self._sets:
                if pos < len(s.images):
                    return pos + 1
                pos -= len(s.images)
        return 0

    def current_image(self) -> Optional[np.ndarray]:
        with self._lock:
            if self._position < 0 or not self._images:
                return None
            return self._images[self._position]
