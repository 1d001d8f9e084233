"""Projector base interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from fringe_sync.core.models import PatternSet


class ProjectorBase(ABC):
    """
    Pattern projector with an onboard pattern table.

    populate_pattern_table() must be called on a freshly connected device;
    re-uploading without a disconnect/connect cycle may leave stale patterns
    in the firmware.
    """

    @abstractmethod
    def connect(self) -> bool:
        pass

    @abstractmethod
    def disconnect(self) -> bool:
        pass

    def is_connected(self) -> bool:
        return True

    @abstractmethod
    def populate_pattern_table(self, pattern_sets: Sequence[PatternSet]) -> bool:
        pass

    @abstractmethod
    def project(self, continuous: bool) -> bool:
        """Enter display mode. continuous=False is required before step()."""
        pass

    @abstractmethod
    def step(self) -> bool:
        """Advance exactly one pattern."""
        pass

    @abstractmethod
    def stop(self) -> bool:
        pass

    def set_led_current(self, red: float, green: float, blue: float) -> bool:
        """Optional: LED drive current as a fraction of maximum."""
        return False

    def get_led_current(self) -> tuple[float, float, float] | None:
        return None
