"""Camera base interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

from fringe_sync.core.models import CameraSettings, FrameInfo


FrameCallback = Callable[[Any, FrameInfo, Any], Any]

FRAME_TRIGGER_SOFTWARE = "FrameTriggerSoftware"
TRIGGER_SOFTWARE = "TriggerSoftware"


def select_trigger_command(selector: Optional[str]) -> str:
    """
    Pick the software-trigger command for the negotiated trigger selector.

    FrameStart uses FrameTriggerSoftware; FrameBurstStart and unknown
    selectors fall back to TriggerSoftware.
    """
    if selector is not None and str(selector).lower() in {"framestart", "0"}:
        return FRAME_TRIGGER_SOFTWARE
    return TRIGGER_SOFTWARE


class CameraBase(ABC):
    """
    Software-triggered camera delivering Mono8 frames through a callback.

    The callback runs on the camera's own thread as
    callback(buffer, FrameInfo, context); buffer is only valid for the
    duration of the call. Register it before start_grabbing().
    """

    @abstractmethod
    def open(self) -> None:
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    def configure(self, settings: CameraSettings) -> None:
        """Optional: apply exposure/gain/frame-rate settings."""
        return None

    @abstractmethod
    def register_frame_callback(self, callback: FrameCallback, context: Any) -> None:
        pass

    @abstractmethod
    def start_grabbing(self) -> None:
        pass

    @abstractmethod
    def stop_grabbing(self) -> None:
        pass

    @abstractmethod
    def software_trigger(self, command: str) -> bool:
        pass

    def trigger_selector(self) -> Optional[str]:
        return None

    def exposure_us(self) -> Optional[float]:
        return None

    def get_applied_controls(self) -> dict:
        """Return last applied camera controls/settings."""
        return {}
