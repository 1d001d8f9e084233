"""Mock camera delivering frames from its own thread."""

from __future__ import annotations

import queue
import threading
from typing import Any, Callable, Iterable, Optional

import numpy as np

from fringe_sync.camera.base import (
    CameraBase,
    FrameCallback,
    FRAME_TRIGGER_SOFTWARE,
    TRIGGER_SOFTWARE,
)
from fringe_sync.core.models import CameraSettings, FrameInfo


FrameSource = Callable[[], Optional[np.ndarray]]


class MockCamera(CameraBase):
    """
    Mock camera that answers each software trigger with one frame.

    Frames come from frame_source (e.g. MockProjector.current_image) or are
    uniform gray. The delivery buffer is reused and overwritten after every
    callback, like a vendor SDK's transient buffer.
    """

    def __init__(
        self,
        width: int = 640,
        height: int = 480,
        frame_source: FrameSource | None = None,
        fail_triggers: Iterable[int] = (),
        extra_frames: int = 0,
        selector: str | None = "FrameStart",
    ) -> None:
        self.width = int(width)
        self.height = int(height)
        self.frame_source = frame_source
        self.fail_triggers = set(fail_triggers)
        self.extra_frames = int(extra_frames)
        self.selector = selector
        self.commands: list[str] = []
        self._settings = CameraSettings()
        self._callback: FrameCallback | None = None
        self._context: Any = None
        self._queue: "queue.Queue[np.ndarray | None]" = queue.Queue()
        self._worker: threading.Thread | None = None
        self._opened = False
        self._grabbing = False
        self._trigger_count = 0
        self._buffer = bytearray(self.width * self.height)
        self._delivered = 0

    def open(self) -> None:
        self._opened = True

    def close(self) -> None:
        if self._grabbing:
            self.stop_grabbing()
        self._opened = False

    def configure(self, settings: CameraSettings) -> None:
        self._settings = settings

    def register_frame_callback(self, callback: FrameCallback, context: Any) -> None:
        if self._grabbing:
            raise RuntimeError("Register the frame callback before start_grabbing()")
        self._callback = callback
        self._context = context

    def start_grabbing(self) -> None:
        if not self._opened:
            raise RuntimeError("MockCamera not opened")
        if self._grabbing:
            return
        self._grabbing = True
        self._worker = threading.Thread(target=self._deliver_loop, name="mock-camera", daemon=True)
        self._worker.start()

    def stop_grabbing(self) -> None:
        if not self._grabbing:
            return
        for _ in range(self.extra_frames):
            self._queue.put(self._next_frame())
        self._queue.put(None)
        if self._worker is not None:
            self._worker.join(timeout=5.0)
        self._worker = None
        self._grabbing = False

    def software_trigger(self, command: str) -> bool:
        self.commands.append(command)
        index = self._trigger_count
        self._trigger_count += 1
        if not self._grabbing or command not in (FRAME_TRIGGER_SOFTWARE, TRIGGER_SOFTWARE):
            return False
        if index in self.fail_triggers:
            return False
        self._queue.put(self._next_frame())
        return True

    def trigger_selector(self) -> str | None:
        return self.selector

    def exposure_us(self) -> float | None:
        return self._settings.exposure_us

    def get_applied_controls(self) -> dict:
        return self._settings.to_dict()

    @property
    def delivered(self) -> int:
        return self._delivered

    def _next_frame(self) -> np.ndarray:
        frame = self.frame_source() if self.frame_source is not None else None
        if frame is None:
            return np.full((self.height, self.width), 128, dtype=np.uint8)
        frame = np.asarray(frame, dtype=np.uint8)
        if frame.shape != (self.height, self.width):
            raise ValueError(f"Frame source returned {frame.shape}, camera is {(self.height, self.width)}")
        return frame.copy()

    def _deliver_loop(self) -> None:
        while True:
            frame = self._queue.get()
            if frame is None:
                break
            self._buffer[:] = frame.tobytes()
            info = FrameInfo(width=self.width, height=self.height, frame_number=self._delivered)
            self._delivered += 1
            if self._callback is not None:
                self._callback(memoryview(self._buffer), info, self._context)
            # Buffer is recycled once the callback returns.
            self._buffer[:] = bytes(len(self._buffer))
