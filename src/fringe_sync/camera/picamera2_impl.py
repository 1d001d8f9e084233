"""Picamera2 implementation."""

from __future__ import annotations

import queue
import threading
import time
from typing import Any, Optional

import numpy as np

from fringe_sync.camera.base import CameraBase, FrameCallback
from fringe_sync.core.errors import DeviceConnectionError
from fringe_sync.core.logging import get_logger
from fringe_sync.core.models import CameraSettings, FrameInfo


class Picamera2Camera(CameraBase):
    """
    Camera wrapper using Picamera2/libcamera.

    libcamera free-runs, so a software trigger is emulated: each trigger
    queues one still grab that a delivery thread converts to Mono8 and hands
    to the registered callback.
    """

    def __init__(self, width: int = 1920, height: int = 1080, flush_frames: int = 1) -> None:
        try:
            from picamera2 import Picamera2  # type: ignore
        except Exception as exc:
            raise DeviceConnectionError(
                "Picamera2 not available. Install picamera2 or use MockCamera."
            ) from exc

        self._picamera2_cls = Picamera2
        self._cam = None
        self._size = (int(width), int(height))
        self._flush_frames = max(0, int(flush_frames))
        self._settings = CameraSettings()
        self._applied_controls: dict = {}
        self._callback: FrameCallback | None = None
        self._context: Any = None
        self._requests: "queue.Queue[bool]" = queue.Queue()
        self._worker: Optional[threading.Thread] = None
        self._grabbing = False
        self.log = get_logger("camera")

    def open(self) -> None:
        if self._cam is not None:
            return
        last_exc: Exception | None = None
        for attempt in range(5):
            try:
                self._cam = self._picamera2_cls()
                break
            except Exception as exc:
                last_exc = exc
                time.sleep(0.4)
        if self._cam is None:
            raise DeviceConnectionError("Picamera2 failed to initialise; camera may be busy.") from last_exc
        config = self._cam.create_still_configuration(
            main={"size": self._size, "format": "RGB888"},
        )
        self._cam.configure(config)
        self._cam.start()
        time.sleep(0.2)

    def configure(self, settings: CameraSettings) -> None:
        if self._cam is None:
            raise RuntimeError("Camera not opened")
        self._settings = settings
        controls: dict = {"AeEnable": bool(settings.exposure_auto or settings.gain_auto)}
        if settings.exposure_us is not None and not settings.exposure_auto:
            controls["ExposureTime"] = int(settings.exposure_us)
        if settings.gain is not None and not settings.gain_auto:
            # libcamera analogue gain is linear; settings carry dB.
            controls["AnalogueGain"] = float(10.0 ** (float(settings.gain) / 20.0))
        if settings.frame_rate:
            controls["FrameRate"] = float(settings.frame_rate)
        try:
            self._cam.set_controls(controls)
        except Exception as exc:
            raise RuntimeError(f"Failed to apply camera controls: {exc}") from exc
        self._applied_controls = dict(controls)
        try:
            md = self._cam.capture_metadata()
            for k in ("ExposureTime", "AnalogueGain", "AeEnable"):
                if k in md:
                    self._applied_controls[f"actual_{k}"] = md[k]
        except Exception as exc:
            self.log.debug("Could not read back camera metadata: %s", exc)

    def register_frame_callback(self, callback: FrameCallback, context: Any) -> None:
        if self._grabbing:
            raise RuntimeError("Register the frame callback before start_grabbing()")
        self._callback = callback
        self._context = context

    def start_grabbing(self) -> None:
        if self._cam is None:
            raise RuntimeError("Camera not opened")
        if self._grabbing:
            return
        self._grabbing = True
        self._worker = threading.Thread(target=self._deliver_loop, name="picamera2-delivery", daemon=True)
        self._worker.start()

    def stop_grabbing(self) -> None:
        if not self._grabbing:
            return
        self._requests.put(False)
        if self._worker is not None:
            self._worker.join(timeout=10.0)
        self._worker = None
        self._grabbing = False

    def software_trigger(self, command: str) -> bool:
        if not self._grabbing:
            return False
        self._requests.put(True)
        return True

    def trigger_selector(self) -> Optional[str]:
        return "FrameStart"

    def exposure_us(self) -> Optional[float]:
        actual = self._applied_controls.get("actual_ExposureTime")
        if actual is not None:
            return float(actual)
        return self._settings.exposure_us

    def get_applied_controls(self) -> dict:
        return dict(self._applied_controls)

    def _deliver_loop(self) -> None:
        frame_number = 0
        while self._requests.get():
            try:
                # Drop frames exposed before the trigger.
                for _ in range(self._flush_frames):
                    self._cam.capture_array("main")
                main = self._cam.capture_array("main")
            except Exception as exc:
                self.log.error("Picamera2 capture failed: %s", exc)
                continue
            gray = self._to_mono8(main)
            info = FrameInfo(width=gray.shape[1], height=gray.shape[0], frame_number=frame_number)
            frame_number += 1
            if self._callback is not None:
                self._callback(memoryview(gray).cast("B"), info, self._context)

    @staticmethod
    def _to_mono8(img: np.ndarray) -> np.ndarray:
        if img.ndim == 2:
            return np.ascontiguousarray(img.astype(np.uint8))
        f = img[:, :, :3].astype(np.float32)
        g = 0.299 * f[:, :, 0] + 0.587 * f[:, :, 1] + 0.114 * f[:, :, 2]
        return np.ascontiguousarray(np.clip(np.rint(g), 0, 255).astype(np.uint8))

    def close(self) -> None:
        self.stop_grabbing()
        if self._cam is None:
            return
        try:
            self._cam.stop()
        except Exception as exc:
            self.log.warning("Picamera2 stop failed: %s", exc)
        close_fn = getattr(self._cam, "close", None)
        if callable(close_fn):
            close_fn()
        time.sleep(0.2)
        self._cam = None
