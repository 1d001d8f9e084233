"""Capture coordinator stepping the projector and triggering the camera."""

from __future__ import annotations

import threading
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Literal, Optional

from fringe_sync.camera.base import CameraBase, select_trigger_command
from fringe_sync.core.errors import (
    DeviceConnectionError,
    SaveError,
    StepError,
    TriggerError,
    UploadError,
)
from fringe_sync.core.logging import get_logger
from fringe_sync.core.models import CameraSettings, PatternTable, SessionResult
from fringe_sync.core.timing import TimingConfig, camera_settle_ms, projector_wait_ms
from fringe_sync.io.frame_sink import CaptureContext, FrameSink
from fringe_sync.projector.controller import ProjectorStepController


State = Literal["IDLE", "UPLOADING", "STEPPING", "STOPPING", "ERROR"]


class CaptureCoordinator:
    """
    Drives one acquisition session: upload, then for every pattern advance
    the projector, wait out its timing window, trigger the camera and wait
    for the exposure to finish.

    Progress is tracked by the coordinator's own step index. Device-side
    counters reset at pattern-set boundaries and are never consulted, and
    frame arrival is never waited on: the camera thread only writes files.
    """

    def __init__(
        self,
        projector: ProjectorStepController,
        camera: CameraBase,
        timing: Optional[TimingConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        led_current: Optional[tuple[float, float, float]] = None,
        index_width: int = 3,
    ) -> None:
        self.projector = projector
        self.camera = camera
        self.timing = timing or TimingConfig()
        self.led_current = led_current
        self.index_width = int(index_width)
        self.log = get_logger("coordinator")
        self._sleep = sleep

        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._state: State = "IDLE"
        self._step_index = 0
        self._total_steps = 0
        self._last_error: Optional[str] = None
        self._started_at: Optional[str] = None
        self._ended_at: Optional[str] = None
        self._context: Optional[CaptureContext] = None

    @property
    def state(self) -> State:
        with self._lock:
            return self._state

    def request_stop(self) -> None:
        """Stop at the next step boundary; a running wait is not interrupted."""
        self._stop_event.set()

    def get_status(self) -> Dict[str, Any]:
        with self._lock:
            ctx = self._context
            return {
                "state": self._state,
                "step_index": self._step_index,
                "total_steps": self._total_steps,
                "frames_received": ctx.frames_received if ctx is not None else 0,
                "last_error": self._last_error,
                "started_at": self._started_at,
                "ended_at": self._ended_at,
            }

    def _set_state(self, state: State) -> None:
        with self._lock:
            self._state = state
        self.log.debug("State -> %s", state)

    def _wait_ms(self, ms: int) -> None:
        if ms > 0:
            self._sleep(ms / 1000.0)

    def run(
        self,
        table: PatternTable,
        save_dir: str | Path,
        camera_settings: Optional[CameraSettings] = None,
        sink: Optional[FrameSink] = None,
    ) -> SessionResult:
        with self._lock:
            if self._state not in ("IDLE", "ERROR"):
                raise RuntimeError("Capture session already running")
            self._state = "UPLOADING"
            self._stop_event.clear()
            self._step_index = 0
            self._total_steps = table.total_patterns
            self._last_error = None
            self._started_at = datetime.now().isoformat()
            self._ended_at = None

        total = table.total_patterns
        context = CaptureContext(
            expected_total=total,
            steps_per_orientation=table.steps_per_orientation,
            save_dir=Path(save_dir),
            index_width=self.index_width,
        )
        with self._lock:
            self._context = context

        result = SessionResult(ok=False, state="UPLOADING", total_patterns=total)
        grabbing = False
        stepping = False
        try:
            try:
                context.save_dir.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                raise SaveError(f"Cannot create capture directory {context.save_dir}: {exc}") from exc
            if camera_settings is not None:
                self.camera.configure(camera_settings)
            self.camera.register_frame_callback(sink or FrameSink(), context)
            try:
                self.camera.start_grabbing()
            except Exception as exc:
                raise DeviceConnectionError(f"Camera failed to start grabbing: {exc}") from exc
            grabbing = True

            self.projector.upload(table)
            if self.led_current is not None:
                self.projector.set_led_current(*self.led_current)
            self.projector.begin_stepping()
            stepping = True
            self._set_state("STEPPING")
            self._wait_ms(self.timing.start_delay_ms)

            self._step_loop(table, result)
            result.ok = result.error is None
        except (DeviceConnectionError, SaveError, UploadError, StepError) as exc:
            # StepError here means step mode was never entered.
            result.error = str(exc)
            self.log.error("Session aborted: %s", exc)
            self._set_state("ERROR")
        except Exception as exc:
            result.error = str(exc)
            self.log.exception("Capture session failed")
            self._set_state("ERROR")
        finally:
            failed = self.state == "ERROR"
            if not failed:
                self._set_state("STOPPING")
            if stepping or self.projector.table is not None:
                if not self.projector.stop():
                    self.log.warning("Projector did not confirm stop")
            if grabbing:
                try:
                    self.camera.stop_grabbing()
                except Exception as exc:
                    self.log.error("Camera stop_grabbing failed: %s", exc)

            result.frames_received = context.frames_received
            result.frames_saved = context.saved.value
            result.frames_dropped = context.dropped.value
            with self._lock:
                self._ended_at = datetime.now().isoformat()
                self._last_error = result.error
                if not failed:
                    self._state = "IDLE"
                result.state = self._state

        level = self.log.info if result.ok else self.log.warning
        level(
            "Session finished: %d/%d steps, %s",
            result.steps_completed,
            total,
            result.summary(),
        )
        return result

    def _step_loop(self, table: PatternTable, result: SessionResult) -> None:
        total = table.total_patterns
        n = table.steps_per_orientation
        for i in range(total):
            if self._stop_event.is_set():
                result.error = f"Stopped by request before step {i}"
                self.log.warning(result.error)
                break

            try:
                self.projector.advance()
            except StepError as exc:
                result.error = f"Step {i} failed: {exc}"
                self.log.error(result.error)
                break
            result.steps_completed = i + 1
            with self._lock:
                self._step_index = i + 1

            pattern_set = table.set_for_step(i)
            orientation = "vertical" if i < n else "horizontal"
            wait_ms = projector_wait_ms(pattern_set, self.timing)
            self.log.info("Step %d/%d (%s): projector settle %d ms", i + 1, total, orientation, wait_ms)
            self._wait_ms(wait_ms)

            try:
                self._trigger(i)
                result.triggers_sent += 1
            except TriggerError as exc:
                result.failed_triggers.append(i)
                self.log.error("%s; frame for step %d will be missing", exc, i + 1)

            settle = camera_settle_ms(self._read_exposure(), self.timing)
            self.log.debug("Step %d: camera settle %d ms", i + 1, settle)
            self._wait_ms(settle)

    def _trigger(self, index: int) -> None:
        try:
            selector = self.camera.trigger_selector()
        except Exception as exc:
            self.log.debug("Trigger selector query failed: %s", exc)
            selector = None
        command = select_trigger_command(selector)
        try:
            ok = self.camera.software_trigger(command)
        except Exception as exc:
            raise TriggerError(f"Software trigger {command} raised: {exc}", index=index) from exc
        if not ok:
            raise TriggerError(f"Software trigger {command} failed", index=index)

    def _read_exposure(self) -> Optional[float]:
        try:
            return self.camera.exposure_us()
        except Exception as exc:
            self.log.debug("Exposure query failed: %s", exc)
            return None
