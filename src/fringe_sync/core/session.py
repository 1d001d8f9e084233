"""End-to-end acquisition: generate, build, upload, capture, record."""

from __future__ import annotations

import time
from datetime import datetime
from typing import Callable, Optional

from fringe_sync.camera.base import CameraBase
from fringe_sync.core.coordinator import CaptureCoordinator
from fringe_sync.core.errors import PatternTableError
from fringe_sync.core.logging import get_logger
from fringe_sync.core.models import (
    CameraSettings,
    FringeParameters,
    PatternTiming,
    RunMeta,
    SessionResult,
)
from fringe_sync.core.timing import TimingConfig
from fringe_sync.io.run_store import RunStore
from fringe_sync.patterns.generator import FringePatternGenerator
from fringe_sync.patterns.table import PatternTableBuilder
from fringe_sync.projector.base import ProjectorBase
from fringe_sync.projector.controller import ProjectorStepController


log = get_logger("session")


def run_scan(
    params: FringeParameters,
    projector: ProjectorBase,
    camera: CameraBase,
    store: RunStore,
    pattern_timing: Optional[PatternTiming] = None,
    timing: Optional[TimingConfig] = None,
    camera_settings: Optional[CameraSettings] = None,
    led_current: Optional[tuple[float, float, float]] = None,
    save_patterns: bool = False,
    index_width: int = 3,
    sleep: Callable[[float], None] = time.sleep,
) -> tuple[str, SessionResult]:
    """
    Run one structured-light acquisition on connected devices.

    The projector must be freshly connected: re-uploading a table on a
    device that already holds one may display stale patterns.
    """
    pattern_timing = pattern_timing or PatternTiming()
    timing = timing or TimingConfig()

    generator = FringePatternGenerator()
    images = generator.generate(params)
    if len(images) != 2 * params.N:
        raise PatternTableError(
            f"Fringe generation produced {len(images)} images, expected {2 * params.N}"
        )
    table = PatternTableBuilder().build(
        images,
        pattern_timing,
        device_width=params.width,
        device_height=params.height,
        steps=params.N,
    )

    device_info = {
        "projector": type(projector).__name__,
        "camera": type(camera).__name__,
        "timing": timing.to_dict(),
        "pattern_meta": generator.pattern_metadata(params),
    }
    run_id, run_dir, meta = store.create_run(params.to_dict(), device_info)
    if save_patterns:
        store.save_patterns(run_dir, images)
    log.info("Run %s: %d patterns, output %s", run_id, table.total_patterns, run_dir)

    coordinator = CaptureCoordinator(
        ProjectorStepController(projector),
        camera,
        timing=timing,
        sleep=sleep,
        led_current=led_current,
        index_width=index_width,
    )
    result = coordinator.run(
        table,
        store.captures_dir(run_dir),
        camera_settings=camera_settings,
    )

    if result.ok and result.frames_saved == table.total_patterns:
        status = "completed"
    elif result.frames_saved > 0:
        status = "partial"
    else:
        status = "failed"
    device_info["applied_controls"] = camera.get_applied_controls()
    meta = RunMeta(
        run_id=run_id,
        params=params.to_dict(),
        started_at=meta.started_at,
        finished_at=datetime.now().isoformat(),
        status=status,
        error=result.error,
        device_info=device_info,
        total_frames=table.total_patterns,
        saved_frames=result.frames_saved,
        pattern_table=table.to_dict(),
        session=result.to_dict(),
    )
    store.save_meta(run_dir, meta)
    log.info("Run %s %s: %s", run_id, status, result.summary())
    return run_id, result
