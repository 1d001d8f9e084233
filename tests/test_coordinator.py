import pytest

from fringe_sync.camera.mock import MockCamera
from fringe_sync.core.coordinator import CaptureCoordinator
from fringe_sync.core.models import CameraSettings
from fringe_sync.projector.controller import ProjectorStepController
from fringe_sync.projector.mock import MockProjector


def _rig(**projector_kwargs):
    projector = MockProjector(**projector_kwargs)
    projector.connect()
    camera = MockCamera(width=64, height=48, frame_source=projector.current_image)
    camera.open()
    return projector, camera


def _names(path):
    return sorted(p.name for p in path.iterdir())


def test_full_session_saves_every_frame(small_table, tmp_path, sleeper):
    projector, camera = _rig()
    coordinator = CaptureCoordinator(
        ProjectorStepController(projector), camera, sleep=sleeper, led_current=(0.8, 0.8, 0.8)
    )
    result = coordinator.run(small_table, tmp_path, camera_settings=CameraSettings())

    assert result.ok
    assert result.state == "IDLE"
    assert result.steps_completed == 8
    assert result.triggers_sent == 8
    assert result.frames_saved == 8
    assert result.summary() == "captured 8 of 8 expected frames"
    assert _names(tmp_path) == sorted(
        [f"I00{i}_V.png" for i in range(1, 5)] + [f"I00{i}_H.png" for i in range(5, 9)]
    )
    assert sleeper.calls == [0.2] + [0.05, 0.51] * 8
    assert projector.calls.count("step") == 8
    assert projector.calls[-1] == "stop"
    assert "set_led_current" in projector.calls
    assert camera.commands == ["FrameTriggerSoftware"] * 8


def test_frames_carry_the_displayed_pattern(small_table, tmp_path, sleeper):
    import numpy as np
    from PIL import Image

    projector, camera = _rig()
    CaptureCoordinator(ProjectorStepController(projector), camera, sleep=sleeper).run(small_table, tmp_path)

    expected = [img.pixels for s in small_table.sets for img in s.images]
    saved = np.asarray(Image.open(tmp_path / "I006_H.png"))
    assert np.array_equal(saved, expected[5])


def test_step_failure_stops_projector_and_keeps_earlier_frames(small_table, tmp_path, sleeper):
    projector, camera = _rig(fail_step_at=5)
    coordinator = CaptureCoordinator(ProjectorStepController(projector), camera, sleep=sleeper)
    result = coordinator.run(small_table, tmp_path)

    assert not result.ok
    assert result.steps_completed == 5
    assert "Step 5" in result.error
    assert result.frames_saved == 5
    assert _names(tmp_path) == ["I001_V.png", "I002_V.png", "I003_V.png", "I004_V.png", "I005_H.png"]
    assert projector.calls[-1] == "stop"
    assert coordinator.state == "IDLE"


def test_trigger_failure_is_recorded_and_loop_continues(small_table, tmp_path, sleeper):
    projector = MockProjector()
    projector.connect()
    camera = MockCamera(width=64, height=48, frame_source=projector.current_image, fail_triggers={2})
    camera.open()
    result = CaptureCoordinator(ProjectorStepController(projector), camera, sleep=sleeper).run(
        small_table, tmp_path
    )

    assert result.steps_completed == 8
    assert result.failed_triggers == [2]
    assert result.triggers_sent == 7
    assert result.frames_saved == 7
    assert result.summary() == "captured 7 of 8 expected frames"


def test_burst_selector_uses_generic_trigger(small_table, tmp_path, sleeper):
    projector = MockProjector()
    camera = MockCamera(width=64, height=48, selector="FrameBurstStart")
    camera.open()
    CaptureCoordinator(ProjectorStepController(projector), camera, sleep=sleeper).run(small_table, tmp_path)
    assert set(camera.commands) == {"TriggerSoftware"}


def test_unknown_exposure_uses_default_settle(small_table, tmp_path, sleeper):
    class NoExposure(MockCamera):
        def exposure_us(self):
            return None

    camera = NoExposure(width=64, height=48)
    camera.open()
    CaptureCoordinator(ProjectorStepController(MockProjector()), camera, sleep=sleeper).run(
        small_table, tmp_path
    )
    assert sleeper.calls[2] == 1.0


def test_extra_frames_are_dropped(small_table, tmp_path, sleeper):
    projector = MockProjector()
    camera = MockCamera(width=64, height=48, extra_frames=3)
    camera.open()
    result = CaptureCoordinator(ProjectorStepController(projector), camera, sleep=sleeper).run(
        small_table, tmp_path
    )
    assert result.frames_received == 11
    assert result.frames_dropped == 3
    assert len(_names(tmp_path)) == 8


def test_upload_failure_never_steps(small_table, tmp_path, sleeper):
    projector, camera = _rig(fail_upload=True)
    coordinator = CaptureCoordinator(ProjectorStepController(projector), camera, sleep=sleeper)
    result = coordinator.run(small_table, tmp_path)

    assert not result.ok
    assert result.state == "ERROR"
    assert result.steps_completed == 0
    assert "step" not in projector.calls
    assert "project(False)" not in projector.calls
    assert coordinator.get_status()["last_error"] == result.error


def test_camera_start_failure_is_a_connection_error(small_table, tmp_path, sleeper):
    projector = MockProjector()
    camera = MockCamera(width=64, height=48)  # never opened
    result = CaptureCoordinator(ProjectorStepController(projector), camera, sleep=sleeper).run(
        small_table, tmp_path
    )
    assert result.state == "ERROR"
    assert "grabbing" in result.error
    assert "populate" not in projector.calls


def test_request_stop_halts_at_step_boundary(small_table, tmp_path):
    projector, camera = _rig()
    calls = []

    def sleep(seconds):
        calls.append(seconds)
        if len(calls) == 3:
            coordinator.request_stop()

    coordinator = CaptureCoordinator(ProjectorStepController(projector), camera, sleep=sleep)
    result = coordinator.run(small_table, tmp_path)

    assert not result.ok
    assert result.steps_completed == 1
    assert "Stopped" in result.error
    assert projector.calls[-1] == "stop"
    status = coordinator.get_status()
    assert status["state"] == "IDLE"
    assert status["step_index"] == 1
    assert status["total_steps"] == 8


def test_coordinator_can_run_again_after_error(small_table, tmp_path, sleeper):
    projector = MockProjector(fail_upload=True)
    camera = MockCamera(width=64, height=48)
    camera.open()
    coordinator = CaptureCoordinator(ProjectorStepController(projector), camera, sleep=sleeper)
    assert coordinator.run(small_table, tmp_path / "a").state == "ERROR"

    projector.fail_upload = False
    result = coordinator.run(small_table, tmp_path / "b")
    assert result.ok


def test_led_current_out_of_range_aborts(small_table, tmp_path, sleeper):
    projector, camera = _rig()
    coordinator = CaptureCoordinator(
        ProjectorStepController(projector), camera, sleep=sleeper, led_current=(2.0, 0.0, 0.0)
    )
    result = coordinator.run(small_table, tmp_path)
    assert result.state == "ERROR"
    assert "step" not in projector.calls


def test_unwritable_save_dir_reports_error_and_recovers(small_table, tmp_path, sleeper):
    blocker = tmp_path / "blocker"
    blocker.write_text("not a directory")
    projector, camera = _rig()
    coordinator = CaptureCoordinator(ProjectorStepController(projector), camera, sleep=sleeper)

    result = coordinator.run(small_table, blocker / "captures")
    assert not result.ok
    assert result.state == "ERROR"
    assert "capture directory" in result.error
    assert "populate" not in projector.calls
    assert coordinator.state == "ERROR"

    result = coordinator.run(small_table, tmp_path / "ok")
    assert result.ok
    assert len(_names(tmp_path / "ok")) == 8
