import numpy as np
import pytest

from fringe_sync.camera.base import FRAME_TRIGGER_SOFTWARE, TRIGGER_SOFTWARE, select_trigger_command
from fringe_sync.camera.mock import MockCamera
from fringe_sync.core.models import CameraSettings


@pytest.mark.parametrize(
    "selector, command",
    [
        ("FrameStart", FRAME_TRIGGER_SOFTWARE),
        ("framestart", FRAME_TRIGGER_SOFTWARE),
        ("0", FRAME_TRIGGER_SOFTWARE),
        ("FrameBurstStart", TRIGGER_SOFTWARE),
        (None, TRIGGER_SOFTWARE),
    ],
)
def test_select_trigger_command(selector, command):
    assert select_trigger_command(selector) == command


class Collector:
    def __init__(self):
        self.frames = []
        self.contexts = []

    def __call__(self, buffer, info, context):
        self.frames.append(np.frombuffer(buffer, dtype=np.uint8).copy().reshape(info.height, info.width))
        self.contexts.append(context)


def test_one_frame_per_trigger_on_worker_thread():
    frame = np.arange(12, dtype=np.uint8).reshape(3, 4)
    cam = MockCamera(width=4, height=3, frame_source=lambda: frame)
    collector = Collector()
    cam.open()
    cam.register_frame_callback(collector, "ctx")
    cam.start_grabbing()
    assert cam.software_trigger(FRAME_TRIGGER_SOFTWARE)
    assert cam.software_trigger(TRIGGER_SOFTWARE)
    cam.stop_grabbing()

    assert cam.delivered == 2
    assert collector.contexts == ["ctx", "ctx"]
    assert np.array_equal(collector.frames[0], frame)


def test_failed_and_unknown_triggers_deliver_nothing():
    cam = MockCamera(width=2, height=2, fail_triggers={0})
    collector = Collector()
    cam.open()
    cam.register_frame_callback(collector, None)
    cam.start_grabbing()
    assert not cam.software_trigger(FRAME_TRIGGER_SOFTWARE)
    assert not cam.software_trigger("Bogus")
    cam.stop_grabbing()
    assert collector.frames == []


def test_extra_frames_arrive_on_stop():
    cam = MockCamera(width=2, height=2, extra_frames=2)
    collector = Collector()
    cam.open()
    cam.register_frame_callback(collector, None)
    cam.start_grabbing()
    cam.software_trigger(FRAME_TRIGGER_SOFTWARE)
    cam.stop_grabbing()
    assert len(collector.frames) == 3
    assert np.all(collector.frames[0] == 128)


def test_registration_rules():
    cam = MockCamera(width=2, height=2)
    with pytest.raises(RuntimeError):
        cam.start_grabbing()
    cam.open()
    cam.register_frame_callback(Collector(), None)
    cam.start_grabbing()
    with pytest.raises(RuntimeError):
        cam.register_frame_callback(Collector(), None)
    cam.close()


def test_exposure_follows_settings():
    cam = MockCamera()
    cam.configure(CameraSettings(exposure_us=2500.0))
    assert cam.exposure_us() == 2500.0
    assert cam.get_applied_controls()["exposure_us"] == 2500.0
