import threading
from pathlib import Path

import numpy as np
from PIL import Image

from fringe_sync.core.models import FrameInfo
from fringe_sync.io.frame_sink import (
    AtomicCounter,
    CaptureContext,
    FrameSink,
    frame_filename,
    handle_frame,
    orientation_for_frame,
)


def _ctx(tmp_path, total=8, n=4, index_width=3):
    return CaptureContext(expected_total=total, steps_per_orientation=n, save_dir=tmp_path, index_width=index_width)


def test_frame_filename_padding():
    assert frame_filename(1, "vertical") == "I001_V.png"
    assert frame_filename(12, "horizontal", 3) == "I012_H.png"
    assert frame_filename(5, "horizontal", 0) == "I5_H.png"


def test_orientation_boundary():
    assert orientation_for_frame(1, 4) == "vertical"
    assert orientation_for_frame(4, 4) == "vertical"
    assert orientation_for_frame(5, 4) == "horizontal"


def test_saves_copy_of_transient_buffer(tmp_path):
    ctx = _ctx(tmp_path)
    buf = bytearray(np.arange(12, dtype=np.uint8).tobytes())
    record = handle_frame(memoryview(buf), FrameInfo(width=4, height=3), ctx)
    buf[:] = bytes(12)

    assert record.frame_index == 1
    assert record.orientation == "vertical"
    assert record.save_path == tmp_path / "I001_V.png"
    assert record.pixels[2, 3] == 11
    saved = np.asarray(Image.open(record.save_path))
    assert saved.shape == (3, 4)
    assert saved[2, 3] == 11
    assert ctx.saved.value == 1


def test_indices_follow_arrival_order_and_extra_frames_drop(tmp_path):
    ctx = _ctx(tmp_path, total=4, n=2)
    frame = np.full((2, 2), 7, dtype=np.uint8)
    records = [handle_frame(frame, FrameInfo(width=2, height=2), ctx) for _ in range(6)]

    assert [r.save_path.name for r in records[:4]] == ["I001_V.png", "I002_V.png", "I003_H.png", "I004_H.png"]
    assert records[4] is None and records[5] is None
    assert ctx.frames_received == 6
    assert ctx.dropped.value == 2
    assert sorted(p.name for p in tmp_path.iterdir()) == ["I001_V.png", "I002_V.png", "I003_H.png", "I004_H.png"]


def test_short_buffer_is_counted_not_raised(tmp_path):
    ctx = _ctx(tmp_path)
    assert handle_frame(b"\x00\x01", FrameInfo(width=4, height=4), ctx) is None
    assert ctx.failed.value == 1
    assert ctx.frames_received == 1


def test_save_failure_is_logged(tmp_path, caplog):
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("x")
    ctx = _ctx(blocker)
    with caplog.at_level("ERROR", logger="fringe_sync"):
        record = handle_frame(np.zeros((2, 2), dtype=np.uint8), FrameInfo(width=2, height=2), ctx)
    assert record is not None
    assert record.save_path is None
    assert ctx.failed.value == 1
    assert ctx.saved.value == 0
    assert "Failed to save" in caplog.text


def test_frame_sink_keeps_records(tmp_path):
    sink = FrameSink(keep_records=True)
    ctx = _ctx(tmp_path, total=1, n=1, index_width=0)
    sink(np.zeros((2, 2), dtype=np.uint8), FrameInfo(width=2, height=2), ctx)
    sink(np.zeros((2, 2), dtype=np.uint8), FrameInfo(width=2, height=2), ctx)
    assert len(sink.records) == 1
    assert sink.records[0].save_path == Path(tmp_path) / "I1_V.png"


def test_atomic_counter_under_threads():
    counter = AtomicCounter()

    def work():
        for _ in range(1000):
            counter.increment()

    threads = [threading.Thread(target=work) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert counter.value == 8000


def test_wide_dtype_frame_is_rejected(tmp_path):
    ctx = _ctx(tmp_path)
    frame = np.full((2, 2), 300, dtype=np.uint16)
    assert handle_frame(frame, FrameInfo(width=2, height=2), ctx) is None
    assert ctx.failed.value == 1
    assert ctx.saved.value == 0
    assert list(tmp_path.iterdir()) == []
